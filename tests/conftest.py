"""Shared test fixtures and sample data."""

import pytest

from xlend_looping.market_data import FALLBACK_RATES, MarketRates


@pytest.fixture
def market_rates() -> MarketRates:
    """xLend e-mode rates used across the engine tests"""
    return FALLBACK_RATES


@pytest.fixture
def live_payload() -> dict:
    """Payload as served by the market endpoint"""
    return {
        "supplyApy": 7.12,
        "borrowApy": 5.01,
        "ltv": 0.925,
        "liquidationThreshold": 0.965,
        "price": 9.35,
        "source": "live",
    }
