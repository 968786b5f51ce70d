"""
Market data contract for the looping engine.

The market endpoint serves the current xLend rates for xEGLD/EGLD:
- xEGLD supply APY (native staking yield)
- EGLD borrow APY
- e-mode LTV and liquidation threshold
- EGLD price

The engine only ever sees a complete MarketRates record. Any transport error
or malformed payload is replaced by FALLBACK_RATES and tagged as such.
"""

import logging
import math
import os
import requests
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class MarketDataError(Exception):
    """Raised when a market payload cannot be turned into MarketRates."""


@dataclass(frozen=True)
class MarketRates:
    """Container for market rate data."""
    supply_apy: float             # xEGLD supply APY (%)
    borrow_apy: float             # EGLD borrow APY (%)
    ltv: float                    # e-mode LTV
    liquidation_threshold: float  # e-mode liquidation threshold
    price: float                  # EGLD price (USD)
    xegld_ratio: Optional[float] = None   # EGLD per xEGLD, when reported

    @property
    def supply_apr(self) -> float:
        """Supply rate as a decimal."""
        return self.supply_apy / 100.0

    @property
    def borrow_apr(self) -> float:
        """Borrow rate as a decimal."""
        return self.borrow_apy / 100.0

    @property
    def raw_spread(self) -> float:
        """Raw spread = supply APY - borrow APY (%)."""
        return self.supply_apy - self.borrow_apy


@dataclass(frozen=True)
class MarketDataResult:
    """Market rates tagged with where they came from."""
    rates: Optional[MarketRates]  # None only when source is "error"
    source: str                   # "live", "fallback" or "error"
    error: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.source == "live"


FALLBACK_RATES = MarketRates(
    supply_apy=6.09,
    borrow_apy=4.53,
    ltv=0.925,
    liquidation_threshold=0.965,
    price=8.0,
)

DEFAULT_MARKET_URL = "http://localhost:3000/api/xoxno-market"

# Payload field -> MarketRates field
_PAYLOAD_FIELDS = {
    "supplyApy": "supply_apy",
    "borrowApy": "borrow_apy",
    "ltv": "ltv",
    "liquidationThreshold": "liquidation_threshold",
    "price": "price",
}


def market_url() -> str:
    """Market endpoint URL, overridable with XLEND_MARKET_URL."""
    return os.environ.get("XLEND_MARKET_URL", DEFAULT_MARKET_URL)


def parse_market_payload(payload: Dict[str, Any]) -> MarketRates:
    """
    Convert a market endpoint payload into MarketRates.

    Older payloads name the price field 'egldPrice'; both are accepted.
    The endpoint reports 0 for e-mode parameters and prices it could not
    read, so those are rejected along with NaN and infinite values.

    Args:
        payload: Decoded JSON body

    Returns:
        MarketRates

    Raises:
        MarketDataError: If the payload reports an error, or a field is
            missing, not a finite number, or out of range
    """
    if not isinstance(payload, dict):
        raise MarketDataError(f"Expected a JSON object, got {type(payload).__name__}")

    if payload.get("source") == "error":
        raise MarketDataError(payload.get("error") or "Market endpoint returned an error")

    values = {}
    for key, field_name in _PAYLOAD_FIELDS.items():
        raw = payload.get(key)
        if raw is None and key == "price":
            raw = payload.get("egldPrice")
        if not _is_finite_number(raw):
            raise MarketDataError(f"Field '{key}' missing or not a finite number: {raw!r}")
        values[field_name] = float(raw)

    _check_ranges(values)

    # Optional; absent or unreadable ratios are dropped
    ratio = payload.get("xegldRatio")
    if _is_finite_number(ratio) and ratio > 0:
        values["xegld_ratio"] = float(ratio)

    return MarketRates(**values)


def _is_finite_number(raw: Any) -> bool:
    # bool is an int subclass but never a valid rate
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return False
    return math.isfinite(raw)


def _check_ranges(values: Dict[str, float]) -> None:
    """Raise MarketDataError on values the engine would reject."""
    ltv = values["ltv"]
    threshold = values["liquidation_threshold"]

    if not 0.0 < threshold <= 1.0:
        raise MarketDataError(f"liquidationThreshold out of range: {threshold}")
    if not 0.0 <= ltv < threshold:
        raise MarketDataError(f"ltv {ltv} must be in [0, liquidationThreshold {threshold})")
    if not values["price"] > 0:
        raise MarketDataError(f"price must be positive: {values['price']}")
    for key in ("supply_apy", "borrow_apy"):
        if values[key] <= -100.0:
            raise MarketDataError(f"{key} out of range: {values[key]}")


def fetch_market_rates(
    url: Optional[str] = None,
    timeout: float = 10,
    use_fallback: bool = True,
) -> MarketDataResult:
    """
    Fetch current market rates, substituting fallback rates on failure.

    Args:
        url: Market endpoint (default from market_url())
        timeout: Request timeout in seconds
        use_fallback: Substitute FALLBACK_RATES on failure; when False the
            failure is reported as an "error" result without rates

    Returns:
        MarketDataResult tagged "live" on success, "fallback" or "error" otherwise
    """
    url = url or market_url()

    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        rates = parse_market_payload(response.json())
    except (requests.RequestException, ValueError, MarketDataError) as e:
        if not use_fallback:
            logger.error("Market data unavailable: %s", e)
            return MarketDataResult(None, "error", str(e))
        logger.warning("Using fallback market rates: %s", e)
        return MarketDataResult(FALLBACK_RATES, "fallback", str(e))

    logger.info("Fetched live market rates from %s", url)
    return MarketDataResult(rates, "live")
