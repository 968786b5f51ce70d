"""Tests for the market data contract"""

import pytest
import requests
from unittest.mock import Mock, patch

from xlend_looping.market_data import (
    DEFAULT_MARKET_URL,
    FALLBACK_RATES,
    MarketDataError,
    MarketDataResult,
    MarketRates,
    fetch_market_rates,
    market_url,
    parse_market_payload,
)
from xlend_looping.loops import calculate_looping_yield


@pytest.fixture
def mock_get():
    """Fixture to patch requests.get in the market data module"""
    with patch("xlend_looping.market_data.requests.get") as mock:
        yield mock


def _response(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestParseMarketPayload:
    """Test suite for payload parsing"""

    def test_live_payload(self, live_payload):
        rates = parse_market_payload(live_payload)

        assert rates == MarketRates(
            supply_apy=7.12,
            borrow_apy=5.01,
            ltv=0.925,
            liquidation_threshold=0.965,
            price=9.35,
        )

    def test_egld_price_alias(self, live_payload):
        live_payload["egldPrice"] = live_payload.pop("price")
        assert parse_market_payload(live_payload).price == 9.35

    def test_integer_values(self, live_payload):
        live_payload["price"] = 9
        rates = parse_market_payload(live_payload)

        assert rates.price == 9.0
        assert isinstance(rates.price, float)

    def test_error_source(self):
        with pytest.raises(MarketDataError, match="SDK failure"):
            parse_market_payload({"source": "error", "error": "SDK failure"})

    @pytest.mark.parametrize("field", ["supplyApy", "borrowApy", "ltv", "liquidationThreshold", "price"])
    def test_missing_field(self, live_payload, field):
        del live_payload[field]
        with pytest.raises(MarketDataError, match=field):
            parse_market_payload(live_payload)

    @pytest.mark.parametrize("value", [None, "6.09", True])
    def test_non_numeric_field(self, live_payload, value):
        live_payload["supplyApy"] = value
        with pytest.raises(MarketDataError):
            parse_market_payload(live_payload)

    @pytest.mark.parametrize("field", ["supplyApy", "borrowApy", "ltv", "liquidationThreshold", "price"])
    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_field(self, live_payload, field, value):
        live_payload[field] = value
        with pytest.raises(MarketDataError, match="finite"):
            parse_market_payload(live_payload)

    @pytest.mark.parametrize("overrides", [
        {"ltv": 0, "liquidationThreshold": 0},
        {"liquidationThreshold": 1.2},
        {"ltv": -0.1},
        {"ltv": 0.97},
        {"ltv": 1.0, "liquidationThreshold": 1.0},
        {"price": 0},
        {"price": -3.0},
        {"borrowApy": -100.0},
    ])
    def test_out_of_range_values(self, live_payload, overrides):
        live_payload.update(overrides)
        with pytest.raises(MarketDataError):
            parse_market_payload(live_payload)

    def test_unlevered_ltv_accepted(self, live_payload):
        live_payload["ltv"] = 0
        assert parse_market_payload(live_payload).ltv == 0.0

    def test_xegld_ratio(self, live_payload):
        live_payload["xegldRatio"] = 1.0589
        assert parse_market_payload(live_payload).xegld_ratio == 1.0589

    @pytest.mark.parametrize("ratio", [0, None, "1.05", float("nan")])
    def test_unreadable_xegld_ratio_dropped(self, live_payload, ratio):
        live_payload["xegldRatio"] = ratio
        assert parse_market_payload(live_payload).xegld_ratio is None

    def test_non_object_payload(self):
        with pytest.raises(MarketDataError):
            parse_market_payload([1, 2, 3])


class TestMarketRates:
    """Test suite for MarketRates conversions"""

    def test_decimal_rates(self):
        assert FALLBACK_RATES.supply_apr == pytest.approx(0.0609)
        assert FALLBACK_RATES.borrow_apr == pytest.approx(0.0453)
        assert FALLBACK_RATES.raw_spread == pytest.approx(1.56)

    def test_fallback_values(self):
        assert FALLBACK_RATES.supply_apy == 6.09
        assert FALLBACK_RATES.borrow_apy == 4.53
        assert FALLBACK_RATES.ltv == 0.925
        assert FALLBACK_RATES.liquidation_threshold == 0.965
        assert FALLBACK_RATES.price == 8.0


class TestFetchMarketRates:
    """Test suite for fetch_market_rates"""

    def test_live(self, mock_get, live_payload):
        mock_get.return_value = _response(live_payload)

        result = fetch_market_rates("https://example.com/market")

        assert isinstance(result, MarketDataResult)
        assert result.source == "live"
        assert result.is_live
        assert result.error is None
        assert result.rates.supply_apy == 7.12
        mock_get.assert_called_once_with("https://example.com/market", timeout=10)

    def test_transport_failure_falls_back(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("connection refused")

        result = fetch_market_rates("https://example.com/market")

        assert result.source == "fallback"
        assert result.rates == FALLBACK_RATES
        assert "connection refused" in result.error

    def test_http_error_falls_back(self, mock_get):
        response = _response({})
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        mock_get.return_value = response

        result = fetch_market_rates("https://example.com/market")

        assert result.source == "fallback"
        assert result.rates == FALLBACK_RATES

    def test_invalid_json_falls_back(self, mock_get):
        response = _response(None)
        response.json.side_effect = ValueError("Expecting value")
        mock_get.return_value = response

        assert fetch_market_rates("https://example.com/market").source == "fallback"

    def test_error_payload_falls_back(self, mock_get):
        mock_get.return_value = _response({"source": "error", "error": "SDK failure"})

        result = fetch_market_rates("https://example.com/market")

        assert result.source == "fallback"
        assert result.error == "SDK failure"

    def test_malformed_payload_falls_back(self, mock_get, live_payload):
        live_payload["ltv"] = None
        mock_get.return_value = _response(live_payload)

        assert fetch_market_rates("https://example.com/market").rates == FALLBACK_RATES

    def test_missing_emode_profile_falls_back(self, mock_get, live_payload):
        """Zeroed e-mode parameters never reach the engine"""
        live_payload.update({"ltv": 0, "liquidationThreshold": 0})
        mock_get.return_value = _response(live_payload)

        result = fetch_market_rates("https://example.com/market")

        assert result.source == "fallback"
        assert result.rates == FALLBACK_RATES
        assert calculate_looping_yield(
            1000.0, 3, result.rates.ltv, result.rates.liquidation_threshold,
            result.rates.supply_apy, result.rates.borrow_apy,
        ).loops == 3

    def test_nan_rate_falls_back(self, mock_get, live_payload):
        live_payload["supplyApy"] = float("nan")
        mock_get.return_value = _response(live_payload)

        result = fetch_market_rates("https://example.com/market")

        assert result.source == "fallback"
        assert result.rates == FALLBACK_RATES

    def test_fallback_is_logged(self, mock_get, caplog):
        mock_get.side_effect = requests.Timeout("timed out")

        with caplog.at_level("WARNING", logger="xlend_looping.market_data"):
            fetch_market_rates("https://example.com/market")

        assert "fallback" in caplog.text

    def test_error_without_fallback(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("connection refused")

        result = fetch_market_rates("https://example.com/market", use_fallback=False)

        assert result.source == "error"
        assert result.rates is None
        assert not result.is_live

    def test_url_from_environment(self, mock_get, live_payload, monkeypatch):
        monkeypatch.setenv("XLEND_MARKET_URL", "https://rates.example.org/xlend")
        mock_get.return_value = _response(live_payload)

        fetch_market_rates()

        mock_get.assert_called_once_with("https://rates.example.org/xlend", timeout=10)

    def test_default_url(self, monkeypatch):
        monkeypatch.delenv("XLEND_MARKET_URL", raising=False)
        assert market_url() == DEFAULT_MARKET_URL
