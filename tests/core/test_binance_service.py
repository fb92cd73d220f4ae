"""
Tests for BinanceServiceClient and RequestWeightTracker.
"""

from unittest.mock import patch

import pytest
import requests
from binance.error import ClientError, ServerError

from btc_dashboard.core.binance_service import BinanceServiceClient, RequestWeightTracker
from btc_dashboard.core.exceptions import TransportFailure

UM_FUTURES = "btc_dashboard.core.binance_service.UMFutures"


@pytest.fixture
def mock_um_futures():
    with patch(UM_FUTURES) as mock_cls:
        yield mock_cls


@pytest.fixture
def service(mock_um_futures):
    return BinanceServiceClient(is_testnet=False)


@pytest.fixture(autouse=True)
def no_retry_sleep():
    with patch("btc_dashboard.core.retry.time.sleep"):
        yield


class TestBinanceServiceInitialization:
    """Test suite for client construction."""

    def test_mainnet_client(self, mock_um_futures):
        BinanceServiceClient()

        mock_um_futures.assert_called_once_with(
            base_url="https://fapi.binance.com",
            timeout=10.0,
            show_limit_usage=True,
        )

    def test_testnet_client(self, mock_um_futures):
        service = BinanceServiceClient(is_testnet=True)

        assert service.base_url == "https://testnet.binancefuture.com"

    def test_custom_base_url_overrides_testnet(self, mock_um_futures):
        service = BinanceServiceClient(is_testnet=True, base_url="https://proxy.local")

        assert service.base_url == "https://proxy.local"


class TestBinanceServiceCalls:
    """Test suite for REST wrappers."""

    def test_klines_maps_parameters(self, service, mock_um_futures):
        # Arrange
        client = mock_um_futures.return_value
        client.klines.return_value = {
            "limit_usage": {"x-mbx-used-weight-1m": "12"},
            "data": [[1, "1", "1", "1", "1"]],
        }

        # Act
        rows = service.klines("BTCUSDT", "1m", start_time=1000, end_time=2000, limit=500)

        # Assert
        assert rows == [[1, "1", "1", "1", "1"]]
        client.klines.assert_called_once_with(
            symbol="BTCUSDT", interval="1m", startTime=1000, endTime=2000, limit=500
        )
        assert service.weight_tracker.current_weight == 12

    def test_klines_omits_unset_parameters(self, service, mock_um_futures):
        client = mock_um_futures.return_value
        client.klines.return_value = []

        service.klines("BTCUSDT", "1d", limit=2)

        client.klines.assert_called_once_with(symbol="BTCUSDT", interval="1d", limit=2)

    def test_ticker_price(self, service, mock_um_futures):
        client = mock_um_futures.return_value
        client.ticker_price.return_value = {"symbol": "BTCUSDT", "price": "64250.10"}

        assert service.ticker_price("BTCUSDT") == {"symbol": "BTCUSDT", "price": "64250.10"}

    def test_ticker_24hr_uses_price_change_endpoint(self, service, mock_um_futures):
        client = mock_um_futures.return_value
        client.ticker_24hr_price_change.return_value = {"priceChangePercent": "1.5"}

        assert service.ticker_24hr("BTCUSDT") == {"priceChangePercent": "1.5"}
        client.ticker_24hr_price_change.assert_called_once_with(symbol="BTCUSDT")


class TestBinanceServiceErrorTranslation:
    """Library and network errors surface as TransportFailure."""

    def test_client_error_translated(self, service, mock_um_futures):
        mock_um_futures.return_value.klines.side_effect = ClientError(
            status_code=400, error_code=-1121, error_message="Invalid symbol.", header={}
        )

        with pytest.raises(TransportFailure, match="HTTP 400"):
            service.klines("NOPE", "1m")

    def test_server_error_retried_then_translated(self, service, mock_um_futures):
        client = mock_um_futures.return_value
        client.ticker_price.side_effect = ServerError(503, "Service unavailable")

        with pytest.raises(TransportFailure, match="server error"):
            service.ticker_price("BTCUSDT")

        # 1 initial attempt + 2 retries
        assert client.ticker_price.call_count == 3

    def test_transient_error_recovers(self, service, mock_um_futures):
        client = mock_um_futures.return_value
        client.ticker_price.side_effect = [
            ClientError(status_code=429, error_code=-1003, error_message="Too many requests", header={}),
            {"symbol": "BTCUSDT", "price": "1"},
        ]

        assert service.ticker_price("BTCUSDT") == {"symbol": "BTCUSDT", "price": "1"}

    def test_network_error_translated(self, service, mock_um_futures):
        mock_um_futures.return_value.ticker_24hr_price_change.side_effect = (
            requests.ConnectionError("connection reset")
        )

        with pytest.raises(TransportFailure, match="network error"):
            service.ticker_24hr("BTCUSDT")


class TestRequestWeightTracker:
    """Test suite for RequestWeightTracker."""

    def test_header_key_is_case_insensitive(self):
        tracker = RequestWeightTracker()

        tracker.update_from_headers({"X-MBX-USED-WEIGHT-1M": "100"})

        assert tracker.current_weight == 100

    def test_invalid_weight_is_ignored(self):
        tracker = RequestWeightTracker()

        tracker.update_from_headers({"x-mbx-used-weight-1m": "abc"})

        assert tracker.current_weight == 0

    def test_warning_near_limit(self, caplog):
        tracker = RequestWeightTracker()

        tracker.update_from_headers({"x-mbx-used-weight-1m": "2000"})

        assert "Approaching Binance rate limit" in caplog.text
        assert tracker.check_limit() is True

    def test_check_limit_false_above_ninety_percent(self):
        tracker = RequestWeightTracker()

        tracker.update_from_headers({"x-mbx-used-weight-1m": "2200"})

        assert tracker.check_limit() is False

    def test_service_headroom_follows_response_weight(self, service, mock_um_futures):
        # Arrange
        client = mock_um_futures.return_value
        client.ticker_price.return_value = {
            "limit_usage": {"x-mbx-used-weight-1m": "2300"},
            "data": {"symbol": "BTCUSDT", "price": "1"},
        }
        assert service.has_weight_headroom() is True

        # Act
        service.ticker_price("BTCUSDT")

        # Assert
        assert service.has_weight_headroom() is False
