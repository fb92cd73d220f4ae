"""
Centralized Binance market data REST client with rate limit tracking.
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from binance.error import ClientError, ServerError
from binance.um_futures import UMFutures

from btc_dashboard.core.exceptions import TransportFailure
from btc_dashboard.core.retry import retry_with_backoff


class RequestWeightTracker:
    """
    Tracks API request weight to prevent rate limit violations.

    Binance reports weight usage with every response when the client is
    initialized with show_limit_usage=True. The dashboard polls every second,
    so the tracker warns before the minute budget runs out.
    """

    WEIGHT_KEY = "x-mbx-used-weight-1m"

    def __init__(self):
        """Initialize weight tracker."""
        self.current_weight = 0
        self.weight_limit = 2400  # Binance limit: 2400 weight/minute
        self.logger = logging.getLogger(__name__)

    def update_from_headers(self, headers: Optional[Dict] = None):
        """
        Update weight tracking from API limit usage information.

        Args:
            headers: Limit usage mapping from a Binance response; keys are
                matched case-insensitively ('X-MBX-USED-WEIGHT-1M')
        """
        if not headers:
            return

        weight_str = None
        for key, value in headers.items():
            if str(key).lower() == self.WEIGHT_KEY:
                weight_str = value
                break

        if weight_str is None:
            return

        try:
            self.current_weight = int(weight_str)
        except (TypeError, ValueError):
            self.logger.error(f"Invalid weight value in header: {weight_str}")
            return

        # Log warning if approaching limit (80% threshold)
        if self.current_weight > self.weight_limit * 0.8:
            self.logger.warning(
                f"Approaching Binance rate limit: {self.current_weight}/{self.weight_limit} "
                f"({self.current_weight / self.weight_limit * 100:.1f}%)"
            )

    def check_limit(self) -> bool:
        """
        Check whether another request fits in the minute budget.

        Returns:
            True below 90% of the weight limit, False if callers should hold off
        """
        return self.current_weight < self.weight_limit * 0.9


class BinanceServiceClient:
    """
    Read-only Binance REST service shared by the fetcher, resolver and pollers.

    Features:
    - Single unauthenticated UMFutures client instance
    - Request weight tracking for all API calls
    - Transient error retry (rate limits, 5xx) via retry_with_backoff
    - Library and network errors translated to TransportFailure

    All methods are synchronous; async callers run them with
    ``asyncio.to_thread``.
    """

    MAINNET_BASE_URL = "https://fapi.binance.com"
    TESTNET_BASE_URL = "https://testnet.binancefuture.com"

    def __init__(
        self,
        is_testnet: bool = False,
        base_url: Optional[str] = None,
        timeout: Optional[float] = 10.0,
    ) -> None:
        """
        Initialize Binance service.

        Args:
            is_testnet: Whether to use testnet (default: False)
            base_url: Optional custom REST URL; overrides is_testnet
            timeout: Per-request timeout in seconds
        """
        self.is_testnet = is_testnet
        if base_url:
            self.base_url = base_url
        else:
            self.base_url = self.TESTNET_BASE_URL if is_testnet else self.MAINNET_BASE_URL

        # show_limit_usage=True ensures weight information is returned
        self.client = UMFutures(
            base_url=self.base_url,
            timeout=timeout,
            show_limit_usage=True,
        )

        self.weight_tracker = RequestWeightTracker()
        self.logger = logging.getLogger(__name__)

    def has_weight_headroom(self) -> bool:
        """True while the last reported request weight leaves room for polling."""
        return self.weight_tracker.check_limit()

    def _handle_response(self, response: Any) -> Any:
        """
        Update weight tracker and unwrap data from response.

        Args:
            response: Response from UMFutures client

        Returns:
            Unwrapped data content
        """
        if isinstance(response, dict) and "limit_usage" in response:
            self.weight_tracker.update_from_headers(response["limit_usage"])

        if isinstance(response, dict) and "data" in response:
            return response["data"]

        return response

    def _call(self, method_name: str, **params) -> Any:
        """
        Invoke a UMFutures method with retry and error translation.

        Raises:
            TransportFailure: On HTTP error status or network failure
        """
        method = getattr(self.client, method_name)

        @retry_with_backoff()
        def invoke():
            return method(**params)

        try:
            return self._handle_response(invoke())
        except ClientError as e:
            raise TransportFailure(
                f"{method_name} rejected: HTTP {e.status_code} "
                f"code={e.error_code} {e.error_message}"
            ) from e
        except ServerError as e:
            raise TransportFailure(
                f"{method_name} server error: HTTP {e.status_code} {e.message}"
            ) from e
        except requests.RequestException as e:
            raise TransportFailure(f"{method_name} network error: {e}") from e

    def klines(
        self,
        symbol: str,
        interval: str,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[List[Any]]:
        """
        GET /fapi/v1/klines

        Args:
            symbol: Trading pair (e.g., 'BTCUSDT')
            interval: Kline interval (e.g., '1m', '1h', '1d')
            start_time: Inclusive start (ms epoch)
            end_time: Inclusive end (ms epoch)
            limit: Maximum rows (<= 1000)

        Returns:
            Kline rows, oldest first. Index 0 is open time, index 4 close.
        """
        params: Dict[str, Any] = {"symbol": symbol, "interval": interval}
        if start_time is not None:
            params["startTime"] = start_time
        if end_time is not None:
            params["endTime"] = end_time
        if limit is not None:
            params["limit"] = limit
        return self._call("klines", **params)

    def ticker_price(self, symbol: str) -> Dict[str, Any]:
        """GET /fapi/v1/ticker/price -> {"symbol": ..., "price": "..."}"""
        return self._call("ticker_price", symbol=symbol)

    def ticker_24hr(self, symbol: str) -> Dict[str, Any]:
        """GET /fapi/v1/ticker/24hr -> {..., "priceChangePercent": "..."}"""
        return self._call("ticker_24hr_price_change", symbol=symbol)
