"""
Unit tests for the retry_with_backoff decorator.
"""

from unittest.mock import Mock, patch

import pytest
import requests
from binance.error import ClientError, ServerError

from btc_dashboard.core.retry import (
    RETRYABLE_ERROR_CODES,
    RETRYABLE_HTTP_STATUS,
    classify_error,
    retry_with_backoff,
)


class TestRetryDecorator:
    """Test cases for @retry_with_backoff decorator."""

    @pytest.fixture(autouse=True)
    def mock_sleep(self):
        with patch("btc_dashboard.core.retry.time.sleep") as sleep:
            yield sleep

    def test_retry_on_rate_limit_429(self):
        mock_func = Mock()
        mock_func.side_effect = [
            ClientError(status_code=429, error_code=-1003, error_message="Rate limit exceeded", header={}),
            ClientError(status_code=429, error_code=-1003, error_message="Rate limit exceeded", header={}),
            [[1638747600000, "1", "1", "1", "1"]],
        ]

        @retry_with_backoff(max_retries=3, initial_delay=0.1)
        def api_call():
            return mock_func()

        assert api_call() == [[1638747600000, "1", "1", "1", "1"]]
        assert mock_func.call_count == 3

    def test_no_retry_on_invalid_symbol(self):
        mock_func = Mock()
        mock_func.side_effect = ClientError(
            status_code=400, error_code=-1121, error_message="Invalid symbol.", header={}
        )

        @retry_with_backoff(max_retries=3, initial_delay=0.1)
        def api_call():
            return mock_func()

        with pytest.raises(ClientError):
            api_call()
        assert mock_func.call_count == 1

    def test_server_error_exhausts_retries(self):
        mock_func = Mock(side_effect=ServerError(502, "Bad gateway"))

        @retry_with_backoff(max_retries=2, initial_delay=0.1)
        def api_call():
            return mock_func()

        with pytest.raises(ServerError):
            api_call()
        assert mock_func.call_count == 3

    def test_exponential_delays(self, mock_sleep):
        mock_func = Mock(side_effect=ServerError(500, "Internal error"))

        @retry_with_backoff(max_retries=3, initial_delay=0.5, backoff_factor=2.0)
        def api_call():
            return mock_func()

        with pytest.raises(ServerError):
            api_call()

        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0, 2.0]

    def test_other_exceptions_pass_through(self):
        @retry_with_backoff()
        def api_call():
            raise KeyError("not retried")

        with pytest.raises(KeyError):
            api_call()

    def test_retryable_constants(self):
        assert -1003 in RETRYABLE_ERROR_CODES
        assert 429 in RETRYABLE_HTTP_STATUS
        assert 400 not in RETRYABLE_HTTP_STATUS

    def test_network_error_retried(self):
        mock_func = Mock(side_effect=[requests.Timeout("read timed out"), {"price": "1"}])

        @retry_with_backoff()
        def api_call():
            return mock_func()

        assert api_call() == {"price": "1"}
        assert mock_func.call_count == 2


class TestClassifyError:
    """classify_error decides which failures are transient."""

    def test_rate_limit_is_retryable(self):
        retryable, details = classify_error(
            ClientError(status_code=429, error_code=-1003, error_message="Too many requests", header={})
        )

        assert retryable is True
        assert details["error_code"] == -1003

    def test_bad_request_is_not_retryable(self):
        retryable, _ = classify_error(
            ClientError(status_code=400, error_code=-1121, error_message="Invalid symbol.", header={})
        )

        assert retryable is False

    def test_connection_error_is_retryable(self):
        retryable, details = classify_error(requests.ConnectionError("reset"))

        assert retryable is True
        assert details["network_error"] == "ConnectionError"

    def test_unrelated_error_is_not_retryable(self):
        assert classify_error(ValueError("x"))[0] is False
