"""
Retry with exponential backoff for Binance market data reads.

Every call the dashboard makes is an idempotent GET, so transient failures
(rate limits, 5xx, dropped connections, timeouts) are retried a couple of
times before the failure reaches the chart pipeline.
"""

import logging
import time
from functools import wraps
from typing import Any, Callable, Dict, Tuple

import requests
from binance.error import ClientError, ServerError

# Binance error codes worth another attempt
RETRYABLE_ERROR_CODES = {
    -1003,  # Too many requests
    -1001,  # Disconnected / internal error
}

# HTTP statuses worth another attempt
RETRYABLE_HTTP_STATUS = {
    429,  # Too many requests
    500,  # Internal server error
    502,  # Bad gateway
    503,  # Service unavailable
    504,  # Gateway timeout
}

# Network errors worth another attempt
RETRYABLE_NETWORK_ERRORS = (requests.ConnectionError, requests.Timeout)


def classify_error(error: Exception) -> Tuple[bool, Dict[str, Any]]:
    """
    Decide whether ``error`` is transient.

    Returns:
        (retryable, details) where details is a loggable summary
    """
    if isinstance(error, ClientError):
        details = {
            "status_code": error.status_code,
            "error_code": error.error_code,
            "error_message": error.error_message,
        }
        retryable = (
            error.error_code in RETRYABLE_ERROR_CODES
            or error.status_code in RETRYABLE_HTTP_STATUS
        )
        return retryable, details

    if isinstance(error, ServerError):
        return True, {"status_code": error.status_code, "message": error.message}

    if isinstance(error, RETRYABLE_NETWORK_ERRORS):
        return True, {"network_error": type(error).__name__, "message": str(error)}

    return False, {"error": type(error).__name__, "message": str(error)}


def retry_with_backoff(
    max_retries: int = 2,
    initial_delay: float = 0.5,
    backoff_factor: float = 2.0,
):
    """
    Decorator retrying transient Binance failures with exponential backoff.

    Args:
        max_retries: Retries after the first attempt (default: 2)
        initial_delay: Seconds before the first retry (default: 0.5)
        backoff_factor: Delay multiplier per retry (default: 2.0)

    With the defaults a failing call is attempted three times, sleeping
    0.5s and 1s in between. Non-transient errors (unknown symbol, bad
    parameters) are re-raised immediately. The decorated function runs in a
    worker thread, so the blocking sleep never stalls the event loop.

    Usage:
        @retry_with_backoff()
        def invoke():
            return client.klines(symbol="BTCUSDT", interval="1m")
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__)
            delay = initial_delay
            attempt = 0

            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except (ClientError, ServerError) + RETRYABLE_NETWORK_ERRORS as e:
                    retryable, details = classify_error(e)
                    if not retryable or attempt > max_retries:
                        logger.error(f"{func.__name__} gave up after {attempt} attempt(s): {details}")
                        raise

                    logger.warning(
                        f"{func.__name__} attempt {attempt}/{max_retries + 1} failed: "
                        f"{details}. Retrying in {delay}s"
                    )
                    time.sleep(delay)
                    delay *= backoff_factor

        return wrapper

    return decorator
