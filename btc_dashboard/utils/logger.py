"""
Logging setup for the dashboard process.

Three sinks hang off the root logger: the console, a size-rotated
``dashboard.log`` with everything, and a daily-rotated ``prices.log`` that
only receives JSON lines from the ``prices`` logger.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Generator, List

PRICE_LOGGER_NAME = 'prices'

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s'

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ('binance.websocket', 'urllib3')


class PriceLogFilter(logging.Filter):
    """Pass only records emitted on the price event logger."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name == PRICE_LOGGER_NAME


class DashboardLogger:
    """
    Installs the dashboard's handlers on the root logger.

    Constructing it again replaces the previous handlers, so a reload never
    duplicates output.
    """

    def __init__(self, config: dict):
        """
        Args:
            config: Mapping with optional keys
                - log_level: DEBUG, INFO, WARNING or ERROR (default INFO)
                - log_dir: Log directory; relative paths resolve against
                  the working directory, like configs/ (default logs/)

        Raises:
            OSError: If the log directory cannot be created
        """
        self.log_level = config.get('log_level', 'INFO')
        self.log_dir = self._resolve_log_dir(config.get('log_dir', 'logs'))
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._install(self._build_handlers())

    @staticmethod
    def _resolve_log_dir(log_dir: str) -> Path:
        path = Path(log_dir)
        return path if path.is_absolute() else Path.cwd() / path

    def _build_handlers(self) -> List[logging.Handler]:
        formatter = logging.Formatter(LOG_FORMAT)

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(logging.INFO)
        console.setFormatter(formatter)

        # 10MB per file, 5 backups
        main_file = RotatingFileHandler(
            self.log_dir / 'dashboard.log',
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
        )
        main_file.setLevel(logging.DEBUG)
        main_file.setFormatter(formatter)

        # Raw JSON lines, one file per day, kept for 30 days
        prices = TimedRotatingFileHandler(
            self.log_dir / 'prices.log',
            when='midnight',
            backupCount=30,
        )
        prices.setLevel(logging.INFO)
        prices.addFilter(PriceLogFilter())

        return [console, main_file, prices]

    def _install(self, handlers: List[logging.Handler]) -> None:
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, self.log_level.upper()))

        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()
        for handler in handlers:
            root_logger.addHandler(handler)

        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    @staticmethod
    def log_price_event(action: str, data: dict) -> None:
        """
        Append one structured event to prices.log.

        Args:
            action: Event name (INTERVAL_ACTIVATED, HISTORY_LOADED,
                BASELINE_RESOLVED)
            data: Extra fields; Decimals and enums are written as strings

        Example:
            DashboardLogger.log_price_event('BASELINE_RESOLVED', {
                'interval': Interval.TODAY,
                'baseline': Decimal('64250.10'),
            })
        """
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'action': action,
            **data,
        }
        logging.getLogger(PRICE_LOGGER_NAME).info(json.dumps(entry, default=_json_default))


def _json_default(value: Any) -> str:
    return str(getattr(value, 'value', value))


@contextmanager
def log_execution_time(operation: str) -> Generator[None, None, None]:
    """
    Log how long the wrapped block took, at DEBUG, even if it raised.

    Usage:
        with log_execution_time('historical fetch 1w'):
            candles = await fetcher.fetch(window, interval)
    """
    started = time.perf_counter()
    try:
        yield
    finally:
        logging.debug(f"{operation} completed in {time.perf_counter() - started:.3f}s")
