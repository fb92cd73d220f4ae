"""
Unit tests for the logging system (DashboardLogger, PriceLogFilter, log_execution_time)
"""

import json
import logging
from decimal import Decimal

import pytest

from btc_dashboard.models.interval import Interval
from btc_dashboard.utils.logger import (
    PRICE_LOGGER_NAME,
    DashboardLogger,
    PriceLogFilter,
    log_execution_time,
)


def _record(name: str) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname='',
        lineno=0,
        msg='test',
        args=(),
        exc_info=None
    )


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it"""
    root_logger = logging.getLogger()
    saved_handlers = list(root_logger.handlers)
    saved_level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        if handler not in saved_handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(saved_level)


class TestPriceLogFilter:
    """Test PriceLogFilter class"""

    def test_filter_accepts_prices_logger(self):
        assert PriceLogFilter().filter(_record(PRICE_LOGGER_NAME)) is True

    def test_filter_rejects_other_loggers(self):
        assert PriceLogFilter().filter(_record('btc_dashboard.core.dashboard_engine')) is False

    def test_filter_rejects_root_logger(self):
        assert PriceLogFilter().filter(_record('root')) is False


class TestDashboardLogger:
    """Test DashboardLogger class"""

    def test_log_directory_creation(self, tmp_path, restore_root_logger):
        """Verify log directory is created if it doesn't exist"""
        log_dir = tmp_path / 'test_logs'

        DashboardLogger({'log_level': 'INFO', 'log_dir': str(log_dir)})

        assert log_dir.exists()

    def test_relative_log_dir_resolves_from_working_directory(self, tmp_path, monkeypatch, restore_root_logger):
        """Relative log_dir follows the cwd, the same base as configs/"""
        monkeypatch.chdir(tmp_path)

        dashboard_logger = DashboardLogger({'log_level': 'INFO', 'log_dir': 'run_logs'})

        assert dashboard_logger.log_dir == tmp_path / 'run_logs'
        assert (tmp_path / 'run_logs').is_dir()

    def test_handlers_configured(self, tmp_path, restore_root_logger):
        """Console, rotating file and price handlers are installed"""
        DashboardLogger({'log_level': 'DEBUG', 'log_dir': str(tmp_path)})

        root_logger = logging.getLogger()
        handler_types = {type(h).__name__ for h in root_logger.handlers}
        assert {'StreamHandler', 'RotatingFileHandler', 'TimedRotatingFileHandler'} <= handler_types
        assert root_logger.level == logging.DEBUG

    def test_noisy_library_loggers_lowered(self, tmp_path, restore_root_logger):
        DashboardLogger({'log_level': 'DEBUG', 'log_dir': str(tmp_path)})

        assert logging.getLogger('binance.websocket').level == logging.WARNING
        assert logging.getLogger('urllib3').level == logging.WARNING

    def test_price_event_written_as_json(self, tmp_path, restore_root_logger):
        """Price events go to prices.log as one JSON object per line"""
        # Arrange
        DashboardLogger({'log_level': 'INFO', 'log_dir': str(tmp_path)})

        # Act
        DashboardLogger.log_price_event('BASELINE_RESOLVED', {
            'interval': Interval.TODAY,
            'baseline': Decimal('63456.00'),
        })
        for handler in logging.getLogger().handlers:
            handler.flush()

        # Assert
        lines = (tmp_path / 'prices.log').read_text().strip().splitlines()
        entry = json.loads(lines[-1])
        assert entry['action'] == 'BASELINE_RESOLVED'
        assert entry['interval'] == '1m'
        assert entry['baseline'] == '63456.00'
        assert 'timestamp' in entry

    def test_regular_logs_stay_out_of_price_log(self, tmp_path, restore_root_logger):
        DashboardLogger({'log_level': 'INFO', 'log_dir': str(tmp_path)})

        logging.getLogger('btc_dashboard.core.dashboard_engine').info('not a price event')
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert 'not a price event' not in (tmp_path / 'prices.log').read_text()
        assert 'not a price event' in (tmp_path / 'dashboard.log').read_text()


class TestLogExecutionTime:
    """Test log_execution_time context manager"""

    def test_logs_elapsed_time(self, caplog):
        with caplog.at_level(logging.DEBUG):
            with log_execution_time('historical fetch 1w'):
                pass

        assert 'historical fetch 1w completed in' in caplog.text

    def test_logs_even_when_block_raises(self, caplog):
        with caplog.at_level(logging.DEBUG):
            with pytest.raises(RuntimeError):
                with log_execution_time('failing operation'):
                    raise RuntimeError('boom')

        assert 'failing operation completed in' in caplog.text
