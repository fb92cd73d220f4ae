"""
Reference ("previous close") price resolution per display interval.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, List, Optional

from btc_dashboard.core.binance_service import BinanceServiceClient
from btc_dashboard.core.clock_window import ClockWindow
from btc_dashboard.core.exceptions import MarketDataError, ParseFailure
from btc_dashboard.models.candle import Candle
from btc_dashboard.models.interval import Interval

# Row window used for the intraday baseline (yesterday + today)
DAILY_ROWS = 2
RANGE_LIMIT = 1000


class BaselineResolver:
    """
    Resolves the baseline price the chart is colored against.

    Semantics differ per interval:
        - Today: close of yesterday's daily candle (second-to-last row of a
          2-row daily query; the last row is today, still forming)
        - Others: close of the first candle of the interval's own window at
          its own granularity, i.e. the price at the start of the window

    Failures never propagate: the baseline stays None and the chart is
    colored neutral until a later activation resolves it.
    """

    def __init__(self, client: BinanceServiceClient, symbol: str = "BTCUSDT") -> None:
        self.client = client
        self.symbol = symbol.upper()
        self.logger = logging.getLogger(__name__)

    async def resolve(self, interval: Interval, window: ClockWindow) -> Optional[Decimal]:
        """
        Resolve the baseline for ``interval``.

        Args:
            interval: Display interval
            window: The interval's clock window (unused for Today)

        Returns:
            Baseline close price, or None if it could not be resolved
        """
        try:
            if interval is Interval.TODAY:
                rows = await asyncio.to_thread(
                    self.client.klines,
                    symbol=self.symbol,
                    interval="1d",
                    limit=DAILY_ROWS,
                )
                row = self._pick(rows, -2, min_rows=2)
            else:
                rows = await asyncio.to_thread(
                    self.client.klines,
                    symbol=self.symbol,
                    interval=interval.api_interval,
                    start_time=window.start_ms,
                    end_time=window.end_ms,
                    limit=RANGE_LIMIT,
                )
                row = self._pick(rows, 0, min_rows=1)

            candle = Candle.from_rest_row(row)
            if candle.close <= 0:
                raise ParseFailure(f"Non-positive baseline close: {candle.close}")

        except MarketDataError as e:
            self.logger.error(f"Failed to resolve baseline for {interval.value}: {e}")
            return None

        self.logger.info(
            f"{interval.baseline_caption} for {interval.value}: {candle.close} "
            f"(candle opened {candle.open_time().date().isoformat()})"
        )
        return candle.close

    @staticmethod
    def _pick(rows: Any, index: int, min_rows: int) -> List[Any]:
        if not isinstance(rows, list):
            raise ParseFailure(f"Expected a list of kline rows, got {type(rows).__name__}")
        if len(rows) < min_rows:
            raise ParseFailure(f"Expected at least {min_rows} kline rows, got {len(rows)}")
        return rows[index]
