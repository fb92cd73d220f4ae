"""
Paginated historical candle retrieval from the Binance REST API.
"""

import asyncio
import logging
from typing import List

from btc_dashboard.core.binance_service import BinanceServiceClient
from btc_dashboard.core.clock_window import ClockWindow
from btc_dashboard.core.exceptions import FetchFailed, MarketDataError, ParseFailure
from btc_dashboard.models.candle import Candle
from btc_dashboard.models.interval import Interval
from btc_dashboard.utils.logger import log_execution_time

# Binance caps kline responses at 1000 rows
MAX_PAGE_SIZE = 1000


class HistoricalFetcher:
    """
    Retrieves every candle of a ClockWindow in pages of ``page_size`` buckets.

    Each page covers ``[cursor, min(cursor + page_size * bucket, end)]``.
    After a page the cursor moves one bucket past the last candle received,
    so consecutive pages never overlap. Fetching stops on an empty page or
    once the cursor reaches the window end.

    The fetch is all-or-nothing: if any page fails, the candles gathered so
    far are discarded and :class:`FetchFailed` is raised.

    Example:
        >>> fetcher = HistoricalFetcher(client, symbol="BTCUSDT")
        >>> candles = await fetcher.fetch(window, Interval.WEEK)
    """

    def __init__(
        self,
        client: BinanceServiceClient,
        symbol: str = "BTCUSDT",
        page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be 1-{MAX_PAGE_SIZE}, got {page_size}")

        self.client = client
        self.symbol = symbol.upper()
        self.page_size = page_size
        self.logger = logging.getLogger(__name__)

    async def fetch(self, window: ClockWindow, interval: Interval) -> List[Candle]:
        """
        Fetch all candles of ``window`` at ``interval``'s granularity.

        Args:
            window: Time range to cover
            interval: Display interval (selects the kline interval)

        Returns:
            Candles strictly ascending by open time, no duplicates

        Raises:
            FetchFailed: If any page request or page payload fails
        """
        bucket_ms = window.bucket_ms
        end_ms = window.end_ms
        cursor = window.start_ms

        candles: List[Candle] = []
        pages = 0

        self.logger.info(
            f"Fetching {self.symbol} {interval.api_interval} klines for {interval.value}: "
            f"{window.start.isoformat()} -> {window.end.isoformat()} "
            f"(~{window.bucket_count} buckets)"
        )

        with log_execution_time(f"historical fetch {interval.value}"):
            while cursor < end_ms:
                page_end = min(cursor + self.page_size * bucket_ms, end_ms)

                try:
                    page = await self._fetch_page(interval, cursor, page_end)
                except MarketDataError as e:
                    self.logger.error(
                        f"Historical fetch for {interval.value} failed on page {pages + 1} "
                        f"after {len(candles)} candles: {e}"
                    )
                    raise FetchFailed(
                        f"Historical fetch for {interval.value} failed: {e}"
                    ) from e

                pages += 1
                if not page:
                    break

                last_open_ms = candles[-1].open_time_ms if candles else None
                for candle in page:
                    # Only accept rows that advance past what we already hold
                    if last_open_ms is None or candle.open_time_ms > last_open_ms:
                        candles.append(candle)
                        last_open_ms = candle.open_time_ms

                self.logger.debug(
                    f"Fetched page {pages}: {len(page)} items, total: {len(candles)}"
                )

                if last_open_ms is None:
                    break
                next_cursor = last_open_ms + bucket_ms
                if next_cursor <= cursor:
                    break
                cursor = next_cursor

        self.logger.info(
            f"Historical fetch for {interval.value} complete: "
            f"{len(candles)} candles in {pages} pages"
        )
        return candles

    async def _fetch_page(self, interval: Interval, start_ms: int, end_ms: int) -> List[Candle]:
        """Request one page and parse its rows (REST call runs in a worker thread)."""
        rows = await asyncio.to_thread(
            self.client.klines,
            symbol=self.symbol,
            interval=interval.api_interval,
            start_time=start_ms,
            end_time=end_ms,
            limit=self.page_size,
        )

        if not isinstance(rows, list):
            raise ParseFailure(f"Expected a list of kline rows, got {type(rows).__name__}")

        return [Candle.from_rest_row(row) for row in rows]
