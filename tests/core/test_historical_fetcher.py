"""
Tests for paginated historical candle retrieval.
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
import pytz

from btc_dashboard.core.binance_service import BinanceServiceClient
from btc_dashboard.core.clock_window import ClockWindow
from btc_dashboard.core.exceptions import FetchFailed, ParseFailure, TransportFailure
from btc_dashboard.core.historical_fetcher import HistoricalFetcher
from btc_dashboard.models.interval import Interval

MINUTE_MS = 60_000
START = datetime(2024, 3, 15, tzinfo=pytz.UTC)
START_MS = int(START.timestamp() * 1000)


def _row(open_time_ms: int, close: str = "100.0"):
    return [open_time_ms, "1", "2", "0.5", close, "10", open_time_ms + MINUTE_MS - 1]


class FakeKlineEndpoint:
    """
    Serves minute klines for ``[first_ms, first_ms + count * 1m)`` the way
    the exchange does: inclusive bounds, oldest first, capped at ``limit``.
    """

    def __init__(self, first_ms: int, count: int):
        self.first_ms = first_ms
        self.count = count
        self.calls = []

    def __call__(self, symbol, interval, start_time=None, end_time=None, limit=None):
        self.calls.append((start_time, end_time, limit))
        rows = []
        for i in range(self.count):
            open_ms = self.first_ms + i * MINUTE_MS
            if start_time <= open_ms <= end_time:
                rows.append(_row(open_ms, str(100 + i)))
            if len(rows) == limit:
                break
        return rows


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def client():
    return MagicMock(spec=BinanceServiceClient)


def _window(buckets: int) -> ClockWindow:
    return ClockWindow(
        start=START,
        end=START + timedelta(minutes=buckets),
        bucket=timedelta(minutes=1),
    )


# =============================================================================
# Pagination Tests
# =============================================================================


class TestHistoricalFetcherPagination:
    """Test suite for page iteration."""

    @pytest.mark.asyncio
    async def test_2500_buckets_take_three_pages(self, client):
        # Arrange
        endpoint = FakeKlineEndpoint(START_MS, 2500)
        client.klines.side_effect = endpoint
        fetcher = HistoricalFetcher(client, "BTCUSDT", page_size=1000)

        # Act
        candles = await fetcher.fetch(_window(2500), Interval.TODAY)

        # Assert
        assert len(endpoint.calls) == 3
        assert len(candles) == 2500
        open_times = [c.open_time_ms for c in candles]
        assert open_times == [START_MS + i * MINUTE_MS for i in range(2500)]

    @pytest.mark.asyncio
    async def test_page_bounds_advance_past_last_candle(self, client):
        endpoint = FakeKlineEndpoint(START_MS, 2500)
        client.klines.side_effect = endpoint
        fetcher = HistoricalFetcher(client, page_size=1000)

        await fetcher.fetch(_window(2500), Interval.TODAY)

        starts = [call[0] for call in endpoint.calls]
        assert starts == [START_MS, START_MS + 1000 * MINUTE_MS, START_MS + 2000 * MINUTE_MS]
        assert endpoint.calls[0][1] == START_MS + 1000 * MINUTE_MS
        assert endpoint.calls[-1][1] == START_MS + 2500 * MINUTE_MS
        assert all(call[2] == 1000 for call in endpoint.calls)

    @pytest.mark.asyncio
    async def test_request_parameters(self, client):
        client.klines.return_value = []
        fetcher = HistoricalFetcher(client, "btcusdt", page_size=500)

        await fetcher.fetch(_window(60), Interval.WEEK)

        client.klines.assert_called_once_with(
            symbol="BTCUSDT",
            interval="1h",
            start_time=START_MS,
            end_time=START_MS + 60 * MINUTE_MS,
            limit=500,
        )

    @pytest.mark.asyncio
    async def test_empty_first_page_returns_no_candles(self, client):
        client.klines.return_value = []
        fetcher = HistoricalFetcher(client)

        candles = await fetcher.fetch(_window(2500), Interval.TODAY)

        assert candles == []
        assert client.klines.call_count == 1

    @pytest.mark.asyncio
    async def test_short_history_stops_on_empty_page(self, client):
        """Data ends before the window does: stop at the first empty page."""
        endpoint = FakeKlineEndpoint(START_MS, 1200)
        client.klines.side_effect = endpoint
        fetcher = HistoricalFetcher(client, page_size=1000)

        candles = await fetcher.fetch(_window(3000), Interval.TODAY)

        assert len(candles) == 1200
        assert len(endpoint.calls) == 3

    @pytest.mark.asyncio
    async def test_overlapping_pages_are_deduplicated(self, client):
        # Arrange: the second page repeats the last row of the first
        client.klines.side_effect = [
            [_row(START_MS), _row(START_MS + MINUTE_MS)],
            [_row(START_MS + MINUTE_MS), _row(START_MS + 2 * MINUTE_MS)],
            [],
        ]
        fetcher = HistoricalFetcher(client, page_size=2)

        # Act
        candles = await fetcher.fetch(_window(10), Interval.TODAY)

        # Assert
        open_times = [c.open_time_ms for c in candles]
        assert open_times == [START_MS, START_MS + MINUTE_MS, START_MS + 2 * MINUTE_MS]
        assert open_times == sorted(set(open_times))


# =============================================================================
# Failure Tests
# =============================================================================


class TestHistoricalFetcherFailures:
    """Test suite for all-or-nothing failure semantics."""

    @pytest.mark.asyncio
    async def test_transport_failure_on_later_page_raises_fetch_failed(self, client):
        client.klines.side_effect = [
            [_row(START_MS + i * MINUTE_MS) for i in range(2)],
            TransportFailure("HTTP 503"),
        ]
        fetcher = HistoricalFetcher(client, page_size=2)

        with pytest.raises(FetchFailed) as exc_info:
            await fetcher.fetch(_window(10), Interval.TODAY)

        assert isinstance(exc_info.value.__cause__, TransportFailure)

    @pytest.mark.asyncio
    async def test_malformed_row_raises_fetch_failed(self, client):
        client.klines.return_value = [[START_MS, "1"]]
        fetcher = HistoricalFetcher(client)

        with pytest.raises(FetchFailed) as exc_info:
            await fetcher.fetch(_window(10), Interval.TODAY)

        assert isinstance(exc_info.value.__cause__, ParseFailure)

    @pytest.mark.asyncio
    async def test_non_list_payload_raises_fetch_failed(self, client):
        client.klines.return_value = {"code": -1121, "msg": "Invalid symbol."}
        fetcher = HistoricalFetcher(client)

        with pytest.raises(FetchFailed):
            await fetcher.fetch(_window(10), Interval.TODAY)

    @pytest.mark.parametrize("page_size", [0, 1001])
    def test_invalid_page_size_raises(self, client, page_size):
        with pytest.raises(ValueError, match="page_size"):
            HistoricalFetcher(client, page_size=page_size)
