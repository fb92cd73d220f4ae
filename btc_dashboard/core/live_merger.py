"""
Live merge of the per-minute kline stream into the intraday chart.

The merge itself is the pure reducer :func:`apply_live_update`; the
:class:`LiveMerger` class only owns the stream subscription and hands each
update from the WebSocket thread to the event loop.
"""

import asyncio
import logging
from datetime import tzinfo
from enum import Enum
from functools import partial
from typing import Callable, Optional

import pytz

from btc_dashboard.core.public_market_streamer import PublicMarketStreamer
from btc_dashboard.core.series_builder import format_minute_label
from btc_dashboard.core.streamer_protocol import IDataStreamer
from btc_dashboard.models.candle import LiveUpdate
from btc_dashboard.models.dashboard import ChartState
from btc_dashboard.models.interval import Interval

logger = logging.getLogger(__name__)


def apply_live_update(
    chart: ChartState,
    update: LiveUpdate,
    tz: tzinfo = pytz.UTC,
) -> ChartState:
    """
    Merge one live update into the chart.

    The update's bucket open time is formatted to its ``HH:MM`` grid label.
    If that label is on the grid, the slot is overwritten with the update's
    close and the presentation is re-derived; otherwise the update is
    discarded and the very same ``chart`` object is returned.

    Applying the same update twice yields the same chart as applying it once.

    Args:
        chart: Current chart state
        update: Kline stream update
        tz: Display timezone the grid labels were generated in

    Returns:
        The merged chart state, or ``chart`` itself if nothing changed
    """
    if chart.interval is not Interval.TODAY:
        return chart

    label = format_minute_label(update.bucket_open_time_ms, tz)
    index = chart.series.index_of(label)
    if index is None:
        logger.debug(f"Discarding live update for {label}: no matching slot")
        return chart

    if chart.series.prices[index] == update.close:
        return chart

    return chart.with_series(chart.series.with_price(index, update.close))


class MergerState(Enum):
    """Subscription state of the live merger."""

    INACTIVE = "inactive"
    SUBSCRIBED = "subscribed"


StreamerFactory = Callable[[Callable[[LiveUpdate], None]], IDataStreamer]


class LiveMerger:
    """
    Owns the kline stream subscription of one intraday activation.

    Lifecycle:
        INACTIVE --activate()--> SUBSCRIBED --deactivate()--> INACTIVE

    Every activation opens a fresh subscription; a previous one is always
    closed first. Reconnection is left to the streamer.

    Updates are delivered to ``on_update`` on the event loop thread, in
    arrival order.
    """

    def __init__(
        self,
        symbol: str = "BTCUSDT",
        is_testnet: bool = False,
        ws_url: Optional[str] = None,
        streamer_factory: Optional[StreamerFactory] = None,
    ) -> None:
        """
        Initialize LiveMerger.

        Args:
            symbol: Trading pair to subscribe to
            is_testnet: Whether to use testnet endpoints
            ws_url: Optional custom WebSocket URL
            streamer_factory: Builds the streamer for a delivery callback
                (defaults to a 1m PublicMarketStreamer)
        """
        self.symbol = symbol.upper()
        self.is_testnet = is_testnet
        self.ws_url = ws_url
        self._streamer_factory = streamer_factory or self._default_streamer

        self.state = MergerState.INACTIVE
        self._streamer: Optional[IDataStreamer] = None
        self._on_update: Optional[Callable[[LiveUpdate], None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._subscription_id = 0
        self.logger = logging.getLogger(__name__)

    def _default_streamer(self, callback: Callable[[LiveUpdate], None]) -> IDataStreamer:
        return PublicMarketStreamer(
            symbol=self.symbol,
            interval=Interval.TODAY.api_interval,
            is_testnet=self.is_testnet,
            on_update_callback=callback,
            ws_url=self.ws_url,
        )

    @property
    def is_subscribed(self) -> bool:
        return self.state is MergerState.SUBSCRIBED

    async def activate(self, on_update: Callable[[LiveUpdate], None]) -> None:
        """
        Open a new kline subscription delivering to ``on_update``.

        Raises:
            ConnectionError: If the stream cannot be opened
        """
        await self.deactivate()

        self._loop = asyncio.get_running_loop()
        self._on_update = on_update
        self._subscription_id += 1
        streamer = self._streamer_factory(
            partial(self._from_stream_thread, self._subscription_id)
        )

        try:
            await streamer.start()
        except ConnectionError:
            self._on_update = None
            raise

        self._streamer = streamer
        self.state = MergerState.SUBSCRIBED
        self.logger.info(f"Live merge subscribed for {self.symbol}")

    async def deactivate(self, timeout: float = 5.0) -> None:
        """Close the current subscription, if any. Idempotent."""
        streamer, self._streamer = self._streamer, None
        self._on_update = None
        self.state = MergerState.INACTIVE

        if streamer is None:
            return

        await streamer.stop(timeout=timeout)
        self.logger.info(f"Live merge unsubscribed for {self.symbol}")

    def _from_stream_thread(self, subscription_id: int, update: LiveUpdate) -> None:
        """Streamer callback: hand the update to the event loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._deliver, subscription_id, update)
        except RuntimeError:
            # Loop closed during shutdown
            pass

    def _deliver(self, subscription_id: int, update: LiveUpdate) -> None:
        # Updates queued by a closed subscription are dropped here
        if (
            self.state is not MergerState.SUBSCRIBED
            or subscription_id != self._subscription_id
            or self._on_update is None
        ):
            return
        self._on_update(update)
