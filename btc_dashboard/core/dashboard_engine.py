"""
Dashboard controller: interval lifecycle, stale-response discard and
publishing of the dashboard model to the renderer.
"""

import asyncio
import logging
from decimal import Decimal
from functools import partial
from typing import List, Optional

from btc_dashboard.core.baseline_resolver import BaselineResolver
from btc_dashboard.core.binance_service import BinanceServiceClient
from btc_dashboard.core.clock_window import ClockWindow, compute_window
from btc_dashboard.core.exceptions import FetchFailed
from btc_dashboard.core.historical_fetcher import HistoricalFetcher
from btc_dashboard.core.live_merger import LiveMerger, apply_live_update
from btc_dashboard.core.price_poller import DailyStatsPoller, FastPricePoller
from btc_dashboard.core.renderer_protocol import IRenderer
from btc_dashboard.core.series_builder import build_series, empty_series
from btc_dashboard.models.candle import LiveUpdate
from btc_dashboard.models.dashboard import ChartState, DashboardModel, PriceSnapshot
from btc_dashboard.models.interval import Interval
from btc_dashboard.utils.config import DashboardConfig
from btc_dashboard.utils.logger import DashboardLogger


class DashboardEngine:
    """
    Owns the active interval and publishes a complete DashboardModel on
    every state change.

    Activation sequence for ``select_interval(interval)``:
        1. Bump the generation counter (results of older activations are
           discarded from this point on)
        2. Cancel in-flight tasks and close the live subscription of the
           previous activation
        3. Publish an empty chart for the new interval
        4. Fetch history and resolve the baseline concurrently; each
           publishes as soon as it completes
        5. For Today, open a fresh live subscription

    The price pollers run for the whole engine lifetime, independent of the
    selected interval.

    All state is replaced on the event loop thread only, so the renderer
    never observes a half-updated model.

    Example:
        >>> engine = DashboardEngine(client, LogRenderer(), config)
        >>> await engine.start()
        >>> await engine.select_interval(Interval.WEEK)
        >>> await engine.shutdown()
    """

    def __init__(
        self,
        client: BinanceServiceClient,
        renderer: IRenderer,
        config: DashboardConfig,
        live_merger: Optional[LiveMerger] = None,
    ) -> None:
        """
        Initialize DashboardEngine.

        Args:
            client: Exchange REST client shared by fetcher, resolver and pollers
            renderer: Consumer of published models
            config: Dashboard section of the configuration
            live_merger: Kline subscription owner (defaults to mainnet streams
                for ``config.symbol``)
        """
        self.renderer = renderer
        self.config = config
        self.tz = config.tz

        self.fetcher = HistoricalFetcher(client, config.symbol, config.page_size)
        self.baseline_resolver = BaselineResolver(client, config.symbol)
        self.live_merger = live_merger or LiveMerger(symbol=config.symbol)
        self.price_poller = FastPricePoller(
            client, config.symbol, self._on_price, period=config.fast_price_period
        )
        self.stats_poller = DailyStatsPoller(
            client, config.symbol, self._on_change, period=config.daily_stats_period
        )

        # Active activation
        self._generation = 0
        self._interval: Optional[Interval] = None
        self._chart: Optional[ChartState] = None
        self._snapshot = PriceSnapshot()
        self._model: Optional[DashboardModel] = None
        self._activation_tasks: List[asyncio.Task] = []
        self._activation_lock = asyncio.Lock()

        self._running = False
        self.logger = logging.getLogger(__name__)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def interval(self) -> Optional[Interval]:
        return self._interval

    @property
    def model(self) -> Optional[DashboardModel]:
        """Last published model."""
        return self._model

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the price pollers and activate the configured default interval."""
        if self._running:
            self.logger.warning("DashboardEngine already running, ignoring start request")
            return

        self._running = True
        self.logger.info(
            f"Starting DashboardEngine: {self.config.symbol}, "
            f"timezone={self.config.timezone}"
        )

        self.price_poller.start()
        self.stats_poller.start()
        await self.select_interval(self.config.interval)

    async def shutdown(self) -> None:
        """Release pollers, the live subscription and in-flight tasks. Idempotent."""
        if not self._running:
            return

        self._running = False
        # Anything still in flight now belongs to a stale generation
        self._generation += 1
        self.logger.info("Shutting down DashboardEngine")

        # Each release runs even if an earlier one fails
        steps = (
            ("activation tasks", self._cancel_activation_tasks),
            ("price poller", self.price_poller.stop),
            ("24h stats poller", self.stats_poller.stop),
            ("live merge", self.live_merger.deactivate),
        )
        for what, release in steps:
            try:
                await release()
            except Exception as e:
                self.logger.error(f"Error releasing {what} during shutdown: {e}", exc_info=True)

        self.logger.info("DashboardEngine shutdown complete")

    # ------------------------------------------------------------------
    # Interval activation
    # ------------------------------------------------------------------

    async def select_interval(self, interval: Interval) -> None:
        """
        Switch the dashboard to ``interval``.

        Safe to call while a previous activation is still loading; its
        results are discarded. Handed to the renderer as the
        interval-selection callback.
        """
        if not self._running:
            self.logger.warning(f"Engine not running, ignoring selection of {interval.value}")
            return

        self._generation += 1
        generation = self._generation

        async with self._activation_lock:
            if generation != self._generation:
                # A newer selection arrived while waiting for the lock
                return

            await self._cancel_activation_tasks()
            await self.live_merger.deactivate()
            if generation != self._generation:
                return

            window = compute_window(interval, tz=self.tz)
            self._interval = interval
            self._chart = ChartState.create(interval, empty_series(interval))
            self._publish()

            self.logger.info(
                f"Activated {interval.value} (generation {generation}): "
                f"{window.start.isoformat()} -> {window.end.isoformat()}"
            )
            DashboardLogger.log_price_event('INTERVAL_ACTIVATED', {
                'interval': interval.value,
                'generation': generation,
                'window_start': window.start.isoformat(),
                'window_end': window.end.isoformat(),
            })

            self._activation_tasks = [
                asyncio.create_task(
                    self._load_history(generation, interval, window),
                    name=f"history-{interval.value}-{generation}",
                ),
                asyncio.create_task(
                    self._load_baseline(generation, interval, window),
                    name=f"baseline-{interval.value}-{generation}",
                ),
            ]

            if interval is Interval.TODAY:
                try:
                    await self.live_merger.activate(partial(self._on_live_update, generation))
                except ConnectionError as e:
                    self.logger.error(f"Live updates unavailable for {interval.value}: {e}")
                    return

                # Shutdown may have run while the stream was opening
                if generation != self._generation:
                    await self.live_merger.deactivate()

    async def _cancel_activation_tasks(self) -> None:
        tasks, self._activation_tasks = self._activation_tasks, []
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _is_current(self, generation: int, what: str) -> bool:
        if generation == self._generation:
            return True
        self.logger.debug(
            f"Discarding stale {what} from generation {generation} "
            f"(current {self._generation})"
        )
        return False

    async def _load_history(self, generation: int, interval: Interval, window: ClockWindow) -> None:
        try:
            candles = await self.fetcher.fetch(window, interval)
        except FetchFailed as e:
            if self._is_current(generation, "fetch failure"):
                self.logger.error(f"Historical fetch failed for {interval.value}: {e}")
            return

        if not self._is_current(generation, "historical response"):
            return

        series = build_series(candles, interval, self.tz)
        self._chart = self._chart.with_series(series)
        self._publish()

        DashboardLogger.log_price_event('HISTORY_LOADED', {
            'interval': interval.value,
            'generation': generation,
            'candles': len(candles),
            'slots': len(series),
            'filled': series.filled_count,
        })

    async def _load_baseline(self, generation: int, interval: Interval, window: ClockWindow) -> None:
        baseline = await self.baseline_resolver.resolve(interval, window)
        if not self._is_current(generation, "baseline response"):
            return

        self._chart = self._chart.with_baseline(baseline)
        self._publish()

        DashboardLogger.log_price_event('BASELINE_RESOLVED', {
            'interval': interval.value,
            'generation': generation,
            'caption': interval.baseline_caption,
            'baseline': baseline,
        })

    # ------------------------------------------------------------------
    # Incoming data (event loop thread)
    # ------------------------------------------------------------------

    def _on_live_update(self, generation: int, update: LiveUpdate) -> None:
        if not self._is_current(generation, "live update"):
            return

        self._chart = apply_live_update(self._chart, update, self.tz)
        self._snapshot = self._snapshot.with_price(update.close)
        self._publish()

    def _on_price(self, price: Decimal) -> None:
        self._snapshot = self._snapshot.with_price(price)
        self._publish()

    def _on_change(self, change_percent: Decimal) -> None:
        self._snapshot = self._snapshot.with_change(change_percent)
        self._publish()

    def _publish(self) -> None:
        if self._chart is None or self._interval is None:
            return

        model = DashboardModel(
            interval=self._interval,
            chart=self._chart,
            snapshot=self._snapshot,
            generation=self._generation,
        )
        self._model = model

        try:
            self.renderer.render(model)
        except Exception as e:
            self.logger.error(f"Renderer failed: {e}", exc_info=True)
