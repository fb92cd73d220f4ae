"""
Fixed-period REST pollers for the price readout.

Two loops run for the whole life of the dashboard, independent of the
selected interval:
    - FastPricePoller: latest price every second
    - DailyStatsPoller: rolling 24h change percentage every ten seconds

A failed tick is logged and skipped; the next scheduled tick retries.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Callable, Optional

from btc_dashboard.core.binance_service import BinanceServiceClient
from btc_dashboard.core.exceptions import MarketDataError
from btc_dashboard.models.market import Ticker24h, TickerPrice, parse_payload


class PeriodicPoller(ABC):
    """
    Runs :meth:`poll_once` immediately and then every ``period`` seconds.

    The loop is a scoped resource: :meth:`start` acquires it, :meth:`stop`
    cancels it and waits for it to finish. Both are idempotent. No tick
    failure ends the loop.
    """

    def __init__(self, name: str, period: float) -> None:
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")

        self.name = name
        self.period = period
        self.failure_count = 0
        self.throttled_count = 0
        self._task: Optional[asyncio.Task] = None
        self.logger = logging.getLogger(__name__)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @abstractmethod
    async def poll_once(self) -> None:
        """
        Perform one poll.

        Raises:
            MarketDataError: On transport or payload failure (tick is skipped)
        """
        ...

    def may_poll(self) -> bool:
        """Whether the next tick should hit the network."""
        return True

    def start(self) -> None:
        """Start the polling loop on the running event loop."""
        if self.is_running:
            self.logger.warning(f"{self.name} poller already running, ignoring start request")
            return
        self._task = asyncio.create_task(self._run(), name=f"{self.name}-poller")
        self.logger.info(f"{self.name} poller started (every {self.period}s)")

    async def stop(self) -> None:
        """Cancel the polling loop and wait for it to exit."""
        task, self._task = self._task, None
        if task is None:
            return

        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self.logger.error(f"{self.name} poller had died: {e}", exc_info=True)
        self.logger.info(f"{self.name} poller stopped")

    async def _tick(self) -> None:
        if not self.may_poll():
            self.throttled_count += 1
            self.logger.debug(f"{self.name} tick held back near the rate limit")
            return

        try:
            await self.poll_once()
        except MarketDataError as e:
            self.failure_count += 1
            self.logger.warning(f"{self.name} poll skipped: {e}")
        except Exception as e:
            self.failure_count += 1
            self.logger.error(f"{self.name} poll failed unexpectedly: {e}", exc_info=True)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            started = loop.time()
            await self._tick()

            # Fixed cadence: a slow request shortens the following sleep
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self.period - elapsed))


class TickerPoller(PeriodicPoller):
    """Poller over one symbol's ticker endpoint; pauses near the weight limit."""

    def __init__(self, name: str, client: BinanceServiceClient, symbol: str, period: float) -> None:
        super().__init__(name, period)
        self.client = client
        self.symbol = symbol.upper()

    def may_poll(self) -> bool:
        return self.client.has_weight_headroom()


class FastPricePoller(TickerPoller):
    """Polls the latest price (ticker/price)."""

    def __init__(
        self,
        client: BinanceServiceClient,
        symbol: str,
        on_price: Callable[[Decimal], None],
        period: float = 1.0,
    ) -> None:
        super().__init__("fast-price", client, symbol, period)
        self.on_price = on_price

    async def poll_once(self) -> None:
        payload = await asyncio.to_thread(self.client.ticker_price, self.symbol)
        ticker = parse_payload(TickerPrice, payload)
        self.on_price(ticker.price)


class DailyStatsPoller(TickerPoller):
    """Polls the rolling 24h price change percentage (ticker/24hr)."""

    def __init__(
        self,
        client: BinanceServiceClient,
        symbol: str,
        on_change: Callable[[Decimal], None],
        period: float = 10.0,
    ) -> None:
        super().__init__("24h-stats", client, symbol, period)
        self.on_change = on_change

    async def poll_once(self) -> None:
        payload = await asyncio.to_thread(self.client.ticker_24hr, self.symbol)
        stats = parse_payload(Ticker24h, payload)
        self.logger.debug(f"24h change percentage fetched: {stats.price_change_percent}")
        self.on_change(stats.price_change_percent)
