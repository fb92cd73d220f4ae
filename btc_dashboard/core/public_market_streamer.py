"""
Public kline stream for Binance WebSocket with automatic reconnection.

This module provides the PublicMarketStreamer class, the reconnecting
transport behind the live chart: it relays per-minute kline updates for a
single symbol and transparently re-establishes the connection when it drops.
"""

import asyncio
import json
import logging
import time
from functools import partial
from typing import Callable, Optional

from binance.websocket.um_futures.websocket_client import UMFuturesWebsocketClient

from btc_dashboard.core.backoff import ExponentialBackoff
from btc_dashboard.core.exceptions import ParseFailure
from btc_dashboard.core.streamer_protocol import IDataStreamer
from btc_dashboard.models.candle import LiveUpdate
from btc_dashboard.models.market import KlineEvent, parse_payload


class PublicMarketStreamer(IDataStreamer):
    """
    Kline stream relay for one symbol and one kline interval.

    Responsibilities:
        - WebSocket connection management
        - Kline message parsing into LiveUpdate objects
        - Reconnection with exponential backoff on close, error or a stalled
          stream (no message for ``stale_after`` seconds)
        - Graceful cleanup on shutdown

    Consumers only observe gaps in delivery, never connection errors.

    Note: ``on_update_callback`` runs on the WebSocket library's thread.
    Consumers that touch event-loop state must hand the update over with
    ``loop.call_soon_threadsafe``.

    Example:
        >>> streamer = PublicMarketStreamer('BTCUSDT', on_update_callback=print)
        >>> await streamer.start()
        >>> await streamer.stop()
    """

    DEFAULT_TESTNET_WS_URL = "wss://stream.binancefuture.com"
    DEFAULT_MAINNET_WS_URL = "wss://fstream.binance.com"

    def __init__(
        self,
        symbol: str,
        interval: str = "1m",
        is_testnet: bool = False,
        on_update_callback: Optional[Callable[[LiveUpdate], None]] = None,
        ws_url: Optional[str] = None,
        heartbeat_interval: float = 30.0,
        stale_after: float = 60.0,
    ) -> None:
        """
        Initialize PublicMarketStreamer.

        Args:
            symbol: Trading pair to monitor (e.g., 'BTCUSDT')
            interval: Kline interval to subscribe to (default: '1m')
            is_testnet: Whether to use testnet (default: False)
            on_update_callback: Invoked with a LiveUpdate per kline message
            ws_url: Optional custom WebSocket URL; overrides is_testnet
            heartbeat_interval: Seconds between connection health checks
            stale_after: Seconds without messages before forcing a reconnect
        """
        if not symbol:
            raise ValueError("symbol cannot be empty")

        self.symbol = symbol.upper()
        self.interval = interval
        self.is_testnet = is_testnet
        self.on_update_callback = on_update_callback

        if ws_url:
            self._ws_url = ws_url
        else:
            self._ws_url = (
                self.DEFAULT_TESTNET_WS_URL
                if is_testnet
                else self.DEFAULT_MAINNET_WS_URL
            )

        self.ws_client: Optional[UMFuturesWebsocketClient] = None

        # State management
        self._running = False
        self._is_connected = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # Connection monitoring
        self._heartbeat_interval = heartbeat_interval
        self._stale_after = stale_after
        self._last_message_time = 0.0
        self._heartbeat_task: Optional[asyncio.Task] = None

        # Reconnection
        self._backoff = ExponentialBackoff(base=1.0, max_wait=30.0)
        self._reconnect_task: Optional[asyncio.Task] = None
        self._connection_id = 0
        self.reconnect_count = 0

        self.logger = logging.getLogger(__name__)
        self.logger.info(
            f"PublicMarketStreamer initialized: {self.symbol}@kline_{self.interval}, "
            f"environment={'TESTNET' if is_testnet else 'MAINNET'}"
        )

    @property
    def stream_name(self) -> str:
        return f"{self.symbol.lower()}@kline_{self.interval}"

    @property
    def is_connected(self) -> bool:
        """True if the stream is running and a WebSocket client is attached."""
        return self._running and self._is_connected and self.ws_client is not None

    # ------------------------------------------------------------------
    # WebSocket callbacks (library thread)
    # ------------------------------------------------------------------

    def _handle_kline_message(self, _, message) -> None:
        """
        Turn one raw ``kline`` event into a LiveUpdate for the callback.

        Any message counts as a sign of life for the stale-stream check.
        Bad payloads are logged and dropped; raising here would kill the
        WebSocket thread.
        """
        self._last_message_time = time.monotonic()

        try:
            if isinstance(message, (str, bytes)):
                message = json.loads(message)

            if not isinstance(message, dict):
                return

            # Subscription confirmations, etc. - ignore silently
            if message.get("e") != "kline":
                return

            update = parse_payload(KlineEvent, message).to_live_update()

            # Messages are flowing again
            self._backoff.reset()

            if self.on_update_callback:
                self.on_update_callback(update)

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in kline message: {e}")
        except ParseFailure as e:
            self.logger.error(f"Malformed kline message: {e} | Message: {message}")
        except Exception as e:
            self.logger.error(
                f"Unexpected error handling kline message: {e} | Message: {message}",
                exc_info=True,
            )

    def _handle_close(self, connection_id: int, _) -> None:
        # Late callbacks from a replaced client are ignored
        if not self._running or connection_id != self._connection_id:
            return
        self.logger.warning(f"WebSocket closed ({self.stream_name}), scheduling reconnect")
        self._request_reconnect()

    def _handle_error(self, connection_id: int, _, error) -> None:
        self.logger.error(f"WebSocket error ({self.stream_name}): {error}")
        if self._running and connection_id == self._connection_id:
            self._request_reconnect()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        """Create the WebSocket client and subscribe to the kline stream."""
        self._connection_id += 1
        client = UMFuturesWebsocketClient(
            stream_url=self._ws_url,
            on_message=self._handle_kline_message,
            on_close=partial(self._handle_close, self._connection_id),
            on_error=partial(self._handle_error, self._connection_id),
        )
        self.logger.debug(f"Subscribing to: {self.stream_name}")
        client.kline(symbol=self.symbol.lower(), interval=self.interval)

        self.ws_client = client
        self._is_connected = True
        self._last_message_time = time.monotonic()

    async def start(self) -> None:
        """
        Start WebSocket streaming.

        Raises:
            ConnectionError: If the initial WebSocket connection fails
        """
        if self._running:
            self.logger.warning("Streaming already active, ignoring start request")
            return

        self._loop = asyncio.get_running_loop()

        try:
            self.logger.info(f"Connecting to {self._ws_url} for {self.stream_name}")
            self._connect()
        except Exception as e:
            self.logger.error(f"Failed to start WebSocket streaming: {e}", exc_info=True)
            await self.stop()
            raise ConnectionError(f"WebSocket initialization failed: {e}")

        self._running = True
        self._heartbeat_task = asyncio.create_task(self._heartbeat_monitor())
        self.logger.info(f"Streaming {self.stream_name}")

    async def stop(self, timeout: float = 5.0) -> None:
        """
        Gracefully stop streaming and cleanup resources.

        Args:
            timeout: Maximum time in seconds to wait for cleanup (default: 5.0)
        """
        if not self._running and self.ws_client is None:
            self.logger.debug("Streamer already stopped, ignoring stop request")
            return

        self.logger.info(f"Stopping stream {self.stream_name}...")

        # Set flags first so close callbacks do not trigger reconnects
        self._running = False
        self._is_connected = False

        for task in (self._heartbeat_task, self._reconnect_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._heartbeat_task = None
        self._reconnect_task = None

        await self._close_client(timeout)
        self.logger.info(f"Stream {self.stream_name} stopped")

    async def _close_client(self, timeout: float) -> None:
        client, self.ws_client = self.ws_client, None
        if client is None:
            return

        try:
            await asyncio.wait_for(asyncio.to_thread(client.stop), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"WebSocket stop exceeded {timeout}s timeout, forcing cleanup")
        except Exception as e:
            self.logger.error(f"Error stopping WebSocket client: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Reconnection
    # ------------------------------------------------------------------

    def _request_reconnect(self) -> None:
        """Thread-safe entry point for scheduling a reconnect on the event loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._schedule_reconnect)
        except RuntimeError:
            # Loop closed between the check and the call (shutdown)
            pass

    def _schedule_reconnect(self) -> None:
        if not self._running:
            return
        if self._reconnect_task and not self._reconnect_task.done():
            return
        self._is_connected = False
        self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        """Replace the WebSocket client, retrying with backoff until it succeeds."""
        while self._running:
            delay = self._backoff.next()
            self.logger.info(
                f"Reconnecting {self.stream_name} in {delay:.1f}s "
                f"(attempt {self._backoff.attempts})"
            )
            await asyncio.sleep(delay)
            if not self._running:
                return

            await self._close_client(timeout=5.0)
            try:
                self._connect()
            except Exception as e:
                self.logger.error(f"Reconnect attempt failed: {e}")
                continue

            self.reconnect_count += 1
            self.logger.info(f"Reconnected {self.stream_name}")
            return

    async def _heartbeat_monitor(self) -> None:
        """Log connection status periodically and reconnect a stalled stream."""
        while self._running:
            try:
                await asyncio.sleep(self._heartbeat_interval)
                if not self._running:
                    break

                silent_for = time.monotonic() - self._last_message_time
                self.logger.info(
                    f"WebSocket heartbeat: {self.stream_name}, "
                    f"status={'CONNECTED' if self._is_connected else 'DISCONNECTED'}, "
                    f"last message {silent_for:.1f}s ago, reconnects={self.reconnect_count}"
                )

                if silent_for > self._stale_after:
                    self.logger.warning(
                        f"No kline messages for {silent_for:.1f}s, forcing reconnect"
                    )
                    self._schedule_reconnect()

            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error(f"Heartbeat monitor error: {e}", exc_info=True)
                await asyncio.sleep(5.0)
