"""
Interface of the live kline transport.

LiveMerger only needs to open and close a stream and ask whether it is up;
everything else (subscription format, reconnection, heartbeat) belongs to the
implementation. Tests substitute an in-memory fake.
"""

from abc import ABC, abstractmethod


class IDataStreamer(ABC):
    """
    A stream of :class:`~btc_dashboard.models.candle.LiveUpdate` objects.

    Implementations deliver updates through a callback given at construction
    time, possibly from a foreign thread, and recover from unexpected
    disconnects on their own.

    Implementations:
        - PublicMarketStreamer: Binance ``<symbol>@kline_1m`` WebSocket
    """

    @abstractmethod
    async def start(self) -> None:
        """
        Open the stream. A second call while open does nothing.

        Raises:
            ConnectionError: If the first connection attempt fails
        """

    @abstractmethod
    async def stop(self, timeout: float = 5.0) -> None:
        """
        Close the stream and stop any reconnection. Safe to repeat.

        Args:
            timeout: Seconds to wait for the transport to shut down
        """

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether updates are currently flowing."""
