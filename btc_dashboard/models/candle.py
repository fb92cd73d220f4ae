"""
Candlestick data model
"""

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from btc_dashboard.core.exceptions import ParseFailure


@dataclass(frozen=True)
class Candle:
    """
    Close price of one kline bucket from the Binance REST API.

    Only the fields the chart needs are kept; the other OHLCV columns of a
    kline row are ignored.

    Attributes:
        open_time_ms: Bucket opening timestamp (epoch milliseconds, UTC)
        close: Closing (or current, while the bucket forms) price
    """

    open_time_ms: int
    close: Decimal

    def open_time(self, tz: tzinfo = timezone.utc) -> datetime:
        """Bucket opening time as an aware datetime in ``tz``."""
        return datetime.fromtimestamp(self.open_time_ms / 1000, tz=tz)

    @classmethod
    def from_rest_row(cls, row: Sequence[Any]) -> "Candle":
        """
        Parse a REST kline row.

        Row layout: index 0 = open time (ms epoch), index 4 = close price
        (decimal string).

        Raises:
            ParseFailure: If the row is too short or a field does not parse
        """
        try:
            open_time_ms = int(row[0])
            close = Decimal(str(row[4]))
        except (IndexError, KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise ParseFailure(f"Malformed kline row {row!r}: {e}") from e

        if not close.is_finite():
            raise ParseFailure(f"Non-finite close price in kline row {row!r}")

        return cls(open_time_ms=open_time_ms, close=close)


@dataclass(frozen=True)
class LiveUpdate:
    """
    Single-bucket price update from the kline stream.

    Attributes:
        bucket_open_time_ms: Open time of the forming bucket (ms epoch)
        close: Latest price within that bucket
    """

    bucket_open_time_ms: int
    close: Decimal
