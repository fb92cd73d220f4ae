"""
Display interval model
"""

from datetime import timedelta
from enum import Enum


class Interval(Enum):
    """
    Chart display intervals selectable by the user.

    Member values are the codes of the interval selector buttons. Codes are
    case-sensitive: '1m' (today, minute buckets) and '1M' (one month) are
    different intervals.
    """

    TODAY = "1m"
    WEEK = "1w"
    MONTH = "1M"
    THREE_MONTHS = "3M"
    YEAR_TO_DATE = "YTD"
    YEAR = "1Y"

    @classmethod
    def parse(cls, code: str) -> "Interval":
        """
        Resolve a selection code to an Interval.

        Args:
            code: Interval code ('1m', '1w', '1M', '3M', 'YTD', '1Y')

        Returns:
            Matching Interval member

        Raises:
            ValueError: If code is not a known interval
        """
        for member in cls:
            if member.value == code:
                return member
        raise ValueError(
            f"Unknown interval code: {code!r}. "
            f"Must be one of {[m.value for m in cls]}"
        )

    @property
    def api_interval(self) -> str:
        """Binance kline interval used for historical candles."""
        return _API_INTERVALS[self]

    @property
    def bucket(self) -> timedelta:
        """Candle bucket granularity."""
        return _BUCKETS[self]

    @property
    def bucket_ms(self) -> int:
        return int(self.bucket.total_seconds() * 1000)

    @property
    def is_intraday(self) -> bool:
        """True for the minute-grid interval that receives live updates."""
        return self is Interval.TODAY

    @property
    def baseline_caption(self) -> str:
        """Caption of the reference line drawn at the baseline price."""
        return _BASELINE_CAPTIONS[self]


_API_INTERVALS = {
    Interval.TODAY: "1m",
    Interval.WEEK: "1h",
    Interval.MONTH: "4h",
    Interval.THREE_MONTHS: "1d",
    Interval.YEAR_TO_DATE: "1d",
    Interval.YEAR: "1d",
}

_BUCKETS = {
    Interval.TODAY: timedelta(minutes=1),
    Interval.WEEK: timedelta(hours=1),
    Interval.MONTH: timedelta(hours=4),
    Interval.THREE_MONTHS: timedelta(days=1),
    Interval.YEAR_TO_DATE: timedelta(days=1),
    Interval.YEAR: timedelta(days=1),
}

_BASELINE_CAPTIONS = {
    Interval.TODAY: "Yesterday Close",
    Interval.WEEK: "Last Week Close",
    Interval.MONTH: "Last Month Close",
    Interval.THREE_MONTHS: "3M Ago Close",
    Interval.YEAR_TO_DATE: "Last Year Close",
    Interval.YEAR: "1Y Ago Close",
}
