"""
Time range computation for display intervals.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Optional

import pytz

from btc_dashboard.models.interval import Interval

# Look-back span for the rolling intervals
_LOOKBACK = {
    Interval.WEEK: timedelta(days=7),
    Interval.MONTH: timedelta(days=30),
    Interval.THREE_MONTHS: timedelta(days=90),
    Interval.YEAR: timedelta(days=365),
}


def _to_ms(value: datetime) -> int:
    return int(round(value.timestamp() * 1000))


@dataclass(frozen=True)
class ClockWindow:
    """
    Wall-clock range and bucket size of one interval activation.

    Attributes:
        start: Window start (timezone-aware)
        end: Window end (timezone-aware)
        bucket: Candle bucket granularity
    """

    start: datetime
    end: datetime
    bucket: timedelta

    def __post_init__(self) -> None:
        """Validate window bounds."""
        if self.start >= self.end:
            raise ValueError(f"Window start ({self.start}) must be before end ({self.end})")
        if self.bucket <= timedelta(0):
            raise ValueError(f"Bucket granularity must be positive, got {self.bucket}")

    @property
    def start_ms(self) -> int:
        return _to_ms(self.start)

    @property
    def end_ms(self) -> int:
        return _to_ms(self.end)

    @property
    def bucket_ms(self) -> int:
        return int(self.bucket.total_seconds() * 1000)

    @property
    def bucket_count(self) -> int:
        """Approximate number of buckets spanned (window edges are wall-clock)."""
        span = self.end_ms - self.start_ms
        return -(-span // self.bucket_ms)


def _localize(naive: datetime, tz: tzinfo) -> datetime:
    """Attach tz to a wall-clock time (pytz zones need localize for DST)."""
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def compute_window(
    interval: Interval,
    now: Optional[datetime] = None,
    tz: tzinfo = pytz.UTC,
) -> ClockWindow:
    """
    Compute the time range for ``interval`` as of ``now``.

    - Today: local midnight to 23:59:59.999 of the same day, 1 minute buckets
    - Week / Month / 3 Months / Year: rolling 7 / 30 / 90 / 365 days
    - Year to date: January 1st 00:00 local to now

    Args:
        interval: Display interval
        now: Reference wall-clock time (defaults to the current time)
        tz: Display timezone that defines "local" day and year boundaries

    Returns:
        ClockWindow for the interval
    """
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = pytz.UTC.localize(now)
    now = now.astimezone(tz)

    if interval is Interval.TODAY:
        start = _localize(datetime(now.year, now.month, now.day), tz)
        # End of day is 23:59:59.999 on the wall clock, DST-safe
        end = _localize(datetime(now.year, now.month, now.day, 23, 59, 59, 999000), tz)
        return ClockWindow(start=start, end=end, bucket=interval.bucket)

    if interval is Interval.YEAR_TO_DATE:
        start = _localize(datetime(now.year, 1, 1), tz)
        end = now
        if end <= start:
            # Exactly at the turn of the year
            end = start + timedelta(milliseconds=1)
        return ClockWindow(start=start, end=end, bucket=interval.bucket)

    start = now - _LOOKBACK[interval]
    return ClockWindow(start=start, end=now, bucket=interval.bucket)
