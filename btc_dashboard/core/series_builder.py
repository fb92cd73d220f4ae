"""
Series construction from historical candles.

The intraday (Today) series is laid out on a fixed grid of 1440 minute
slots, ``"00:00"`` to ``"23:59"``, so the chart always spans the whole day
and live updates have a slot to land in. Longer intervals get one slot per
candle.
"""

from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

import pytz

from btc_dashboard.models.candle import Candle
from btc_dashboard.models.interval import Interval
from btc_dashboard.models.series import Series

MINUTES_PER_DAY = 24 * 60

# Display label formats for candle-per-slot intervals
_LABEL_FORMATS = {
    Interval.WEEK: "%m/%d %H:00",
    Interval.MONTH: "%m/%d %H:00",
    Interval.THREE_MONTHS: "%m/%d",
    Interval.YEAR_TO_DATE: "%m/%d",
    Interval.YEAR: "%m/%d",
}


def minute_grid() -> Tuple[str, ...]:
    """All minute labels of a day in order: ``("00:00", ..., "23:59")``."""
    return tuple(
        f"{hour:02d}:{minute:02d}"
        for hour in range(24)
        for minute in range(60)
    )


def format_minute_label(open_time_ms: int, tz: tzinfo = pytz.UTC) -> str:
    """
    Format a bucket open time as its ``HH:MM`` grid label in ``tz``.

    Shared by grid construction and live matching so both always agree.
    """
    moment = datetime.fromtimestamp(open_time_ms / 1000, tz=tz)
    return f"{moment.hour:02d}:{moment.minute:02d}"


def format_candle_label(candle: Candle, interval: Interval, tz: tzinfo = pytz.UTC) -> str:
    """Display label of a candle for a candle-per-slot interval."""
    if interval is Interval.TODAY:
        return format_minute_label(candle.open_time_ms, tz)
    return candle.open_time(tz).strftime(_LABEL_FORMATS[interval])


def empty_series(interval: Interval) -> Series:
    """Placeholder series shown while an interval is loading."""
    if interval is Interval.TODAY:
        grid = minute_grid()
        return Series(labels=grid, prices=(None,) * len(grid))
    return Series.empty()


def _build_minute_grid(candles: Iterable[Candle], tz: tzinfo) -> Series:
    # First candle per wall-clock minute wins
    by_label: Dict[str, Decimal] = {}
    for candle in candles:
        label = format_minute_label(candle.open_time_ms, tz)
        if label not in by_label:
            by_label[label] = candle.close

    labels = minute_grid()
    prices: List[Optional[Decimal]] = [by_label.get(label) for label in labels]
    return Series(labels=labels, prices=tuple(prices))


def build_series(
    candles: Iterable[Candle],
    interval: Interval,
    tz: tzinfo = pytz.UTC,
) -> Series:
    """
    Build the chart series for ``interval`` from fetched candles.

    Args:
        candles: Candles in fetch order (ascending open time)
        interval: Display interval
        tz: Display timezone used for labels and minute matching

    Returns:
        Today: exactly 1440 slots, None where no candle matched.
        Other intervals: one slot per candle, in fetch order.
    """
    if interval is Interval.TODAY:
        return _build_minute_grid(candles, tz)

    labels: List[str] = []
    prices: List[Optional[Decimal]] = []
    for candle in candles:
        labels.append(format_candle_label(candle, interval, tz))
        prices.append(candle.close)
    return Series(labels=tuple(labels), prices=tuple(prices))
