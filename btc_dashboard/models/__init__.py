"""
Data models package
"""

from .candle import Candle, LiveUpdate
from .dashboard import ChartState, DashboardModel, PriceSnapshot
from .interval import Interval
from .series import MARKER_RADIUS, PresentationState, PriceColor, Series

__all__ = [
    "Candle",
    "LiveUpdate",
    "Interval",
    "Series",
    "PriceColor",
    "PresentationState",
    "MARKER_RADIUS",
    "ChartState",
    "PriceSnapshot",
    "DashboardModel",
]
