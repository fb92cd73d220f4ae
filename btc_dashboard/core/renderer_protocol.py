"""
Renderer interface for the dashboard data model.

Drawing is outside the core; any UI that can consume a
:class:`DashboardModel` plugs in here. :class:`LogRenderer` lets the process
run headless by writing each published model to the log.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

from btc_dashboard.models.dashboard import DashboardModel


class IRenderer(ABC):
    """
    Consumer of published dashboard models.

    ``render`` is called on the event loop thread with a complete, immutable
    model after every state change. Implementations should return quickly.
    """

    @abstractmethod
    def render(self, model: DashboardModel) -> None:
        """Draw ``model``."""
        pass


class LogRenderer(IRenderer):
    """
    Writes a one-line summary of each model to the log.

    At most one INFO line per ``min_interval`` seconds; other renders go to
    DEBUG so a 1s price poll does not flood the console.
    """

    def __init__(self, min_interval: float = 5.0) -> None:
        self.min_interval = min_interval
        self.render_count = 0
        self.last_model: Optional[DashboardModel] = None
        self._last_info_time = float("-inf")
        self.logger = logging.getLogger(__name__)

    def render(self, model: DashboardModel) -> None:
        self.render_count += 1
        self.last_model = model

        chart = model.chart
        presentation = chart.presentation
        last_price = (
            chart.series.prices[presentation.last_point_index]
            if presentation.last_point_index is not None
            else None
        )
        baseline = (
            f"{model.baseline_caption}={model.baseline}"
            if model.baseline is not None
            else f"{model.baseline_caption}=pending"
        )
        change_24h = (
            f"{model.snapshot.change_24h_percent}%"
            if model.snapshot.change_24h_percent is not None
            else "n/a"
        )
        summary = (
            f"[{model.interval.value}] {model.format_readout()} | "
            f"points {chart.series.filled_count}/{len(chart.series)} | "
            f"last={last_price} line={presentation.line_color.value} | "
            f"{baseline} | 24h {change_24h}"
        )

        now = time.monotonic()
        if now - self._last_info_time >= self.min_interval:
            self._last_info_time = now
            self.logger.info(summary)
        else:
            self.logger.debug(summary)
