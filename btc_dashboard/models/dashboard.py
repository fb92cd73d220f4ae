"""
Dashboard state models consumed by the renderer
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from btc_dashboard.core.presentation import compare_to_baseline, derive
from btc_dashboard.models.interval import Interval
from btc_dashboard.models.series import PresentationState, PriceColor, Series


@dataclass(frozen=True)
class ChartState:
    """
    The active series together with its baseline and derived presentation.

    Instances are only ever replaced whole, never mutated, so a reader always
    sees a series and a presentation that were derived from each other.

    Use :meth:`create` rather than the constructor so the presentation is
    always derived through the shared deriver.
    """

    interval: Interval
    series: Series
    baseline: Optional[Decimal]
    presentation: PresentationState

    @classmethod
    def create(
        cls,
        interval: Interval,
        series: Series,
        baseline: Optional[Decimal] = None,
    ) -> "ChartState":
        return cls(
            interval=interval,
            series=series,
            baseline=baseline,
            presentation=derive(series, baseline),
        )

    def with_series(self, series: Series) -> "ChartState":
        return ChartState.create(self.interval, series, self.baseline)

    def with_baseline(self, baseline: Optional[Decimal]) -> "ChartState":
        return ChartState.create(self.interval, self.series, baseline)


@dataclass(frozen=True)
class PriceSnapshot:
    """
    Latest price readout values.

    Attributes:
        price: Last known BTC price
        change_24h_percent: Rolling 24h change in percent
        updated_at: When any field was last updated (UTC)
    """

    price: Optional[Decimal] = None
    change_24h_percent: Optional[Decimal] = None
    updated_at: Optional[datetime] = None

    def with_price(self, price: Decimal) -> "PriceSnapshot":
        return replace(self, price=price, updated_at=datetime.now(timezone.utc))

    def with_change(self, change_percent: Decimal) -> "PriceSnapshot":
        return replace(
            self,
            change_24h_percent=change_percent,
            updated_at=datetime.now(timezone.utc),
        )


@dataclass(frozen=True)
class DashboardModel:
    """
    Complete, immutable data model handed to the renderer on every publish.

    Attributes:
        interval: Selected display interval
        chart: Series, baseline and presentation for that interval
        snapshot: Current price readout
        generation: Activation counter of the interval selection that
            produced this model
    """

    interval: Interval
    chart: ChartState
    snapshot: PriceSnapshot = field(default_factory=PriceSnapshot)
    generation: int = 0

    @property
    def baseline(self) -> Optional[Decimal]:
        return self.chart.baseline

    @property
    def baseline_caption(self) -> str:
        return self.interval.baseline_caption

    @property
    def baseline_line(self) -> Tuple[Decimal, ...]:
        """Flat reference line values, one per slot; empty while unresolved."""
        if self.chart.baseline is None:
            return ()
        return (self.chart.baseline,) * len(self.chart.series)

    @property
    def readout_color(self) -> PriceColor:
        return compare_to_baseline(self.snapshot.price, self.chart.baseline)

    @property
    def change_vs_baseline_percent(self) -> Optional[Decimal]:
        """Current price change relative to the baseline, in percent."""
        price = self.snapshot.price
        baseline = self.chart.baseline
        if price is None or baseline is None or baseline == 0:
            return None
        return (price - baseline) / baseline * 100

    def format_readout(self) -> str:
        """
        Human readable price readout, e.g. ``$64,250.10 (+1.25%)``.

        The change suffix is omitted until the baseline is known.
        """
        price = self.snapshot.price
        if price is None:
            return "Loading..."

        text = f"${price:,.2f}"
        change = self.change_vs_baseline_percent
        if change is not None:
            sign = "+" if change >= 0 else ""
            text += f" ({sign}{change:.2f}%)"
        return text
