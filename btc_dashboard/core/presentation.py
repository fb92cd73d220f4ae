"""
Presentation state derivation.

Single source of the price-line coloring rule. Both the initial series
build and every live merge call :func:`derive`, so the two paths can never
disagree on colors or marker placement.
"""

from decimal import Decimal
from typing import Optional

from btc_dashboard.models.series import (
    MARKER_RADIUS,
    PresentationState,
    PriceColor,
    Series,
)


def compare_to_baseline(
    price: Optional[Decimal], baseline: Optional[Decimal]
) -> PriceColor:
    """
    Color of ``price`` relative to ``baseline``.

    Strictly greater is UP; a tie counts as DOWN. Either side missing is
    NEUTRAL.
    """
    if price is None or baseline is None:
        return PriceColor.NEUTRAL
    return PriceColor.UP if price > baseline else PriceColor.DOWN


def derive(series: Series, baseline: Optional[Decimal]) -> PresentationState:
    """
    Derive render attributes for ``series`` against ``baseline``.

    Pure and deterministic: equal inputs always produce an equal state.

    Args:
        series: Chart series (may contain empty slots)
        baseline: Reference close price, or None while unresolved

    Returns:
        PresentationState with the line color and a single marker on the
        last non-empty slot
    """
    last_index = series.last_index()
    last_price = series.prices[last_index] if last_index is not None else None
    color = compare_to_baseline(last_price, baseline)

    radii = tuple(
        MARKER_RADIUS if index == last_index else 0
        for index in range(len(series))
    )

    return PresentationState(
        line_color=color,
        last_point_color=color,
        last_point_index=last_index,
        point_radii=radii,
    )
