"""
Chart series and presentation models
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

# Radius of the marker drawn on the last known price
MARKER_RADIUS = 6


@dataclass(frozen=True)
class Series:
    """
    Positionally aligned chart labels and prices.

    A ``None`` price means "no data for this slot"; renderers must not draw
    a connecting line across it.

    Attributes:
        labels: Display label per slot
        prices: Close price per slot, or None
    """

    labels: Tuple[str, ...]
    prices: Tuple[Optional[Decimal], ...]

    def __post_init__(self) -> None:
        """Validate slot alignment."""
        if len(self.labels) != len(self.prices):
            raise ValueError(
                f"labels ({len(self.labels)}) and prices ({len(self.prices)}) "
                f"must have the same length"
            )

    @classmethod
    def empty(cls) -> "Series":
        return cls(labels=(), prices=())

    def __len__(self) -> int:
        return len(self.labels)

    def index_of(self, label: str) -> Optional[int]:
        """Slot index of ``label``, or None if the label is not on the grid."""
        try:
            return self.labels.index(label)
        except ValueError:
            return None

    def last_index(self) -> Optional[int]:
        """Highest index holding a price, or None if every slot is empty."""
        for index in range(len(self.prices) - 1, -1, -1):
            if self.prices[index] is not None:
                return index
        return None

    def with_price(self, index: int, price: Decimal) -> "Series":
        """Return a copy with slot ``index`` overwritten by ``price``."""
        prices = list(self.prices)
        prices[index] = price
        return Series(labels=self.labels, prices=tuple(prices))

    @property
    def filled_count(self) -> int:
        return sum(1 for p in self.prices if p is not None)


class PriceColor(Enum):
    """Direction color of the price line relative to the baseline."""

    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"

    @property
    def rgba(self) -> str:
        """Chart line/marker color."""
        return _RGBA[self]

    @property
    def hex(self) -> str:
        """Price readout text color."""
        return _HEX[self]


_RGBA = {
    PriceColor.UP: "rgba(0, 128, 0, 1)",
    PriceColor.DOWN: "rgba(255, 0, 0, 1)",
    PriceColor.NEUTRAL: "rgba(128, 128, 128, 1)",
}

_HEX = {
    PriceColor.UP: "#4caf50",
    PriceColor.DOWN: "#f44336",
    PriceColor.NEUTRAL: "#9e9e9e",
}


@dataclass(frozen=True)
class PresentationState:
    """
    Per-point render attributes derived from a series and its baseline.

    Attributes:
        line_color: Color of the whole price line
        last_point_color: Color of the marker on the last known price
        last_point_index: Index of the last non-empty slot, or None
        point_radii: Marker radius per slot (non-zero only at last_point_index)
    """

    line_color: PriceColor
    last_point_color: PriceColor
    last_point_index: Optional[int]
    point_radii: Tuple[int, ...]

    @property
    def has_marker(self) -> bool:
        return self.last_point_index is not None
