"""
Pydantic schemas for Binance REST and WebSocket payloads.

Responses are validated here before they reach the chart pipeline; a
``pydantic.ValidationError`` is translated to ``ParseFailure`` by
:func:`parse_payload`.
"""

from decimal import Decimal
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from btc_dashboard.core.exceptions import ParseFailure
from btc_dashboard.models.candle import LiveUpdate

T = TypeVar("T", bound=BaseModel)


class TickerPrice(BaseModel):
    """GET ticker/price response."""

    model_config = ConfigDict(extra="ignore")

    symbol: str = ""
    price: Decimal = Field(gt=0)


class Ticker24h(BaseModel):
    """GET ticker/24hr response (only the change percentage is used)."""

    model_config = ConfigDict(extra="ignore")

    symbol: str = ""
    price_change_percent: Decimal = Field(alias="priceChangePercent")


class KlinePayload(BaseModel):
    """The ``k`` object of a kline stream event."""

    model_config = ConfigDict(extra="ignore")

    open_time: int = Field(alias="t")
    close: Decimal = Field(alias="c", gt=0)


class KlineEvent(BaseModel):
    """Kline stream event: ``{"e": "kline", "k": {...}}``."""

    model_config = ConfigDict(extra="ignore")

    event_type: str = Field(alias="e")
    kline: KlinePayload = Field(alias="k")

    def to_live_update(self) -> LiveUpdate:
        return LiveUpdate(
            bucket_open_time_ms=self.kline.open_time,
            close=self.kline.close,
        )


def parse_payload(schema: Type[T], payload: Any) -> T:
    """
    Validate ``payload`` against ``schema``.

    Raises:
        ParseFailure: If the payload does not match the schema
    """
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise ParseFailure(
            f"Unexpected {schema.__name__} payload: {e.error_count()} error(s)"
        ) from e
