"""Domain models and the sample builder.

- ``Offer``: one exchange house's raw buy/sell text for a cycle
- ``RankedOffer``: the ``{name, price}`` pair used for best buy/sell
- ``Aggregate``: bid/ask averages and rankings computed from offers
- ``Sample``: the immutable time-series point published to subscribers

Absent data is ``None`` in Python and ``null`` on the wire. Zero is never
used as a stand-in, so consumers can tell "no data" from "value is zero".
"""

from datetime import UTC, date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from dolarpulse.numeric import parse_number, round_or_none

PRICE_DIGITS = 4
UNKNOWN_NAME = "N/A"


class Offer(BaseModel):
    """Quoted prices of one exchange house, as extracted from the page.

    The raw text is kept for audit; ``buy`` and ``sell`` parse it on access.
    """

    model_config = ConfigDict(frozen=True)

    name: str = UNKNOWN_NAME
    buy_text: str = ""
    sell_text: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, value: Any) -> str:
        """Trim the display label, falling back to ``N/A``."""
        if not isinstance(value, str):
            return UNKNOWN_NAME
        cleaned = " ".join(value.split())
        return cleaned or UNKNOWN_NAME

    @field_validator("buy_text", "sell_text", mode="before")
    @classmethod
    def clean_text(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @property
    def buy(self) -> float:
        return parse_number(self.buy_text)

    @property
    def sell(self) -> float:
        return parse_number(self.sell_text)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RankedOffer(_WireModel):
    """Exchange house selected as the most favorable counter-offer."""

    name: str
    price: float


class Aggregate(BaseModel):
    """Statistics computed from one cycle's offers."""

    model_config = ConfigDict(frozen=True)

    bid_average: float | None = None
    ask_average: float | None = None
    best_buy: RankedOffer | None = None
    best_sell: RankedOffer | None = None


class Sample(_WireModel):
    """One immutable point of the intraday series.

    Attributes:
        timestamp: Cycle start instant, UTC.
        bid_average: Mean buy price across exchange houses.
        ask_average: Mean sell price across exchange houses.
        spot: Spot reference price from the secondary source.
        best_buy: Cheapest place to acquire dollars (lowest sell).
        best_sell: Best place to liquidate dollars (highest buy).
        sample_count: Offers successfully extracted this cycle.
    """

    timestamp: datetime
    bid_average: float | None = None
    ask_average: float | None = None
    spot: float | None = None
    best_buy: RankedOffer | None = None
    best_sell: RankedOffer | None = None
    sample_count: int = Field(default=0, ge=0)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        """Force UTC; naive datetimes are taken to already be UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> str:
        return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @property
    def day(self) -> date:
        """UTC calendar date the sample belongs to."""
        return self.timestamp.date()

    @property
    def is_empty(self) -> bool:
        return (
            self.bid_average is None
            and self.ask_average is None
            and self.spot is None
            and self.best_buy is None
            and self.best_sell is None
        )

    def to_wire(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase keys and explicit nulls."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def empty(cls, timestamp: datetime) -> "Sample":
        """All-absent sample used when no source produced data."""
        return cls(timestamp=timestamp)


def _round_offer(offer: RankedOffer | None) -> RankedOffer | None:
    if offer is None:
        return None
    price = round_or_none(offer.price, PRICE_DIGITS)
    if price is None:
        return None
    return RankedOffer(name=offer.name, price=price)


def build_sample(
    timestamp: datetime,
    aggregate: Aggregate | None,
    spot: float | None,
    sample_count: int,
) -> Sample:
    """Assemble the cycle's sample from the extractor outputs.

    Args:
        timestamp: Cycle start instant.
        aggregate: Aggregator output, or None if the fintech source failed.
        spot: Spot price, or None/NaN if the spot source failed.
        sample_count: Number of offers extracted this cycle.

    Returns:
        A frozen Sample with every numeric rounded to 4 decimals.
    """
    aggregate = aggregate or Aggregate()

    return Sample(
        timestamp=timestamp,
        bid_average=round_or_none(aggregate.bid_average, PRICE_DIGITS),
        ask_average=round_or_none(aggregate.ask_average, PRICE_DIGITS),
        spot=round_or_none(spot, PRICE_DIGITS),
        best_buy=_round_offer(aggregate.best_buy),
        best_sell=_round_offer(aggregate.best_sell),
        sample_count=max(sample_count, 0),
    )
