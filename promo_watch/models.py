"""Normalised promotion model and per-batch outcome types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    ValidationError,
    field_validator,
    model_validator,
)

# Rejection reason codes
INVALID_ELEMENT = "invalid_element"
NO_OFFER_WINDOW = "no_offer_window"
EMPTY_OFFER_GROUP = "empty_offer_group"
VALIDATION_ERROR = "validation_error"


class Promotion(BaseModel):
    """Source-agnostic representation of one free/discounted game offer.

    Instances are only built through :meth:`Promotion.new`, which returns a
    :class:`Rejection` instead of raising when the candidate is invalid.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = Field(min_length=1, description="Game title")
    description: str = Field(description="Store description")
    url: HttpUrl = Field(description="Product page or fallback sale page")
    start_date: datetime = Field(description="Window start (UTC)")
    end_date: datetime = Field(description="Window end (UTC)")

    @field_validator("title", "description", mode="before")
    @classmethod
    def require_str(cls, value: Any) -> Any:
        # None, numbers and lists all fail with the same message.
        if not isinstance(value, str):
            raise ValueError("must be a string")
        return value

    @field_validator("start_date", "end_date")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are interpreted as UTC.
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        try:
            return value.astimezone(timezone.utc)
        except OverflowError:
            # Offsets can push 0001-01-01 / 9999-12-31 outside datetime's range.
            raise ValueError("timestamp out of range") from None

    @model_validator(mode="after")
    def check_window_order(self) -> "Promotion":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    @classmethod
    def new(cls, *, index: int = 0, **props: Any) -> "Promotion | Rejection":
        """Validate *props* and return a ``Promotion`` or a ``Rejection``."""
        try:
            return cls(**props)
        except ValidationError as exc:
            title = props.get("title")
            return Rejection(
                index=index,
                title=title if isinstance(title, str) else None,
                reason=VALIDATION_ERROR,
                errors=_error_details(exc),
            )

    def to_dict(self) -> dict[str, str]:
        """Serialise into the camelCase shape emitted to the sink."""
        return {
            "title": self.title,
            "description": self.description,
            "url": str(self.url),
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class Rejection:
    """Why a raw element did not become a :class:`Promotion`."""

    index: int                       # Position of the element in the batch
    title: str | None                # Raw title when it was a string
    reason: str                      # One of the reason codes above
    errors: tuple[dict[str, str], ...] = ()   # Field-level details


@dataclass(frozen=True, slots=True)
class NormalizationResult:
    """Outcome of normalising one fetched batch."""

    valid: tuple[Promotion, ...] = field(default_factory=tuple)
    rejected: tuple[Rejection, ...] = field(default_factory=tuple)

    @property
    def has_promotions(self) -> bool:
        return bool(self.valid)


def _error_details(exc: ValidationError) -> tuple[dict[str, str], ...]:
    details: list[dict[str, str]] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
        details.append({"loc": loc, "msg": err.get("msg", "")})
    return tuple(details)
