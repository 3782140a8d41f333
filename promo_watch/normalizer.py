"""Turn raw storefront elements into validated :class:`Promotion` objects.

The storefront payload is externally controlled and loosely typed.  Each
element is normalised on its own: a broken element becomes a
:class:`Rejection` and never aborts the rest of the batch.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .models import (
    EMPTY_OFFER_GROUP,
    INVALID_ELEMENT,
    NO_OFFER_WINDOW,
    NormalizationResult,
    Promotion,
    Rejection,
)

DEFAULT_LOCALE = "pt-BR"

_STORE_BASE = "https://store.epicgames.com"
_PRODUCT_URL = _STORE_BASE + "/{locale}/p/{slug}"
_FALLBACK_URL = _STORE_BASE + "/{locale}/sales-and-specials/holiday-sale"

# The API sends this literal when a bundle/mystery game has no product page.
_PLACEHOLDER_SLUG = "[]"


class WindowError(Exception):
    """Raised by :func:`resolve_window` when no offer window can be read."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


def resolve_url(slug: Any, locale: str = DEFAULT_LOCALE) -> str:
    """Return the product page for *slug*, or the seasonal sale page."""
    if not isinstance(slug, str) or not slug.strip() or slug == _PLACEHOLDER_SLUG:
        return _FALLBACK_URL.format(locale=locale)
    return _PRODUCT_URL.format(locale=locale, slug=slug.strip())


def resolve_window(promotions: Any) -> tuple[Any, Any]:
    """Return the raw ``(startDate, endDate)`` of the offer to report.

    The currently active window (``promotionalOffers``) wins; the upcoming
    window is used only when there is no active one.  In both cases the first
    entry of the first group is read.

    Raises :class:`WindowError` when neither list holds a usable entry.
    """
    if not isinstance(promotions, Mapping):
        raise WindowError(NO_OFFER_WINDOW, "element has no promotions block")

    active = promotions.get("promotionalOffers") or []
    upcoming = promotions.get("upcomingPromotionalOffers") or []
    if active:
        groups, key = active, "promotionalOffers"
    elif upcoming:
        groups, key = upcoming, "upcomingPromotionalOffers"
    else:
        raise WindowError(NO_OFFER_WINDOW, "no active or upcoming offer window")

    try:
        offer = groups[0]["promotionalOffers"][0]
        return offer["startDate"], offer["endDate"]
    except (KeyError, IndexError, TypeError) as exc:
        raise WindowError(
            EMPTY_OFFER_GROUP, f"{key}[0].promotionalOffers[0] is unusable: {exc!r}",
        ) from None


class PromotionNormalizer:
    """Normalise storefront elements into promotions and rejections."""

    def __init__(self, locale: str = DEFAULT_LOCALE) -> None:
        self.locale = locale

    def normalize(self, elements: Iterable[Any]) -> NormalizationResult:
        valid: list[Promotion] = []
        rejected: list[Rejection] = []
        for index, raw in enumerate(elements):
            outcome = self.normalize_element(raw, index=index)
            if isinstance(outcome, Promotion):
                valid.append(outcome)
            else:
                rejected.append(outcome)
        return NormalizationResult(valid=tuple(valid), rejected=tuple(rejected))

    def normalize_element(self, raw: Any, *, index: int = 0) -> Promotion | Rejection:
        """Normalise a single element; never raises for bad input."""
        if not isinstance(raw, Mapping):
            return Rejection(
                index=index,
                title=None,
                reason=INVALID_ELEMENT,
                errors=({"loc": "__root__", "msg": f"expected an object, got {type(raw).__name__}"},),
            )

        title = raw.get("title")
        try:
            start_date, end_date = resolve_window(raw.get("promotions"))
        except WindowError as exc:
            return Rejection(
                index=index,
                title=title if isinstance(title, str) else None,
                reason=exc.reason,
                errors=({"loc": "promotions", "msg": str(exc)},),
            )

        return Promotion.new(
            index=index,
            title=title,
            description=raw.get("description"),
            url=resolve_url(raw.get("productSlug"), self.locale),
            start_date=start_date,
            end_date=end_date,
        )
