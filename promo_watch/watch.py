"""Poll a storefront for free-game promotions and report the valid ones.

The data source is pluggable via the ``PROMO_SOURCE`` environment variable
(default: ``epicgames``).  Every cycle fetches the raw listing, normalises it
into :class:`models.Promotion` objects and hands a report to the sink when at
least one promotion is valid.
"""

from __future__ import annotations

import json
import os
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from .fetchers import BaseFetcher, get_fetcher
from .fetchers.epicgames import DEFAULT_COUNTRY
from .models import NormalizationResult, Promotion
from .normalizer import DEFAULT_LOCALE, PromotionNormalizer

# ---------------------------------------------------------------------------
# Configuration constants
# ---------------------------------------------------------------------------
DEFAULT_SOURCE = "epicgames"
REFRESH_INTERVAL_SECONDS = 60

Report = dict[str, Any]
Sink = Callable[[Report], None]


# ---------------------------------------------------------------------------
# Cycle
# ---------------------------------------------------------------------------

def check_promotions(
    fetcher: BaseFetcher, normalizer: PromotionNormalizer | None = None,
) -> NormalizationResult:
    """Fetch and normalise one listing.

    A failed fetch yields an empty result; callers check ``has_promotions``.
    """
    normalizer = normalizer or PromotionNormalizer()
    elements = fetcher.fetch_elements()
    if not elements:
        return NormalizationResult()

    result = normalizer.normalize(elements)
    if not result.has_promotions:
        print(f"[watch] no valid promotions: {list(result.rejected)}")
        return result

    for rej in result.rejected:
        print(f"[watch] skipped element {rej.index} ({rej.title!r}): {rej.reason} {list(rej.errors)}")
    return result


def build_report(promotions: Sequence[Promotion], updated_at: datetime) -> Report:
    """Convert normalised promotions to the report emitted to the sink."""
    return {
        "updatedAt": updated_at.isoformat(),
        "promotions": [promo.to_dict() for promo in promotions],
    }


def print_report(report: Report) -> None:
    print(json.dumps(report, indent=2, ensure_ascii=False))


def handle_promotions(
    fetcher: BaseFetcher,
    sink: Sink,
    *,
    normalizer: PromotionNormalizer | None = None,
    now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> bool:
    """Run one cycle.  Returns ``True`` when a report was emitted."""
    result = check_promotions(fetcher, normalizer)
    if not result.has_promotions:
        return False
    sink(build_report(result.valid, now()))
    return True


def run(
    fetcher: BaseFetcher,
    sink: Sink,
    interval_seconds: float = REFRESH_INTERVAL_SECONDS,
    *,
    normalizer: PromotionNormalizer | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    max_cycles: int | None = None,
) -> int:
    """Run one cycle now and then one every *interval_seconds*.

    Cycles run back to back on this thread, so they never overlap; a cycle
    that overruns the interval delays the next one.  Returns the number of
    cycles run (only reached when *max_cycles* is set).
    """
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        started = clock()
        try:
            handle_promotions(fetcher, sink, normalizer=normalizer)
        except Exception as exc:  # noqa: BLE001
            print(f"[watch] cycle failed: {exc!r}")
        cycles += 1
        if max_cycles is not None and cycles >= max_cycles:
            break
        sleep(max(0.0, interval_seconds - (clock() - started)))
    return cycles


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def _interval_from_env() -> int:
    raw = os.environ.get("REFRESH_INTERVAL_SECONDS", str(REFRESH_INTERVAL_SECONDS))
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value <= 0:
        raise ValueError(
            f"Invalid REFRESH_INTERVAL_SECONDS '{raw}': expected a positive integer."
        )
    return value


def main() -> None:
    source_name = os.environ.get("PROMO_SOURCE", DEFAULT_SOURCE)
    locale = os.environ.get("EPIC_LOCALE", DEFAULT_LOCALE)
    country = os.environ.get("EPIC_COUNTRY", DEFAULT_COUNTRY)
    interval = _interval_from_env()
    run_once = os.environ.get("PROMO_RUN_ONCE", "").lower() in {"1", "true", "yes"}

    fetcher = get_fetcher(source_name, locale=locale, country=country)
    print(f"Using data source: {fetcher.name} ({locale}/{country}), every {interval}s")

    run(
        fetcher,
        print_report,
        interval,
        normalizer=PromotionNormalizer(locale=locale),
        max_cycles=1 if run_once else None,
    )


if __name__ == "__main__":
    main()
