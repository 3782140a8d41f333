"""Tests for the fetch-normalise-report cycle and the polling loop."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from promo_watch.fetchers import BaseFetcher
from promo_watch.models import Promotion
from promo_watch.watch import (
    _interval_from_env,
    build_report,
    check_promotions,
    handle_promotions,
    main,
    print_report,
    run,
)

# -----------------------------------------------------------------------
# Fixtures / sample data
# -----------------------------------------------------------------------

VALID_ELEMENT = {
    "title": "A",
    "description": "B",
    "productSlug": "abc",
    "promotions": {
        "promotionalOffers": [
            {
                "promotionalOffers": [
                    {"startDate": "2024-01-01T00:00:00Z", "endDate": "2024-01-08T00:00:00Z"}
                ]
            }
        ],
        "upcomingPromotionalOffers": [],
    },
}
NO_WINDOW_ELEMENT = {
    "title": "Vault Item",
    "description": "No offer",
    "productSlug": "",
    "promotions": {"promotionalOffers": [], "upcomingPromotionalOffers": []},
}

FIXED_NOW = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)


class StaticFetcher(BaseFetcher):
    """Fetcher stub returning a canned element list."""

    def __init__(self, elements: list[dict[str, Any]]) -> None:
        self.elements = elements
        self.calls = 0

    @property
    def name(self) -> str:
        return "static"

    def fetch_elements(self) -> list[dict[str, Any]]:
        self.calls += 1
        return self.elements


class FakeClock:
    def __init__(self, step: float) -> None:
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


@pytest.fixture
def sink() -> MagicMock:
    return MagicMock()


# -----------------------------------------------------------------------
# check_promotions / handle_promotions tests
# -----------------------------------------------------------------------


class TestCycle:
    """One fetch-normalise-report iteration."""

    def test_valid_promotions_are_returned(self) -> None:
        result = check_promotions(StaticFetcher([VALID_ELEMENT, NO_WINDOW_ELEMENT]))
        assert result.has_promotions
        assert [p.title for p in result.valid] == ["A"]
        assert [r.title for r in result.rejected] == ["Vault Item"]

    def test_all_rejected_returns_empty(self, capsys) -> None:
        result = check_promotions(StaticFetcher([NO_WINDOW_ELEMENT]))
        assert not result.has_promotions
        assert len(result.rejected) == 1
        assert "[watch] no valid promotions" in capsys.readouterr().out

    def test_fetch_failure_returns_empty(self) -> None:
        result = check_promotions(StaticFetcher([]))
        assert not result.has_promotions
        assert result.rejected == ()

    def test_report_is_emitted(self, sink: MagicMock) -> None:
        emitted = handle_promotions(
            StaticFetcher([VALID_ELEMENT]), sink, now=lambda: FIXED_NOW,
        )
        assert emitted is True
        sink.assert_called_once()
        report = sink.call_args.args[0]
        assert report["updatedAt"] == "2024-01-02T12:00:00+00:00"
        assert report["promotions"] == [
            {
                "title": "A",
                "description": "B",
                "url": "https://store.epicgames.com/pt-BR/p/abc",
                "startDate": "2024-01-01T00:00:00+00:00",
                "endDate": "2024-01-08T00:00:00+00:00",
            }
        ]

    def test_out_of_range_timestamp_does_not_drop_cycle(self, sink: MagicMock) -> None:
        overflow = {
            "title": "Edge",
            "description": "Far future",
            "productSlug": "edge",
            "promotions": {
                "promotionalOffers": [
                    {
                        "promotionalOffers": [
                            {"startDate": "2024-01-01T00:00:00Z", "endDate": "9999-12-31T23:59:59-05:00"}
                        ]
                    }
                ],
                "upcomingPromotionalOffers": [],
            },
        }
        emitted = handle_promotions(
            StaticFetcher([VALID_ELEMENT, overflow]), sink, now=lambda: FIXED_NOW,
        )
        assert emitted is True
        report = sink.call_args.args[0]
        assert [p["title"] for p in report["promotions"]] == ["A"]

    def test_nothing_emitted_when_all_invalid(self, sink: MagicMock) -> None:
        emitted = handle_promotions(StaticFetcher([NO_WINDOW_ELEMENT]), sink)
        assert emitted is False
        sink.assert_not_called()


class TestReport:
    """Report construction and the console sink."""

    def test_build_report_empty(self) -> None:
        assert build_report([], FIXED_NOW) == {
            "updatedAt": "2024-01-02T12:00:00+00:00",
            "promotions": [],
        }

    def test_print_report_is_json(self, capsys) -> None:
        promo = Promotion.new(
            title="Jogo",
            description="Descrição",
            url="https://store.epicgames.com/pt-BR/p/jogo",
            start_date="2024-01-01T00:00:00Z",
            end_date="2024-01-08T00:00:00Z",
        )
        print_report(build_report([promo], FIXED_NOW))
        printed = json.loads(capsys.readouterr().out)
        assert printed["promotions"][0]["description"] == "Descrição"


# -----------------------------------------------------------------------
# run loop tests
# -----------------------------------------------------------------------


class TestRun:
    """Scheduling and the per-cycle guard."""

    def test_runs_immediately_then_on_interval(self, sink: MagicMock) -> None:
        fetcher = StaticFetcher([VALID_ELEMENT])
        sleeps: list[float] = []

        cycles = run(
            fetcher, sink, 60,
            sleep=sleeps.append, clock=FakeClock(step=2.0), max_cycles=3,
        )

        assert cycles == 3
        assert fetcher.calls == 3
        assert sink.call_count == 3
        # Two sleeps between three cycles, each shortened by the cycle time.
        assert sleeps == [58.0, 58.0]

    def test_overrunning_cycle_does_not_sleep(self, sink: MagicMock) -> None:
        sleeps: list[float] = []
        run(
            StaticFetcher([]), sink, 1,
            sleep=sleeps.append, clock=FakeClock(step=5.0), max_cycles=2,
        )
        assert sleeps == [0.0]

    def test_cycle_errors_do_not_stop_the_loop(self, capsys) -> None:
        fetcher = StaticFetcher([VALID_ELEMENT])
        sink = MagicMock(side_effect=RuntimeError("sink broke"))

        cycles = run(fetcher, sink, 60, sleep=lambda _: None, max_cycles=2)

        assert cycles == 2
        assert fetcher.calls == 2
        assert "[watch] cycle failed" in capsys.readouterr().out


# -----------------------------------------------------------------------
# Configuration tests
# -----------------------------------------------------------------------


class TestConfig:
    """Environment handling in main()."""

    def test_default_interval(self, monkeypatch) -> None:
        monkeypatch.delenv("REFRESH_INTERVAL_SECONDS", raising=False)
        assert _interval_from_env() == 60

    @pytest.mark.parametrize("raw", ["0", "-5", "soon"])
    def test_invalid_interval(self, monkeypatch, raw: str) -> None:
        monkeypatch.setenv("REFRESH_INTERVAL_SECONDS", raw)
        with pytest.raises(ValueError, match="REFRESH_INTERVAL_SECONDS"):
            _interval_from_env()

    def test_main_run_once(self, monkeypatch) -> None:
        monkeypatch.setenv("PROMO_RUN_ONCE", "1")
        monkeypatch.setenv("EPIC_LOCALE", "en-US")
        monkeypatch.setenv("EPIC_COUNTRY", "US")
        monkeypatch.delenv("PROMO_SOURCE", raising=False)
        monkeypatch.delenv("REFRESH_INTERVAL_SECONDS", raising=False)
        with patch("promo_watch.watch.run") as run_mock:
            main()
        fetcher, sink, interval = run_mock.call_args.args
        assert fetcher.name == "epicgames"
        assert "locale=en-US" in fetcher.url
        assert sink is print_report
        assert interval == 60
        assert run_mock.call_args.kwargs["max_cycles"] == 1
        assert run_mock.call_args.kwargs["normalizer"].locale == "en-US"

    def test_main_unknown_source(self, monkeypatch) -> None:
        monkeypatch.setenv("PROMO_SOURCE", "steam")
        with pytest.raises(KeyError):
            main()
