"""Fetcher for the Epic Games Store free-games promotions feed.

Endpoint: ``https://store-site-backend-static-ipv4.ak.epicgames.com/freeGamesPromotions``
No auth.  The response nests the offer list under
``data.Catalog.searchStore.elements``.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from ..normalizer import DEFAULT_LOCALE
from .base import BaseFetcher

DEFAULT_COUNTRY = "BR"

_EPIC_URL = (
    "https://store-site-backend-static-ipv4.ak.epicgames.com/freeGamesPromotions"
)
_TIMEOUT_SECONDS = 30


class EpicGamesFetcher(BaseFetcher):
    """Fetch the raw free-games listing from the Epic Games Store."""

    def __init__(self, locale: str = DEFAULT_LOCALE, country: str = DEFAULT_COUNTRY) -> None:
        self.locale = locale
        self.country = country

    @property
    def name(self) -> str:
        return "epicgames"

    @property
    def url(self) -> str:
        query = urllib.parse.urlencode({
            "locale": self.locale,
            "country": self.country,
            "allowCountries": self.country,
        })
        return f"{_EPIC_URL}?{query}"

    # ------------------------------------------------------------------ #
    # Public
    # ------------------------------------------------------------------ #

    def fetch_elements(self) -> list[dict[str, Any]]:
        payload = self._fetch_json()
        if payload is None:
            return []
        return self._extract_elements(payload)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _fetch_json(self) -> Any | None:
        """GET the feed; ``None`` on any transport or decoding failure."""
        req = urllib.request.Request(
            self.url, headers={"Accept": "application/json"},
        )
        try:
            with urllib.request.urlopen(req, timeout=_TIMEOUT_SECONDS) as resp:  # noqa: S310
                if resp.status != 200:
                    print(f"[epicgames] unexpected status {resp.status}, headers: {dict(resp.headers)}")
                    return None
                return json.loads(resp.read())
        except urllib.error.HTTPError as exc:
            print(f"[epicgames] HTTP {exc.code}, headers: {dict(exc.headers or {})}")
            return None
        except Exception as exc:  # noqa: BLE001
            print(f"[epicgames] request failed: {exc}")
            return None

    @staticmethod
    def _extract_elements(payload: Any) -> list[dict[str, Any]]:
        """Return ``data.Catalog.searchStore.elements`` or ``[]`` if the shape is off."""
        try:
            elements = payload["data"]["Catalog"]["searchStore"]["elements"]
        except (KeyError, TypeError) as exc:
            print(f"[epicgames] unexpected payload shape, missing {exc}")
            return []
        if not isinstance(elements, list):
            print(f"[epicgames] unexpected elements type: {type(elements)}")
            return []
        return elements
