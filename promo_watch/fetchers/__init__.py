"""Storefront promotion fetchers."""

from __future__ import annotations

from typing import Any

from .base import BaseFetcher
from .epicgames import EpicGamesFetcher

__all__ = ["BaseFetcher", "EpicGamesFetcher", "get_fetcher"]

# Registry of available fetchers – add new sources here.
_FETCHERS: dict[str, type[BaseFetcher]] = {
    "epicgames": EpicGamesFetcher,
}


def get_fetcher(name: str, **kwargs: Any) -> BaseFetcher:
    """Return a fetcher instance by name.

    Keyword arguments are passed to the fetcher constructor.
    Raises ``KeyError`` if *name* is not registered.
    Available names: epicgames
    """
    try:
        cls = _FETCHERS[name]
    except KeyError:
        available = ", ".join(sorted(_FETCHERS))
        raise KeyError(
            f"Unknown fetcher '{name}'. Available: {available}"
        ) from None
    return cls(**kwargs)
