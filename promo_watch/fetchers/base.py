"""Abstract base class for storefront promotion fetchers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class BaseFetcher(ABC):
    """Interface that every storefront fetcher must implement."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier for this source (e.g. ``'epicgames'``)."""

    @abstractmethod
    def fetch_elements(self) -> list[dict[str, Any]]:
        """Fetch the storefront listing and return its raw offer elements.

        Transport and payload-shape failures are reported by the fetcher
        itself and yield an empty list; the caller never sees an exception
        for them.
        """
