"""
Store gateway interface.

Thin capability over the document store: stream a collection, stream a
multi-stage join, insert documents. No business logic lives behind it.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator

from .join import Lookup, apply_lookups


class StoreError(Exception):
    """Raised when the document store fails to answer a read or write."""


class StoreGateway(ABC):
    """
    Abstract document store.

    Documents returned by ``find`` and ``find_join`` carry the store's own
    identifier under ``_id``; documents attached by lookups do not.
    """

    @abstractmethod
    def ping(self) -> bool:
        """Return True when the store answers."""

    @abstractmethod
    def ensure_collections(self, names: Iterable[str]) -> None:
        """Create the named collections when they do not exist."""

    @abstractmethod
    def find(self, collection: str) -> Iterator[dict[str, Any]]:
        """Stream every document of a collection in store order."""

    @abstractmethod
    def find_matching(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        """Return documents whose ``field`` equals ``value``, in store order."""

    @abstractmethod
    def insert_many(self, collection: str, documents: list[dict[str, Any]]) -> int:
        """Insert documents and return how many were written."""

    def find_join(self, collection: str, lookups: list[Lookup]) -> Iterator[dict[str, Any]]:
        """
        Stream documents of ``collection`` joined through ``lookups``.

        The default evaluates the join in application code; backends with a
        native join override it.
        """
        return apply_lookups(self.find(collection), lookups, self.find_matching)

    def close(self) -> None:
        """Release resources held by the gateway."""
