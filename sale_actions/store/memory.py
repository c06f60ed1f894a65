"""
In-memory store gateway.

Used for local dry runs (``store.backend: memory``) and by the test suite.
Joins are evaluated with the application-code join.
"""

import copy
from itertools import count
from typing import Any, Iterable, Iterator

from .gateway import StoreGateway
from .join import as_text


class InMemoryStoreGateway(StoreGateway):
    """
    Dict-of-lists document store.

    Args:
        collections: Optional initial documents per collection
    """

    def __init__(self, collections: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self._ids = count(1)
        self._collections: dict[str, list[tuple[int, dict[str, Any]]]] = {}
        self.available = True
        for name, documents in (collections or {}).items():
            self.insert_many(name, documents)

    def ping(self) -> bool:
        return self.available

    def ensure_collections(self, names: Iterable[str]) -> None:
        for name in names:
            self._collections.setdefault(name, [])

    def find(self, collection: str) -> Iterator[dict[str, Any]]:
        # snapshot: inserts made while streaming are not observed
        rows = list(self._collections.get(collection, []))
        for doc_id, document in rows:
            output = copy.deepcopy(document)
            output["_id"] = doc_id
            yield output

    def find_matching(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        text = as_text(value)
        if text is None:
            return []
        return [
            copy.deepcopy(document)
            for _, document in self._collections.get(collection, [])
            if as_text(document.get(field)) == text
        ]

    def insert_many(self, collection: str, documents: list[dict[str, Any]]) -> int:
        rows = self._collections.setdefault(collection, [])
        for document in documents:
            rows.append((next(self._ids), copy.deepcopy(document)))
        return len(documents)

    def documents(self, collection: str) -> list[dict[str, Any]]:
        """Stored documents of a collection, without identifiers."""
        return [copy.deepcopy(document) for _, document in self._collections.get(collection, [])]
