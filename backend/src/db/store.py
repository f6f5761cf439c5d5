"""
Document store contract shared by the SQL and in-memory implementations.

The store knows nothing about tokens. Callers hand it plain dict documents and
filters written in a small Mongo-flavoured vocabulary:

- ``{"key": value}``: equality
- ``{"key": {"$exists": True | False}}``: field present / absent
- ``{"key": {"$gte" | "$lt" | "$lte": value}}``: range comparison
- ``{"key": {"$contains": text, "$options": "i"}}``: substring match,
  case-insensitive when ``$options`` contains ``i``

All keys in a filter are ANDed. A sort is a list of ``(key, direction)`` pairs
where missing values sort lowest. An update patch is
``{"$set": {...}, "$unset": [keys]}``.
"""
from collections.abc import AsyncIterator
from typing import Any, Protocol

Document = dict[str, Any]
Filter = dict[str, Any]
Patch = dict[str, Any]

ASCENDING = 1
DESCENDING = -1

SortSpec = list[tuple[str, int]]

FILTER_OPERATORS = frozenset({"$exists", "$gte", "$lt", "$lte", "$contains", "$options"})


class StoreError(Exception):
    """Base exception for store failures."""


class DocumentNotFoundError(StoreError):
    """Raised by find_one when no document matches the filter."""

    def __init__(self, collection: str) -> None:
        self.collection = collection
        super().__init__(f"No matching document in {collection}")


class UnsupportedFilterError(StoreError):
    """Raised when a filter uses an operator outside the supported vocabulary."""

    def __init__(self, operator: str) -> None:
        self.operator = operator
        super().__init__(f"Unsupported filter operator: {operator}")


class Cursor:
    """Result of a find call; iterate it or drain it with Store.drain."""

    def __init__(self, documents: list[Document]) -> None:
        self._documents = documents

    def __aiter__(self) -> AsyncIterator[Document]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Document]:
        for document in self._documents:
            yield document

    async def to_list(self) -> list[Document]:
        """Return the remaining documents and exhaust the cursor."""
        documents, self._documents = self._documents, []
        return documents


def validate_filter(query: Filter) -> None:
    """
    Reject operators outside the supported vocabulary.

    Raises:
        UnsupportedFilterError: On the first unknown ``$`` operator.
    """
    for condition in query.values():
        if isinstance(condition, dict):
            for operator in condition:
                if operator not in FILTER_OPERATORS:
                    raise UnsupportedFilterError(operator)


class Store(Protocol):
    """
    Narrow document store interface consumed by repositories.

    Implementations must let task cancellation propagate and must not retry
    writes. Reads may be retried.
    """

    async def count(self, collection: str, query: Filter) -> int:
        """Count documents matching the filter."""
        ...

    async def insert_one(self, collection: str, document: Document) -> None:
        """Insert a single document."""
        ...

    async def update_one(self, collection: str, query: Filter, patch: Patch) -> None:
        """Apply a patch to the first matching document; no match is not an error."""
        ...

    async def delete_one(self, collection: str, query: Filter) -> None:
        """Delete the first matching document; no match is not an error."""
        ...

    async def delete_many(self, collection: str, query: Filter) -> int:
        """Delete every matching document and return how many were removed."""
        ...

    async def find_one(self, collection: str, query: Filter) -> Document:
        """Return the first matching document or raise DocumentNotFoundError."""
        ...

    async def find(
        self,
        collection: str,
        query: Filter,
        sort: SortSpec | None = None,
        limit: int | None = None,
        skip: int = 0,
    ) -> Cursor:
        """Return a cursor over matching documents."""
        ...

    async def drain(self, cursor: Cursor) -> list[Document]:
        """Read every remaining document from a cursor."""
        ...

    async def ping(self) -> None:
        """Raise if the store is unreachable."""
        ...
