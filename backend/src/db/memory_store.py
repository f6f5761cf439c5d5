"""In-memory document store used for tests and local development."""
import asyncio
import copy
from collections import defaultdict
from typing import Any

from db.store import (
    ASCENDING,
    Cursor,
    Document,
    DocumentNotFoundError,
    Filter,
    Patch,
    SortSpec,
    validate_filter,
)

_MISSING = object()


def _matches_condition(value: Any, condition: Any) -> bool:
    if not isinstance(condition, dict):
        return value is not _MISSING and value == condition

    if "$exists" in condition and (value is not _MISSING) != bool(condition["$exists"]):
        return False
    if "$gte" in condition and (value is _MISSING or value < condition["$gte"]):
        return False
    if "$lt" in condition and (value is _MISSING or value >= condition["$lt"]):
        return False
    if "$lte" in condition and (value is _MISSING or value > condition["$lte"]):
        return False
    if "$contains" in condition:
        if value is _MISSING or not isinstance(value, str):
            return False
        needle = condition["$contains"]
        if "i" in condition.get("$options", ""):
            return needle.lower() in value.lower()
        return needle in value
    return True


def matches(document: Document, query: Filter) -> bool:
    """Check whether a document satisfies every condition of a filter."""
    return all(
        _matches_condition(document.get(key, _MISSING), condition)
        for key, condition in query.items()
    )


def _sort_documents(documents: list[Document], sort: SortSpec) -> list[Document]:
    # Stable sorts applied from the least to the most significant key.
    result = list(documents)
    for key, direction in reversed(sort):
        present = [d for d in result if d.get(key) is not None]
        missing = [d for d in result if d.get(key) is None]
        present.sort(key=lambda d: d[key], reverse=direction != ASCENDING)
        result = missing + present if direction == ASCENDING else present + missing
    return result


class InMemoryStore:
    """
    Store implementation backed by dictionaries.

    Documents are deep-copied on the way in and out so callers can never
    mutate stored state by accident.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[Any, Document]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    def _matching(self, collection: str, query: Filter) -> list[Document]:
        validate_filter(query)
        return [d for d in self._collections[collection].values() if matches(d, query)]

    async def count(self, collection: str, query: Filter) -> int:
        async with self._lock:
            return len(self._matching(collection, query))

    async def insert_one(self, collection: str, document: Document) -> None:
        async with self._lock:
            documents = self._collections[collection]
            if document["_id"] in documents:
                raise ValueError(f"Duplicate _id in {collection}: {document['_id']}")
            documents[document["_id"]] = copy.deepcopy(document)

    async def update_one(self, collection: str, query: Filter, patch: Patch) -> None:
        async with self._lock:
            found = self._matching(collection, query)
            if not found:
                return
            document = found[0]
            document.update(copy.deepcopy(patch.get("$set", {})))
            for key in patch.get("$unset", []):
                document.pop(key, None)

    async def delete_one(self, collection: str, query: Filter) -> None:
        async with self._lock:
            found = self._matching(collection, query)
            if found:
                del self._collections[collection][found[0]["_id"]]

    async def delete_many(self, collection: str, query: Filter) -> int:
        async with self._lock:
            found = self._matching(collection, query)
            for document in found:
                del self._collections[collection][document["_id"]]
            return len(found)

    async def find_one(self, collection: str, query: Filter) -> Document:
        async with self._lock:
            found = self._matching(collection, query)
            if not found:
                raise DocumentNotFoundError(collection)
            return copy.deepcopy(found[0])

    async def find(
        self,
        collection: str,
        query: Filter,
        sort: SortSpec | None = None,
        limit: int | None = None,
        skip: int = 0,
    ) -> Cursor:
        async with self._lock:
            found = self._matching(collection, query)
            if sort:
                found = _sort_documents(found, sort)
            end = None if limit is None else skip + limit
            return Cursor([copy.deepcopy(d) for d in found[skip:end]])

    async def drain(self, cursor: Cursor) -> list[Document]:
        return await cursor.to_list()

    async def ping(self) -> None:
        return None
