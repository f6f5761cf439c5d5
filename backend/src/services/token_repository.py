"""
Repository translating API token operations into document store queries.

This is the only module that knows the collection name and the stored field
names of a token document.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from uuid6 import uuid7

from core.timestamps import format_timestamp, utc_now
from db.store import ASCENDING, DESCENDING, Document, DocumentNotFoundError, Filter, SortSpec, Store
from models.api_token import ApiToken, TokenStatus
from services.exceptions import InvalidQueryError, ResourceNotFoundError
from services.pagination import PageRequest
from services.token_codec import generate_codename

logger = logging.getLogger(__name__)

COLLECTION = "apitokens"

FIELD_ID = "_id"
FIELD_VALUE_HASH = "value_sha"
FIELD_STATUS = "status"
FIELD_DESCRIPTION = "description"
FIELD_CREATED_AT = "created_at"
FIELD_LAST_USED_AT = "last_used_at"
FIELD_UPDATED_AT = "updated_at"
FIELD_CREATED_BY_ID = "created_by_id"
FIELD_CREATED_BY_NANO_ID = "created_by_nid"
FIELD_TTL_EXPIRES_AT = "ttl_expires_at"

# Record attribute -> document key, for the persisted string fields.
_STRING_FIELDS = {
    "description": FIELD_DESCRIPTION,
    "created_at": FIELD_CREATED_AT,
    "last_used_at": FIELD_LAST_USED_AT,
    "updated_at": FIELD_UPDATED_AT,
    "created_by_id": FIELD_CREATED_BY_ID,
    "created_by_nano_id": FIELD_CREATED_BY_NANO_ID,
    "ttl_expires_at": FIELD_TTL_EXPIRES_AT,
}


class TokenSortOrder(StrEnum):
    """Sort orders accepted by token listings."""

    CREATED_AT_ASC = "created_at_asc"
    CREATED_AT_DESC = "created_at_desc"
    LAST_USED_AT_ASC = "last_used_at_asc"
    LAST_USED_AT_DESC = "last_used_at_desc"
    UPDATED_AT_ASC = "updated_at_asc"
    UPDATED_AT_DESC = "updated_at_desc"

    @classmethod
    def parse(cls, value: "str | TokenSortOrder | None") -> "TokenSortOrder":
        """Map any value to a sort order; unknown values collapse to the default."""
        try:
            return cls(value)
        except ValueError:
            return DEFAULT_SORT_ORDER


DEFAULT_SORT_ORDER = TokenSortOrder.CREATED_AT_DESC

_SORT_FIELDS: dict[TokenSortOrder, tuple[str, int]] = {
    TokenSortOrder.CREATED_AT_ASC: (FIELD_CREATED_AT, ASCENDING),
    TokenSortOrder.CREATED_AT_DESC: (FIELD_CREATED_AT, DESCENDING),
    TokenSortOrder.LAST_USED_AT_ASC: (FIELD_LAST_USED_AT, ASCENDING),
    TokenSortOrder.LAST_USED_AT_DESC: (FIELD_LAST_USED_AT, DESCENDING),
    TokenSortOrder.UPDATED_AT_ASC: (FIELD_UPDATED_AT, ASCENDING),
    TokenSortOrder.UPDATED_AT_DESC: (FIELD_UPDATED_AT, DESCENDING),
}


@dataclass
class TokenFilter:
    """
    Conjunctive filters for listing and counting tokens.

    ``description`` and ``status`` are case-insensitive substring matches;
    ``created_from``/``created_to`` bound ``created_at`` as ``[from, to)``.
    """

    owner_id: str = ""
    owner_nano_id: str = ""
    description: str = ""
    status: str = ""
    only_ephemeral: bool = False
    only_permanent: bool = False
    created_from: str = ""
    created_to: str = ""


def build_query(token_filter: TokenFilter) -> Filter:
    """
    Translate a TokenFilter into a store filter.

    Raises:
        InvalidQueryError: If both only_ephemeral and only_permanent are set.
    """
    if token_filter.only_ephemeral and token_filter.only_permanent:
        raise InvalidQueryError("only_ephemeral and only_permanent are mutually exclusive")

    query: Filter = {}
    if token_filter.owner_id:
        query[FIELD_CREATED_BY_ID] = token_filter.owner_id
    if token_filter.owner_nano_id:
        query[FIELD_CREATED_BY_NANO_ID] = token_filter.owner_nano_id
    if token_filter.description:
        query[FIELD_DESCRIPTION] = {"$contains": token_filter.description, "$options": "i"}
    if token_filter.status:
        query[FIELD_STATUS] = {"$contains": token_filter.status, "$options": "i"}
    if token_filter.only_ephemeral:
        query[FIELD_TTL_EXPIRES_AT] = {"$exists": True}
    if token_filter.only_permanent:
        query[FIELD_TTL_EXPIRES_AT] = {"$exists": False}
    if token_filter.created_from or token_filter.created_to:
        created_range: dict[str, str] = {}
        if token_filter.created_from:
            created_range["$gte"] = token_filter.created_from
        if token_filter.created_to:
            created_range["$lt"] = token_filter.created_to
        query[FIELD_CREATED_AT] = created_range
    return query


def build_sort(order: "str | TokenSortOrder | None") -> SortSpec:
    """Translate a sort order into a store sort with a stable id tie-breaker."""
    return [_SORT_FIELDS[TokenSortOrder.parse(order)], (FIELD_ID, ASCENDING)]


def to_document(token: ApiToken) -> Document:
    """
    Serialise a record for storage.

    Empty strings are omitted so that field presence carries meaning, and the
    status is coerced to a supported value.
    """
    document: Document = {
        FIELD_ID: token.id,
        FIELD_STATUS: TokenStatus.coerce(str(token.status)).value,
    }
    if token.value_hash:
        document[FIELD_VALUE_HASH] = bytes(token.value_hash)
    for attribute, key in _STRING_FIELDS.items():
        value = getattr(token, attribute)
        if value:
            document[key] = value
    return document


def from_document(document: Document) -> ApiToken:
    """Build a record from a stored document."""
    values: dict[str, Any] = {
        attribute: document.get(key) or "" for attribute, key in _STRING_FIELDS.items()
    }
    return ApiToken(
        id=document[FIELD_ID],
        value_hash=bytes(document.get(FIELD_VALUE_HASH) or b""),
        status=TokenStatus.coerce(document.get(FIELD_STATUS) or ""),
        **values,
    )


class TokenRepository:
    """Stores and queries API token records."""

    def __init__(
        self,
        store: Store,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self._clock = clock

    async def create(self, token: ApiToken) -> ApiToken:
        """
        Persist a new token.

        Fills in the id, a codename when no description is given, and defaults
        for the status and timestamps.
        """
        token.id = token.id or str(uuid7())
        token.description = token.description or generate_codename()
        token.status = TokenStatus.coerce(str(token.status))
        token.created_at = token.created_at or format_timestamp(self._clock())
        token.updated_at = token.updated_at or token.created_at

        await self.store.insert_one(COLLECTION, to_document(token))
        logger.info("Created API token %s for owner %s", token.id, token.created_by_id)
        return token

    async def update(self, token: ApiToken) -> ApiToken:
        """Write the mutable fields of a token and stamp updated_at."""
        token.updated_at = format_timestamp(self._clock())
        document = to_document(token)
        document.pop(FIELD_ID)

        unset = [
            key for key in (FIELD_LAST_USED_AT, FIELD_DESCRIPTION, FIELD_TTL_EXPIRES_AT)
            if key not in document
        ]
        patch: dict[str, Any] = {"$set": document}
        if unset:
            patch["$unset"] = unset

        await self.store.update_one(COLLECTION, {FIELD_ID: token.id}, patch)
        return token

    async def touch(self, token_id: str, last_used_at: str) -> str:
        """Set only last_used_at and updated_at, leaving the status untouched."""
        return await self._stamp(token_id, {FIELD_LAST_USED_AT: last_used_at})

    async def set_status(self, token_id: str, status: TokenStatus) -> str:
        """Set only the status and updated_at of a token."""
        return await self._stamp(token_id, {FIELD_STATUS: str(status)})

    async def _stamp(self, token_id: str, fields: Document) -> str:
        updated_at = format_timestamp(self._clock())
        await self.store.update_one(
            COLLECTION,
            {FIELD_ID: token_id},
            {"$set": {**fields, FIELD_UPDATED_AT: updated_at}},
        )
        return updated_at

    async def delete(self, token_id: str) -> None:
        """Delete a token by id; deleting a missing token is not an error."""
        await self.store.delete_one(COLLECTION, {FIELD_ID: token_id})

    async def delete_all_by_owner(self, owner_id: str) -> int:
        """Delete every token created by an owner."""
        return await self.store.delete_many(COLLECTION, {FIELD_CREATED_BY_ID: owner_id})

    async def get_by_id(self, token_id: str) -> ApiToken:
        """
        Fetch a token by id.

        Raises:
            ResourceNotFoundError: If no token has this id.
        """
        try:
            document = await self.store.find_one(COLLECTION, {FIELD_ID: token_id})
        except DocumentNotFoundError:
            raise ResourceNotFoundError() from None
        return from_document(document)

    async def list(
        self,
        token_filter: TokenFilter,
        order: "str | TokenSortOrder | None" = None,
        page: PageRequest | None = None,
    ) -> list[ApiToken]:
        """
        List tokens matching the filter in a deterministic order.

        Without a page request every matching token is returned.
        """
        cursor = await self.store.find(
            COLLECTION,
            build_query(token_filter),
            sort=build_sort(order),
            limit=page.per_page if page else None,
            skip=page.skip if page else 0,
        )
        return [from_document(document) for document in await self.store.drain(cursor)]

    async def count(self, token_filter: TokenFilter) -> int:
        """Count tokens matching the filter."""
        return await self.store.count(COLLECTION, build_query(token_filter))
