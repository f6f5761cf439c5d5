"""Service layer for API token operations."""
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from core.request_context import Requester
from core.timestamps import format_timestamp, parse_timestamp, utc_now
from models.api_token import ApiToken, TokenStatus
from services.exceptions import (
    ErrorCreatingShortLivedAccessTokenError,
    NoMatchingUserAPITokenError,
    PageOutOfRangeError,
    RequiredUserIDMissingError,
    ResourceNotFoundError,
    TokenStatusInvalidError,
    UnableToValidateUserAPITokenError,
)
from services.pagination import count_pages, is_page_out_of_range, normalise_page_request
from services.token_codec import (
    MAX_CODENAME_LENGTH,
    assemble_bearer,
    generate_secret,
    hash_secret,
    hashes_match,
    parse_bearer,
)
from services.token_repository import TokenFilter, TokenRepository, TokenSortOrder

logger = logging.getLogger(__name__)


@dataclass
class TokenListQuery:
    """
    Parameters of a token listing.

    With ``strict`` set, asking for a page past the last one raises
    PageOutOfRangeError instead of returning an empty page.
    """

    filter: TokenFilter = field(default_factory=TokenFilter)
    order: str | None = None
    page: int | None = None
    per_page: int | None = None
    strict: bool = False


@dataclass
class TokenPage:
    """One page of tokens plus the pagination metadata."""

    items: list[ApiToken]
    total: int
    total_pages: int
    page: int
    per_page: int


class TokenService:
    """
    Owns the token lifecycle: issuing, validating, status changes and expiry.

    Expired short-lived tokens are removed lazily whenever they are encountered
    by a read (the "reaper"), so no caller ever sees one.
    """

    def __init__(
        self,
        repository: TokenRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self._clock = clock

    # --- Issuing ---

    async def create_token(
        self,
        owner_id: str,
        owner_nano_id: str = "",
        ttl_seconds: int = 0,
        description: str = "",
    ) -> tuple[str, ApiToken]:
        """
        Issue a new token for an owner.

        Args:
            owner_id: Id of the owning principal.
            owner_nano_id: Owner's public alias; becomes the bearer's first segment.
            ttl_seconds: Lifetime in seconds. Zero or less issues a permanent token.
            description: Optional label; a codename is generated when empty.

        Returns:
            Tuple of (bearer, token record). The bearer is only available here.

        Raises:
            RequiredUserIDMissingError: If owner_id is empty.
            ErrorCreatingShortLivedAccessTokenError: If the expiry cannot be derived.
        """
        if not owner_id:
            raise RequiredUserIDMissingError()

        secret = generate_secret()
        token = ApiToken(
            created_by_id=owner_id,
            created_by_nano_id=owner_nano_id,
            value_hash=hash_secret(secret),
            status=TokenStatus.ACTIVE,
            description=description[:MAX_CODENAME_LENGTH],
            created_at=format_timestamp(self._clock()),
        )

        if ttl_seconds > 0:
            token.ttl_expires_at = self._expiry_for(token.created_at, ttl_seconds, owner_id)

        token = await self.repository.create(token)

        if not owner_nano_id:
            logger.warning(
                "API token %s created for owner %s without a nano id; "
                "it cannot be used through the X-Api-Token header",
                token.id,
                owner_id,
            )

        return assemble_bearer(owner_nano_id, secret), token

    def _expiry_for(self, created_at: str, ttl_seconds: int, owner_id: str) -> str:
        try:
            created = parse_timestamp(created_at)
        except ValueError as e:
            logger.error(
                "Unable to set TTL for short-lived API token of owner %s (created_at=%s)",
                owner_id,
                created_at,
            )
            raise ErrorCreatingShortLivedAccessTokenError() from e
        try:
            expires_at = created + timedelta(seconds=ttl_seconds)
        except OverflowError as e:
            logger.error(
                "TTL of %s seconds for API token of owner %s is out of range",
                ttl_seconds,
                owner_id,
            )
            raise ErrorCreatingShortLivedAccessTokenError() from e
        return format_timestamp(expires_at)

    # --- Validation ---

    async def authenticate(self, bearer: str) -> Requester:
        """
        Validate a bearer and return the identity behind it.

        Does not touch last_used_at; call touch_last_used for that.

        Raises:
            InvalidAPIFormatError: If the bearer is malformed.
            UnableToValidateUserAPITokenError: If no active, unexpired token matches.
        """
        parsed = parse_bearer(bearer)

        candidates = await self._live_tokens(
            TokenFilter(owner_nano_id=parsed.nano_id),
            order=TokenSortOrder.LAST_USED_AT_DESC,
        )
        for token in candidates:
            if not hashes_match(parsed.value_hash, token.value_hash):
                continue
            if not token.is_active:
                logger.info("Rejected API token %s with status %s", token.id, token.status)
                raise UnableToValidateUserAPITokenError()
            return Requester(
                owner_id=token.created_by_id,
                nano_id=parsed.nano_id,
                token_id=token.id,
                value_hash=parsed.value_hash,
            )

        raise UnableToValidateUserAPITokenError()

    async def touch_last_used(
        self,
        value_hash: bytes,
        owner_nano_id: str = "",
        owner_id: str = "",
    ) -> ApiToken:
        """
        Stamp last_used_at on the owner's token with this digest.

        The nano id is the lookup used for requests; owner_id is accepted for
        administrative callers.

        Raises:
            RequiredUserIDMissingError: If neither owner identifier is given.
            NoMatchingUserAPITokenError: If no token of the owner has this digest.
        """
        if not owner_nano_id and not owner_id:
            raise RequiredUserIDMissingError()

        tokens = await self._live_tokens(
            TokenFilter(owner_id=owner_id, owner_nano_id=owner_nano_id),
        )
        for token in tokens:
            if hashes_match(value_hash, token.value_hash):
                token.last_used_at = format_timestamp(self._clock())
                token.updated_at = await self.repository.touch(token.id, token.last_used_at)
                return token

        raise NoMatchingUserAPITokenError()

    # --- Status transitions ---

    async def set_status(
        self,
        token_id: str,
        status: str,
        owner_id: str = "",
    ) -> ApiToken:
        """
        Move a token to ACTIVE or REVOKED; a no-op if it is already there.

        Raises:
            TokenStatusInvalidError: If status is not ACTIVE or REVOKED.
            ResourceNotFoundError: If the token does not exist or is not owned by owner_id.
        """
        try:
            target = TokenStatus(status.upper())
        except ValueError:
            raise TokenStatusInvalidError(status) from None

        token = await self._get_owned(token_id, owner_id)
        if token.status == target:
            return token

        token.status = target
        token.updated_at = await self.repository.set_status(token.id, target)
        logger.info("API token %s is now %s", token.id, target)
        return token

    async def activate(self, token_id: str, owner_id: str = "") -> ApiToken:
        """Set a token's status to ACTIVE."""
        return await self.set_status(token_id, TokenStatus.ACTIVE, owner_id)

    async def revoke(self, token_id: str, owner_id: str = "") -> ApiToken:
        """Set a token's status to REVOKED."""
        return await self.set_status(token_id, TokenStatus.REVOKED, owner_id)

    # --- Reads ---

    async def get_token(self, token_id: str, owner_id: str = "") -> ApiToken:
        """
        Fetch one token, reaping it if it has expired.

        Raises:
            ResourceNotFoundError: If the token does not exist, is not owned by
                owner_id, or has expired.
        """
        token = await self._get_owned(token_id, owner_id)
        kept, _ = await self._reap([token])
        if not kept:
            raise ResourceNotFoundError()
        return kept[0].with_human_readable(self._clock())

    async def list_tokens(self, query: TokenListQuery) -> TokenPage:
        """
        Return one page of tokens matching the query.

        The total is counted before the page is fetched and reduced by the number
        of expired tokens reaped from the page.

        Raises:
            InvalidQueryError: If the filters contradict each other.
            PageOutOfRangeError: In strict mode, if the page is past the last page.
        """
        page_request = normalise_page_request(query.page, query.per_page)

        total = await self.repository.count(query.filter)
        tokens = await self.repository.list(query.filter, query.order, page_request)
        kept, reaped = await self._reap(tokens)
        total = max(total - reaped, 0)

        total_pages = count_pages(total, page_request.per_page)
        if query.strict and is_page_out_of_range(page_request.page, total_pages):
            logger.warning(
                "Requested token page %d exceeds total pages %d",
                page_request.page,
                total_pages,
            )
            raise PageOutOfRangeError(page_request.page, total_pages)

        now = self._clock()
        return TokenPage(
            items=[token.with_human_readable(now) for token in kept],
            total=total,
            total_pages=total_pages,
            page=page_request.page,
            per_page=page_request.per_page,
        )

    async def list_for_owner(
        self,
        query: TokenListQuery,
        owner_id: str = "",
        owner_nano_id: str = "",
    ) -> TokenPage:
        """
        List tokens belonging to one owner, identified by id or nano id.

        Raises:
            RequiredUserIDMissingError: If neither owner identifier is given.
        """
        if not owner_id and not owner_nano_id:
            raise RequiredUserIDMissingError()

        scoped = replace(
            query,
            filter=replace(query.filter, owner_id=owner_id, owner_nano_id=owner_nano_id),
        )
        return await self.list_tokens(scoped)

    async def count_tokens(self, token_filter: TokenFilter) -> int:
        """Count stored tokens matching the filter, expired ones included until reaped."""
        return await self.repository.count(token_filter)

    # --- Deletion ---

    async def delete_token(self, owner_id: str, token_id: str) -> None:
        """
        Delete one of an owner's tokens.

        Raises:
            RequiredUserIDMissingError: If owner_id is empty.
            ResourceNotFoundError: If the owner has no token with this id.
        """
        if not owner_id:
            raise RequiredUserIDMissingError()
        await self._get_owned(token_id, owner_id)
        await self.repository.delete(token_id)
        logger.info("Deleted API token %s of owner %s", token_id, owner_id)

    async def delete_all_by_owner(self, owner_id: str) -> int:
        """Delete every token of an owner, e.g. when the owner is removed."""
        if not owner_id:
            raise RequiredUserIDMissingError()
        deleted = await self.repository.delete_all_by_owner(owner_id)
        logger.info("Deleted %d API tokens of owner %s", deleted, owner_id)
        return deleted

    # --- Expiry ---

    async def sweep_expired(self) -> int:
        """Reap every expired short-lived token and return how many were found."""
        tokens = await self.repository.list(TokenFilter(only_ephemeral=True))
        _, reaped = await self._reap(tokens)
        if reaped:
            logger.info("Swept %d expired API tokens", reaped)
        return reaped

    async def _reap(self, tokens: list[ApiToken]) -> tuple[list[ApiToken], int]:
        """
        Split out expired short-lived tokens and delete them.

        Returns the tokens to keep and the number of expired tokens. Deletion is
        best effort: a failed delete is logged and retried on a later read.
        """
        now = self._clock()
        kept: list[ApiToken] = []
        expired: list[ApiToken] = []

        for token in tokens:
            if not token.is_ephemeral:
                kept.append(token)
                continue
            try:
                expires_at = parse_timestamp(token.ttl_expires_at)
            except ValueError:
                logger.warning(
                    "Unable to parse expiry %r of API token %s (owner %s); keeping it",
                    token.ttl_expires_at,
                    token.id,
                    token.created_by_id,
                )
                kept.append(token)
                continue
            if now >= expires_at:
                expired.append(token)
            else:
                kept.append(token)

        for token in expired:
            try:
                await self.repository.delete(token.id)
            except Exception:
                logger.warning(
                    "Failed to remove expired API token %s (owner %s)",
                    token.id,
                    token.created_by_id,
                    exc_info=True,
                )

        return kept, len(expired)

    async def _live_tokens(
        self,
        token_filter: TokenFilter,
        order: TokenSortOrder | None = None,
    ) -> list[ApiToken]:
        tokens = await self.repository.list(token_filter, order)
        kept, _ = await self._reap(tokens)
        return kept

    async def _get_owned(self, token_id: str, owner_id: str) -> ApiToken:
        token = await self.repository.get_by_id(token_id)
        if owner_id and token.created_by_id != owner_id:
            raise ResourceNotFoundError()
        return token
