"""API token management endpoints."""
from fastapi import APIRouter, Depends, Query

from api.dependencies import get_current_requester, get_settings, get_token_service
from core.config import Settings
from core.request_context import Requester
from models.api_token import ApiToken
from schemas.token import (
    RequesterResponse,
    TokenCountResponse,
    TokenCreate,
    TokenCreateResponse,
    TokenListResponse,
    TokenResponse,
)
from services.token_repository import TokenFilter
from services.token_service import TokenListQuery, TokenPage, TokenService

router = APIRouter(tags=["tokens"])


def token_filter_params(
    description: str = Query(default="", description="Case-insensitive substring of the description"),  # noqa: E501
    status: str = Query(default="", description="Case-insensitive substring of the status"),
    only_ephemeral: bool = Query(default=False, description="Only short-lived tokens"),
    only_permanent: bool = Query(default=False, description="Only tokens without expiry"),
    created_from: str = Query(default="", description="Inclusive lower bound on created_at"),
    created_to: str = Query(default="", description="Exclusive upper bound on created_at"),
) -> TokenFilter:
    """Collect the filter query parameters shared by list and count routes."""
    return TokenFilter(
        description=description,
        status=status,
        only_ephemeral=only_ephemeral,
        only_permanent=only_permanent,
        created_from=created_from,
        created_to=created_to,
    )


def list_query_params(
    token_filter: TokenFilter = Depends(token_filter_params),
    order: str | None = Query(default=None, description="Sort order, e.g. 'created_at_desc'. Unknown values use the default."),  # noqa: E501
    page: int | None = Query(default=None, ge=1, description="Page number, starting at 1"),
    per_page: int | None = Query(default=None, ge=1, le=100, description="Items per page"),
    strict: bool | None = Query(default=None, description="Reject pages past the last page"),
    settings: Settings = Depends(get_settings),
) -> TokenListQuery:
    """Collect the paging, ordering and filter query parameters of a listing."""
    return TokenListQuery(
        filter=token_filter,
        order=order,
        page=page,
        per_page=per_page,
        strict=settings.strict_pagination if strict is None else strict,
    )


def _to_response(token: ApiToken) -> TokenResponse:
    return TokenResponse.model_validate(token)


def _to_list_response(page: TokenPage) -> TokenListResponse:
    return TokenListResponse(
        items=[_to_response(token) for token in page.items],
        total=page.total,
        total_pages=page.total_pages,
        page=page.page,
        per_page=page.per_page,
    )


# --- Owner-scoped routes ---


@router.post("/users/{user_id}/tokens", response_model=TokenCreateResponse, status_code=201)
async def create_token(
    user_id: str,
    data: TokenCreate,
    service: TokenService = Depends(get_token_service),
) -> TokenCreateResponse:
    """
    Create a new API token for a user.

    IMPORTANT: The bearer is only returned once. Store it securely.
    """
    bearer, token = await service.create_token(
        owner_id=user_id,
        owner_nano_id=data.owner_nano_id,
        ttl_seconds=data.ttl_seconds,
        description=data.description,
    )
    return TokenCreateResponse(**_to_response(token).model_dump(), token=bearer)


@router.get("/users/{user_id}/tokens", response_model=TokenListResponse)
async def list_user_tokens(
    user_id: str,
    query: TokenListQuery = Depends(list_query_params),
    service: TokenService = Depends(get_token_service),
) -> TokenListResponse:
    """
    List a user's API tokens.

    Note: Bearers are never returned - only metadata.
    """
    page = await service.list_for_owner(query, owner_id=user_id)
    return _to_list_response(page)


@router.get("/users/{user_id}/tokens/slat", response_model=TokenListResponse)
async def list_user_short_lived_tokens(
    user_id: str,
    query: TokenListQuery = Depends(list_query_params),
    service: TokenService = Depends(get_token_service),
) -> TokenListResponse:
    """List a user's short-lived access tokens."""
    query.filter.only_ephemeral = True
    query.filter.only_permanent = False
    page = await service.list_for_owner(query, owner_id=user_id)
    return _to_list_response(page)


@router.delete("/users/{user_id}/tokens", status_code=204)
async def delete_user_tokens(
    user_id: str,
    service: TokenService = Depends(get_token_service),
) -> None:
    """Delete every API token of a user."""
    await service.delete_all_by_owner(user_id)


@router.delete("/users/{user_id}/tokens/{token_id}", status_code=204)
async def delete_user_token(
    user_id: str,
    token_id: str,
    service: TokenService = Depends(get_token_service),
) -> None:
    """Delete one of a user's API tokens."""
    await service.delete_token(user_id, token_id)


@router.put("/users/{user_id}/tokens/{token_id}/activate", response_model=TokenResponse)
async def activate_user_token(
    user_id: str,
    token_id: str,
    service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Re-activate a revoked API token. Activating an active token is a no-op."""
    token = await service.activate(token_id, owner_id=user_id)
    return _to_response(token)


@router.put("/users/{user_id}/tokens/{token_id}/revoke", response_model=TokenResponse)
async def revoke_user_token(
    user_id: str,
    token_id: str,
    service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Revoke an API token without deleting it. Revoking a revoked token is a no-op."""
    token = await service.revoke(token_id, owner_id=user_id)
    return _to_response(token)


# --- Collection-wide routes ---


@router.get("/tokens", response_model=TokenListResponse)
async def list_tokens(
    owner_id: str = Query(default="", description="Only tokens of this owner"),
    owner_nano_id: str = Query(default="", description="Only tokens of this owner alias"),
    query: TokenListQuery = Depends(list_query_params),
    service: TokenService = Depends(get_token_service),
) -> TokenListResponse:
    """List API tokens across all owners."""
    query.filter.owner_id = owner_id
    query.filter.owner_nano_id = owner_nano_id
    page = await service.list_tokens(query)
    return _to_list_response(page)


@router.get("/tokens/count", response_model=TokenCountResponse)
async def count_tokens(
    owner_id: str = Query(default="", description="Only tokens of this owner"),
    owner_nano_id: str = Query(default="", description="Only tokens of this owner alias"),
    token_filter: TokenFilter = Depends(token_filter_params),
    service: TokenService = Depends(get_token_service),
) -> TokenCountResponse:
    """Count API tokens matching the filters."""
    token_filter.owner_id = owner_id
    token_filter.owner_nano_id = owner_nano_id
    total = await service.count_tokens(token_filter)
    return TokenCountResponse(total=total)


@router.get("/tokens/me", response_model=RequesterResponse)
async def get_requester(
    requester: Requester = Depends(get_current_requester),
) -> RequesterResponse:
    """
    Return the identity behind the X-Api-Token header.

    Stamps the token's last used time unless TOUCH_LAST_USED_ON_AUTH is off.
    """
    return RequesterResponse.model_validate(requester)


@router.get("/tokens/{token_id}", response_model=TokenResponse)
async def get_token(
    token_id: str,
    service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Get one API token. Expired short-lived tokens are reported as not found."""
    token = await service.get_token(token_id)
    return _to_response(token)
