"""FastAPI dependencies for injection."""
from fastapi import Depends, Request

from core.auth import ApiTokenAuthenticator, api_token_header
from core.config import Settings, get_settings
from core.request_context import Requester
from db.store import Store
from services.token_repository import TokenRepository
from services.token_service import TokenService


def get_store(request: Request) -> Store:
    """Return the store created by the application lifespan."""
    return request.app.state.store


def get_token_repository(store: Store = Depends(get_store)) -> TokenRepository:
    """Return a token repository over the application store."""
    return TokenRepository(store)


def get_token_service(
    repository: TokenRepository = Depends(get_token_repository),
) -> TokenService:
    """Return the token service."""
    return TokenService(repository)


def get_authenticator(
    service: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
) -> ApiTokenAuthenticator:
    """Return an authenticator honouring TOUCH_LAST_USED_ON_AUTH."""
    return ApiTokenAuthenticator(service, touch_last_used=settings.touch_last_used_on_auth)


async def get_current_requester(
    header_value: str | None = Depends(api_token_header),
    authenticator: ApiTokenAuthenticator = Depends(get_authenticator),
) -> Requester:
    """Dependency that validates the X-Api-Token header and returns the requester."""
    return await authenticator.authenticate(header_value)


__all__ = [
    "get_authenticator",
    "get_current_requester",
    "get_settings",
    "get_store",
    "get_token_repository",
    "get_token_service",
]
