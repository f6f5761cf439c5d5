"""FastAPI application entry point."""
import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.errors import register_exception_handlers
from api.routers import health, tokens
from core.config import get_settings
from core.log_config import configure_logging
from db.session import create_store
from services.token_repository import TokenRepository
from services.token_service import TokenService
from tasks.token_reaper import reaper_loop

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()
    configure_logging(app_settings.log_level)

    # Startup: open the store
    store, engine = await create_store(app_settings)
    app.state.store = store
    logger.info("Token store ready (backend=%s)", app_settings.store_backend)

    # Startup: periodic sweep of expired tokens
    sweeper: asyncio.Task | None = None
    if app_settings.reaper_interval_seconds > 0:
        service = TokenService(TokenRepository(store))
        sweeper = asyncio.create_task(
            reaper_loop(service, app_settings.reaper_interval_seconds),
        )

    yield

    # Shutdown: stop the sweep and release the connection pool
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    if engine is not None:
        await engine.dispose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # HSTS: enforce HTTPS for 1 year, including subdomains
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # API shouldn't be framed
        response.headers["X-Frame-Options"] = "DENY"
        return response


app_settings = get_settings()

app = FastAPI(
    title="API Tokens",
    description="Issue, validate, revoke and expire API tokens.",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(tokens.router)
