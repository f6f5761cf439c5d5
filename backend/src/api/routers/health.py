"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_store
from db.store import Store


logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    store: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: Store = Depends(get_store),
) -> HealthResponse:
    """Check application and store health."""
    store_status = "healthy"
    try:
        await store.ping()
    except Exception:
        logger.exception("Store health check failed")
        store_status = "unhealthy"

    return HealthResponse(
        status="healthy" if store_status == "healthy" else "degraded",
        store=store_status,
    )
