"""Tests for the health check endpoint."""
from httpx import AsyncClient

from db.memory_store import InMemoryStore
from db.store import StoreError


async def test_health_endpoint_returns_healthy_status(client: AsyncClient) -> None:
    """Test that the health endpoint reports a reachable store."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "store": "healthy"}


async def test_health_endpoint_degraded_when_store_down(
    client: AsyncClient,
    store: InMemoryStore,
    monkeypatch,
) -> None:
    """Test that a failing ping degrades the status instead of erroring."""

    async def broken_ping() -> None:
        raise StoreError("unreachable")

    monkeypatch.setattr(store, "ping", broken_ping)

    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "degraded", "store": "unhealthy"}


async def test_security_headers_present(client: AsyncClient) -> None:
    """Test that security headers are added to responses."""
    response = await client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "max-age=31536000" in response.headers["Strict-Transport-Security"]
