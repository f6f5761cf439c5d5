"""Tests for error rendering: JSON envelope versus plain text."""
from httpx import AsyncClient

from db.memory_store import InMemoryStore
from db.store import StoreError

JSON_HEADERS = {"Content-Type": "application/json"}


async def test_json_envelope_shape(client: AsyncClient) -> None:
    """JSON clients get the errors envelope with a string status."""
    response = await client.get("/tokens/missing", headers=JSON_HEADERS)

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {
        "errors": [
            {
                "title": "Not Found",
                "detail": "API token not found",
                "status": "404",
                "code": "APT0-204",
            },
        ],
    }


async def test_json_envelope_omits_missing_detail(client: AsyncClient) -> None:
    """Errors without a detail leave the key out."""
    response = await client.get(
        "/tokens/me",
        headers={**JSON_HEADERS, "X-Api-Token": "nid.unknown"},
    )
    error = response.json()["errors"][0]
    assert "detail" not in error
    assert error["status"] == "401"


async def test_plain_text_for_non_json_clients(client: AsyncClient) -> None:
    """Other clients get "<title>: <detail>" as text/plain."""
    response = await client.get("/tokens/missing")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "Not Found: API token not found"


async def test_plain_text_without_detail(client: AsyncClient) -> None:
    """Without a detail only the title is sent."""
    response = await client.get("/tokens/me")
    assert response.status_code == 401
    assert response.text == "Unauthorized"


async def test_page_error_detail_names_pages(client: AsyncClient) -> None:
    """Dynamic details such as the page numbers are included."""
    await client.post("/users/user-1/tokens", json={"owner_nano_id": "nid"})
    response = await client.get(
        "/tokens",
        params={"page": 4, "strict": "true"},
        headers=JSON_HEADERS,
    )
    assert response.json()["errors"][0]["detail"] == "Page 4 out of range (total pages: 1)"


async def test_store_failure_is_generic_500(
    client: AsyncClient,
    store: InMemoryStore,
    monkeypatch,
) -> None:
    """Storage failures are hidden behind a detail-less 500."""

    async def broken_count(collection: str, query: dict) -> int:
        raise StoreError("connection refused to db.internal:5432")

    monkeypatch.setattr(store, "count", broken_count)

    response = await client.get("/tokens/count", headers=JSON_HEADERS)

    assert response.status_code == 500
    assert response.json() == {"errors": [{"title": "Internal Server Error", "status": "500"}]}
    assert "db.internal" not in response.text


async def test_validation_errors_use_envelope(client: AsyncClient) -> None:
    """Out-of-range query parameters are a 422 in the errors envelope."""
    response = await client.get("/tokens", params={"per_page": 101}, headers=JSON_HEADERS)

    assert response.status_code == 422
    error = response.json()["errors"][0]
    assert error["title"] == "Unprocessable Entity"
    assert error["status"] == "422"
    assert error["detail"].startswith("query.per_page: ")


async def test_validation_errors_as_plain_text(client: AsyncClient) -> None:
    """Non-JSON clients get the validation failure as text."""
    response = await client.get("/tokens", params={"page": 0})

    assert response.status_code == 422
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text.startswith("Unprocessable Entity: query.page: ")


async def test_ttl_beyond_date_range_is_enveloped(client: AsyncClient) -> None:
    """A TTL too large to represent fails inside the envelope, not as a crash."""
    response = await client.post("/users/user-1/tokens", json={"ttl_seconds": 10**12})

    assert response.status_code == 500
    assert response.json()["errors"][0]["title"] == "Internal Server Error"
    assert "code" not in response.json()["errors"][0]
