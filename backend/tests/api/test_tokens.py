"""
Tests for API token endpoints.

Tests cover token creation, listing, status changes, deletion, and the
X-Api-Token authentication flow.
"""
from httpx import AsyncClient

from db.memory_store import InMemoryStore
from services.token_codec import hash_secret
from services.token_repository import COLLECTION


async def _create(client: AsyncClient, user_id: str = "user-1", **body: object) -> dict:
    payload = {"owner_nano_id": "nid", **body}
    response = await client.post(f"/users/{user_id}/tokens", json=payload)
    assert response.status_code == 201
    return response.json()


# =============================================================================
# Create
# =============================================================================


async def test_create_token(client: AsyncClient, store: InMemoryStore) -> None:
    """Creating a token returns the bearer once plus metadata."""
    data = await _create(client, description="CLI Token")

    assert data["description"] == "CLI Token"
    assert data["status"] == "ACTIVE"
    assert data["created_by_id"] == "user-1"
    assert data["created_by_nano_id"] == "nid"
    assert data["token"].startswith("nid.")
    assert data["ttl_expires_at"] == ""
    assert data["created_at"] == "2024-05-01T09:30:00.000000000Z"

    # Only the digest is stored
    document = await store.find_one(COLLECTION, {"_id": data["id"]})
    secret = data["token"].split(".", 1)[1]
    assert document["value_sha"] == hash_secret(secret)


async def test_create_short_lived_token(client: AsyncClient) -> None:
    """ttl_seconds produces an expiry."""
    data = await _create(client, ttl_seconds=3600)
    assert data["ttl_expires_at"] == "2024-05-01T10:30:00.000000000Z"


async def test_create_token_validates_body(client: AsyncClient) -> None:
    """Negative TTLs and overlong descriptions are rejected."""
    response = await client.post("/users/user-1/tokens", json={"ttl_seconds": -1})
    assert response.status_code == 422

    response = await client.post("/users/user-1/tokens", json={"description": "x" * 65})
    assert response.status_code == 422


async def test_token_response_never_contains_digest(client: AsyncClient) -> None:
    """Neither the digest nor the bearer appears in list responses."""
    created = await _create(client)

    response = await client.get("/users/user-1/tokens")
    body = response.text
    assert created["token"] not in body
    assert "value_sha" not in body
    assert "value_hash" not in body


# =============================================================================
# List
# =============================================================================


async def test_list_user_tokens_pagination(client: AsyncClient) -> None:
    """Listing returns the page plus pagination metadata."""
    for _ in range(27):
        await _create(client)
    await _create(client, user_id="user-2")

    response = await client.get("/users/user-1/tokens", params={"per_page": 10})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 27
    assert data["total_pages"] == 3
    assert data["page"] == 1
    assert data["per_page"] == 10
    assert len(data["items"]) == 10

    response = await client.get("/users/user-1/tokens", params={"per_page": 10, "page": 3})
    assert len(response.json()["items"]) == 7


async def test_list_user_tokens_strict_page_out_of_range(client: AsyncClient) -> None:
    """Strict mode turns a page past the end into a 400."""
    await _create(client)

    response = await client.get("/users/user-1/tokens", params={"page": 2})
    assert response.status_code == 200
    assert response.json()["items"] == []

    response = await client.get(
        "/users/user-1/tokens",
        params={"page": 2, "strict": "true"},
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "APT0-206"


async def test_list_rejects_out_of_bounds_paging(client: AsyncClient) -> None:
    """per_page above the maximum and page 0 are validation errors."""
    assert (await client.get("/tokens", params={"per_page": 101})).status_code == 422
    assert (await client.get("/tokens", params={"page": 0})).status_code == 422


async def test_list_filter_exclusivity(client: AsyncClient) -> None:
    """only_ephemeral and only_permanent together are rejected."""
    response = await client.get(
        "/tokens",
        params={"only_ephemeral": "true", "only_permanent": "true"},
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "APT0-208"


async def test_list_short_lived_tokens(client: AsyncClient) -> None:
    """The slat route lists only tokens with an expiry."""
    await _create(client)
    short_lived = await _create(client, ttl_seconds=600)

    response = await client.get("/users/user-1/tokens/slat")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == short_lived["id"]
    assert data["items"][0]["human_readable_ttl_expires_at"] == "in 10 minutes"


async def test_list_all_tokens_with_owner_filter(client: AsyncClient) -> None:
    """The collection listing can be narrowed by owner."""
    await _create(client, user_id="user-1")
    await _create(client, user_id="user-2", owner_nano_id="other")

    assert (await client.get("/tokens")).json()["total"] == 2
    response = await client.get("/tokens", params={"owner_nano_id": "other"})
    assert response.json()["items"][0]["created_by_id"] == "user-2"


async def test_list_sort_order(client: AsyncClient, clock) -> None:
    """Ascending created_at lists the oldest first."""
    first = await _create(client, description="first")
    clock.advance(seconds=1)
    await _create(client, description="second")

    response = await client.get("/tokens", params={"order": "created_at_asc"})
    assert response.json()["items"][0]["id"] == first["id"]

    response = await client.get("/tokens", params={"order": "whatever"})
    assert response.json()["items"][0]["description"] == "second"


async def test_count_tokens(client: AsyncClient) -> None:
    """Count applies the same filters as list."""
    await _create(client, description="Deploy bot")
    await _create(client, description="CLI")

    response = await client.get("/tokens/count", params={"description": "deploy"})
    assert response.status_code == 200
    assert response.json() == {"total": 1}


# =============================================================================
# Get, activate, revoke, delete
# =============================================================================


async def test_get_token(client: AsyncClient) -> None:
    """A token can be fetched by id."""
    created = await _create(client)

    response = await client.get(f"/tokens/{created['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]
    assert "token" not in response.json()


async def test_get_expired_token_is_not_found(client: AsyncClient, clock) -> None:
    """Expired short-lived tokens are reaped on read."""
    created = await _create(client, ttl_seconds=1)
    clock.advance(seconds=2)

    response = await client.get(f"/tokens/{created['id']}")
    assert response.status_code == 404


async def test_revoke_and_activate(client: AsyncClient) -> None:
    """Revoking blocks authentication and activating restores it."""
    created = await _create(client)
    headers = {"X-Api-Token": created["token"]}

    response = await client.put(f"/users/user-1/tokens/{created['id']}/revoke")
    assert response.status_code == 200
    assert response.json()["status"] == "REVOKED"
    assert (await client.get("/tokens/me", headers=headers)).status_code == 401

    # Idempotent
    response = await client.put(f"/users/user-1/tokens/{created['id']}/revoke")
    assert response.json()["status"] == "REVOKED"

    response = await client.put(f"/users/user-1/tokens/{created['id']}/activate")
    assert response.json()["status"] == "ACTIVE"
    assert (await client.get("/tokens/me", headers=headers)).status_code == 200


async def test_status_change_for_other_user_is_not_found(client: AsyncClient) -> None:
    """A user cannot change another user's token."""
    created = await _create(client, user_id="user-1")
    response = await client.put(f"/users/user-2/tokens/{created['id']}/revoke")
    assert response.status_code == 404


async def test_delete_token(client: AsyncClient) -> None:
    """Deleting returns 204 and the token is gone."""
    created = await _create(client)

    response = await client.delete(f"/users/user-1/tokens/{created['id']}")
    assert response.status_code == 204

    response = await client.get(f"/tokens/{created['id']}")
    assert response.status_code == 404


async def test_delete_token_not_found(client: AsyncClient) -> None:
    """Deleting a token that does not exist returns 404."""
    response = await client.delete("/users/user-1/tokens/missing")
    assert response.status_code == 404


async def test_delete_all_user_tokens(client: AsyncClient) -> None:
    """All of a user's tokens can be removed at once."""
    await _create(client, user_id="user-1")
    await _create(client, user_id="user-1")
    await _create(client, user_id="user-2")

    response = await client.delete("/users/user-1/tokens")
    assert response.status_code == 204
    assert (await client.get("/tokens/count")).json() == {"total": 1}


# =============================================================================
# X-Api-Token authentication
# =============================================================================


async def test_me_returns_requester_and_touches(client: AsyncClient, clock) -> None:
    """A valid header resolves to the requester and stamps last used."""
    created = await _create(client)
    clock.advance(minutes=1)

    response = await client.get("/tokens/me", headers={"X-Api-Token": created["token"]})

    assert response.status_code == 200
    assert response.json() == {
        "owner_id": "user-1",
        "nano_id": "nid",
        "token_id": created["id"],
        "auth_type": "api-token",
    }
    fetched = (await client.get(f"/tokens/{created['id']}")).json()
    assert fetched["last_used_at"] == "2024-05-01T09:31:00.000000000Z"


async def test_me_respects_touch_setting(client: AsyncClient, test_settings) -> None:
    """With TOUCH_LAST_USED_ON_AUTH off, last used stays empty."""
    test_settings.touch_last_used_on_auth = False
    created = await _create(client)

    response = await client.get("/tokens/me", headers={"X-Api-Token": created["token"]})
    assert response.status_code == 200

    fetched = (await client.get(f"/tokens/{created['id']}")).json()
    assert fetched["last_used_at"] == ""


async def test_me_without_header(client: AsyncClient) -> None:
    """A missing header is a 401 with its own code."""
    response = await client.get("/tokens/me", headers={"Content-Type": "application/json"})
    assert response.status_code == 401
    assert response.json()["errors"][0]["code"] == "APT0-202"


async def test_me_malformed_bearer(client: AsyncClient) -> None:
    """A malformed bearer is a 400."""
    response = await client.get(
        "/tokens/me",
        headers={"X-Api-Token": "not-a-bearer", "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "APT0-203"


async def test_me_unknown_bearer(client: AsyncClient) -> None:
    """An unknown bearer is a 401 that does not say what was wrong."""
    await _create(client)
    response = await client.get(
        "/tokens/me",
        headers={"X-Api-Token": "nid.wrongsecret", "Content-Type": "application/json"},
    )
    assert response.status_code == 401
    error = response.json()["errors"][0]
    assert error["code"] == "APT0-201"
    assert error["title"] == "Unauthorized"


async def test_me_expired_token(client: AsyncClient, clock) -> None:
    """A short-lived token stops authenticating once expired."""
    created = await _create(client, ttl_seconds=1)
    headers = {"X-Api-Token": created["token"]}

    assert (await client.get("/tokens/me", headers=headers)).status_code == 200
    clock.advance(milliseconds=1200)
    assert (await client.get("/tokens/me", headers=headers)).status_code == 401
