"""Tests for the ApiToken record and TokenStatus."""
from datetime import UTC, datetime

import pytest

from models.api_token import ApiToken, TokenStatus


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("ACTIVE", TokenStatus.ACTIVE),
        ("active", TokenStatus.ACTIVE),
        ("Revoked", TokenStatus.REVOKED),
        ("", TokenStatus.REVOKED),
        ("SUSPENDED", TokenStatus.REVOKED),
    ],
)
def test__token_status__coerce(value: str, expected: TokenStatus) -> None:
    """Unknown statuses collapse to REVOKED."""
    assert TokenStatus.coerce(value) == expected


def test__api_token__repr_hides_digest() -> None:
    """The digest never shows up in the repr."""
    token = ApiToken(created_by_id="owner-1", value_hash=b"\xff" * 32)
    assert "value_hash" not in repr(token)


def test__api_token__flags() -> None:
    """Ephemeral means an expiry is set; active means status ACTIVE."""
    token = ApiToken(created_by_id="owner-1")
    assert token.is_active
    assert not token.is_ephemeral

    token = ApiToken(
        created_by_id="owner-1",
        status=TokenStatus.REVOKED,
        ttl_expires_at="2024-05-02T00:00:00.000000000Z",
    )
    assert not token.is_active
    assert token.is_ephemeral


def test__with_human_readable__fills_each_field_separately() -> None:
    """Each display field describes its own timestamp and the original is unchanged."""
    now = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    token = ApiToken(
        created_by_id="owner-1",
        last_used_at="2024-05-01T11:55:00.000000000Z",
        updated_at="2024-04-28T12:00:00.000000000Z",
        ttl_expires_at="2024-05-01T14:00:00.000000000Z",
    )

    described = token.with_human_readable(now)

    assert described.human_readable_last_used_at == "5 minutes ago"
    assert described.human_readable_updated_at == "3 days ago"
    assert described.human_readable_ttl_expires_at == "in 2 hours"
    assert token.human_readable_last_used_at == ""


def test__with_human_readable__skips_empty_and_unparsable() -> None:
    """Empty or unparsable timestamps leave the display field empty."""
    now = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    token = ApiToken(created_by_id="owner-1", updated_at="garbage")

    described = token.with_human_readable(now)

    assert described.human_readable_updated_at == ""
    assert described.human_readable_last_used_at == ""
