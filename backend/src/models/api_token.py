"""API token record and status."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum

from core.timestamps import parse_timestamp, relative_time


class TokenStatus(StrEnum):
    """Statuses an API token can be in."""

    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"

    @classmethod
    def coerce(cls, value: str) -> "TokenStatus":
        """Map any value to a valid status, defaulting unknown values to REVOKED."""
        try:
            return cls(value.upper())
        except ValueError:
            return cls.REVOKED


@dataclass
class ApiToken:
    """
    An API token as stored, minus its secret.

    The plaintext secret is never part of this record: it only exists in the
    bearer returned once by token creation.
    """

    created_by_id: str
    id: str = ""
    value_hash: bytes = field(default=b"", repr=False)
    status: TokenStatus = TokenStatus.ACTIVE
    description: str = ""
    created_at: str = ""
    last_used_at: str = ""
    updated_at: str = ""
    created_by_nano_id: str = ""
    ttl_expires_at: str = ""

    # Display only; derived from the timestamps and never persisted.
    human_readable_last_used_at: str = ""
    human_readable_updated_at: str = ""
    human_readable_ttl_expires_at: str = ""

    @property
    def is_ephemeral(self) -> bool:
        """True when the token has an expiry."""
        return self.ttl_expires_at != ""

    @property
    def is_active(self) -> bool:
        """True when the token may authenticate (ignoring expiry)."""
        return self.status == TokenStatus.ACTIVE

    def with_human_readable(self, now: datetime) -> "ApiToken":
        """
        Return a copy with the relative-age display fields filled in.

        Timestamps that cannot be parsed are left without a description.
        """
        described: dict[str, str] = {}
        for source, target in (
            ("last_used_at", "human_readable_last_used_at"),
            ("updated_at", "human_readable_updated_at"),
            ("ttl_expires_at", "human_readable_ttl_expires_at"),
        ):
            value = getattr(self, source)
            if not value:
                continue
            try:
                described[target] = relative_time(parse_timestamp(value), now)
            except ValueError:
                continue
        return replace(self, **described)
