"""Request context types for API token authentication."""
from dataclasses import dataclass, field
from enum import StrEnum


class AuthType(StrEnum):
    """Authentication method used for the request."""

    API_TOKEN = "api-token"


@dataclass(frozen=True)
class Requester:
    """
    The identity behind a validated API token.

    Carries the owner and token ids, never the secret. The digest is kept so the
    caller can stamp the token's last-used time without re-parsing the bearer.
    """

    owner_id: str
    nano_id: str
    token_id: str
    value_hash: bytes = field(default=b"", repr=False, compare=False)
    auth_type: AuthType = AuthType.API_TOKEN
