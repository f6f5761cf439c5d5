"""Pydantic schemas for API token endpoints."""
from pydantic import BaseModel, ConfigDict, Field

from services.token_codec import MAX_CODENAME_LENGTH


class TokenCreate(BaseModel):
    """Schema for creating a new API token."""

    owner_nano_id: str = Field(
        default="",
        max_length=64,
        description="Public alias of the owner. Becomes the first segment of the bearer.",
    )
    ttl_seconds: int = Field(
        default=0,
        ge=0,
        description="Lifetime of a short-lived token in seconds. 0 means no expiration.",
    )
    description: str = Field(
        default="",
        max_length=MAX_CODENAME_LENGTH,
        description="Optional label, e.g. 'CLI'. A codename is generated when empty.",
    )


class TokenResponse(BaseModel):
    """
    Schema for token responses.

    Does NOT include the bearer or its digest - only metadata for identification.
    Timestamps are UTC strings; empty when unset.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str
    description: str
    created_by_id: str
    created_by_nano_id: str
    created_at: str
    updated_at: str
    last_used_at: str
    ttl_expires_at: str
    human_readable_last_used_at: str = ""
    human_readable_updated_at: str = ""
    human_readable_ttl_expires_at: str = ""


class TokenCreateResponse(TokenResponse):
    """
    Response when creating a new token.

    IMPORTANT: The `token` field contains the bearer and is only shown once at
    creation time. It cannot be retrieved again.
    """

    token: str = Field(
        ...,
        description="The bearer for the X-Api-Token header. Store this securely - it won't be shown again.",
    )


class TokenListResponse(BaseModel):
    """One page of tokens."""

    items: list[TokenResponse]
    total: int
    total_pages: int
    page: int
    per_page: int


class TokenCountResponse(BaseModel):
    """Number of tokens matching a filter."""

    total: int


class RequesterResponse(BaseModel):
    """Identity resolved from the X-Api-Token header."""

    model_config = ConfigDict(from_attributes=True)

    owner_id: str
    nano_id: str
    token_id: str
    auth_type: str
