"""Pydantic schemas for error responses."""
from pydantic import BaseModel


class ErrorItem(BaseModel):
    """A single error entry; status is the HTTP status as a string."""

    title: str
    detail: str | None = None
    status: str
    code: str | None = None


class ErrorResponse(BaseModel):
    """Error envelope returned to clients that send JSON."""

    errors: list[ErrorItem]
