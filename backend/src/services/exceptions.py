"""Exceptions raised by the API token service layer."""


class ApiTokenError(Exception):
    """
    Base exception for API token operations.

    Each subclass carries the HTTP status, machine-readable code and
    human-friendly title used when the error is rendered in a response.
    """

    status_code: int = 500
    code: str | None = None
    title: str = "Internal Server Error"
    detail: str | None = None

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.detail
        super().__init__(self.message or self.__class__.__name__)


class NoMatchingUserAPITokenError(ApiTokenError):
    """Raised when a token hash cannot be matched to any of the owner's tokens."""

    status_code = 401
    code = "APT0-200"
    title = "Unauthorized"


class UnableToValidateUserAPITokenError(ApiTokenError):
    """
    Raised when a bearer cannot be validated.

    Covers unknown owner, unknown secret and inactive token alike so that
    callers cannot tell them apart.
    """

    status_code = 401
    code = "APT0-201"
    title = "Unauthorized"


class UnableToFindRequiredHeadersError(ApiTokenError):
    """Raised when the X-Api-Token header is missing."""

    status_code = 401
    code = "APT0-202"
    title = "Unauthorized"


class InvalidAPIFormatError(ApiTokenError):
    """Raised when a bearer is not two non-empty dot-separated segments."""

    status_code = 400
    code = "APT0-203"
    title = "Bad Request"
    detail = "Malformed API token provided"


class ResourceNotFoundError(ApiTokenError):
    """Raised when a requested token does not exist."""

    status_code = 404
    code = "APT0-204"
    title = "Not Found"
    detail = "API token not found"


class RequiredUserIDMissingError(ApiTokenError):
    """Raised when an operation requires an owner id and none was supplied."""

    status_code = 400
    code = "APT0-205"
    title = "Bad Request"
    detail = "Requirements unsatisfied"


class PageOutOfRangeError(ApiTokenError):
    """Raised by strict pagination when the requested page is past the last page."""

    status_code = 400
    code = "APT0-206"
    title = "Bad Request"
    detail = "Page out of range"

    def __init__(self, page: int, total_pages: int) -> None:
        self.page = page
        self.total_pages = total_pages
        super().__init__(f"Page {page} out of range (total pages: {total_pages})")


class TokenStatusInvalidError(ApiTokenError):
    """Raised when a token is given a status other than ACTIVE or REVOKED."""

    status_code = 400
    code = "APT0-207"
    title = "Bad Request"
    detail = "Please verify token status"

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Unsupported token status: {status!r}")


class InvalidQueryError(ApiTokenError):
    """Raised when list or count filters contradict each other."""

    status_code = 400
    code = "APT0-208"
    title = "Bad Request"
    detail = "Invalid query"


class ErrorCreatingShortLivedAccessTokenError(ApiTokenError):
    """Raised when the expiry of a short-lived token cannot be derived."""

    status_code = 500
    title = "Internal Server Error"
