"""Authentication of requests carrying an API token in the X-Api-Token header."""
import logging

from fastapi.security import APIKeyHeader

from core.request_context import Requester
from services.exceptions import UnableToFindRequiredHeadersError
from services.token_service import TokenService

logger = logging.getLogger(__name__)

API_TOKEN_HEADER = "X-Api-Token"

# Missing headers are reported by the authenticator with its own error code
api_token_header = APIKeyHeader(name=API_TOKEN_HEADER, auto_error=False)


class ApiTokenAuthenticator:
    """
    Validates bearers from the X-Api-Token header.

    After a successful validation the token's last-used time is stamped. A
    failure to stamp it is logged and does not fail the request.
    """

    def __init__(self, service: TokenService, touch_last_used: bool = True) -> None:
        self.service = service
        self.touch_last_used = touch_last_used

    async def authenticate(self, header_value: str | None) -> Requester:
        """
        Resolve the header value into the requester behind it.

        Raises:
            UnableToFindRequiredHeadersError: If the header is missing or empty.
            InvalidAPIFormatError: If the bearer is malformed.
            UnableToValidateUserAPITokenError: If the bearer does not validate.
        """
        if not header_value:
            raise UnableToFindRequiredHeadersError()

        requester = await self.service.authenticate(header_value)

        if self.touch_last_used:
            try:
                await self.service.touch_last_used(
                    requester.value_hash,
                    owner_nano_id=requester.nano_id,
                )
            except Exception:
                logger.warning(
                    "Unable to update last used time of API token %s",
                    requester.token_id,
                    exc_info=True,
                )

        return requester
