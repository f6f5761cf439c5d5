"""Exception handlers rendering errors as a JSON envelope or plain text."""
import logging

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError

from db.store import StoreError
from schemas.errors import ErrorItem, ErrorResponse
from services.exceptions import ApiTokenError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_TITLE = "Internal Server Error"
VALIDATION_ERROR_TITLE = "Unprocessable Entity"


def wants_json(request: Request) -> bool:
    """Clients that send JSON get the JSON envelope back."""
    return "application/json" in request.headers.get("content-type", "")


def render_error(
    request: Request,
    status_code: int,
    title: str,
    detail: str | None = None,
    code: str | None = None,
) -> Response:
    """Render one error in the representation the client asked for."""
    if wants_json(request):
        body = ErrorResponse(
            errors=[
                ErrorItem(title=title, detail=detail, status=str(status_code), code=code),
            ],
        )
        return JSONResponse(
            status_code=status_code,
            content=body.model_dump(exclude_none=True),
        )

    text = f"{title}: {detail}" if detail else title
    return PlainTextResponse(text, status_code=status_code)


async def api_token_error_handler(request: Request, exc: ApiTokenError) -> Response:
    """Translate a domain error into its HTTP representation."""
    if exc.status_code >= 500:
        logger.error("API token operation failed: %s", exc)
    return render_error(
        request,
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.message,
        code=exc.code,
    )


async def store_error_handler(request: Request, exc: Exception) -> Response:
    """Hide storage failures behind a generic 500."""
    logger.error(
        "Store operation failed on %s %s", request.method, request.url.path, exc_info=exc,
    )
    return render_error(request, status_code=500, title=INTERNAL_ERROR_TITLE)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    """Render request validation failures in the same envelope as domain errors."""
    detail = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return render_error(
        request,
        status_code=422,
        title=VALIDATION_ERROR_TITLE,
        detail=detail or None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the handlers for domain, validation and storage errors to the app."""
    app.add_exception_handler(ApiTokenError, api_token_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
    app.add_exception_handler(TimeoutError, store_error_handler)
