"""
Service-level exceptions and their HTTP rendering.

Services raise the exceptions below; ``register_exception_handlers``
turns them (and FastAPI's own errors) into the API's error shape,
``{"error": "<message>"}``, with validation errors also naming the
offending ``field``.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException


logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors a client can act on.  Renders as 400."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT


def _error_body(message: str, field: Optional[str] = None) -> dict:
    body: dict[str, Any] = {"error": message}
    if field:
        body["field"] = field
    return body


def _describe_validation_error(exc: RequestValidationError) -> tuple[str, Optional[str]]:
    """Pick the first validation error and phrase it for the client."""
    errors = exc.errors()
    if not errors:
        return "Invalid payload", None
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = loc[0] if loc else None
    kind = first.get("type", "")
    if kind == "json_invalid" or (kind == "missing" and not loc):
        return "Invalid JSON body", None
    if kind == "missing":
        return f"{field} is required", field
    message = str(first.get("msg", "Invalid payload"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    elif field:
        message = f"{'.'.join(loc)}: {message}"
    return message, field


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.field))

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message, field = _describe_validation_error(exc)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(message, field))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s %s failed", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Internal Server Error"),
        )
