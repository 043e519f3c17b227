"""Error taxonomy shared by every service.

Services raise these; ``portal.main`` renders them as ``{error, details?}``
JSON bodies with the matching status code.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class PortalError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal error"

    def __init__(self, error: Optional[str] = None, *, details: Any = None, message: Optional[str] = None):
        self.error = error or self.error
        self.details = details
        self.message = message
        super().__init__(self.error)

    def to_body(self) -> dict:
        body: dict = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        if self.details is not None:
            body["details"] = self.details
        return body


class NotFoundError(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not found"


class ForbiddenError(PortalError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"


class ValidationFailedError(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation failed"


class InvalidTransitionError(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid transition"


class ConflictError(PortalError):
    """Optimistic-lock version mismatch. Clients must refetch before retrying."""
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"

    def __init__(self):
        super().__init__("Conflict", message="State changed, refresh and retry")


class StorageError(PortalError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal storage error"


class NoActiveWorkflowError(PortalError):
    # Only raised by workflow binding, which callers treat as best-effort.
    status_code = status.HTTP_404_NOT_FOUND
    error = "No active review workflow configured"


def _format_loc(loc) -> list:
    # Drop FastAPI's leading "body"/"query" marker so paths read like the payload.
    parts = list(loc)
    if parts and parts[0] in ("body", "query", "path"):
        parts = parts[1:]
    return parts


async def portal_error_handler(request: Request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [{"path": _format_loc(e["loc"]), "message": e["msg"]} for e in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "details": details},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": StorageError.error},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
