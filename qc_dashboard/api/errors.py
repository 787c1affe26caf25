"""
Error Handlers
Custom exception handlers for FastAPI.
"""

import logging
from typing import Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(APIError):
    """Exception raised when resource is not found."""

    def __init__(self, resource: str, resource_id: Union[int, str]):
        super().__init__(
            message=f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": str(resource_id)},
        )


class InvalidRequestError(APIError):
    """Exception raised for invalid requests."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class ConflictError(APIError):
    """Exception raised when a unique value is already taken."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class PermissionDeniedError(APIError):
    """Exception raised when the caller may not act on a resource."""

    def __init__(self, message: str = "Not authorized to perform this action"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


class StorageError(APIError):
    """Exception raised when image storage fails."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message=message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)


class ModelUnavailableError(APIError):
    """Exception raised when the defect classifier cannot serve predictions."""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


def error_response(
    status_code: int, message: str, error_type: str, details=None, headers: Optional[dict] = None
) -> JSONResponse:
    """``{"success": false, "error": {...}}`` with the given status."""
    error = {"message": message, "type": error_type, "details": details if details is not None else {}}
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )


def setup_error_handlers(app: FastAPI) -> None:
    """
    Register the handlers that turn exceptions into error envelopes.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"API error: {exc.message}",
            extra={"status_code": exc.status_code, "details": exc.details, "path": request.url.path},
        )
        return error_response(exc.status_code, exc.message, exc.__class__.__name__, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Auth dependencies and unknown routes
        return error_response(
            exc.status_code,
            str(exc.detail),
            "HTTPError",
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error: {exc}", extra={"path": request.url.path})

        errors = [
            {
                "loc": [str(part) for part in error.get("loc", [])],
                "msg": str(error.get("msg", "")),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY, "Request validation failed", "ValidationError", errors
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.warning(f"Value error: {exc}", extra={"path": request.url.path})
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc), "ValueError")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error: {exc}", exc_info=True, extra={"path": request.url.path})
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred", "InternalServerError"
        )
