"""
Standard exception handlers for FastAPI applications

Every error body has the shape ``{"error": <message>}``.
"""
import logging
from typing import Mapping, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

ROUTE_NOT_FOUND_MESSAGE = "Route not found"
INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_json_response(
    status_code: int,
    message: str,
    headers: Optional[Mapping[str, str]] = None
) -> JSONResponse:
    """Builds the standard error response"""
    return JSONResponse(
        status_code=status_code,
        content={'error': message},
        headers=dict(headers) if headers else None,
    )


def setup_exception_handlers(app: FastAPI, debug: bool = False):
    """
    Configures the fallback exception handlers.

    Args:
        app: FastAPI instance
        debug: When True, unhandled exceptions are logged with their
            message in the log record (never in the response body)

    Examples:
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return error_json_response(status.HTTP_404_NOT_FOUND, ROUTE_NOT_FOUND_MESSAGE)

        logger.warning(
            f"HTTP exception: {exc.status_code}",
            extra={
                'status_code': exc.status_code,
                'path': request.url.path,
                'method': request.method
            }
        )
        return error_json_response(exc.status_code, str(exc.detail), getattr(exc, 'headers', None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            "Request validation error",
            extra={
                'path': request.url.path,
                'method': request.method,
            }
        )
        return error_json_response(status.HTTP_400_BAD_REQUEST, "Invalid request")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.critical(
            f"Unhandled exception: {type(exc).__name__}" + (f": {exc}" if debug else ""),
            exc_info=True,
            extra={
                'path': request.url.path,
                'method': request.method,
            }
        )
        return error_json_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)

    logger.debug("Exception handlers configured")
