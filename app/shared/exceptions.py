"""
Error taxonomy of the gateway.

Each component raises the narrowest applicable ``GatewayError`` subclass.
``classify_error`` is the single translation to a client-facing
``ErrorKind``; all fetch/parse failures other than a timeout are
collapsed to NOT_FOUND there so no engine detail reaches the client.
"""
import logging
import math
from enum import Enum
from typing import Dict, Optional, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse

from common.exception_handlers import error_json_response

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Client-facing error kinds"""
    INVALID_INPUT = "invalid_input"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class GatewayError(Exception):
    """Base exception for the gateway"""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, video_id: Optional[str] = None):
        self.message = message
        self.video_id = video_id
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


# ===== REQUEST GATES =====

class InvalidVideoIdError(GatewayError):
    """Video ID is missing or not 11 characters of [A-Za-z0-9_-]"""
    kind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str = "Invalid video ID format", video_id: Optional[str] = None):
        super().__init__(message, video_id=video_id)


class AuthenticationError(GatewayError):
    """Credential missing or not matching the configured secret"""
    kind = ErrorKind.UNAUTHORIZED


class ServiceMisconfiguredError(GatewayError):
    """The shared secret is not configured"""
    kind = ErrorKind.INTERNAL


class RateLimitExceededError(GatewayError):
    """Admission denied for the current window"""
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, retry_after: float, limit: int = 1, window_seconds: float = 30):
        self.retry_after = max(1, math.ceil(retry_after))
        self.limit = limit
        self.window_seconds = window_seconds
        super().__init__(f"Rate limit exceeded, retry after {self.retry_after}s")


# ===== CAPTION FETCH =====

class CaptionFetchError(GatewayError):
    """Failure while obtaining captions from the external tool"""
    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, video_id: Optional[str] = None, stderr: Optional[str] = None):
        self.stderr = stderr
        super().__init__(message, video_id=video_id)


class FetchTimeoutError(CaptionFetchError):
    """The external tool exceeded the fetch timeout"""
    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout: float, video_id: Optional[str] = None):
        self.timeout = timeout
        super().__init__(f"Caption fetch timed out after {timeout}s", video_id=video_id)


class CaptionsUnavailableError(CaptionFetchError):
    """The tool reported disabled/missing captions or an unavailable video"""
    kind = ErrorKind.NOT_FOUND


class NoCaptionsError(CaptionFetchError):
    """The tool finished but wrote no caption file"""
    kind = ErrorKind.NOT_FOUND


class CaptionParseError(CaptionFetchError):
    """The caption file does not match the json3 cue schema"""
    kind = ErrorKind.NOT_FOUND


class EmptyTranscriptError(CaptionFetchError):
    """Normalization produced no text"""
    kind = ErrorKind.NOT_FOUND


class UpstreamTransientError(CaptionFetchError):
    """Network or throttling failure unrelated to caption availability"""
    kind = ErrorKind.UNAVAILABLE


class FetchExecutionError(CaptionFetchError):
    """The tool could not be run or failed for an unrecognized reason"""
    kind = ErrorKind.INTERNAL


# ===== CLASSIFICATION =====

ERROR_MESSAGES: Dict[ErrorKind, Tuple[int, str]] = {
    ErrorKind.INVALID_INPUT: (status.HTTP_400_BAD_REQUEST, "Invalid video ID format"),
    ErrorKind.UNAUTHORIZED: (status.HTTP_401_UNAUTHORIZED, "Invalid or missing API key"),
    ErrorKind.RATE_LIMITED: (status.HTTP_429_TOO_MANY_REQUESTS, "Rate limit exceeded. Please try again later."),
    ErrorKind.NOT_FOUND: (status.HTTP_404_NOT_FOUND, "No transcript available"),
    ErrorKind.UNAVAILABLE: (status.HTTP_503_SERVICE_UNAVAILABLE, "Upstream temporarily unavailable"),
    ErrorKind.TIMEOUT: (status.HTTP_504_GATEWAY_TIMEOUT, "Request timeout"),
    ErrorKind.INTERNAL: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"),
}


def classify_error(exc: BaseException, transient_as_unavailable: bool = False) -> ErrorKind:
    """
    Maps any failure to its client-facing kind.

    Precedence follows the request pipeline: gate errors keep their own
    kind; caption fetch errors become TIMEOUT when the tool timed out and
    NOT_FOUND otherwise. ``UpstreamTransientError`` is reported as
    UNAVAILABLE only when ``transient_as_unavailable`` is set.
    Anything that is not a ``GatewayError`` is INTERNAL.
    """
    if isinstance(exc, FetchTimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, UpstreamTransientError) and transient_as_unavailable:
        return ErrorKind.UNAVAILABLE
    if isinstance(exc, CaptionFetchError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, GatewayError):
        return exc.kind
    return ErrorKind.INTERNAL


def error_response(
    exc: BaseException,
    transient_as_unavailable: bool = False,
    retry_after: Optional[int] = None
) -> JSONResponse:
    """Renders a failure as the client-facing JSON error."""
    kind = classify_error(exc, transient_as_unavailable)
    status_code, message = ERROR_MESSAGES[kind]
    headers: Dict[str, str] = {}

    if kind is ErrorKind.INVALID_INPUT and isinstance(exc, InvalidVideoIdError):
        message = exc.message
    elif kind is ErrorKind.RATE_LIMITED and isinstance(exc, RateLimitExceededError):
        headers['Retry-After'] = str(exc.retry_after)
        headers['RateLimit-Limit'] = str(exc.limit)
        headers['RateLimit-Remaining'] = '0'
        headers['RateLimit-Reset'] = str(exc.retry_after)
    elif kind is ErrorKind.UNAVAILABLE and retry_after is not None:
        headers['Retry-After'] = str(retry_after)

    return error_json_response(status_code, message, headers)


async def gateway_exception_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Logs the narrow error with full detail, then collapses it for the client"""
    fetch_settings = getattr(request.app.state, 'settings', {}).get('fetch', {})
    transient_as_unavailable = fetch_settings.get('transient_errors_as_unavailable', False)
    kind = classify_error(exc, transient_as_unavailable)

    extra = {
        'error_kind': kind.value,
        'path': request.url.path,
        'method': request.method,
    }
    if exc.video_id:
        extra['video_id'] = exc.video_id

    if kind in (ErrorKind.INVALID_INPUT, ErrorKind.UNAUTHORIZED, ErrorKind.RATE_LIMITED):
        logger.warning(f"Request rejected: {exc}", extra=extra)
    elif isinstance(exc, CaptionFetchError):
        stderr = (exc.stderr or '').strip()
        detail = f" | stderr: {stderr[-500:]}" if stderr else ""
        logger.error(f"Transcript request failed: {type(exc).__name__}: {exc.message}{detail}", extra=extra)
    else:
        logger.error(f"Transcript request failed: {type(exc).__name__}: {exc.message}", extra=extra)

    retry_after = None
    if kind is ErrorKind.UNAVAILABLE:
        rate_settings = getattr(request.app.state, 'settings', {}).get('rate_limit', {})
        retry_after = math.ceil(rate_settings.get('window_seconds', 30))

    return error_response(exc, transient_as_unavailable, retry_after)
