"""
Request context middleware: correlation IDs and access logging.
"""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from common.log_utils import reset_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every log line of a request with its correlation ID.

    The ID is taken from the incoming ``X-Request-ID`` header when present
    and echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = set_correlation_id(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.info(
                "%s %s -> %s",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    'path': request.url.path,
                    'method': request.method,
                    'status_code': response.status_code,
                    'duration_ms': round((time.perf_counter() - started) * 1000, 1),
                },
            )
            return response
        finally:
            reset_correlation_id(token)
