from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from urllib.parse import quote

from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response

from common.datetime_utils import iso_timestamp
from common.exception_handlers import setup_exception_handlers
from common.log_utils import get_logger, setup_structured_logging

from .agent_docs import render_agent_instructions
from .core.config import get_settings
from .gateway import GatewayState, admit_request, handle_transcript_request
from .middleware.rate_limiter import AdmissionLimiter
from .middleware.request_context import RequestContextMiddleware
from .models import ErrorResponse, HealthResponse
from .security import API_KEY_HEADER
from .services.transcript_service import TranscriptService
from .shared.exceptions import GatewayError, gateway_exception_handler

logger = get_logger(__name__)

# Characters encodeURIComponent leaves alone
_TITLE_SAFE_CHARS = "-_.!~*'()"

_TRANSCRIPT_ERRORS = {
    status_code: {"model": ErrorResponse, "description": description}
    for status_code, description in (
        (400, "Video ID missing or malformed"),
        (401, "Missing or invalid API key"),
        (404, "No transcript available"),
        (429, "Rate limit exceeded"),
        (500, "Internal server error"),
        (504, "Caption fetch timed out"),
    )
}


# ============================================================================
# LIFECYCLE
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    settings = app.state.settings
    gateway: GatewayState = app.state.gateway

    # ---- startup ----
    if not settings.get('api_key'):
        logger.error("API_KEY is not configured: every transcript request will fail with 500")

    await gateway.limiter.start_cleanup_task(settings['rate_limit']['cleanup_interval_seconds'])
    port = settings['port']
    logger.info(f"{settings['app_name']} started on port {port}")
    logger.info(f"Health check: http://localhost:{port}/health")
    logger.info(f"API endpoint: http://localhost:{port}/api/transcript/:videoId")

    yield

    # ---- shutdown ----
    await gateway.limiter.stop_cleanup_task()
    logger.info(f"{settings['app_name']} stopped gracefully")


def create_app(
    settings: Optional[Dict[str, Any]] = None,
    limiter: Optional[AdmissionLimiter] = None,
    transcripts: Optional[TranscriptService] = None,
) -> FastAPI:
    """
    Builds the FastAPI application.

    Args:
        settings: Settings dict (``get_settings()`` when None)
        limiter: Admission limiter (built from settings when None)
        transcripts: Transcript service (built from settings when None)
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings['app_name'],
        description="Fetches YouTube caption tracks and returns them as plain text",
        version=settings['version'],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway = GatewayState.from_settings(settings, limiter=limiter, transcripts=transcripts)

    setup_exception_handlers(app, debug=settings.get('debug', False))
    app.add_exception_handler(GatewayError, gateway_exception_handler)

    if settings['cors']['enabled']:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings['cors']['origins'],
            allow_methods=settings['cors']['methods'],
            allow_headers=settings['cors']['headers'],
        )
    app.add_middleware(RequestContextMiddleware)

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse()

    @app.get("/api/agent", response_class=PlainTextResponse)
    async def agent_instructions() -> Response:
        rate_limit = settings['rate_limit']
        body = render_agent_instructions(rate_limit['window_seconds'], rate_limit['max_requests'])
        return Response(content=body, media_type="text/markdown")

    @app.get(
        "/api/transcript/{video_id}",
        response_class=PlainTextResponse,
        responses=_TRANSCRIPT_ERRORS,
    )
    async def get_transcript(
        request: Request,
        video_id: str,
        api_key: Optional[str] = Header(default=None, alias=API_KEY_HEADER),
    ) -> PlainTextResponse:
        """
        Plain text transcript of a YouTube video

        - **video_id**: 11-character YouTube video ID
        - **X-API-Key**: shared API key (header)
        """
        result = await handle_transcript_request(request.app.state.gateway, api_key, video_id)

        return PlainTextResponse(
            content=result.text,
            headers={
                'X-Video-Title': quote(result.title, safe=_TITLE_SAFE_CHARS),
                'X-Video-Duration': str(result.duration),
                'X-Video-Timestamp': iso_timestamp(result.timestamp),
            },
        )

    @app.get("/api/transcript", include_in_schema=False)
    @app.get("/api/transcript/", include_in_schema=False)
    async def get_transcript_without_id(
        request: Request,
        api_key: Optional[str] = Header(default=None, alias=API_KEY_HEADER),
    ) -> None:
        # Same gates as the real route; raises InvalidVideoIdError once authenticated
        admit_request(request.app.state.gateway, api_key, None)

    return app


def _build_default_app() -> FastAPI:
    settings = get_settings()
    setup_structured_logging(
        service_name="transcript-gateway",
        log_level=settings['log_level'],
        log_dir=settings['log_dir'],
        enable_file=settings['log_to_file'],
        json_format=settings['log_format'] == 'json',
    )
    return create_app(settings)


app = _build_default_app()
