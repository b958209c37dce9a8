"""
Request pipeline: the ordered gates in front of the transcript service.

Order: service configuration -> API key -> video ID shape -> admission.
Unauthenticated and malformed requests never touch the limiter.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .middleware.rate_limiter import AdmissionLimiter
from .models import TranscriptResult
from .security import authenticate, key_fingerprint
from .services.caption_fetcher import CaptionFetcher
from .services.transcript_service import TranscriptService
from .shared.validators import validate_video_id

logger = logging.getLogger(__name__)


@dataclass
class GatewayState:
    """Everything a request needs, built once per application"""
    settings: Dict[str, Any]
    limiter: AdmissionLimiter
    transcripts: TranscriptService

    @classmethod
    def from_settings(
        cls,
        settings: Dict[str, Any],
        limiter: Optional[AdmissionLimiter] = None,
        transcripts: Optional[TranscriptService] = None,
    ) -> "GatewayState":
        if limiter is None:
            limiter = AdmissionLimiter(
                window_seconds=settings['rate_limit']['window_seconds'],
                max_requests=settings['rate_limit']['max_requests'],
            )
        if transcripts is None:
            transcripts = TranscriptService(CaptionFetcher.from_settings(settings['fetch']))
        return cls(settings=settings, limiter=limiter, transcripts=transcripts)


def admit_request(state: GatewayState, api_key: Optional[str], video_id: Optional[str]) -> str:
    """
    Runs the gates for one transcript request.

    Returns:
        The validated video ID

    Raises:
        ServiceMisconfiguredError, AuthenticationError, InvalidVideoIdError,
        RateLimitExceededError (in that precedence)
    """
    credential = authenticate(api_key, state.settings.get('api_key'))
    video_id = validate_video_id(video_id)
    admission = state.limiter.check(credential)

    logger.debug(
        f"Request admitted ({admission.remaining} left in window)",
        extra={'video_id': video_id, 'key_fingerprint': key_fingerprint(credential)},
    )
    return video_id


async def handle_transcript_request(
    state: GatewayState,
    api_key: Optional[str],
    video_id: Optional[str]
) -> TranscriptResult:
    """Gates the request, then fetches and normalizes the transcript"""
    video_id = admit_request(state, api_key, video_id)
    return await state.transcripts.get_transcript(video_id)
