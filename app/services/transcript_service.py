import logging
import time
from typing import Callable, Optional

from common.datetime_utils import utcnow_aware

from ..models import TranscriptResult
from .caption_fetcher import CaptionFetcher
from .normalizer import transcript_text

logger = logging.getLogger(__name__)


class TranscriptService:
    """Fetches a caption track and turns it into a ``TranscriptResult``."""

    def __init__(self, fetcher: CaptionFetcher, now: Optional[Callable] = None):
        self.fetcher = fetcher
        self._now = now or utcnow_aware

    async def get_transcript(self, video_id: str) -> TranscriptResult:
        """
        Raises:
            CaptionFetchError subclasses from the fetcher or the normalizer
        """
        started = time.perf_counter()

        captions = await self.fetcher.fetch(video_id)
        text = transcript_text(captions.content, video_id=video_id)

        logger.info(
            f"Transcript ready: {len(text)} chars, {captions.metadata.duration}s video",
            extra={
                'video_id': video_id,
                'duration_ms': round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return TranscriptResult(
            text=text,
            title=captions.metadata.title,
            duration=captions.metadata.duration,
            timestamp=self._now(),
        )
