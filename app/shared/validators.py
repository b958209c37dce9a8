import re
from typing import Optional

from .exceptions import InvalidVideoIdError

VIDEO_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{11}$')


def is_valid_video_id(video_id: Optional[str]) -> bool:
    return bool(video_id) and VIDEO_ID_PATTERN.match(video_id) is not None


def validate_video_id(video_id: Optional[str]) -> str:
    """
    Checks the shape of a YouTube video ID.

    Raises:
        InvalidVideoIdError: blank ID ("Video ID is required") or anything
            other than exactly 11 characters of [A-Za-z0-9_-]
    """
    if video_id is None or not video_id.strip():
        raise InvalidVideoIdError("Video ID is required")
    if not is_valid_video_id(video_id):
        raise InvalidVideoIdError("Invalid video ID format", video_id=video_id[:32])
    return video_id
