"""
json3 caption parsing and text normalization
"""
import json
import re
from typing import Optional, Union

from pydantic import ValidationError

from ..models import CaptionDocument
from ..shared.exceptions import CaptionParseError, EmptyTranscriptError

_WHITESPACE = re.compile(r'\s+')


def normalize_text(text: str) -> str:
    """Collapses whitespace runs to one space and trims. Idempotent."""
    return _WHITESPACE.sub(' ', text).strip()


def parse_caption_document(raw: Union[str, bytes]) -> CaptionDocument:
    """
    Parses a json3 caption file.

    Raises:
        CaptionParseError: not JSON, or not shaped like ``{"events": [...]}``
    """
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise CaptionParseError(f"Caption file could not be decoded as JSON: {e}") from e

    if not isinstance(data, dict):
        raise CaptionParseError(f"Caption file root is {type(data).__name__}, expected object")

    try:
        return CaptionDocument.model_validate(data)
    except ValidationError as e:
        raise CaptionParseError(
            f"Caption file does not match the cue schema ({e.error_count()} errors)"
        ) from e


def normalize_document(document: CaptionDocument) -> str:
    """
    Flattens a caption document to plain text.

    Segments of a cue are concatenated as-is, cues are separated by a
    single space, then whitespace is collapsed and the result trimmed.
    Returns an empty string when no cue carries text.
    """
    cues = []
    for event in document.events or ():
        cues.append(''.join(seg.utf8 for seg in event.segs or () if seg.utf8))
    return normalize_text(' '.join(cues))


def transcript_text(raw: Union[str, bytes], video_id: Optional[str] = None) -> str:
    """
    Parses and normalizes a json3 caption file in one step.

    Raises:
        CaptionParseError: malformed caption file
        EmptyTranscriptError: no text after normalization
    """
    try:
        text = normalize_document(parse_caption_document(raw))
    except CaptionParseError as e:
        e.video_id = video_id
        raise

    if not text:
        raise EmptyTranscriptError("Caption file contains no text", video_id=video_id)
    return text
