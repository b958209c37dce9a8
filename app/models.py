from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VideoMetadata(BaseModel):
    """Metadata printed by the caption tool on stdout."""
    model_config = ConfigDict(frozen=True)

    title: str
    duration: int = 0

    @classmethod
    def placeholder(cls, video_id: str) -> "VideoMetadata":
        return cls(title=f"YouTube Video {video_id}", duration=0)


class CaptionSegment(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    utf8: Optional[str] = None


class CaptionEvent(BaseModel):
    """One cue of a json3 caption document."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    start_ms: Optional[float] = Field(default=None, alias="tStartMs")
    duration_ms: Optional[float] = Field(default=None, alias="dDurationMs")
    segs: Optional[List[CaptionSegment]] = None


class CaptionDocument(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    events: Optional[List[CaptionEvent]] = None


class FetchedCaptions(BaseModel):
    """What the fetcher hands back once the artifact has been read and removed."""
    model_config = ConfigDict(frozen=True)

    video_id: str
    content: str
    metadata: VideoMetadata


class TranscriptResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    title: str
    duration: int
    timestamp: datetime


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "healthy"
