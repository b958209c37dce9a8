"""
Tests for the transcript service and the gate order in front of it
"""
from datetime import datetime, timezone

import pytest

from app.gateway import GatewayState, admit_request, handle_transcript_request
from app.middleware.rate_limiter import AdmissionLimiter
from app.services.caption_fetcher import CaptionFetcher
from app.services.transcript_service import TranscriptService
from app.shared.exceptions import (
    AuthenticationError,
    CaptionParseError,
    EmptyTranscriptError,
    InvalidVideoIdError,
    RateLimitExceededError,
    ServiceMisconfiguredError,
)
from common.datetime_utils import iso_timestamp

from conftest import TEST_API_KEY, StubFetcher

FIXED_NOW = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def gateway(make_settings, fake_clock, sample_json3):
    settings = make_settings()
    return GatewayState.from_settings(
        settings,
        limiter=AdmissionLimiter(30, 1, clock=fake_clock),
        transcripts=TranscriptService(StubFetcher(content=sample_json3), now=lambda: FIXED_NOW),
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_transcript(sample_json3, test_video_id):
    service = TranscriptService(StubFetcher(content=sample_json3), now=lambda: FIXED_NOW)

    result = await service.get_transcript(test_video_id)

    assert result.text == "Hello world second cue"
    assert result.title == "Never Gonna Give You Up"
    assert result.duration == 213
    assert iso_timestamp(result.timestamp) == "2026-10-18T09:00:00.000Z"


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("content, expected", [
    ("not json", CaptionParseError),
    ('{"events": []}', EmptyTranscriptError),
    ('{"events": [{"segs": [{"utf8": "\\n"}]}]}', EmptyTranscriptError),
])
async def test_get_transcript_rejects_unusable_captions(test_video_id, content, expected):
    service = TranscriptService(StubFetcher(content=content))

    with pytest.raises(expected) as exc_info:
        await service.get_transcript(test_video_id)

    assert exc_info.value.video_id == test_video_id


@pytest.mark.unit
def test_default_state_is_built_from_settings(make_settings):
    state = GatewayState.from_settings(make_settings(rate_limit_max_requests=3))

    assert state.limiter.max_requests == 3
    assert isinstance(state.transcripts.fetcher, CaptionFetcher)


@pytest.mark.unit
def test_gate_order_secret_before_everything(make_settings, fake_clock):
    state = GatewayState.from_settings(
        make_settings(api_key=None), limiter=AdmissionLimiter(30, 1, clock=fake_clock)
    )

    with pytest.raises(ServiceMisconfiguredError):
        admit_request(state, None, "bad")


@pytest.mark.unit
def test_gate_order_auth_before_validation(gateway):
    with pytest.raises(AuthenticationError):
        admit_request(gateway, "wrong", "bad")

    assert len(gateway.limiter) == 0


@pytest.mark.unit
def test_gate_order_validation_before_admission(gateway, test_video_id):
    with pytest.raises(InvalidVideoIdError):
        admit_request(gateway, TEST_API_KEY, "bad")

    # The malformed request did not use up the window
    assert admit_request(gateway, TEST_API_KEY, test_video_id) == test_video_id
    with pytest.raises(RateLimitExceededError):
        admit_request(gateway, TEST_API_KEY, test_video_id)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_handle_transcript_request(gateway, test_video_id):
    result = await handle_transcript_request(gateway, TEST_API_KEY, test_video_id)

    assert result.text == "Hello world second cue"
    assert gateway.transcripts.fetcher.calls == [test_video_id]
