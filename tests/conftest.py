"""
Test configuration and fixtures
"""
import shlex
import sys
from pathlib import Path
from typing import Optional

import pytest

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

from app.core.config import GatewaySettings, build_settings  # noqa: E402
from app.models import FetchedCaptions, VideoMetadata  # noqa: E402

FAKE_YTDLP = Path(__file__).parent / "fake_ytdlp.py"
TEST_API_KEY = "test-secret-key"


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubFetcher:
    """In-process fetcher returning canned captions or raising"""

    def __init__(self, content: Optional[str] = None, error: Optional[Exception] = None,
                 title: str = "Never Gonna Give You Up", duration: int = 213):
        self.content = content
        self.error = error
        self.title = title
        self.duration = duration
        self.calls = []

    async def fetch(self, video_id: str) -> FetchedCaptions:
        self.calls.append(video_id)
        if self.error is not None:
            raise self.error
        return FetchedCaptions(
            video_id=video_id,
            content=self.content,
            metadata=VideoMetadata(title=self.title, duration=self.duration),
        )


@pytest.fixture(scope="session")
def test_video_id():
    """Sample YouTube video ID for testing"""
    return "dQw4w9WgXcQ"


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_ytdlp_command():
    """Command line running the fake yt-dlp with the current interpreter"""
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(FAKE_YTDLP))}"


@pytest.fixture
def caption_dir(tmp_path):
    directory = tmp_path / "captions"
    directory.mkdir()
    return directory


@pytest.fixture
def make_settings(fake_ytdlp_command, caption_dir):
    """Builds a settings dict isolated from the process environment"""

    def _make(**overrides):
        values = {
            'api_key': TEST_API_KEY,
            'ytdlp_command': fake_ytdlp_command,
            'caption_temp_dir': str(caption_dir),
            'fetch_timeout_seconds': 10,
            'fetch_kill_grace_seconds': 0.5,
            'cors_enabled': False,
        }
        values.update(overrides)
        return build_settings(GatewaySettings(_env_file=None, **values))

    return _make


@pytest.fixture
def sample_json3():
    return (
        '{"events": ['
        '{"tStartMs": 0, "dDurationMs": 1000, "segs": [{"utf8": "Hello"}, {"utf8": " world"}]},'
        '{"tStartMs": 1000, "segs": [{"utf8": "\\n"}]},'
        '{"tStartMs": 2000, "segs": [{"utf8": "second   cue"}]}'
        ']}'
    )
