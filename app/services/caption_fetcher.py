"""
Caption fetcher: runs yt-dlp for one video and returns the raw json3
caption file plus the video metadata it printed.

Every call owns a uniquely named artifact in the temp directory. The
artifact (and anything else the tool wrote under the same prefix) is
removed before ``fetch`` returns or raises, including on timeout and
cancellation.
"""
import asyncio
import json
import logging
import math
import secrets
import shlex
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List

from ..infrastructure.subprocess_utils import (
    SIGTERM_GRACE_PERIOD,
    SubprocessTimeoutError,
    run_subprocess_with_timeout,
)
from ..models import FetchedCaptions, VideoMetadata
from ..shared.exceptions import (
    CaptionFetchError,
    CaptionsUnavailableError,
    FetchExecutionError,
    FetchTimeoutError,
    NoCaptionsError,
    UpstreamTransientError,
)
from ..shared.validators import validate_video_id

logger = logging.getLogger(__name__)

ARTIFACT_PREFIX = "transcript-"
CAPTION_FORMAT = "json3"
WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

# stderr fragments (lowercase) meaning "no usable captions for this video"
_UNAVAILABLE_MARKERS = (
    "subtitles are disabled",
    "no subtitles",
    "there are no subtitles",
    "video unavailable",
    "private video",
    "this video is not available",
    "this video has been removed",
    "members-only",
    "sign in to confirm your age",
    "premieres in",
    "this live event will begin",
    "incomplete youtube id",
)

# stderr fragments (lowercase) meaning "try again later"
_TRANSIENT_MARKERS = (
    "http error 429",
    "too many requests",
    "http error 500",
    "http error 502",
    "http error 503",
    "http error 504",
    "unable to download webpage",
    "unable to download api page",
    "connection reset",
    "connection refused",
    "timed out",
    "temporary failure in name resolution",
    "name or service not known",
    "network is unreachable",
    "remote end closed connection",
    "confirm you're not a bot",
)


@dataclass(frozen=True)
class CaptionArtifact:
    """Paths owned by a single fetch"""
    prefix: Path
    path: Path

    @property
    def output_template(self) -> str:
        return f"{self.prefix}.%(ext)s"


def _remove_artifacts(prefix: Path) -> None:
    for leftover in prefix.parent.glob(f"{prefix.name}.*"):
        try:
            leftover.unlink()
            logger.debug(f"Removed caption artifact {leftover.name}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove caption artifact {leftover}: {e}")


@contextmanager
def caption_artifact(temp_dir: str, language: str) -> Iterator[CaptionArtifact]:
    """
    Reserves a unique artifact name and removes every file written
    under it when the block exits, however it exits.
    """
    directory = Path(temp_dir)
    directory.mkdir(parents=True, exist_ok=True)

    prefix = directory / f"{ARTIFACT_PREFIX}{secrets.token_hex(8)}"
    artifact = CaptionArtifact(
        prefix=prefix,
        path=prefix.with_name(f"{prefix.name}.{language}.{CAPTION_FORMAT}"),
    )
    try:
        yield artifact
    finally:
        _remove_artifacts(prefix)


def parse_video_metadata(stdout: str, video_id: str) -> VideoMetadata:
    """
    Extracts title and duration from the info JSON printed by
    ``--print-json``. Falls back to placeholder metadata when nothing
    usable is found; this never fails the request.
    """
    for line in reversed(stdout.splitlines()):
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            info = json.loads(line)
        except ValueError:
            continue
        if not isinstance(info, dict) or "id" not in info:
            continue

        try:
            title = info.get("title") or f"YouTube Video {video_id}"
            duration = int(math.floor(float(info.get("duration") or 0) + 0.5))
        except (TypeError, ValueError, OverflowError) as e:
            logger.warning(f"Could not read video info fields: {e}", extra={'video_id': video_id})
            break
        return VideoMetadata(title=str(title), duration=max(0, duration))

    logger.warning("Could not parse video info JSON", extra={'video_id': video_id})
    return VideoMetadata.placeholder(video_id)


def classify_tool_failure(returncode: int, stderr: str, video_id: str) -> CaptionFetchError:
    """Turns a failed yt-dlp run into the narrowest fetch error"""
    text = stderr.lower()

    if any(marker in text for marker in _UNAVAILABLE_MARKERS):
        return CaptionsUnavailableError(
            f"Captions unavailable (exit code {returncode})", video_id=video_id, stderr=stderr
        )
    if any(marker in text for marker in _TRANSIENT_MARKERS):
        return UpstreamTransientError(
            f"Transient upstream failure (exit code {returncode})", video_id=video_id, stderr=stderr
        )
    return FetchExecutionError(
        f"Caption tool failed (exit code {returncode})", video_id=video_id, stderr=stderr
    )


class CaptionFetcher:
    """
    Runs the external caption tool.

    Args:
        command: Tool invocation, shell-split (e.g. ``"yt-dlp"`` or
            ``"python -m yt_dlp"``)
        language: Caption track to request
        timeout: Hard wall-clock limit for the tool, in seconds
        temp_dir: Directory for the ephemeral caption files
        kill_grace: Seconds between SIGTERM and SIGKILL on timeout
    """

    def __init__(
        self,
        command: str = "yt-dlp",
        language: str = "en",
        timeout: float = 30,
        temp_dir: str = "/tmp",
        kill_grace: float = SIGTERM_GRACE_PERIOD,
    ):
        self.command = shlex.split(command)
        self.language = language
        self.timeout = timeout
        self.temp_dir = temp_dir
        self.kill_grace = kill_grace

    @classmethod
    def from_settings(cls, fetch_settings: dict) -> "CaptionFetcher":
        return cls(
            command=fetch_settings['command'],
            language=fetch_settings['language'],
            timeout=fetch_settings['timeout_seconds'],
            temp_dir=fetch_settings['temp_dir'],
            kill_grace=fetch_settings.get('kill_grace_seconds', SIGTERM_GRACE_PERIOD),
        )

    def build_command(self, video_id: str, output_template: str) -> List[str]:
        return [
            *self.command,
            "--write-auto-sub",
            "--write-sub",
            "--sub-lang", self.language,
            "--skip-download",
            "--sub-format", CAPTION_FORMAT,
            "--output", output_template,
            "--print-json",
            WATCH_URL.format(video_id=video_id),
        ]

    async def fetch(self, video_id: str) -> FetchedCaptions:
        """
        Downloads the caption track of ``video_id``.

        Raises:
            InvalidVideoIdError: malformed ID (callers validate first)
            FetchTimeoutError: tool exceeded the timeout and was killed
            CaptionsUnavailableError: tool reported no captions / unavailable video
            NoCaptionsError: tool wrote no caption file
            UpstreamTransientError: network or throttling failure
            FetchExecutionError: tool missing, unreadable output, unknown failure
        """
        validate_video_id(video_id)

        with caption_artifact(self.temp_dir, self.language) as artifact:
            cmd = self.build_command(video_id, artifact.output_template)
            logger.info(f"Fetching captions ({self.language})", extra={'video_id': video_id})

            try:
                result = await run_subprocess_with_timeout(cmd, self.timeout, self.kill_grace)
            except SubprocessTimeoutError as e:
                raise FetchTimeoutError(self.timeout, video_id=video_id) from e
            except OSError as e:
                raise FetchExecutionError(f"Could not start caption tool: {e}", video_id=video_id) from e

            if result.returncode != 0 and not artifact.path.exists():
                raise classify_tool_failure(result.returncode, result.stderr, video_id)

            metadata = parse_video_metadata(result.stdout, video_id)

            try:
                content = await asyncio.to_thread(artifact.path.read_text, encoding="utf-8")
            except FileNotFoundError as e:
                raise NoCaptionsError(
                    f"No {self.language} caption file was written", video_id=video_id, stderr=result.stderr
                ) from e
            except (OSError, UnicodeDecodeError) as e:
                raise FetchExecutionError(f"Could not read caption file: {e}", video_id=video_id) from e

        return FetchedCaptions(video_id=video_id, content=content, metadata=metadata)
