import tempfile
from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

_VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


class GatewaySettings(BaseSettings):
    """Typed settings, validated on load (fail-fast)."""

    app_name: str = "YouTube Transcript Gateway"
    version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # Shared secret; empty means "not configured"
    api_key: Optional[str] = None

    rate_limit_window_seconds: float = 30
    rate_limit_max_requests: int = 1
    rate_limit_cleanup_interval_seconds: float = 60

    fetch_timeout_seconds: float = 30
    fetch_kill_grace_seconds: float = 2
    ytdlp_command: str = "yt-dlp"
    caption_language: str = "en"
    caption_temp_dir: str = tempfile.gettempdir()
    transient_errors_as_unavailable: bool = False

    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_format: str = "json"
    log_to_file: bool = False

    cors_enabled: bool = True
    cors_origins: str = "*"
    cors_methods: str = "*"
    cors_headers: str = "*"

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        if not (1 <= v <= 65535):
            raise ValueError(f"PORT must be 1-65535, got {v}")
        return v

    @field_validator("rate_limit_window_seconds", "fetch_timeout_seconds",
                     "rate_limit_cleanup_interval_seconds")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"must be > 0, got {v}")
        return v

    @field_validator("fetch_kill_grace_seconds")
    @classmethod
    def grace_not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"must be >= 0, got {v}")
        return v

    @field_validator("rate_limit_max_requests")
    @classmethod
    def at_least_one_request(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"RATE_LIMIT_MAX_REQUESTS must be >= 1, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in _VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {_VALID_LOG_LEVELS}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def log_format_must_be_known(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v_lower

    @field_validator("ytdlp_command", "caption_language")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


def build_settings(core: GatewaySettings) -> Dict[str, Any]:
    """Organizes validated settings by category."""
    return {
        # ===== APPLICATION =====
        'app_name': core.app_name,
        'version': core.version,
        'environment': core.environment,
        'debug': core.debug,
        'host': core.host,
        'port': core.port,

        # ===== AUTHENTICATION =====
        'api_key': core.api_key or None,

        # ===== RATE LIMITING =====
        'rate_limit': {
            'window_seconds': core.rate_limit_window_seconds,
            'max_requests': core.rate_limit_max_requests,
            'cleanup_interval_seconds': core.rate_limit_cleanup_interval_seconds,
        },

        # ===== CAPTION FETCH =====
        'fetch': {
            'timeout_seconds': core.fetch_timeout_seconds,
            'kill_grace_seconds': core.fetch_kill_grace_seconds,
            'command': core.ytdlp_command,
            'language': core.caption_language,
            'temp_dir': core.caption_temp_dir,
            'transient_errors_as_unavailable': core.transient_errors_as_unavailable,
        },

        # ===== LOGGING =====
        'log_level': core.log_level,
        'log_format': core.log_format,
        'log_dir': core.log_dir,
        'log_to_file': core.log_to_file,

        # ===== CORS =====
        'cors': {
            'enabled': core.cors_enabled,
            'origins': _split_csv(core.cors_origins),
            'methods': _split_csv(core.cors_methods),
            'headers': _split_csv(core.cors_headers),
        },
    }


@lru_cache(maxsize=1)
def get_settings() -> Dict[str, Any]:
    """
    Returns all service settings from environment variables.
    Result is cached (singleton); env changes after first call are ignored.
    Raises pydantic.ValidationError on bad env vars.
    """
    return build_settings(GatewaySettings())


def validate_settings(settings: Optional[Dict[str, Any]] = None) -> bool:
    """Validates required settings"""
    settings = settings or get_settings()

    required_fields = ['app_name', 'port', 'rate_limit', 'fetch']
    for field in required_fields:
        if not settings.get(field):
            raise ValueError(f"Missing required setting: {field}")

    return True
