"""
Structured logging with JSON format and correlation IDs
"""
import logging
import json
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Correlation ID of the request being handled (one per asyncio task)
_correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

# Extra attributes copied into the JSON payload when present on the record
_EXTRA_FIELDS = (
    'service',
    'video_id',
    'error_kind',
    'status_code',
    'path',
    'method',
    'duration_ms',
    'key_fingerprint',
    'retry_after',
    'pid',
    'returncode',
)


def set_correlation_id(correlation_id: str) -> Token:
    """Sets the correlation ID for the current context"""
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token: Token) -> None:
    """Restores the correlation ID that was active before ``set_correlation_id``"""
    _correlation_id.reset(token)


def get_correlation_id() -> Optional[str]:
    """Returns the correlation ID of the current context"""
    return _correlation_id.get()


class JSONFormatter(logging.Formatter):
    """
    Structured JSON formatter.

    Adds:
    - ISO 8601 UTC timestamp
    - Correlation ID (when available)
    - Context information (module, function, line)
    - Whitelisted ``extra`` fields
    - Exception traceback (when present)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        cid = get_correlation_id()
        if cid:
            log_data['correlation_id'] = cid

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human readable, colored single-line formatter for ``LOG_FORMAT=text``.
    """

    RESET = '\033[0m'
    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        when = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')

        tags = ""
        cid = get_correlation_id()
        if cid:
            tags += f" [{cid[:8]}]"
        if hasattr(record, 'video_id'):
            tags += f" [video:{record.video_id}]"

        line = f"[{when}]{tags} {color}{record.levelname:8}{self.RESET} {record.name}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


_FILE_MAX_BYTES = 20 * 1024 * 1024
_FILE_BACKUPS = 5


def setup_structured_logging(
    service_name: str,
    log_level: str = "INFO",
    log_dir: str = "./logs",
    enable_console: bool = True,
    enable_file: bool = False,
    json_format: bool = True
):
    """
    Configures the root logger for the service.

    Args:
        service_name: Service name (used for the log file name)
        log_level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating log file
        enable_console: Send logs to stdout
        enable_file: Also write ``<log_dir>/<service_name>.log`` (rotated)
        json_format: JSON lines when True, human readable text otherwise

    Examples:
        >>> setup_structured_logging("transcript-gateway", "INFO")
        >>> get_logger(__name__).info("Service started")
    """
    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.setLevel(logging.DEBUG)

    formatter_class = JSONFormatter if json_format else ConsoleFormatter

    if enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(getattr(logging, log_level.upper(), logging.INFO))
        console.setFormatter(formatter_class())
        root_logger.addHandler(console)

    if enable_file:
        log_path = Path(log_dir)
        try:
            log_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            # File logging is optional, console keeps working
            root_logger.warning(f"Could not create log directory {log_path}: {e}")
        else:
            rotating = RotatingFileHandler(
                log_path / f"{service_name}.log",
                maxBytes=_FILE_MAX_BYTES,
                backupCount=_FILE_BACKUPS,
                encoding='utf-8',
            )
            rotating.setLevel(logging.DEBUG)
            # Files always get JSON lines, even when the console is text
            rotating.setFormatter(JSONFormatter())
            root_logger.addHandler(rotating)

    root_logger.info("Logging configured", extra={'service': service_name})


def get_logger(name: str) -> logging.Logger:
    """
    Returns a configured logger.

    Examples:
        >>> logger = get_logger(__name__)
        >>> logger.info("Fetching captions", extra={'video_id': 'dQw4w9WgXcQ'})
    """
    return logging.getLogger(name)
