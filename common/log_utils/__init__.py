"""
Logging utilities shared by the gateway
"""
from .structured import (
    setup_structured_logging,
    get_logger,
    JSONFormatter,
    ConsoleFormatter,
    set_correlation_id,
    get_correlation_id,
    reset_correlation_id,
)

__all__ = [
    'setup_structured_logging',
    'get_logger',
    'JSONFormatter',
    'ConsoleFormatter',
    'set_correlation_id',
    'get_correlation_id',
    'reset_correlation_id',
]
