"""
Exception handling utilities
"""
from .handlers import (
    error_json_response,
    setup_exception_handlers,
    ROUTE_NOT_FOUND_MESSAGE,
    INTERNAL_ERROR_MESSAGE,
)

__all__ = [
    'error_json_response',
    'setup_exception_handlers',
    'ROUTE_NOT_FOUND_MESSAGE',
    'INTERNAL_ERROR_MESSAGE',
]
