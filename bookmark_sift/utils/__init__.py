"""
Utility modules for Bookmark Sift.

This package contains the exception hierarchy, logging setup and small
time helpers shared by the core modules.
"""

from .error_handler import (
    AIProcessingError,
    AIResponseError,
    APIClientError,
    AuthenticationError,
    BookmarkNotFoundError,
    BookmarkStoreError,
    ConfigurationError,
    RateLimitError,
    ServiceUnavailableError,
    SiftError,
    StateStoreError,
    TaskError,
)
from .logging_setup import setup_logging
from .timeutils import DAY_MS, now_ms

__all__ = [
    "AIProcessingError",
    "AIResponseError",
    "APIClientError",
    "AuthenticationError",
    "BookmarkNotFoundError",
    "BookmarkStoreError",
    "ConfigurationError",
    "RateLimitError",
    "ServiceUnavailableError",
    "SiftError",
    "StateStoreError",
    "TaskError",
    "setup_logging",
    "DAY_MS",
    "now_ms",
]
