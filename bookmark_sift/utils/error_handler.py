"""
Unified Exception Hierarchy for Bookmark Sift

All custom exceptions for the project are defined here. Per-item failures
(one URL, one AI batch) are recovered where they happen; these exceptions
describe everything that has to travel further than that.
"""

from typing import Iterable, Optional


# ============================================================================
# Base
# ============================================================================


class SiftError(Exception):
    """Base exception for all bookmark sift errors."""

    pass


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(SiftError):
    """Configuration-related errors."""

    pass


# ============================================================================
# Storage Errors
# ============================================================================


class StateStoreError(SiftError):
    """Persisted key-value state could not be read or written."""

    pass


class BookmarkStoreError(SiftError):
    """Bookmark tree errors."""

    pass


class BookmarkNotFoundError(BookmarkStoreError):
    """A bookmark or folder id does not exist in the tree."""

    def __init__(self, node_id: str):
        super().__init__(f"Bookmark node not found: {node_id}")
        self.node_id = node_id


class HistoryError(SiftError):
    """Visit history could not be read."""

    pass


# ============================================================================
# Network / API Errors
# ============================================================================


class NetworkError(SiftError):
    """Network/HTTP related errors."""

    pass


class APIError(SiftError):
    """Base class for API-related errors."""

    pass


class APIClientError(APIError):
    """API client errors."""

    pass


class RateLimitError(APIClientError):
    """Rate limit exceeded errors."""

    pass


class AuthenticationError(APIClientError):
    """Authentication/authorization errors."""

    pass


class ServiceUnavailableError(APIClientError):
    """Service unavailable errors."""

    pass


# ============================================================================
# AI Processing Errors
# ============================================================================


class AIProcessingError(SiftError):
    """AI processing errors."""

    pass


class AIResponseError(AIProcessingError):
    """The AI provider returned output that does not match the expected shape."""

    pass


# ============================================================================
# Task Errors
# ============================================================================


class TaskError(SiftError):
    """Background task errors."""

    pass


def mask_secrets(message: str, secrets: Iterable[Optional[str]]) -> str:
    """
    Replace any secret value appearing in a message with a masked form.

    Args:
        message: Message that may contain secrets
        secrets: Secret values (empty/None entries are ignored)

    Returns:
        Message safe for logs and error reports
    """
    for secret in secrets:
        if not secret or len(secret) < 8:
            continue
        masked = f"{secret[:4]}...{secret[-4:]}"
        message = message.replace(secret, masked)
    return message


__all__ = [
    "SiftError",
    "ConfigurationError",
    "StateStoreError",
    "BookmarkStoreError",
    "BookmarkNotFoundError",
    "HistoryError",
    "NetworkError",
    "APIError",
    "APIClientError",
    "RateLimitError",
    "AuthenticationError",
    "ServiceUnavailableError",
    "AIProcessingError",
    "AIResponseError",
    "TaskError",
    "mask_secrets",
]
