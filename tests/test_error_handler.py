"""
Tests for the exception hierarchy and secret masking.
"""

import pytest

from bookmark_sift.utils.error_handler import (
    AuthenticationError,
    BookmarkNotFoundError,
    BookmarkStoreError,
    ConfigurationError,
    RateLimitError,
    SiftError,
    mask_secrets,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("bad"),
            BookmarkNotFoundError("42"),
            RateLimitError("slow down"),
            AuthenticationError("nope"),
        ],
    )
    def test_all_derive_from_sift_error(self, error):
        assert isinstance(error, SiftError)

    def test_not_found_is_store_error(self):
        error = BookmarkNotFoundError("42")

        assert isinstance(error, BookmarkStoreError)
        assert "42" in str(error)


class TestMaskSecrets:
    def test_masks_key(self):
        key = "sk-ant-REDACTED"
        message = mask_secrets(f"Request failed for key {key}", [key])

        assert key not in message
        assert "sk-a...mnop" in message

    def test_ignores_empty_and_short_values(self):
        assert mask_secrets("token abc", [None, "", "abc"]) == "token abc"
