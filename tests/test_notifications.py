"""
Tests for task completion notifications.
"""

import logging

import pytest

from bookmark_sift.core.notifications import (
    LoggingNotifier,
    Notifier,
    RecordingNotifier,
    emit_notification,
)


class BrokenNotifier:
    async def notify(self, title, message):
        raise RuntimeError("notification service down")


class TestEmitNotification:
    """Tests for emit_notification."""

    @pytest.mark.asyncio
    async def test_delivers(self, notifier):
        await emit_notification(notifier, "Title", "Body")
        assert notifier.notifications == [("Title", "Body")]

    @pytest.mark.asyncio
    async def test_failures_are_swallowed_and_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            await emit_notification(BrokenNotifier(), "Title", "Body")
        assert "notification service down" in caplog.text

    @pytest.mark.asyncio
    async def test_no_notifier(self):
        await emit_notification(None, "Title", "Body")

    @pytest.mark.asyncio
    async def test_logging_notifier(self, caplog):
        with caplog.at_level(logging.INFO, logger="bookmark_sift.notifications"):
            await LoggingNotifier().notify("Sift", "Done")
        assert "Sift: Done" in caplog.text

    def test_protocol(self):
        assert isinstance(RecordingNotifier(), Notifier)
        assert isinstance(LoggingNotifier(), Notifier)
