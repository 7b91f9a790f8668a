"""
User-facing notifications for finished background tasks.
"""

import logging
from typing import List, Optional, Protocol, Tuple, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    async def notify(self, title: str, message: str) -> None: ...


class LoggingNotifier:
    """Writes notifications to the log."""

    def __init__(self, logger_name: str = "bookmark_sift.notifications"):
        self.logger = logging.getLogger(logger_name)

    async def notify(self, title: str, message: str) -> None:
        self.logger.info(f"{title}: {message}")


class RecordingNotifier:
    """Keeps notifications in memory; used by the CLI to print summaries."""

    def __init__(self):
        self.notifications: List[Tuple[str, str]] = []

    async def notify(self, title: str, message: str) -> None:
        self.notifications.append((title, message))


async def emit_notification(
    notifier: Optional[Notifier], title: str, message: str
) -> None:
    """Send a notification. Failures are logged and never raised."""
    if notifier is None:
        return
    try:
        await notifier.notify(title, message)
    except Exception as e:
        logger.warning(f"Failed to send notification '{title}': {e}")


__all__ = ["Notifier", "LoggingNotifier", "RecordingNotifier", "emit_notification"]
