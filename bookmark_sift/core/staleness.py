"""
Staleness Evaluation

Classifies bookmarks as stale from their last visit time.
"""

import logging
from typing import List, Optional

from ..utils.timeutils import DAY_MS, now_ms
from .data_models import Bookmark
from .history import HistoryProvider, get_last_visits

logger = logging.getLogger(__name__)


def stale_cutoff(threshold_days: int, now: Optional[int] = None) -> int:
    """Visits before this timestamp (epoch ms) are too old."""
    current = now if now is not None else now_ms()
    return current - threshold_days * DAY_MS


async def get_stale_bookmarks(
    bookmarks: List[Bookmark],
    threshold_days: int,
    history: HistoryProvider,
    now: Optional[int] = None,
) -> List[Bookmark]:
    """
    Find bookmarks that were never visited or not visited recently.

    Args:
        bookmarks: Bookmarks to classify
        threshold_days: Age in days after which a visit no longer counts
        history: Visit history collaborator
        now: Reference time in epoch ms (defaults to the current time)

    Returns:
        Stale bookmarks in input order, each annotated with ``last_visited``
    """
    cutoff = stale_cutoff(threshold_days, now)
    last_visits = await get_last_visits(history, [b.url for b in bookmarks])
    stale = []

    for bookmark in bookmarks:
        last_visited = last_visits[bookmark.url]
        if not last_visited or last_visited < cutoff:
            stale.append(bookmark.with_last_visited(last_visited))

    logger.debug(
        f"{len(stale)} of {len(bookmarks)} bookmarks not visited in "
        f"{threshold_days} days"
    )
    return stale


async def enrich_bookmarks_with_visits(
    bookmarks: List[Bookmark], history: HistoryProvider
) -> List[Bookmark]:
    """Copy every bookmark with its resolved ``last_visited``."""
    last_visits = await get_last_visits(history, [b.url for b in bookmarks])
    return [b.with_last_visited(last_visits[b.url]) for b in bookmarks]
