"""
Reachability Cache

Persisted map from raw URL to the last reachability verdict, plus the
freshness-aware filter that decides which bookmarks need a live check.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set

from ..utils.timeutils import DAY_MS, now_ms
from .data_models import Bookmark, LinkCheckResult, LinkStatus, ReachabilityCacheEntry
from .state_store import StateStore

CACHE_KEY = "dead_link_cache"

logger = logging.getLogger(__name__)


@dataclass
class FilterResult:
    """Outcome of :func:`filter_bookmarks_to_check`."""

    bookmarks_to_check: List[Bookmark] = field(default_factory=list)
    cached_dead_links: List[Bookmark] = field(default_factory=list)


def is_fresh(
    entry: ReachabilityCacheEntry, refresh_days: int, now: Optional[int] = None
) -> bool:
    """True when the entry is younger than the refresh window."""
    current = now if now is not None else now_ms()
    return current - entry.last_checked < refresh_days * DAY_MS


def filter_bookmarks_to_check(
    bookmarks: List[Bookmark],
    cache: Mapping[str, ReachabilityCacheEntry],
    refresh_days: int,
    now: Optional[int] = None,
) -> FilterResult:
    """
    Split bookmarks into those needing a live check and cached dead links.

    Each bookmark is looked up by its raw URL:

    - no entry, or an entry at least ``refresh_days`` old: check it
    - fresh ``dead`` entry: report as a cached dead link without checking
    - any other fresh entry: skip entirely

    The cache is never modified.

    Args:
        bookmarks: Candidate bookmarks
        cache: Raw URL to cache entry
        refresh_days: Freshness window in days
        now: Reference time in epoch ms (defaults to the current time)

    Returns:
        FilterResult with both lists in input order
    """
    current = now if now is not None else now_ms()
    result = FilterResult()

    for bookmark in bookmarks:
        entry = cache.get(bookmark.url)
        if entry is None or not is_fresh(entry, refresh_days, current):
            result.bookmarks_to_check.append(bookmark)
        elif entry.status == LinkStatus.DEAD:
            result.cached_dead_links.append(bookmark)

    return result


class ReachabilityCache:
    """
    Repository for the reachability cache in the state store.

    Entries are stored as ``{url: {"lastChecked": ms, "status": str}}`` and
    are always replaced wholesale.
    """

    def __init__(self, state_store: StateStore, key: str = CACHE_KEY):
        self._store = state_store
        self._key = key

    async def load(self) -> Dict[str, ReachabilityCacheEntry]:
        raw = await self._store.get(self._key) or {}
        cache = {}
        for url, data in raw.items():
            try:
                cache[url] = ReachabilityCacheEntry.from_dict(data)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Dropping unreadable cache entry for {url}: {e}")
        return cache

    async def save(self, cache: Mapping[str, ReachabilityCacheEntry]) -> None:
        await self._store.set(
            self._key, {url: entry.to_dict() for url, entry in cache.items()}
        )

    async def record_results(
        self, results: Iterable[LinkCheckResult], checked_at: Optional[int] = None
    ) -> Dict[str, ReachabilityCacheEntry]:
        """
        Store fresh verdicts for a set of check results.

        Args:
            results: Results from the reachability scanner
            checked_at: Check time in epoch ms (defaults to the current time)

        Returns:
            The updated cache
        """
        timestamp = checked_at if checked_at is not None else now_ms()
        cache = await self.load()
        for result in results:
            cache[result.url] = ReachabilityCacheEntry(
                last_checked=timestamp, status=result.status
            )
        await self.save(cache)
        return cache

    async def dead_urls(self) -> Set[str]:
        """Raw URLs whose cached verdict is ``dead``, regardless of age."""
        cache = await self.load()
        return {url for url, entry in cache.items() if entry.status == LinkStatus.DEAD}

    async def clear(self) -> None:
        await self._store.remove(self._key)
        logger.info("Reachability cache cleared")


__all__ = [
    "CACHE_KEY",
    "FilterResult",
    "ReachabilityCache",
    "filter_bookmarks_to_check",
    "is_fresh",
]
