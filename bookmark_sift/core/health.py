"""
Health Aggregator

Combines duplicate, dead-link, staleness, uncategorized, domain concentration
and folder sparsity signals into a single score between 1 and 100.
"""

import logging
import math
from collections import Counter
from typing import Collection, List, Optional

from ..config.settings import SettingsManager
from .bookmark_store import ROOT_FOLDER_IDS, BookmarkStore
from .data_models import Bookmark, DomainCount, HealthMetrics
from .duplicate_detector import count_duplicates, find_duplicates
from .history import HistoryProvider
from .link_checker import LinkChecker
from .reachability_cache import ReachabilityCache
from .staleness import get_stale_bookmarks
from .url_normalizer import extract_domain

logger = logging.getLogger(__name__)

# Maximum points each signal can take off the score
MAX_DUPLICATE_DEDUCTION = 20
MAX_DEAD_LINK_DEDUCTION = 25
MAX_STALE_DEDUCTION = 15
MAX_UNCATEGORIZED_DEDUCTION = 15
MAX_DOMAIN_DEDUCTION = 10
MAX_FOLDER_DEDUCTION = 15

DOMAIN_CONCENTRATION_THRESHOLD = 30
BOOKMARKS_PER_FOLDER_THRESHOLD = 50


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return int(math.floor(value + 0.5))


def calculate_domain_distribution(bookmarks: List[Bookmark]) -> List[DomainCount]:
    """
    Count bookmarks per domain.

    Returns:
        Domains sorted by descending count; percentages are rounded shares
        of all bookmarks
    """
    total = len(bookmarks)
    if total == 0:
        return []

    counts = Counter(extract_domain(b.url) for b in bookmarks)
    return [
        DomainCount(
            domain=domain,
            count=count,
            percentage=round_half_up(count / total * 100),
        )
        for domain, count in counts.most_common()
    ]


def count_uncategorized(
    bookmarks: List[Bookmark], root_ids: Collection[str] = ROOT_FOLDER_IDS
) -> int:
    """Number of bookmarks sitting directly in a root container."""
    return sum(1 for b in bookmarks if b.parent_id in root_ids)


def calculate_health_score(
    total_bookmarks: int,
    total_folders: int,
    duplicate_count: int,
    dead_link_count: int,
    stale_count: int,
    uncategorized_count: int,
    domain_distribution: Optional[List[DomainCount]] = None,
) -> int:
    """
    Compute the collection health score.

    Each deduction is capped independently; the result is clamped to
    [1, 100]. Zero bookmarks or folders never divide by zero.

    Args:
        total_bookmarks: Number of bookmarks
        total_folders: Number of folders
        duplicate_count: Bookmarks removable by deduplication
        dead_link_count: Dead links found
        stale_count: Stale bookmarks found
        uncategorized_count: Bookmarks in a root container
        domain_distribution: Output of :func:`calculate_domain_distribution`

    Returns:
        Score between 1 and 100
    """
    denominator = max(total_bookmarks, 1)
    score = 100

    score -= min(
        MAX_DUPLICATE_DEDUCTION, round_half_up(duplicate_count / denominator * 100)
    )
    score -= min(
        MAX_DEAD_LINK_DEDUCTION, round_half_up(dead_link_count / denominator * 100)
    )
    score -= min(MAX_STALE_DEDUCTION, round_half_up(stale_count / denominator * 50))
    score -= min(
        MAX_UNCATEGORIZED_DEDUCTION,
        round_half_up(uncategorized_count / denominator * 30),
    )

    if domain_distribution:
        top_percentage = domain_distribution[0].percentage
        if top_percentage > DOMAIN_CONCENTRATION_THRESHOLD:
            score -= min(
                MAX_DOMAIN_DEDUCTION,
                round_half_up((top_percentage - DOMAIN_CONCENTRATION_THRESHOLD) / 7),
            )

    ratio = total_bookmarks / max(total_folders, 1)
    if ratio > BOOKMARKS_PER_FOLDER_THRESHOLD:
        score -= min(
            MAX_FOLDER_DEDUCTION,
            round_half_up((ratio - BOOKMARKS_PER_FOLDER_THRESHOLD) / 10),
        )

    return max(1, min(100, score))


class HealthAggregator:
    """Builds :class:`HealthMetrics` snapshots from the collaborators."""

    def __init__(
        self,
        bookmark_store: BookmarkStore,
        history: HistoryProvider,
        settings_manager: SettingsManager,
        cache: ReachabilityCache,
        link_checker: Optional[LinkChecker] = None,
    ):
        self.bookmark_store = bookmark_store
        self.history = history
        self.settings_manager = settings_manager
        self.cache = cache
        self.link_checker = link_checker or LinkChecker()

    async def _find_dead_links(
        self, bookmarks: List[Bookmark], use_live_check: bool
    ) -> List[Bookmark]:
        if use_live_check:
            return await self.link_checker.find_dead_links(bookmarks)
        dead_urls = await self.cache.dead_urls()
        return [b for b in bookmarks if b.url in dead_urls]

    async def calculate_health_metrics(
        self, use_live_dead_link_check: bool = False
    ) -> HealthMetrics:
        """
        Take a health snapshot of the whole collection.

        Args:
            use_live_dead_link_check: Check every URL over the network instead
                of reading cached ``dead`` verdicts

        Returns:
            HealthMetrics snapshot
        """
        bookmarks = await self.bookmark_store.list_all()
        folders = await self.bookmark_store.list_folders()
        settings = await self.settings_manager.get_settings()

        duplicates = find_duplicates(bookmarks)
        stale = await get_stale_bookmarks(
            bookmarks, settings.stale_threshold_days, self.history
        )
        dead_links = await self._find_dead_links(bookmarks, use_live_dead_link_check)
        uncategorized = count_uncategorized(bookmarks)
        distribution = calculate_domain_distribution(bookmarks)

        score = calculate_health_score(
            total_bookmarks=len(bookmarks),
            total_folders=len(folders),
            duplicate_count=count_duplicates(duplicates),
            dead_link_count=len(dead_links),
            stale_count=len(stale),
            uncategorized_count=uncategorized,
            domain_distribution=distribution,
        )

        metrics = HealthMetrics(
            total_bookmarks=len(bookmarks),
            total_folders=len(folders),
            duplicates=duplicates,
            dead_links=dead_links,
            stale_bookmarks=stale,
            uncategorized_count=uncategorized,
            domain_distribution=distribution,
            health_score=score,
        )
        logger.info(f"Health snapshot: {metrics}")
        return metrics


__all__ = [
    "HealthAggregator",
    "calculate_domain_distribution",
    "calculate_health_score",
    "count_uncategorized",
    "round_half_up",
]
