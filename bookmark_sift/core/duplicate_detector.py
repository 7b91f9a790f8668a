"""
Duplicate URL Detection Module

Groups bookmarks that point at the same normalized URL and decides which
member of each group survives a cleanup.
"""

import logging
from typing import Dict, List

from .data_models import Bookmark, DuplicateGroup
from .url_normalizer import normalize_url

logger = logging.getLogger(__name__)


def find_duplicates(bookmarks: List[Bookmark]) -> List[DuplicateGroup]:
    """
    Detect duplicate URLs in a bookmark list.

    Groups are computed fresh on every call. Only groups with two or more
    members are returned, ordered by the first occurrence of each
    normalized URL in the input.

    Args:
        bookmarks: List of bookmarks to check

    Returns:
        List of duplicate groups
    """
    url_groups: Dict[str, DuplicateGroup] = {}

    for bookmark in bookmarks:
        normalized = normalize_url(bookmark.url)

        if normalized not in url_groups:
            url_groups[normalized] = DuplicateGroup(normalized_url=normalized)

        url_groups[normalized].add_bookmark(bookmark)

    duplicate_groups = [group for group in url_groups.values() if len(group) > 1]

    logger.debug(
        f"Found {len(duplicate_groups)} duplicate groups among "
        f"{len(bookmarks)} bookmarks"
    )
    return duplicate_groups


def select_bookmark_to_keep(group: DuplicateGroup) -> Bookmark:
    """
    Keep the most recently created bookmark.

    A missing ``date_added`` counts as 0. On a tie the earliest member of
    the group wins.

    Args:
        group: Duplicate group with at least one member

    Returns:
        The surviving bookmark
    """
    if not group.bookmarks:
        raise ValueError(f"Empty duplicate group: {group.normalized_url}")

    best = group.bookmarks[0]
    for current in group.bookmarks[1:]:
        if (current.date_added or 0) > (best.date_added or 0):
            best = current
    return best


def count_duplicates(groups: List[DuplicateGroup]) -> int:
    """Number of bookmarks that deduplication would remove."""
    return sum(len(group.bookmarks) - 1 for group in groups)


def get_removable_bookmarks(group: DuplicateGroup) -> List[Bookmark]:
    """Members of a group other than the survivor."""
    keep = select_bookmark_to_keep(group)
    return [b for b in group.bookmarks if b.id != keep.id]


__all__ = [
    "find_duplicates",
    "select_bookmark_to_keep",
    "count_duplicates",
    "get_removable_bookmarks",
]
