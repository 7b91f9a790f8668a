"""
Core bookmark cleanup modules.

This package contains URL normalization, duplicate detection, staleness,
reachability checking and caching, health scoring, the background task
coordinator and AI categorization.
"""

from .data_models import Bookmark, BookmarkFolder, DuplicateGroup, HealthMetrics
from .duplicate_detector import find_duplicates, select_bookmark_to_keep
from .url_normalizer import extract_domain, normalize_url

__all__ = [
    "Bookmark",
    "BookmarkFolder",
    "DuplicateGroup",
    "HealthMetrics",
    "find_duplicates",
    "select_bookmark_to_keep",
    "extract_domain",
    "normalize_url",
]
