"""
Pytest configuration and shared fixtures for bookmark sift tests.

This module provides sample bookmarks, in-memory collaborators and the
fake scanner / AI categorizer shared across test modules.
"""

from typing import List

import pytest

from bookmark_sift.config.settings import SettingsManager
from bookmark_sift.core.bookmark_store import BookmarkTree
from bookmark_sift.core.data_models import Bookmark
from bookmark_sift.core.history import InMemoryHistory
from bookmark_sift.core.notifications import RecordingNotifier
from bookmark_sift.core.reachability_cache import ReachabilityCache
from bookmark_sift.core.state_store import MemoryStateStore
from tests.fixtures.fakes import FakeCategorizer, FakeLinkChecker

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def no_env_api_key(monkeypatch):
    """Keep a developer's CLAUDE_API_KEY from leaking into tests."""
    monkeypatch.delenv("CLAUDE_API_KEY", raising=False)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_bookmarks() -> List[Bookmark]:
    """Bookmarks covering duplicates, uncategorized and foldered entries."""
    return [
        Bookmark(
            id="10",
            title="Example",
            url="https://example.com/page",
            parent_id="1",
            date_added=1000,
        ),
        Bookmark(
            id="11",
            title="Example (tracked)",
            url="http://www.example.com/page/?utm_source=newsletter",
            parent_id="20",
            date_added=2000,
        ),
        Bookmark(
            id="12",
            title="Python Docs",
            url="https://docs.python.org/3/",
            parent_id="20",
            date_added=1500,
        ),
        Bookmark(
            id="13",
            title="News",
            url="https://news.ycombinator.com/",
            parent_id="2",
            date_added=1200,
        ),
    ]


@pytest.fixture
def chromium_bookmarks_data() -> dict:
    """Minimal Chromium ``Bookmarks`` document."""
    return {
        "checksum": "0123456789abcdef",
        "roots": {
            "bookmark_bar": {
                "children": [
                    {
                        "date_added": "13345000000000000",
                        "id": "5",
                        "name": "Example",
                        "type": "url",
                        "url": "https://example.com/",
                    },
                    {
                        "children": [
                            {
                                "date_added": "13345000001000000",
                                "id": "7",
                                "name": "Python Docs",
                                "type": "url",
                                "url": "https://docs.python.org/3/",
                            }
                        ],
                        "date_added": "13345000000500000",
                        "id": "6",
                        "name": "Dev",
                        "type": "folder",
                    },
                ],
                "date_added": "13300000000000000",
                "id": "1",
                "name": "Bookmarks bar",
                "type": "folder",
            },
            "other": {
                "children": [
                    {
                        "date_added": "13345000002000000",
                        "guid": "4b1b5a4e-0000-4000-8000-000000000001",
                        "id": "8",
                        "name": "News",
                        "type": "url",
                        "url": "https://news.ycombinator.com/",
                    }
                ],
                "date_added": "13300000000000000",
                "id": "2",
                "name": "Other bookmarks",
                "type": "folder",
            },
            "synced": {
                "children": [],
                "date_added": "13300000000000000",
                "id": "3",
                "name": "Mobile bookmarks",
                "type": "folder",
            },
        },
        "version": 1,
    }


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def state_store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def settings_manager(state_store) -> SettingsManager:
    return SettingsManager(state_store)


@pytest.fixture
def reachability_cache(state_store) -> ReachabilityCache:
    return ReachabilityCache(state_store)


@pytest.fixture
def history() -> InMemoryHistory:
    return InMemoryHistory()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def bookmark_tree(chromium_bookmarks_data) -> BookmarkTree:
    return BookmarkTree.from_chromium_json(chromium_bookmarks_data)


@pytest.fixture
def fake_link_checker() -> FakeLinkChecker:
    return FakeLinkChecker()


@pytest.fixture
def fake_categorizer() -> FakeCategorizer:
    return FakeCategorizer()
