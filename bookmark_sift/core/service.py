"""
Sift Service

Wires the collaborators together and exposes every cleanup operation as a
coroutine, plus a message dispatcher for callers that speak in
``{"type": ..., ...}`` dictionaries.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic.alias_generators import to_snake

from ..config.settings import SettingsManager
from ..utils.error_handler import BookmarkNotFoundError, ConfigurationError
from .ai_client import MAX_BOOKMARKS_PER_REQUEST, ClaudeCategorizer
from .bookmark_store import BookmarkStore, create_sift_folder, sort_all_folders
from .categorization import CategorizationTask, Categorizer, CategorizerFactory
from .data_models import (
    Bookmark,
    BookmarkFolder,
    CategorySuggestion,
    DuplicateGroup,
    HealthMetrics,
    LinkCheckResult,
    RenameSuggestion,
)
from .duplicate_detector import get_removable_bookmarks
from .health import HealthAggregator
from .history import HistoryProvider
from .link_checker import LinkChecker
from .notifications import LoggingNotifier, Notifier
from .reachability_cache import ReachabilityCache
from .staleness import enrich_bookmarks_with_visits
from .state_store import StateStore
from .task_coordinator import DEAD_LINK_BATCH_SIZE, DeadLinkCheckTask

logger = logging.getLogger(__name__)


def to_jsonable(value: Any) -> Any:
    """Convert results (dataclasses with ``to_dict``, enums, lists) to plain data."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


class SiftService:
    """
    Facade over the bookmark cleanup operations.

    Example:
        >>> service = SiftService(state_store, tree, history)
        >>> result = await service.handle_message({"type": "GET_HEALTH_METRICS"})
    """

    def __init__(
        self,
        state_store: StateStore,
        bookmark_store: BookmarkStore,
        history: HistoryProvider,
        link_checker: Optional[LinkChecker] = None,
        notifier: Optional[Notifier] = None,
        categorizer_factory: Optional[CategorizerFactory] = None,
        dead_link_batch_size: int = DEAD_LINK_BATCH_SIZE,
        categorization_batch_size: int = MAX_BOOKMARKS_PER_REQUEST,
    ):
        self.state_store = state_store
        self.bookmark_store = bookmark_store
        self.history = history
        self.link_checker = link_checker or LinkChecker()
        self.notifier = notifier or LoggingNotifier()
        self.categorizer_factory = categorizer_factory or ClaudeCategorizer

        self.settings_manager = SettingsManager(state_store)
        self.cache = ReachabilityCache(state_store)
        self.health = HealthAggregator(
            bookmark_store,
            history,
            self.settings_manager,
            self.cache,
            self.link_checker,
        )
        self.dead_link_task = DeadLinkCheckTask(
            state_store,
            bookmark_store,
            self.settings_manager,
            self.cache,
            self.link_checker,
            notifier=self.notifier,
            batch_size=dead_link_batch_size,
        )
        self.categorization_task = CategorizationTask(
            state_store,
            bookmark_store,
            self.settings_manager,
            notifier=self.notifier,
            categorizer_factory=self.categorizer_factory,
            batch_size=categorization_batch_size,
        )

        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[Any]]] = {
            "GET_BOOKMARKS": lambda m: self.get_bookmarks(),
            "GET_HEALTH_METRICS": lambda m: self.get_health_metrics(),
            "GET_BOOKMARK_PATHS": lambda m: self.get_bookmark_paths(m["bookmarkIds"]),
            "CHECK_LINKS": lambda m: self.check_links(m["urls"]),
            "CATEGORIZE_BOOKMARKS": lambda m: self.categorize_bookmarks(
                _bookmarks(m)
            ),
            "SUGGEST_RENAMES": lambda m: self.suggest_renames(_bookmarks(m)),
            "REMOVE_DUPLICATES": lambda m: self.remove_duplicates(
                [DuplicateGroup.from_dict(g) for g in m["groups"]]
            ),
            "DELETE_STALE": lambda m: self.delete_bookmarks(_bookmarks(m)),
            "DELETE_DEAD_LINKS": lambda m: self.delete_bookmarks(_bookmarks(m)),
            "SORT_BOOKMARKS": lambda m: self.sort_bookmarks(),
            "CREATE_SIFT_FOLDER": lambda m: self.create_sift_folder(m.get("name")),
            "SEARCH_BOOKMARKS": lambda m: self.search_bookmarks(m["query"]),
            "GET_SETTINGS": lambda m: self.get_settings(),
            "SAVE_SETTINGS": lambda m: self.save_settings(m["settings"]),
            "START_DEAD_LINK_CHECK": lambda m: self.dead_link_task.start(),
            "GET_DEAD_LINK_CHECK_STATUS": lambda m: self.dead_link_task.get_status(),
            "CANCEL_DEAD_LINK_CHECK": lambda m: self.dead_link_task.cancel(),
            "CLEAR_DEAD_LINK_RESULTS": lambda m: self.dead_link_task.clear_results(),
            "START_CATEGORIZATION": lambda m: self.categorization_task.start(
                target_folder=m.get("targetFolder")
            ),
            "GET_CATEGORIZATION_STATUS": lambda m: self.categorization_task.get_status(),
            "CANCEL_CATEGORIZATION": lambda m: self.categorization_task.cancel(),
            "CLEAR_CATEGORIZATION_RESULTS": lambda m: self.categorization_task.clear_results(),
        }

    # ------------------------------------------------------------------
    # Message dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, message: Dict[str, Any]) -> Any:
        """Run the handler for a message; raises on unknown types."""
        message_type = message.get("type")
        handler = self._handlers.get(message_type)
        if handler is None:
            raise ValueError(f"Unknown message type: {message_type}")
        return await handler(message)

    async def handle_message(self, message: Dict[str, Any]) -> Any:
        """
        Dispatch a message and return a JSON-compatible response.

        Handler errors are returned as ``{"error": message}``.
        """
        try:
            return to_jsonable(await self.dispatch(message))
        except Exception as e:
            logger.error(f"Message handler error ({message.get('type')}): {e}")
            return {"error": str(e)}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_bookmarks(self) -> List[Bookmark]:
        """All bookmarks, each annotated with its last visit time."""
        bookmarks = await self.bookmark_store.list_all()
        return await enrich_bookmarks_with_visits(bookmarks, self.history)

    async def get_health_metrics(self) -> HealthMetrics:
        settings = await self.settings_manager.get_settings()
        return await self.health.calculate_health_metrics(settings.auto_check_dead_links)

    async def get_bookmark_paths(self, bookmark_ids: List[str]) -> Dict[str, str]:
        return await self.bookmark_store.get_bookmark_paths(bookmark_ids)

    async def search_bookmarks(self, query: str) -> List[Bookmark]:
        return await self.bookmark_store.search(query)

    async def check_links(self, urls: List[str]) -> List[LinkCheckResult]:
        return await self.link_checker.check_links(urls)

    # ------------------------------------------------------------------
    # AI suggestions
    # ------------------------------------------------------------------

    async def _open_categorizer(self) -> Categorizer:
        api_key = await self.settings_manager.get_api_key()
        if not api_key:
            raise ConfigurationError("Claude API key not configured")
        return self.categorizer_factory(api_key)

    async def categorize_bookmarks(
        self, bookmarks: List[Bookmark]
    ) -> List[CategorySuggestion]:
        categorizer = await self._open_categorizer()
        try:
            return await categorizer.categorize_all(bookmarks)
        finally:
            await categorizer.close()

    async def suggest_renames(self, bookmarks: List[Bookmark]) -> List[RenameSuggestion]:
        categorizer = await self._open_categorizer()
        try:
            return await categorizer.suggest_renames(bookmarks)
        finally:
            await categorizer.close()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _delete(self, bookmark_id: str) -> bool:
        try:
            await self.bookmark_store.delete(bookmark_id)
            return True
        except BookmarkNotFoundError:
            logger.warning(f"Bookmark {bookmark_id} no longer exists, skipping")
            return False

    async def remove_duplicates(self, groups: List[DuplicateGroup]) -> Dict[str, int]:
        """Delete every group member except the survivor."""
        removed = 0
        for group in groups:
            for bookmark in get_removable_bookmarks(group):
                if await self._delete(bookmark.id):
                    removed += 1
        logger.info(f"Removed {removed} duplicate bookmarks")
        return {"removed": removed}

    async def delete_bookmarks(self, bookmarks: List[Bookmark]) -> Dict[str, int]:
        """Delete the given bookmarks (stale or dead links)."""
        deleted = 0
        for bookmark in bookmarks:
            if await self._delete(bookmark.id):
                deleted += 1
        logger.info(f"Deleted {deleted} bookmarks")
        return {"deleted": deleted}

    async def sort_bookmarks(self) -> Dict[str, bool]:
        await sort_all_folders(self.bookmark_store)
        return {"success": True}

    async def create_sift_folder(self, name: Optional[str] = None) -> BookmarkFolder:
        return await create_sift_folder(self.bookmark_store, name)

    async def reorganize_bookmarks(
        self,
        categories: List[CategorySuggestion],
        target_folder_name: Optional[str] = None,
    ) -> Dict[str, int]:
        """Copy categorized bookmarks into new folders under ``Sift`` in one go."""
        sift_folder = await create_sift_folder(self.bookmark_store, target_folder_name)
        created = 0
        for category in categories:
            folder = await self.bookmark_store.create_folder(
                category.folder_name, sift_folder.id
            )
            for bookmark in category.bookmarks:
                await self.bookmark_store.create(bookmark.title, bookmark.url, folder.id)
                created += 1
        return {"created": created}

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self) -> Dict[str, Any]:
        settings = await self.settings_manager.get_settings()
        return settings.to_public_dict()

    async def save_settings(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Save a partial update; accepts snake_case or camelCase keys."""
        normalized = {to_snake(key): value for key, value in partial.items()}
        settings = await self.settings_manager.save_settings(normalized)
        return settings.to_public_dict()


def _bookmarks(message: Dict[str, Any]) -> List[Bookmark]:
    return [Bookmark.from_dict(b) for b in message.get("bookmarks", [])]


__all__ = ["SiftService", "to_jsonable"]
