"""
AI Categorization Task

Background task that asks the AI collaborator for folder suggestions in
batches of 50 bookmarks, merges suggestions that share a folder name, and
then copies every suggested bookmark into a new folder structure under the
``Sift`` folder. The original bookmarks are left untouched.
"""

from typing import Any, Callable, List, Optional, Protocol, runtime_checkable

from ..config.settings import SettingsManager
from .ai_client import MAX_BOOKMARKS_PER_REQUEST, ClaudeCategorizer
from .bookmark_store import BookmarkStore, create_sift_folder
from .data_models import Bookmark, CategorySuggestion, RenameSuggestion
from .notifications import Notifier
from .state_store import StateStore
from .task_coordinator import BackgroundTask, PreparedRun, StartRefused, chunked
from .task_state import CATEGORIZATION_KEY, CategorizationPhase, CategorizationState


@runtime_checkable
class Categorizer(Protocol):
    """AI collaborator used by the categorization task."""

    async def suggest_categories(self, batch: List[Bookmark]) -> List[CategorySuggestion]: ...

    async def categorize_all(self, bookmarks: List[Bookmark]) -> List[CategorySuggestion]: ...

    async def suggest_renames(self, bookmarks: List[Bookmark]) -> List[RenameSuggestion]: ...

    async def close(self) -> None: ...


CategorizerFactory = Callable[[str], Categorizer]


def merge_category_suggestions(
    merged: List[CategorySuggestion], suggestions: List[CategorySuggestion]
) -> List[CategorySuggestion]:
    """
    Merge suggestions into an accumulated list by exact folder name.

    Folder names are compared as-is (no case or whitespace folding); new
    names are appended in first-seen order.
    """
    by_name = {category.folder_name: category for category in merged}
    for suggestion in suggestions:
        existing = by_name.get(suggestion.folder_name)
        if existing is None:
            existing = CategorySuggestion(folder_name=suggestion.folder_name)
            merged.append(existing)
            by_name[suggestion.folder_name] = existing
        existing.bookmarks.extend(suggestion.bookmarks)
    return merged


class CategorizationTask(BackgroundTask[CategorizationState]):
    """Analyze-then-create categorization run."""

    state_key = CATEGORIZATION_KEY
    state_class = CategorizationState
    task_name = "Categorization"
    notification_title = "Sift - Categorization Complete"

    def __init__(
        self,
        state_store: StateStore,
        bookmark_store: BookmarkStore,
        settings_manager: SettingsManager,
        notifier: Optional[Notifier] = None,
        categorizer_factory: Optional[CategorizerFactory] = None,
        batch_size: int = MAX_BOOKMARKS_PER_REQUEST,
    ):
        super().__init__(state_store, notifier)
        self.bookmark_store = bookmark_store
        self.settings_manager = settings_manager
        self.categorizer_factory = categorizer_factory or ClaudeCategorizer
        self.batch_size = min(batch_size, MAX_BOOKMARKS_PER_REQUEST)

    async def _prepare(self, target_folder: Optional[str] = None, **options: Any) -> PreparedRun:
        api_key = await self.settings_manager.get_api_key()
        if not api_key:
            raise StartRefused(
                "Claude API key not configured. Set it with "
                "'sift-bookmarks settings --set claude_api_key=...'"
            )

        bookmarks = await self.bookmark_store.list_all()
        batches = chunked(bookmarks, self.batch_size)
        state = CategorizationState(
            phase=CategorizationPhase.ANALYZING,
            total_batches=len(batches),
            total_bookmarks=len(bookmarks),
            target_folder=target_folder,
        )
        return PreparedRun(
            state=state,
            batches=batches,
            context={"categorizer": self.categorizer_factory(api_key)},
        )

    async def _process_batch(
        self, run: PreparedRun, batch: List[Bookmark], index: int
    ) -> None:
        state: CategorizationState = run.state
        try:
            suggestions = await run.context["categorizer"].suggest_categories(batch)
            merge_category_suggestions(state.categories, suggestions)
        finally:
            state.current_batch = index + 1

    async def _run_extra_phases(self, run: PreparedRun) -> bool:
        """Create one folder per category and copy its bookmarks into it."""
        state: CategorizationState = run.state
        if not state.categories:
            self.logger.info("No categories suggested; nothing to create")
            return True

        state.phase = CategorizationPhase.CREATING
        if not await self._save_progress(run):
            return False

        root = await create_sift_folder(self.bookmark_store, state.target_folder)
        state.target_folder = root.title
        self.logger.info(
            f"Creating {len(state.categories)} categories under Sift/{root.title}"
        )

        for category in state.categories:
            if await self._is_cancelled(run):
                return False
            try:
                folder = await self.bookmark_store.create_folder(
                    category.folder_name, root.id
                )
            except Exception as e:
                self.logger.error(
                    f"Failed to create folder '{category.folder_name}': {e}"
                )
                continue

            state.categories_created += 1
            if not await self._save_progress(run):
                return False

            for bookmark in category.bookmarks:
                if await self._is_cancelled(run):
                    return False
                try:
                    await self.bookmark_store.create(
                        bookmark.title, bookmark.url, folder.id
                    )
                except Exception as e:
                    self.logger.error(f"Failed to copy bookmark {bookmark.url}: {e}")
                    continue

                state.bookmarks_copied += 1
                if not await self._save_progress(run):
                    return False

        return True

    def _completion_message(self, state: CategorizationState) -> str:
        if not state.categories_created:
            return "No categories were created."
        return (
            f"Created {state.categories_created} categories with "
            f"{state.bookmarks_copied} bookmarks in Sift/{state.target_folder}."
        )

    async def _cleanup(self, run: PreparedRun) -> None:
        categorizer = run.context.get("categorizer")
        if categorizer is not None:
            await categorizer.close()


__all__ = ["CategorizationTask", "Categorizer", "merge_category_suggestions"]
