"""
Long-Running Task Coordinator

Runs batch workloads (dead-link scanning, AI categorization) as background
tasks that:

- refuse to start while a run is already in progress
- persist their full state after every batch so pollers see progress and a
  restarted process can report the last flushed state
- can be cancelled at every batch boundary, both in-process and through a
  persisted ``cancellation_requested`` bit
- tolerate per-batch failures and never stay ``running`` after a crash

Each run carries a ``run_id`` token in its persisted state. Progress writes
only land while the persisted state still belongs to the same run and is
still ``running``, so a concurrent cancel (or a newer run) always wins.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from ..config.settings import SettingsManager
from ..utils.error_handler import TaskError
from ..utils.timeutils import now_ms
from .bookmark_store import BookmarkStore
from .data_models import Bookmark
from .link_checker import LinkChecker
from .notifications import Notifier, emit_notification
from .reachability_cache import ReachabilityCache, filter_bookmarks_to_check
from .state_store import StateStore
from .task_state import DEAD_LINK_CHECK_KEY, DeadLinkCheckState, TaskState, TaskStatus

S = TypeVar("S", bound=TaskState)

DEAD_LINK_BATCH_SIZE = 10


class StartRefused(TaskError):
    """A task declined to start; reported to callers as ``started=False``."""

    pass


@dataclass
class StartResult:
    """Acknowledgment returned by :meth:`BackgroundTask.start`."""

    started: bool
    message: Optional[str] = None
    skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"started": self.started}
        if self.message:
            data["message"] = self.message
        if self.started:
            data["skipped"] = self.skipped
        return data


@dataclass
class PreparedRun(Generic[S]):
    """Workload computed by a task before it starts running."""

    state: S
    batches: List[List[Any]]
    skipped: int = 0
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def run_id(self) -> Optional[str]:
        return self.state.run_id


def chunked(items: List[Any], size: int) -> List[List[Any]]:
    """Split a list into consecutive chunks of at most ``size`` items."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    return [items[i : i + size] for i in range(0, len(items), size)]


class BackgroundTask(Generic[S]):
    """
    Base class for cancellable, progress-persisting background tasks.

    Subclasses provide the workload (:meth:`_prepare`), the per-batch step
    (:meth:`_process_batch`) and the completion message; optionally a
    follow-up phase (:meth:`_run_extra_phases`) and cleanup.
    """

    state_key: str = ""
    state_class: Type[S]
    task_name: str = "Task"
    notification_title: str = "Sift"

    def __init__(self, state_store: StateStore, notifier: Optional[Notifier] = None):
        self.state_store = state_store
        self.notifier = notifier
        self.logger = logging.getLogger(self.__class__.__module__)

        self._start_lock = asyncio.Lock()
        self._state_lock = asyncio.Lock()
        self._cancel_requested = False
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    async def get_status(self) -> S:
        """Current persisted state, or the idle default if none was saved."""
        return self.state_class.from_dict(await self.state_store.get(self.state_key))

    async def _save_state(self, state: S) -> None:
        await self.state_store.set(self.state_key, state.to_dict())

    def _owns(self, current: TaskState, run: PreparedRun) -> bool:
        return (
            current.run_id == run.run_id
            and current.is_running
            and not current.cancellation_requested
        )

    async def _save_progress(self, run: PreparedRun) -> bool:
        """
        Persist the run's state if it still owns the state slot.

        Returns:
            False when the run was cancelled, cleared or superseded; the
            caller must stop
        """
        async with self._state_lock:
            current = await self.get_status()
            if not self._owns(current, run):
                return False
            await self._save_state(run.state)
            return True

    async def _is_cancelled(self, run: PreparedRun) -> bool:
        if self._cancel_requested:
            return True
        current = await self.get_status()
        return not self._owns(current, run)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def start(self, **options: Any) -> StartResult:
        """
        Start a run unless one is already in progress.

        Returns immediately after the initial ``running`` state is persisted;
        the batch loop continues in the background.

        Returns:
            StartResult with ``started`` and, for refusals, a message
        """
        async with self._start_lock:
            current = await self.get_status()
            if current.is_running:
                self.logger.info(f"{self.task_name} already in progress")
                return StartResult(
                    started=False, message=f"{self.task_name} already in progress"
                )

            self._cancel_requested = False

            try:
                run = await self._prepare(**options)
            except StartRefused as e:
                self.logger.info(f"{self.task_name} not started: {e}")
                return StartResult(started=False, message=str(e))

            run.state.status = TaskStatus.RUNNING
            run.state.started_at = now_ms()
            run.state.completed_at = None
            run.state.error = None
            run.state.cancellation_requested = False
            run.state.run_id = uuid.uuid4().hex

            async with self._state_lock:
                await self._save_state(run.state)

            self.logger.info(
                f"{self.task_name} started: {len(run.batches)} batches, "
                f"{run.skipped} skipped"
            )
            self._task = asyncio.create_task(self._run_guarded(run))
            return StartResult(started=True, skipped=run.skipped)

    async def cancel(self) -> Dict[str, bool]:
        """
        Request cancellation.

        A running state is flipped to ``cancelled`` right away so pollers see
        it before the loop reaches its next cancellation point.
        """
        self._cancel_requested = True
        async with self._state_lock:
            state = await self.get_status()
            if state.is_running:
                state.status = TaskStatus.CANCELLED
                state.completed_at = now_ms()
                state.cancellation_requested = True
                await self._save_state(state)
                self.logger.info(f"{self.task_name} cancelled")
        return {"success": True}

    async def clear_results(self) -> Dict[str, bool]:
        """Reset the persisted state to the idle default."""
        async with self._state_lock:
            await self._save_state(self.state_class())
        return {"success": True}

    async def wait(self) -> None:
        """Wait for the in-process batch loop, if any, to finish."""
        if self._task is not None:
            await self._task

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Batch loop
    # ------------------------------------------------------------------

    async def _run_guarded(self, run: PreparedRun) -> None:
        try:
            await self._run(run)
        except Exception as e:
            self.logger.error(f"{self.task_name} failed: {e}", exc_info=True)
            async with self._state_lock:
                current = await self.get_status()
                if current.run_id == run.run_id and current.is_running:
                    current.status = TaskStatus.COMPLETED
                    current.error = str(e) or e.__class__.__name__
                    current.completed_at = now_ms()
                    await self._save_state(current)
        finally:
            try:
                await self._cleanup(run)
            except Exception as e:
                self.logger.warning(f"{self.task_name} cleanup failed: {e}")

    async def _run(self, run: PreparedRun) -> None:
        total_batches = len(run.batches)

        for index, batch in enumerate(run.batches):
            if await self._is_cancelled(run):
                self.logger.info(f"{self.task_name} stopped before batch {index + 1}")
                return

            try:
                await self._process_batch(run, batch, index)
            except Exception as e:
                self.logger.error(
                    f"{self.task_name}: batch {index + 1}/{total_batches} failed: {e}",
                    exc_info=True,
                )

            if not await self._save_progress(run):
                self.logger.info(f"{self.task_name} stopped after batch {index + 1}")
                return

            self.logger.debug(f"{self.task_name}: batch {index + 1}/{total_batches} done")

        if not await self._run_extra_phases(run):
            return

        if not await self._complete(run):
            return

        await emit_notification(
            self.notifier, self.notification_title, self._completion_message(run.state)
        )

    async def _complete(self, run: PreparedRun) -> bool:
        async with self._state_lock:
            current = await self.get_status()
            if self._cancel_requested or not self._owns(current, run):
                return False
            self._finalize(run.state)
            run.state.status = TaskStatus.COMPLETED
            run.state.completed_at = now_ms()
            await self._save_state(run.state)
        self.logger.info(f"{self.task_name} completed")
        return True

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    async def _prepare(self, **options: Any) -> PreparedRun:
        raise NotImplementedError

    async def _process_batch(self, run: PreparedRun, batch: List[Any], index: int) -> None:
        raise NotImplementedError

    async def _run_extra_phases(self, run: PreparedRun) -> bool:
        return True

    def _finalize(self, state: S) -> None:
        pass

    def _completion_message(self, state: S) -> str:
        return f"{self.task_name} complete."

    async def _cleanup(self, run: PreparedRun) -> None:
        pass


class DeadLinkCheckTask(BackgroundTask[DeadLinkCheckState]):
    """Background dead-link scan over every bookmark, reusing fresh cache entries."""

    state_key = DEAD_LINK_CHECK_KEY
    state_class = DeadLinkCheckState
    task_name = "Dead link check"
    notification_title = "Sift - Dead Link Check Complete"

    def __init__(
        self,
        state_store: StateStore,
        bookmark_store: BookmarkStore,
        settings_manager: SettingsManager,
        cache: ReachabilityCache,
        link_checker: LinkChecker,
        notifier: Optional[Notifier] = None,
        batch_size: int = DEAD_LINK_BATCH_SIZE,
    ):
        super().__init__(state_store, notifier)
        self.bookmark_store = bookmark_store
        self.settings_manager = settings_manager
        self.cache = cache
        self.link_checker = link_checker
        self.batch_size = batch_size

    async def _prepare(self, **options: Any) -> PreparedRun:
        bookmarks = await self.bookmark_store.list_all()
        settings = await self.settings_manager.get_settings()
        cache = await self.cache.load()

        filtered = filter_bookmarks_to_check(
            bookmarks, cache, settings.dead_link_refresh_days
        )
        to_check = filtered.bookmarks_to_check
        skipped = len(bookmarks) - len(to_check)

        state = DeadLinkCheckState(
            total=len(to_check),
            dead_links=list(filtered.cached_dead_links),
            skipped=skipped,
            cached_dead_count=len(filtered.cached_dead_links),
        )
        self.logger.info(
            f"{len(to_check)} of {len(bookmarks)} bookmarks need checking "
            f"({len(filtered.cached_dead_links)} cached dead)"
        )
        return PreparedRun(
            state=state, batches=chunked(to_check, self.batch_size), skipped=skipped
        )

    async def _process_batch(
        self, run: PreparedRun, batch: List[Bookmark], index: int
    ) -> None:
        state: DeadLinkCheckState = run.state
        try:
            results = await self.link_checker.check_links([b.url for b in batch])
            await self.cache.record_results(results)
            for bookmark, result in zip(batch, results):
                if result.is_dead:
                    state.dead_links.append(bookmark)
        finally:
            state.checked = min(state.checked + len(batch), state.total)

    def _finalize(self, state: DeadLinkCheckState) -> None:
        state.checked = state.total

    def _completion_message(self, state: DeadLinkCheckState) -> str:
        if not state.dead_links:
            return f"All {state.total} checked bookmarks are working!"

        count = len(state.dead_links)
        plural = "" if count == 1 else "s"
        return (
            f"Found {count} dead link{plural} ({state.new_dead_count} new, "
            f"{state.cached_dead_count} cached) out of "
            f"{state.total + state.skipped} bookmarks."
        )


__all__ = [
    "BackgroundTask",
    "DeadLinkCheckTask",
    "PreparedRun",
    "StartRefused",
    "StartResult",
    "chunked",
    "DEAD_LINK_BATCH_SIZE",
]
