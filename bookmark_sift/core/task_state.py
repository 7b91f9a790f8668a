"""
Persisted state for the background tasks.

Both task states are stored as plain dictionaries in the state store and
read back by merging onto the idle defaults, so a poller always gets a
well-formed state even when nothing was ever written.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .data_models import Bookmark, CategorySuggestion

DEAD_LINK_CHECK_KEY = "dead_link_check_state"
CATEGORIZATION_KEY = "categorization_state"


class TaskStatus(str, Enum):
    """Lifecycle of a background task."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CategorizationPhase(str, Enum):
    ANALYZING = "analyzing"
    CREATING = "creating"


@dataclass
class TaskState:
    """Fields shared by every background task state."""

    status: TaskStatus = TaskStatus.IDLE
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    error: Optional[str] = None
    cancellation_requested: bool = False
    run_id: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.status == TaskStatus.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.CANCELLED)

    def _base_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "error": self.error,
            "cancellationRequested": self.cancellation_requested,
            "runId": self.run_id,
        }

    @staticmethod
    def _base_kwargs(data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            status = TaskStatus(data.get("status", TaskStatus.IDLE.value))
        except ValueError:
            status = TaskStatus.IDLE
        return {
            "status": status,
            "started_at": data.get("startedAt"),
            "completed_at": data.get("completedAt"),
            "error": data.get("error"),
            "cancellation_requested": bool(data.get("cancellationRequested", False)),
            "run_id": data.get("runId"),
        }

    def to_dict(self) -> Dict[str, Any]:
        return self._base_dict()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TaskState":
        return cls(**cls._base_kwargs(data or {}))


@dataclass
class DeadLinkCheckState(TaskState):
    """Progress and results of a dead-link scan."""

    checked: int = 0
    total: int = 0
    dead_links: List[Bookmark] = field(default_factory=list)
    skipped: int = 0
    cached_dead_count: int = 0

    @property
    def new_dead_count(self) -> int:
        return len(self.dead_links) - self.cached_dead_count

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update(
            {
                "checked": self.checked,
                "total": self.total,
                "deadLinks": [b.to_dict() for b in self.dead_links],
                "skipped": self.skipped,
                "cachedDeadCount": self.cached_dead_count,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DeadLinkCheckState":
        data = data or {}
        return cls(
            checked=int(data.get("checked", 0)),
            total=int(data.get("total", 0)),
            dead_links=[Bookmark.from_dict(b) for b in data.get("deadLinks", [])],
            skipped=int(data.get("skipped", 0)),
            cached_dead_count=int(data.get("cachedDeadCount", 0)),
            **cls._base_kwargs(data),
        )


@dataclass
class CategorizationState(TaskState):
    """Progress and results of an AI categorization run."""

    phase: Optional[CategorizationPhase] = None
    current_batch: int = 0
    total_batches: int = 0
    total_bookmarks: int = 0
    categories: List[CategorySuggestion] = field(default_factory=list)
    categories_created: int = 0
    bookmarks_copied: int = 0
    target_folder: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update(
            {
                "phase": self.phase.value if self.phase else None,
                "currentBatch": self.current_batch,
                "totalBatches": self.total_batches,
                "totalBookmarks": self.total_bookmarks,
                "categories": [c.to_dict() for c in self.categories],
                "categoriesCreated": self.categories_created,
                "bookmarksCopied": self.bookmarks_copied,
                "targetFolder": self.target_folder,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CategorizationState":
        data = data or {}
        phase = data.get("phase")
        return cls(
            phase=CategorizationPhase(phase) if phase else None,
            current_batch=int(data.get("currentBatch", 0)),
            total_batches=int(data.get("totalBatches", 0)),
            total_bookmarks=int(data.get("totalBookmarks", 0)),
            categories=[
                CategorySuggestion.from_dict(c) for c in data.get("categories", [])
            ],
            categories_created=int(data.get("categoriesCreated", 0)),
            bookmarks_copied=int(data.get("bookmarksCopied", 0)),
            target_folder=data.get("targetFolder"),
            **cls._base_kwargs(data),
        )


__all__ = [
    "TaskStatus",
    "CategorizationPhase",
    "TaskState",
    "DeadLinkCheckState",
    "CategorizationState",
    "DEAD_LINK_CHECK_KEY",
    "CATEGORIZATION_KEY",
]
