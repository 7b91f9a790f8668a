"""
Data models for Bookmark Sift.

This module defines the internal data structures used to represent
bookmarks, duplicate groups, reachability results and health snapshots
throughout the cleanup pipeline.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class Bookmark:
    """
    A bookmark snapshot read from the host bookmark store.

    The core never mutates bookmarks owned by the store; derived data such
    as ``last_visited`` is attached to copies.
    """

    id: str
    title: str = ""
    url: str = ""
    parent_id: Optional[str] = None
    date_added: Optional[int] = None
    last_visited: Optional[int] = None

    def with_last_visited(self, last_visited: Optional[int]) -> "Bookmark":
        """Return a copy annotated with the resolved last visit time."""
        return replace(self, last_visited=last_visited)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert bookmark to dictionary for persistence.

        Returns:
            Dictionary using the host store's key names
        """
        data: Dict[str, Any] = {"id": self.id, "title": self.title, "url": self.url}
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        if self.date_added is not None:
            data["dateAdded"] = self.date_added
        if self.last_visited is not None:
            data["lastVisited"] = self.last_visited
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bookmark":
        """Create bookmark from a persisted or message dictionary."""
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "") or ""),
            url=str(data.get("url", "") or ""),
            parent_id=data.get("parentId", data.get("parent_id")),
            date_added=data.get("dateAdded", data.get("date_added")),
            last_visited=data.get("lastVisited", data.get("last_visited")),
        )


@dataclass
class BookmarkFolder:
    """A folder node in the bookmark tree."""

    id: str
    title: str = ""
    parent_id: Optional[str] = None
    date_added: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "parentId": self.parent_id,
            "dateAdded": self.date_added,
        }


@dataclass
class DuplicateGroup:
    """Bookmarks that share one normalized URL. Always has two or more members."""

    normalized_url: str
    bookmarks: List[Bookmark] = field(default_factory=list)

    def add_bookmark(self, bookmark: Bookmark) -> None:
        """Add a bookmark to the duplicate group"""
        self.bookmarks.append(bookmark)

    def __len__(self) -> int:
        return len(self.bookmarks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "normalizedUrl": self.normalized_url,
            "bookmarks": [b.to_dict() for b in self.bookmarks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DuplicateGroup":
        return cls(
            normalized_url=data.get("normalizedUrl", data.get("normalized_url", "")),
            bookmarks=[Bookmark.from_dict(b) for b in data.get("bookmarks", [])],
        )


class LinkStatus(str, Enum):
    """Outcome of a single reachability check."""

    ALIVE = "alive"
    DEAD = "dead"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass
class LinkCheckResult:
    """Result of checking one URL."""

    url: str
    status: LinkStatus
    status_code: Optional[int] = None

    @property
    def is_dead(self) -> bool:
        return self.status == LinkStatus.DEAD

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "status": self.status.value}
        if self.status_code is not None:
            data["statusCode"] = self.status_code
        return data


@dataclass
class ReachabilityCacheEntry:
    """Last known verdict for one raw URL."""

    last_checked: int
    status: LinkStatus

    def to_dict(self) -> Dict[str, Any]:
        return {"lastChecked": self.last_checked, "status": self.status.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReachabilityCacheEntry":
        return cls(
            last_checked=int(data.get("lastChecked", 0)),
            status=LinkStatus(data.get("status", LinkStatus.ERROR.value)),
        )


@dataclass
class DomainCount:
    """Bookmark count for one domain."""

    domain: str
    count: int
    percentage: int

    def to_dict(self) -> Dict[str, Any]:
        return {"domain": self.domain, "count": self.count, "percentage": self.percentage}


@dataclass
class HealthMetrics:
    """Derived, non-persisted snapshot of collection health."""

    total_bookmarks: int
    total_folders: int
    duplicates: List[DuplicateGroup]
    dead_links: List[Bookmark]
    stale_bookmarks: List[Bookmark]
    uncategorized_count: int
    domain_distribution: List[DomainCount]
    health_score: int

    @property
    def duplicate_count(self) -> int:
        """Number of bookmarks that would be removed by deduplication."""
        return sum(len(group.bookmarks) - 1 for group in self.duplicates)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalBookmarks": self.total_bookmarks,
            "totalFolders": self.total_folders,
            "duplicates": [g.to_dict() for g in self.duplicates],
            "deadLinks": [b.to_dict() for b in self.dead_links],
            "staleBookmarks": [b.to_dict() for b in self.stale_bookmarks],
            "uncategorizedCount": self.uncategorized_count,
            "domainDistribution": [d.to_dict() for d in self.domain_distribution],
            "healthScore": self.health_score,
        }

    def __str__(self) -> str:
        return (
            f"HealthMetrics(total={self.total_bookmarks}, "
            f"duplicates={self.duplicate_count}, "
            f"dead={len(self.dead_links)}, "
            f"stale={len(self.stale_bookmarks)}, "
            f"score={self.health_score})"
        )


@dataclass
class CategorySuggestion:
    """A proposed folder and the bookmarks that belong in it."""

    folder_name: str
    bookmarks: List[Bookmark] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folderName": self.folder_name,
            "bookmarks": [b.to_dict() for b in self.bookmarks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategorySuggestion":
        return cls(
            folder_name=data.get("folderName", data.get("folder_name", "")),
            bookmarks=[Bookmark.from_dict(b) for b in data.get("bookmarks", [])],
        )


@dataclass
class RenameSuggestion:
    """A clearer title proposed for a bookmark."""

    bookmark: Bookmark
    suggested_title: str

    def to_dict(self) -> Dict[str, Any]:
        return {"bookmark": self.bookmark.to_dict(), "suggestedTitle": self.suggested_title}
