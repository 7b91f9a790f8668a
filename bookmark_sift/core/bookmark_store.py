"""
Bookmark Store

Interface to the bookmark tree plus an in-memory implementation that loads
and saves Chromium's ``Bookmarks`` JSON file. Helpers for creating the
``Sift`` output folder and sorting folders are written against the
interface so they work with any store.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

from ..utils.error_handler import BookmarkNotFoundError, BookmarkStoreError
from ..utils.timeutils import ms_to_webkit, now_ms, webkit_to_ms
from .data_models import Bookmark, BookmarkFolder

ROOT_ID = "0"
BOOKMARKS_BAR_ID = "1"
OTHER_BOOKMARKS_ID = "2"
MOBILE_BOOKMARKS_ID = "3"

# Bookmarks whose parent is one of these are considered uncategorized
ROOT_FOLDER_IDS = frozenset({ROOT_ID, BOOKMARKS_BAR_ID, OTHER_BOOKMARKS_ID})

SIFT_ROOT_TITLE = "Sift"

CHROMIUM_ROOTS = (
    ("bookmark_bar", BOOKMARKS_BAR_ID, "Bookmarks bar"),
    ("other", OTHER_BOOKMARKS_ID, "Other bookmarks"),
    ("synced", MOBILE_BOOKMARKS_ID, "Mobile bookmarks"),
)

CHROMIUM_ROOT_KEYS = frozenset(key for key, _id, _title in CHROMIUM_ROOTS)

BookmarkNode = Union[Bookmark, BookmarkFolder]


@runtime_checkable
class BookmarkStore(Protocol):
    """Bookmark tree storage and mutation primitives."""

    async def list_all(self) -> List[Bookmark]: ...

    async def list_folders(self) -> List[BookmarkFolder]: ...

    async def create(self, title: str, url: str, parent_id: str) -> Bookmark: ...

    async def create_folder(self, title: str, parent_id: str) -> BookmarkFolder: ...

    async def delete(self, node_id: str) -> None: ...

    async def delete_tree(self, node_id: str) -> None: ...

    async def move(
        self, node_id: str, parent_id: Optional[str] = None, index: Optional[int] = None
    ) -> BookmarkNode: ...

    async def update(
        self, node_id: str, title: Optional[str] = None, url: Optional[str] = None
    ) -> BookmarkNode: ...

    async def search(self, query: str) -> List[Bookmark]: ...

    async def get_children(self, folder_id: str) -> List[BookmarkNode]: ...

    async def get_bookmark_paths(self, node_ids: List[str]) -> Dict[str, str]: ...


@dataclass
class _Node:
    id: str
    title: str
    url: Optional[str] = None
    parent_id: Optional[str] = None
    date_added: Optional[int] = None
    children: List["_Node"] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)
    # Chromium timestamp as read from disk, written back unchanged
    raw_date_added: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.url is None

    def to_model(self) -> BookmarkNode:
        if self.is_folder:
            return BookmarkFolder(
                id=self.id,
                title=self.title,
                parent_id=self.parent_id,
                date_added=self.date_added,
            )
        return Bookmark(
            id=self.id,
            title=self.title,
            url=self.url or "",
            parent_id=self.parent_id,
            date_added=self.date_added,
        )


def _chromium_date_added(node: _Node) -> str:
    """Original timestamp for loaded nodes; converted from ms for new ones."""
    raw = node.raw_date_added
    if raw is not None and webkit_to_ms(raw) == node.date_added:
        return str(raw)
    return ms_to_webkit(node.date_added)


class BookmarkTree:
    """
    In-memory bookmark tree with Chromium-compatible ids and roots.

    Node ``0`` is the invisible root; ``1`` (bookmarks bar), ``2`` (other
    bookmarks) and ``3`` (mobile bookmarks) are its fixed children.

    Example:
        >>> tree = BookmarkTree.load(Path("~/.config/chromium/Default/Bookmarks"))
        >>> bookmarks = await tree.list_all()
        >>> tree.save(path)
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._root = _Node(id=ROOT_ID, title="")
        self._nodes: Dict[str, _Node] = {ROOT_ID: self._root}
        self._next_id = 4
        self._roots_meta: Dict[str, Any] = {}
        for _key, node_id, title in CHROMIUM_ROOTS:
            self._attach(_Node(id=node_id, title=title, parent_id=ROOT_ID), ROOT_ID)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _attach(self, node: _Node, parent_id: str, index: Optional[int] = None) -> None:
        parent = self._nodes[parent_id]
        node.parent_id = parent_id
        if index is None or index >= len(parent.children):
            parent.children.append(node)
        else:
            parent.children.insert(max(index, 0), node)
        self._nodes[node.id] = node

    def _detach(self, node: _Node) -> None:
        parent = self._nodes.get(node.parent_id or "")
        if parent is not None:
            parent.children = [c for c in parent.children if c.id != node.id]

    def _get(self, node_id: str) -> _Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise BookmarkNotFoundError(node_id)
        return node

    def _get_folder(self, folder_id: str) -> _Node:
        node = self._get(folder_id)
        if not node.is_folder:
            raise BookmarkStoreError(f"Node {folder_id} is not a folder")
        return node

    def _allocate_id(self) -> str:
        node_id = str(self._next_id)
        self._next_id += 1
        return node_id

    def _walk(self, node: Optional[_Node] = None) -> Iterator[_Node]:
        node = node or self._root
        yield node
        for child in node.children:
            yield from self._walk(child)

    def _forget(self, node: _Node) -> None:
        for descendant in self._walk(node):
            self._nodes.pop(descendant.id, None)

    # ------------------------------------------------------------------
    # BookmarkStore interface
    # ------------------------------------------------------------------

    async def list_all(self) -> List[Bookmark]:
        return [n.to_model() for n in self._walk() if not n.is_folder]

    async def list_folders(self) -> List[BookmarkFolder]:
        return [n.to_model() for n in self._walk() if n.is_folder and n.id != ROOT_ID]

    async def create(
        self, title: str, url: str, parent_id: str = BOOKMARKS_BAR_ID
    ) -> Bookmark:
        self._get_folder(parent_id)
        node = _Node(id=self._allocate_id(), title=title, url=url, date_added=now_ms())
        self._attach(node, parent_id)
        return node.to_model()

    async def create_folder(
        self, title: str, parent_id: str = BOOKMARKS_BAR_ID
    ) -> BookmarkFolder:
        self._get_folder(parent_id)
        node = _Node(id=self._allocate_id(), title=title, date_added=now_ms())
        self._attach(node, parent_id)
        return node.to_model()

    async def delete(self, node_id: str) -> None:
        node = self._get(node_id)
        if node.is_folder and node.children:
            raise BookmarkStoreError(f"Folder {node_id} is not empty")
        await self.delete_tree(node_id)

    async def delete_tree(self, node_id: str) -> None:
        if node_id == ROOT_ID or node_id in {n for _k, n, _t in CHROMIUM_ROOTS}:
            raise BookmarkStoreError(f"Cannot delete root folder {node_id}")
        node = self._get(node_id)
        self._detach(node)
        self._forget(node)

    async def move(
        self, node_id: str, parent_id: Optional[str] = None, index: Optional[int] = None
    ) -> BookmarkNode:
        node = self._get(node_id)
        target_id = parent_id or node.parent_id or BOOKMARKS_BAR_ID
        target = self._get_folder(target_id)
        if any(n.id == target.id for n in self._walk(node)):
            raise BookmarkStoreError(f"Cannot move {node_id} into its own subtree")
        self._detach(node)
        self._attach(node, target_id, index)
        return node.to_model()

    async def update(
        self, node_id: str, title: Optional[str] = None, url: Optional[str] = None
    ) -> BookmarkNode:
        node = self._get(node_id)
        if title is not None:
            node.title = title
        if url is not None:
            if node.is_folder:
                raise BookmarkStoreError(f"Cannot set a URL on folder {node_id}")
            node.url = url
        return node.to_model()

    async def search(self, query: str) -> List[Bookmark]:
        """Case-insensitive match against titles and URLs."""
        needle = query.lower().strip()
        if not needle:
            return []
        return [
            n.to_model()
            for n in self._walk()
            if not n.is_folder
            and (needle in n.title.lower() or needle in (n.url or "").lower())
        ]

    async def get_children(self, folder_id: str) -> List[BookmarkNode]:
        return [c.to_model() for c in self._get_folder(folder_id).children]

    async def get_bookmark_paths(self, node_ids: List[str]) -> Dict[str, str]:
        """
        Resolve the folder path of each node.

        Returns:
            Node id to ``"Folder / Subfolder"`` (``"Root"`` at top level);
            unknown ids are omitted
        """
        paths = {}
        for node_id in node_ids:
            node = self._nodes.get(node_id)
            if node is None:
                continue
            parts = []
            parent = self._nodes.get(node.parent_id or "")
            while parent is not None:
                if parent.title:
                    parts.append(parent.title)
                parent = self._nodes.get(parent.parent_id or "")
            paths[node_id] = " / ".join(reversed(parts)) or "Root"
        return paths

    # ------------------------------------------------------------------
    # Chromium file format
    # ------------------------------------------------------------------

    def _load_children(self, raw_children: List[Dict[str, Any]], parent_id: str) -> None:
        for raw in raw_children:
            node_id = str(raw.get("id", ""))
            if not node_id or node_id in self._nodes:
                node_id = self._allocate_id()
            is_url = raw.get("type") == "url"
            node = _Node(
                id=node_id,
                title=raw.get("name", ""),
                url=raw.get("url", "") if is_url else None,
                date_added=webkit_to_ms(raw.get("date_added")),
                raw_date_added=raw.get("date_added"),
                extra={
                    k: v
                    for k, v in raw.items()
                    if k not in {"id", "name", "url", "type", "date_added", "children"}
                },
            )
            self._attach(node, parent_id)
            if node_id.isdigit():
                self._next_id = max(self._next_id, int(node_id) + 1)
            if not is_url:
                self._load_children(raw.get("children", []), node_id)

    @classmethod
    def from_chromium_json(cls, data: Dict[str, Any]) -> "BookmarkTree":
        """Build a tree from a parsed Chromium ``Bookmarks`` document."""
        roots = data.get("roots")
        if not isinstance(roots, dict):
            raise BookmarkStoreError("Bookmarks document has no 'roots' object")

        tree = cls()
        for key, node_id, _title in CHROMIUM_ROOTS:
            raw_root = roots.get(key)
            if not raw_root:
                continue
            root = tree._nodes[node_id]
            root.title = raw_root.get("name", root.title)
            root.date_added = webkit_to_ms(raw_root.get("date_added"))
            root.raw_date_added = raw_root.get("date_added")
            root.extra = {
                k: v
                for k, v in raw_root.items()
                if k not in {"id", "name", "type", "date_added", "children"}
            }
            tree._load_children(raw_root.get("children", []), node_id)

        tree._roots_meta = {
            k: v for k, v in roots.items() if k not in CHROMIUM_ROOT_KEYS
        }
        return tree

    def _dump_node(self, node: _Node) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(node.extra)
        data.update(
            {
                "date_added": _chromium_date_added(node),
                "id": node.id,
                "name": node.title,
                "type": "folder" if node.is_folder else "url",
            }
        )
        if node.is_folder:
            data["children"] = [self._dump_node(c) for c in node.children]
        else:
            data["url"] = node.url
        return data

    def to_chromium_json(self) -> Dict[str, Any]:
        """
        Serialize to the Chromium ``Bookmarks`` layout.

        The checksum is omitted; the browser recomputes it on next write.
        """
        roots: Dict[str, Any] = {
            key: self._dump_node(self._nodes[node_id])
            for key, node_id, _title in CHROMIUM_ROOTS
        }
        roots.update(self._roots_meta)
        return {"roots": roots, "version": 1}

    @classmethod
    def load(cls, path: Union[str, Path]) -> "BookmarkTree":
        path = Path(path).expanduser()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise BookmarkStoreError(f"Failed to read bookmarks from {path}: {e}") from e
        tree = cls.from_chromium_json(data)
        count = sum(1 for n in tree._walk() if not n.is_folder)
        tree.logger.info(f"Loaded {count} bookmarks from {path}")
        return tree

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path).expanduser()
        temp_file = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(self.to_chromium_json(), f, indent=3, ensure_ascii=False)
            temp_file.replace(path)
        except OSError as e:
            raise BookmarkStoreError(f"Failed to write bookmarks to {path}: {e}") from e
        self.logger.info(f"Saved bookmarks to {path}")


# ----------------------------------------------------------------------
# Store-level helpers
# ----------------------------------------------------------------------


async def create_sift_folder(
    store: BookmarkStore, name: Optional[str] = None
) -> BookmarkFolder:
    """
    Create a named output folder under the top-level ``Sift`` folder.

    The ``Sift`` folder is created in the bookmarks bar if no folder with
    that title exists anywhere in the tree.

    Args:
        store: Bookmark store
        name: Folder name (defaults to today's date, ``YYYY-MM-DD``)
    """
    folder_name = name or datetime.now(timezone.utc).strftime("%Y-%m-%d")

    sift_root = next(
        (f for f in await store.list_folders() if f.title == SIFT_ROOT_TITLE), None
    )
    if sift_root is None:
        sift_root = await store.create_folder(SIFT_ROOT_TITLE, BOOKMARKS_BAR_ID)

    return await store.create_folder(folder_name, sift_root.id)


async def sort_folder(store: BookmarkStore, folder_id: str) -> None:
    """Sort a folder's children alphabetically, subfolders first."""
    children = await store.get_children(folder_id)
    folders = sorted(
        (c for c in children if isinstance(c, BookmarkFolder)),
        key=lambda c: c.title.casefold(),
    )
    bookmarks = sorted(
        (c for c in children if isinstance(c, Bookmark)),
        key=lambda c: c.title.casefold(),
    )
    for index, node in enumerate(folders + bookmarks):
        await store.move(node.id, parent_id=folder_id, index=index)


async def sort_all_folders(store: BookmarkStore) -> int:
    """Sort every folder; returns the number of folders sorted."""
    folders = await store.list_folders()
    for folder in folders:
        await sort_folder(store, folder.id)
    return len(folders)


__all__ = [
    "BookmarkStore",
    "BookmarkTree",
    "BookmarkNode",
    "ROOT_FOLDER_IDS",
    "BOOKMARKS_BAR_ID",
    "OTHER_BOOKMARKS_ID",
    "SIFT_ROOT_TITLE",
    "create_sift_folder",
    "sort_folder",
    "sort_all_folders",
]
