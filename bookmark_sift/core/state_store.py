"""
Persisted Key-Value State

The state store is the single source of truth for anything that must be
visible across invocations: settings, the reachability cache and both task
states. Values are JSON-compatible and are copied across the boundary, so
callers never share mutable structures with the store.
"""

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from ..utils.error_handler import StateStoreError


@runtime_checkable
class StateStore(Protocol):
    """Async key-value store for persisted state."""

    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when the key was never set."""
        ...

    async def set(self, key: str, value: Any) -> None:
        """Replace the stored value for a key."""
        ...

    async def remove(self, key: str) -> None:
        """Delete a key if present."""
        ...


class MemoryStateStore:
    """In-process state store, mostly for tests and one-shot CLI runs."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)


class JSONFileStateStore:
    """
    State store persisted as a single JSON document.

    Every ``set`` rewrites the file through a temporary file and an atomic
    rename, so a reader (or a restarted process) never sees a torn write.
    Reads pick up changes written by other processes, which is how a
    ``cancel`` issued from a second invocation reaches a running task.

    Example:
        >>> store = JSONFileStateStore(Path(".sift_state.json"))
        >>> await store.set("dead_link_cache", {})
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)
        self._lock = asyncio.Lock()
        self._data: Dict[str, Any] = {}
        self._mtime_ns: Optional[int] = None
        self._refresh()

    def _current_mtime(self) -> Optional[int]:
        try:
            return self.path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def _refresh(self) -> None:
        """Reload the document if the file changed since it was last read."""
        mtime = self._current_mtime()
        if mtime is None or mtime == self._mtime_ns:
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StateStoreError(f"Failed to load state from {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StateStoreError(f"State file {self.path} is not a JSON object")
        self._data = data
        self._mtime_ns = mtime
        self.logger.debug(f"Loaded {len(data)} state keys from {self.path}")

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
            temp_file.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            raise StateStoreError(f"Failed to save state to {self.path}: {e}") from e
        self._mtime_ns = self._current_mtime()

    async def get(self, key: str) -> Optional[Any]:
        self._refresh()
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._refresh()
            self._data[key] = copy.deepcopy(value)
            self._flush()

    async def remove(self, key: str) -> None:
        async with self._lock:
            self._refresh()
            if key in self._data:
                del self._data[key]
                self._flush()


__all__ = ["StateStore", "MemoryStateStore", "JSONFileStateStore"]
