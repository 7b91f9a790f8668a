"""
Visit History Lookup

Provides the history collaborator used by the staleness evaluator: an
in-memory provider and a read-only reader for Chromium ``History`` SQLite
databases.
"""

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Union, runtime_checkable

from ..utils.error_handler import HistoryError
from ..utils.timeutils import webkit_to_ms


@runtime_checkable
class HistoryProvider(Protocol):
    """Source of visit times for a URL."""

    async def get_visits(self, url: str) -> List[int]:
        """
        Get visit times for an exact URL.

        Args:
            url: Raw URL

        Returns:
            Visit timestamps (epoch ms), possibly empty
        """
        ...

    async def get_visits_many(self, urls: Iterable[str]) -> Dict[str, List[int]]:
        """Visit times for several URLs at once; every URL gets an entry."""
        ...


def _latest(visits: List[int]) -> Optional[int]:
    if not visits:
        return None
    return max(v or 0 for v in visits)


async def get_last_visit(history: HistoryProvider, url: str) -> Optional[int]:
    """
    Return the most recent visit time for a URL.

    Args:
        history: History provider
        url: Raw URL

    Returns:
        Latest visit time in epoch ms, or None if never visited
    """
    return _latest(await history.get_visits(url))


async def get_last_visits(
    history: HistoryProvider, urls: Iterable[str]
) -> Dict[str, Optional[int]]:
    """Latest visit time (or None) for each URL, looked up in one call."""
    visits = await history.get_visits_many(urls)
    return {url: _latest(times) for url, times in visits.items()}


class InMemoryHistory:
    """History provider backed by a dict of URL -> visit times."""

    def __init__(self, visits: Optional[Dict[str, Iterable[int]]] = None):
        self._visits: Dict[str, List[int]] = {
            url: list(times) for url, times in (visits or {}).items()
        }

    def add_visit(self, url: str, visit_time: int) -> None:
        self._visits.setdefault(url, []).append(visit_time)

    async def get_visits(self, url: str) -> List[int]:
        return list(self._visits.get(url, []))

    async def get_visits_many(self, urls: Iterable[str]) -> Dict[str, List[int]]:
        return {url: list(self._visits.get(url, [])) for url in urls}


class ChromiumHistory:
    """
    Read-only visit lookup over a Chromium ``History`` database.

    The browser keeps the live database locked, so the file is opened with
    ``immutable=1``; point this at a copy when the browser is running. One
    connection is opened on first use and kept until :meth:`close`. Queries
    run in a worker thread, one at a time.

    Example:
        >>> async with ChromiumHistory(Path("~/.config/chromium/Default/History")) as history:
        ...     last = await get_last_visit(history, "https://example.com/")
    """

    VISITS_QUERY = """
    SELECT urls.url AS url, visits.visit_time AS visit_time
    FROM visits
    JOIN urls ON visits.url = urls.id
    WHERE urls.url IN ({placeholders})
    """

    # Stays under SQLite's default bound-parameter limit
    MAX_URLS_PER_QUERY = 500

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path).expanduser()
        self.logger = logging.getLogger(__name__)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

        if not self.db_path.exists():
            raise HistoryError(f"History database not found: {self.db_path}")

    async def __aenter__(self) -> "ChromiumHistory":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            uri = f"file:{self.db_path.as_posix()}?mode=ro&immutable=1"
            # Used from worker threads, serialized by self._lock
            self._conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self.logger.debug(f"Opened history database {self.db_path}")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _query_visits(self, urls: List[str]) -> Dict[str, List[int]]:
        visits: Dict[str, List[int]] = {url: [] for url in urls}
        conn = self._get_connection()
        for start in range(0, len(urls), self.MAX_URLS_PER_QUERY):
            chunk = urls[start : start + self.MAX_URLS_PER_QUERY]
            query = self.VISITS_QUERY.format(placeholders=", ".join("?" * len(chunk)))
            for row in conn.execute(query, chunk):
                visit_ms = webkit_to_ms(row["visit_time"])
                if visit_ms is not None:
                    visits[row["url"]].append(visit_ms)
        return visits

    async def get_visits_many(self, urls: Iterable[str]) -> Dict[str, List[int]]:
        unique = list(dict.fromkeys(urls))
        if not unique:
            return {}
        async with self._lock:
            try:
                return await asyncio.to_thread(self._query_visits, unique)
            except sqlite3.Error as e:
                raise HistoryError(f"Failed to read history: {e}") from e

    async def get_visits(self, url: str) -> List[int]:
        return (await self.get_visits_many([url]))[url]


__all__ = [
    "HistoryProvider",
    "InMemoryHistory",
    "ChromiumHistory",
    "get_last_visit",
    "get_last_visits",
]
