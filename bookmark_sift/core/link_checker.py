"""
Batch Reachability Scanner

Checks URLs for liveness with HTTP HEAD requests in small parallel batches,
pausing between batches so remote hosts are not overwhelmed.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Optional

import aiohttp

from .data_models import Bookmark, LinkCheckResult, LinkStatus

# Status codes that mean the resource is definitely gone
DEAD_STATUS_CODES = frozenset({404, 410})

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "*/*",
}

ProgressCallback = Callable[[int, int], Any]


def classify_status(status_code: int) -> LinkStatus:
    """Map an HTTP status code to a reachability verdict."""
    if status_code in DEAD_STATUS_CODES:
        return LinkStatus.DEAD
    return LinkStatus.ALIVE


class LinkChecker:
    """
    Rate-limited batch URL checker.

    Example:
        >>> async with LinkChecker() as checker:
        ...     results = await checker.check_links(urls)
    """

    def __init__(
        self,
        timeout: float = 10.0,
        batch_size: int = 5,
        batch_delay: float = 0.5,
        verify_ssl: bool = True,
    ):
        """
        Initialize the checker.

        Args:
            timeout: Per-URL timeout in seconds
            batch_size: URLs checked concurrently per batch
            batch_delay: Pause between batches in seconds
            verify_ssl: Whether to verify TLS certificates
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.timeout = timeout
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.verify_ssl = verify_ssl
        self.logger = logging.getLogger(__name__)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "LinkChecker":
        self._session = self._create_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _create_session(self) -> aiohttp.ClientSession:
        connector = aiohttp.TCPConnector(
            limit=self.batch_size * 2,
            limit_per_host=5,
            ttl_dns_cache=300,
            ssl=self.verify_ssl,
        )
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            connector=connector,
            headers=DEFAULT_HEADERS,
        )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def check_link(
        self, session: aiohttp.ClientSession, url: str
    ) -> LinkCheckResult:
        """
        Check one URL.

        Never raises: timeouts become ``timeout`` and every other failure
        (DNS, refused connection, invalid URL, unsupported scheme) becomes
        ``error``.
        """
        try:
            async with session.head(
                url,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                allow_redirects=True,
            ) as response:
                return LinkCheckResult(
                    url=url,
                    status=classify_status(response.status),
                    status_code=response.status,
                )
        except asyncio.TimeoutError:
            self.logger.debug(f"Timeout after {self.timeout}s: {url}")
            return LinkCheckResult(url=url, status=LinkStatus.TIMEOUT)
        except aiohttp.ClientError as e:
            self.logger.debug(f"Request failed for {url}: {e}")
            return LinkCheckResult(url=url, status=LinkStatus.ERROR)
        except Exception as e:
            self.logger.debug(f"Unexpected error checking {url}: {e}")
            return LinkCheckResult(url=url, status=LinkStatus.ERROR)

    async def _report_progress(
        self, on_progress: Optional[ProgressCallback], checked: int, total: int
    ) -> None:
        if on_progress is None:
            return
        try:
            outcome = on_progress(checked, total)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self.logger.warning(f"Progress callback failed: {e}")

    async def _check_batches(
        self,
        session: aiohttp.ClientSession,
        urls: List[str],
        on_progress: Optional[ProgressCallback],
    ) -> List[LinkCheckResult]:
        results: List[LinkCheckResult] = []
        total = len(urls)

        for start in range(0, total, self.batch_size):
            batch = urls[start : start + self.batch_size]
            batch_results = await asyncio.gather(
                *(self.check_link(session, url) for url in batch)
            )
            results.extend(batch_results)
            await self._report_progress(on_progress, len(results), total)

            if start + self.batch_size < total and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        return results

    async def check_links(
        self, urls: List[str], on_progress: Optional[ProgressCallback] = None
    ) -> List[LinkCheckResult]:
        """
        Check a list of URLs.

        Args:
            urls: URLs to check
            on_progress: Optional ``(checked, total)`` callback, called after
                each batch (may be a coroutine function)

        Returns:
            One result per input URL, in input order
        """
        if not urls:
            return []

        if self._session is not None:
            return await self._check_batches(self._session, urls, on_progress)

        async with self._create_session() as session:
            return await self._check_batches(session, urls, on_progress)

    async def find_dead_links(self, bookmarks: List[Bookmark]) -> List[Bookmark]:
        """Return the bookmarks whose URL checks as ``dead``."""
        results = await self.check_links([b.url for b in bookmarks])
        dead = [b for b, result in zip(bookmarks, results) if result.is_dead]
        self.logger.info(f"Found {len(dead)} dead links in {len(bookmarks)} bookmarks")
        return dead


__all__ = ["LinkChecker", "classify_status", "DEAD_STATUS_CODES"]
