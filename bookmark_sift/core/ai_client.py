"""
Claude API Client

HTTP client for the Anthropic Messages API with retry/backoff and typed
errors, plus the bookmark categorization and rename requests built on it.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..utils.error_handler import (
    AIResponseError,
    APIClientError,
    AuthenticationError,
    RateLimitError,
    ServiceUnavailableError,
    mask_secrets,
)
from .data_models import Bookmark, CategorySuggestion, RenameSuggestion
from .structured_output import (
    create_category_prompt,
    create_rename_prompt,
    is_unclear_title,
    parse_category_response,
    parse_rename_response,
)

MAX_BOOKMARKS_PER_REQUEST = 50

RETRYABLE_STATUS_CODES = frozenset({408, 423, 429, 500, 502, 503, 504})


class BaseAPIClient:
    """
    Shared HTTP plumbing for JSON APIs.

    Provides client lifecycle, retry with exponential backoff and error
    messages with the API key masked.
    """

    def __init__(
        self,
        api_key: str,
        timeout: float = 30,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the API client.

        Args:
            api_key: API key for authentication
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
            base_delay: Base delay for exponential backoff (seconds)
            max_delay: Maximum delay between retries (seconds)
            transport: Optional httpx transport (used to stub the API)
        """
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.transport = transport

        self.logger = logging.getLogger(self.__class__.__name__)
        self._client: Optional[httpx.AsyncClient] = None

        self.request_count = 0
        self.error_count = 0
        self.retry_count = 0

    async def __aenter__(self) -> "BaseAPIClient":
        await self._initialize_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _initialize_client(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self.transport,
                limits=httpx.Limits(
                    max_keepalive_connections=10,
                    max_connections=20,
                    keepalive_expiry=30.0,
                ),
            )

    async def close(self) -> None:
        """Release the HTTP client and log request statistics."""
        if self.request_count:
            stats = self.get_statistics()
            self.logger.info(
                f"API requests: {stats['request_count']}, "
                f"errors: {stats['error_count']}, retries: {stats['retry_count']}, "
                f"success rate: {stats['success_rate']:.0f}%"
            )
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_common_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": "BookmarkSift/1.0",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _get_auth_headers(self) -> Dict[str, str]:
        return {}

    def _calculate_retry_delay(self, attempt: int) -> float:
        """
        Calculate retry delay using exponential backoff with jitter.

        Args:
            attempt: Current retry attempt number (0-based)

        Returns:
            Delay in seconds
        """
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        jitter = delay * 0.1 * (0.5 - asyncio.get_running_loop().time() % 1)
        return max(delay + jitter, 0.0)

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        if isinstance(exception, (RateLimitError, ServiceUnavailableError)):
            return True
        if isinstance(exception, httpx.HTTPStatusError):
            return exception.response.status_code in RETRYABLE_STATUS_CODES
        return isinstance(
            exception, (httpx.ConnectError, httpx.ReadTimeout, httpx.WriteTimeout)
        )

    def _sanitize_error_message(self, message: str) -> str:
        return mask_secrets(message, [self.api_key])

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid API key or unauthorized access")
        if response.status_code == 429:
            raise RateLimitError("Rate limit exceeded")
        if response.status_code >= 500:
            raise ServiceUnavailableError(
                f"Service unavailable: {response.status_code}"
            )
        response.raise_for_status()

    async def _make_request(
        self,
        method: str,
        url: str,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Make an HTTP request with retry logic and error handling.

        Raises:
            AuthenticationError: On authentication failure
            RateLimitError: When rate limited after all retries
            ServiceUnavailableError: On persistent server errors
            APIClientError: On any other failure
        """
        await self._initialize_client()

        request_headers = self._get_common_headers()
        request_headers.update(self._get_auth_headers())
        if headers:
            request_headers.update(headers)

        attempt = 0
        while True:
            try:
                self.request_count += 1
                response = await self._client.request(
                    method=method, url=url, json=data, headers=request_headers
                )
                self._raise_for_status(response)
                try:
                    return response.json()
                except ValueError as e:
                    raise APIClientError(f"Invalid JSON response: {e}") from e

            except Exception as e:
                self.error_count += 1

                if self._should_retry(e, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    self.retry_count += 1
                    self.logger.warning(
                        f"Request failed (attempt {attempt + 1}/"
                        f"{self.max_retries + 1}): "
                        f"{self._sanitize_error_message(str(e))}. "
                        f"Retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue

                sanitized_msg = self._sanitize_error_message(str(e))
                self.logger.error(f"Request failed permanently: {sanitized_msg}")

                if isinstance(e, APIClientError):
                    raise
                raise APIClientError(sanitized_msg) from e

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "request_count": self.request_count,
            "error_count": self.error_count,
            "retry_count": self.retry_count,
            "success_rate": (
                (self.request_count - self.error_count)
                / max(self.request_count, 1)
                * 100
            ),
        }


class ClaudeCategorizer(BaseAPIClient):
    """
    Suggests folders and titles for bookmarks using Claude.

    Example:
        >>> async with ClaudeCategorizer(api_key) as categorizer:
        ...     suggestions = await categorizer.suggest_categories(bookmarks[:50])
    """

    BASE_URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"
    MODEL = "claude-haiku-4-5-20251001"
    MAX_TOKENS = 2048

    def __init__(self, api_key: str, timeout: float = 60, **kwargs: Any):
        super().__init__(api_key, timeout=timeout, **kwargs)
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.logger = logging.getLogger(__name__)

    def _get_auth_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
        }

    async def _complete(self, prompt: str) -> str:
        """Send a single-turn prompt and return the first text block."""
        response = await self._make_request(
            "POST",
            self.BASE_URL,
            data={
                "model": self.MODEL,
                "max_tokens": self.MAX_TOKENS,
                "messages": [{"role": "user", "content": prompt}],
            },
        )

        usage = response.get("usage", {})
        self.total_input_tokens += usage.get("input_tokens", 0)
        self.total_output_tokens += usage.get("output_tokens", 0)

        for block in response.get("content", []):
            if block.get("type") == "text":
                return block.get("text", "")
        raise AIResponseError("Response contained no text content")

    async def suggest_categories(self, batch: List[Bookmark]) -> List[CategorySuggestion]:
        """
        Suggest folders for one batch of bookmarks.

        Args:
            batch: At most 50 bookmarks

        Returns:
            Suggested categories; empty when the response is malformed

        Raises:
            APIClientError: When the request itself fails
        """
        if len(batch) > MAX_BOOKMARKS_PER_REQUEST:
            raise ValueError(
                f"At most {MAX_BOOKMARKS_PER_REQUEST} bookmarks per request"
            )
        if not batch:
            return []

        text = await self._complete(create_category_prompt(batch))
        try:
            return parse_category_response(text, batch)
        except AIResponseError as e:
            self.logger.error(f"Failed to parse AI category response: {e}")
            return []

    async def _suggest_renames_batch(
        self, batch: List[Bookmark]
    ) -> List[RenameSuggestion]:
        text = await self._complete(create_rename_prompt(batch))
        try:
            return parse_rename_response(text, batch)
        except AIResponseError as e:
            self.logger.error(f"Failed to parse AI rename response: {e}")
            return []

    async def suggest_renames(self, bookmarks: List[Bookmark]) -> List[RenameSuggestion]:
        """
        Suggest clearer titles for bookmarks whose titles are unclear.

        Failed batches are skipped, except for authentication failures.
        """
        unclear = [b for b in bookmarks if is_unclear_title(b.title)]
        suggestions: List[RenameSuggestion] = []

        for start in range(0, len(unclear), MAX_BOOKMARKS_PER_REQUEST):
            batch = unclear[start : start + MAX_BOOKMARKS_PER_REQUEST]
            try:
                suggestions.extend(await self._suggest_renames_batch(batch))
            except AuthenticationError:
                raise
            except (APIClientError, AIResponseError) as e:
                self.logger.error(f"Rename batch failed, skipping: {e}")

        return suggestions

    async def categorize_all(self, bookmarks: List[Bookmark]) -> List[CategorySuggestion]:
        """
        Suggest categories for any number of bookmarks, 50 per request.

        Suggestions are returned per batch without merging. Failed batches are
        skipped, except for authentication failures.
        """
        suggestions: List[CategorySuggestion] = []

        for start in range(0, len(bookmarks), MAX_BOOKMARKS_PER_REQUEST):
            batch = bookmarks[start : start + MAX_BOOKMARKS_PER_REQUEST]
            try:
                suggestions.extend(await self.suggest_categories(batch))
            except AuthenticationError:
                raise
            except (APIClientError, AIResponseError) as e:
                self.logger.error(f"Categorization batch failed, skipping: {e}")

        return suggestions


__all__ = ["BaseAPIClient", "ClaudeCategorizer", "MAX_BOOKMARKS_PER_REQUEST"]
