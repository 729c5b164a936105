from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from loguru import logger
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from rankwatch.models.leaderboard import SnapshotSet

# Define common HTTP status codes that warrant a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class ScraperError(Exception):
    """Base exception for leaderboard fetching errors."""

    pass


class FetchError(ScraperError):
    """Network failure, timeout, or an unusable HTTP response."""

    pass


class AuthenticationError(FetchError):
    """Exception raised for authentication failures (401, 403)."""

    pass


class RateLimitError(FetchError):
    """Exception raised for rate limit errors (429)."""

    pass


class StructuralError(ScraperError):
    """The page was fetched but does not have the expected shape."""

    pass


class BaseScraper(ABC):
    """Abstract base class for leaderboard scrapers."""

    source_name: str = "unknown"

    def __init__(
        self, client: Optional[httpx.AsyncClient] = None, request_timeout: float = 30.0
    ):
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(request_timeout),
            follow_redirects=True,
            headers={
                "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
            },
        )

    @abstractmethod
    async def fetch_snapshot_set(self) -> SnapshotSet:
        """Fetch and parse the leaderboard.

        Returns:
            A validated SnapshotSet with one snapshot per tracked contest.

        Raises:
            FetchError: On network failure, timeout, or HTTP errors.
            StructuralError: If the page does not have the expected shape.
        """
        pass

    async def _make_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> httpx.Response:
        """Makes an HTTP request with retries, mapping failures to FetchError."""
        try:
            return await self._request_with_retries(
                method, url, headers=headers, params=params, **kwargs
            )
        except FetchError:
            raise
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Max retries exceeded for {self.source_name} request to {url}. "
                f"Last status: {e.response.status_code}"
            )
            raise FetchError(f"HTTP error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(
                f"Max retries exceeded for {self.source_name} request to {url}. Last exception: {e!r}"
            )
            raise FetchError(f"Network error fetching {url}: {e!r}") from e

    @retry(
        stop=stop_after_attempt(4),  # 3 retries after the first attempt
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(
            (httpx.RequestError, httpx.HTTPStatusError, RateLimitError)
        ),
        reraise=True,  # Reraise the exception after max attempts
    )
    async def _request_with_retries(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        **kwargs,
    ) -> httpx.Response:
        logger.debug(f"Making {method} request to {url}")
        try:
            response = await self.client.request(
                method, url, headers=headers, params=params, **kwargs
            )
        except httpx.RequestError as e:
            # Network errors, timeouts etc. - these are retryable by default
            logger.warning(f"Request error for {self.source_name}, retrying: {e!r}")
            raise

        if response.status_code in {401, 403}:
            logger.warning(
                f"Authentication error ({response.status_code}) for {self.source_name} at {url}. Check the session cookie."
            )
            # Don't retry auth errors, raise specific exception
            raise AuthenticationError(
                f"Authentication failed ({response.status_code}) for {self.source_name}"
            )

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning(
                f"Rate limit hit (429) for {self.source_name} at {url}. Retry-After: {retry_after}"
            )
            raise RateLimitError(f"Rate limited by {self.source_name}")

        if response.status_code in RETRYABLE_STATUS_CODES:
            logger.warning(
                f"Retrying request for {self.source_name} due to status {response.status_code}"
            )
            response.raise_for_status()

        if response.status_code != 200:
            # Redirect loops to a login page, 404s and the like are not worth retrying
            logger.error(
                f"Unexpected status {response.status_code} from {self.source_name} at {url}"
            )
            raise FetchError(f"Error fetching the web: status code {response.status_code}")

        logger.debug(f"Request successful: {response.status_code} for {url}")
        return response

    async def close(self):
        """Closes the underlying HTTP client."""
        await self.client.aclose()
        logger.info(f"Closed HTTP client for {self.source_name}")
