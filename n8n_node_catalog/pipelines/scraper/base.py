"""Base classes for the node documentation scrapers."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp

from ...core.config import settings
from ...models import ScrapingError
from .extractors import clean_text

logger = logging.getLogger(__name__)


class NetworkError(Exception):
    """A page could not be fetched, even after retrying."""

    def __init__(self, url: str, node_name: str, message: str, retry_count: int = 0):
        super().__init__(f"Failed to fetch {url} after {retry_count + 1} attempts: {message}")
        self.url = url
        self.node_name = node_name
        self.message = message
        self.retry_count = retry_count


class EmptyResponseError(Exception):
    """The server answered 200 with an empty body."""


def default_scraper_config() -> Dict[str, Any]:
    """Scraper defaults derived from the global settings."""
    return {
        "base_url": settings.docs_base_url,
        "rate_limit_ms": settings.rate_limit_ms,
        "timeout_ms": settings.timeout_ms,
        "max_retries": settings.max_retries,
        "retry_delay_ms": settings.retry_delay_ms,
        "user_agent": settings.user_agent,
        "headers": dict(settings.request_headers),
    }


class BaseScraper(ABC):
    """Abstract base class for documentation scrapers.

    Provides the single fetch primitive used by every stage: a rate-limited
    HTTP GET with a per-request timeout and a fixed-delay retry policy.
    Terminal failures are recorded as ``ScrapingError`` entries.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        default_config = default_scraper_config()
        if config:
            default_config.update(config)

        self.config = default_config
        self.session: Optional[aiohttp.ClientSession] = None
        self.errors: List[ScrapingError] = []
        self.progress = {"total": 0, "completed": 0, "failed": 0}
        self.start_time = time.monotonic()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def scrape(self) -> List[Any]:
        """Scrape records from the source. Must be implemented by subclasses."""
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """Get the name of this scraper's source."""
        pass

    def _build_session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(total=self.config["timeout_ms"] / 1000)
        headers = {**self.config["headers"], "User-Agent": self.config["user_agent"]}
        return aiohttp.ClientSession(timeout=timeout, headers=headers)

    @asynccontextmanager
    async def open_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Attach a session for the duration of a scrape.

        An already attached session (e.g. one shared by the orchestrator) is
        reused and left open.
        """
        if self.session is not None:
            yield self.session
            return

        async with self._build_session() as session:
            self.session = session
            try:
                yield session
            finally:
                self.session = None

    async def fetch_page(self, url: str, node_name: Optional[str] = None) -> str:
        """Fetch a page, retrying failed attempts after a fixed delay.

        Raises:
            NetworkError: when the last permitted attempt fails.
        """
        node_name = node_name or self._extract_node_name_from_url(url)
        max_retries = self.config["max_retries"]
        retry_count = 0

        while True:
            try:
                await self._apply_rate_limit()
                self.logger.debug(f"Requesting: {url} (attempt {retry_count + 1})")

                content = await self._request(url)

                self.logger.debug(f"Successfully fetched {url} ({len(content)} chars)")
                self.progress["completed"] += 1
                return content

            except (aiohttp.ClientError, asyncio.TimeoutError, EmptyResponseError) as e:
                message = self._describe_error(e)

                if retry_count < max_retries and self._should_retry(e):
                    self.logger.info(
                        f"Request failed, retrying in {self.config['retry_delay_ms']}ms: {message}"
                    )
                    await asyncio.sleep(self.config["retry_delay_ms"] / 1000)
                    retry_count += 1
                    continue

                error = ScrapingError(
                    url=url,
                    node_name=node_name,
                    error=message,
                    timestamp=datetime.now(timezone.utc),
                    retry_count=retry_count,
                )
                self.errors.append(error)
                self.progress["failed"] += 1

                raise NetworkError(url, node_name, message, retry_count) from e

    async def _request(self, url: str) -> str:
        """Issue a single GET request and return the response body."""
        if self.session is not None:
            content = await self._get_text(self.session, url)
        else:
            async with self._build_session() as session:
                content = await self._get_text(session, url)

        if not content or not content.strip():
            raise EmptyResponseError("Empty response received")

        return content

    async def _get_text(self, session: aiohttp.ClientSession, url: str) -> str:
        async with session.get(url) as response:
            response.raise_for_status()
            return await response.text(errors="replace")

    async def _apply_rate_limit(self) -> None:
        """Wait the configured interval before issuing a request."""
        await asyncio.sleep(self.config["rate_limit_ms"] / 1000)

    def _should_retry(self, error: Exception) -> bool:
        """Client errors other than 429 are final; everything else is retried."""
        if isinstance(error, aiohttp.ClientResponseError):
            return error.status == 429 or not 400 <= error.status < 500

        return True

    def _describe_error(self, error: Exception) -> str:
        if isinstance(error, aiohttp.ClientResponseError):
            return f"HTTP {error.status}: {error.message}"
        if isinstance(error, asyncio.TimeoutError):
            return f"Request timed out after {self.config['timeout_ms']}ms"
        return str(error) or error.__class__.__name__

    def _extract_node_name_from_url(self, url: str) -> str:
        parts = [p for p in url.split("/") if p]
        return parts[-1] if parts else "unknown"

    def _clean_text(self, text: str) -> str:
        return clean_text(text)

    def get_errors(self) -> List[ScrapingError]:
        """Get accumulated terminal errors."""
        return list(self.errors)

    def get_progress(self) -> Dict[str, int]:
        return dict(self.progress)

    def get_stats(self) -> Dict[str, Any]:
        """Get request statistics for this scraper."""
        duration_ms = (time.monotonic() - self.start_time) * 1000
        total_requests = self.progress["completed"] + self.progress["failed"]

        return {
            "source": self.get_source_name(),
            "duration_ms": duration_ms,
            "total_requests": total_requests,
            "success_rate": self.progress["completed"] / total_requests if total_requests else 0.0,
            "error_rate": self.progress["failed"] / total_requests if total_requests else 0.0,
            "average_time_per_request_ms": duration_ms / total_requests if total_requests else 0.0,
            "errors": len(self.errors),
        }
