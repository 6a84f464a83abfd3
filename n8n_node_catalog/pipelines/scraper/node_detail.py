"""Fetching node documentation pages in rate-limited concurrent batches."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from ...core.config import settings
from ...models import BatchResult, NodeReference, RawRecord, ScrapingError
from .base import BaseScraper, NetworkError
from .extractors import extract_raw_record

logger = logging.getLogger(__name__)


class NodeDetailScraper(BaseScraper):
    """Fetches node pages and extracts raw records.

    References are processed in fixed-size batches. All requests of a batch run
    concurrently and the batch is awaited in full before the next one starts,
    with a cooldown pause in between.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        defaults = {
            "batch_size": settings.batch_size,
            "batch_cooldown_ms": settings.batch_cooldown_ms,
            "retain_html": settings.retain_html,
            "min_description_length": settings.min_description_length,
        }
        super().__init__({**defaults, **(config or {})})
        self.response_times: List[float] = []

    def get_source_name(self) -> str:
        return "n8n_node_detail"

    async def scrape(self, references: Optional[List[NodeReference]] = None) -> List[RawRecord]:
        result = await self.scrape_nodes(references or [])
        return result.records

    async def fetch_and_extract(self, reference: NodeReference) -> RawRecord:
        """Fetch one node page and extract its raw record.

        Raises:
            NetworkError: when the page cannot be fetched after retrying.
        """
        started = time.monotonic()
        html = await self.fetch_page(reference.url, reference.name)
        self.response_times.append((time.monotonic() - started) * 1000)

        record = extract_raw_record(
            html,
            reference,
            min_description_length=self.config["min_description_length"],
            retain_html=self.config["retain_html"],
        )

        self.logger.debug(
            f"Extracted {record.name}: {len(record.operations)} operations, "
            f"{len(record.credentials)} credentials, {len(record.examples)} examples"
        )
        return record

    async def scrape_nodes(self, references: List[NodeReference]) -> BatchResult:
        """Fetch and extract every reference, isolating per-reference failures.

        Records keep the order of ``references``; failed references are dropped
        and reported as ``ScrapingError`` entries.
        """
        batch_size = max(1, self.config["batch_size"])
        batches = [
            references[i : i + batch_size] for i in range(0, len(references), batch_size)
        ]
        self.progress["total"] += len(references)
        started = time.monotonic()

        self.logger.info(
            f"Scraping {len(references)} nodes in {len(batches)} batches of up to {batch_size}"
        )

        records: List[RawRecord] = []
        errors: List[ScrapingError] = []
        semaphore = asyncio.Semaphore(batch_size)

        async with self.open_session():
            for index, batch in enumerate(batches):
                self.logger.info(f"Processing batch {index + 1}/{len(batches)} ({len(batch)} nodes)")

                slots = await self._run_batch(batch, semaphore)

                for slot in slots:
                    if isinstance(slot, ScrapingError):
                        errors.append(slot)
                    else:
                        records.append(slot)

                if index < len(batches) - 1:
                    await asyncio.sleep(self.config["batch_cooldown_ms"] / 1000)

        duration_ms = (time.monotonic() - started) * 1000
        self.logger.info(
            f"Scraped {len(records)}/{len(references)} nodes successfully "
            f"({len(errors)} failed) in {duration_ms:.0f}ms"
        )

        return BatchResult(
            records=records,
            errors=errors,
            processed=len(references),
            successful=len(records),
            failed=len(errors),
            batches=len(batches),
            duration_ms=duration_ms,
        )

    async def _run_batch(
        self, batch: List[NodeReference], semaphore: asyncio.Semaphore
    ) -> List[Union[RawRecord, ScrapingError]]:
        async def worker(reference: NodeReference) -> Union[RawRecord, ScrapingError]:
            async with semaphore:
                try:
                    return await self.fetch_and_extract(reference)
                except NetworkError as e:
                    self.logger.error(f"Failed to scrape {reference.name}: {e}")
                    return ScrapingError(
                        url=reference.url,
                        node_name=reference.name,
                        error=e.message,
                        timestamp=datetime.now(timezone.utc),
                        retry_count=e.retry_count,
                    )
                except Exception as e:
                    self.logger.error(f"Unexpected error scraping {reference.name}: {e}")
                    error = ScrapingError(
                        url=reference.url,
                        node_name=reference.name,
                        error=str(e),
                        timestamp=datetime.now(timezone.utc),
                    )
                    self.errors.append(error)
                    self.progress["failed"] += 1
                    return error

        return await asyncio.gather(*(worker(reference) for reference in batch))

    def get_average_response_time(self) -> float:
        if not self.response_times:
            return 0.0
        return sum(self.response_times) / len(self.response_times)
