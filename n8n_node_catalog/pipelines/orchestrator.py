"""Pipeline orchestrator for discovering, scraping and cataloging n8n nodes."""

import logging
import time
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.config import settings
from ..models import (
    BatchResult,
    CanonicalRecord,
    NodeReference,
    RawRecord,
    ScraperStats,
    TransformationResult,
)
from .catalog import Catalog, CatalogStorage
from .scraper.node_detail import NodeDetailScraper
from .scraper.node_list import NodeListScraper
from .transform.merger import CatalogMerger
from .transform.transformer import DataTransformer
from .transform.validator import NodeValidator

logger = logging.getLogger(__name__)

APPROACH_SAMPLE_SIZE = 3


class OrchestrationError(Exception):
    """A whole pipeline phase failed and the run was aborted."""


class DiscoveryError(OrchestrationError):
    """Discovery produced no node references."""


class PipelineOrchestrator:
    """Runs discovery -> fetch -> transform -> validate -> merge.

    Per-node failures are recorded in the run result; only a failed discovery
    phase or an unexpected exception aborts the run.
    """

    def __init__(
        self,
        artifacts_path: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        catalog: Optional[Catalog] = None,
    ):
        self.artifacts_path = Path(artifacts_path or settings.artifacts_path)
        self.config = config or {}

        # Initialize storage
        self.storage = CatalogStorage(self.artifacts_path)

        # Shared fetch settings, overridable per scraper
        scraper_config = self.config.get("scraper", {})
        self.node_list_scraper = NodeListScraper(
            {**scraper_config, **self.config.get("node_list", {})}
        )
        self.node_detail_scraper = NodeDetailScraper(
            {**scraper_config, **self.config.get("node_detail", {})}
        )

        self.validator = NodeValidator(self.config.get("validator"))
        self.transformer = DataTransformer(self.config.get("transformer"), validator=self.validator)
        self.merger = CatalogMerger(self.validator)
        self.catalog = catalog if catalog is not None else Catalog(merger=self.merger)

        self.quality_threshold = self.config.get(
            "quality_score_threshold", settings.quality_score_threshold
        )
        self._last_stats = ScraperStats()

    async def discover_nodes(self) -> List[NodeReference]:
        """Discover node references.

        Raises:
            DiscoveryError: when no reference is found.
        """
        logger.info("Stage 1: Discovering nodes")
        references = await self.node_list_scraper.discover()

        if not references:
            raise DiscoveryError("No node references discovered")

        stats = self.node_list_scraper.get_discovery_stats(references)
        logger.info(
            f"Discovered {stats['total_nodes']} nodes "
            f"({stats['high_priority_nodes']} high priority, {stats['core_nodes']} core)"
        )
        return references

    @staticmethod
    def select_test_nodes(references: List[NodeReference], max_nodes: int) -> List[NodeReference]:
        """Pick up to ``max_nodes`` references, one per category first, then by priority."""
        candidates = sorted(references, key=lambda r: r.priority)[:max_nodes]

        selected: List[NodeReference] = []
        seen_categories = set()
        for reference in candidates:
            if reference.category not in seen_categories:
                selected.append(reference)
                seen_categories.add(reference.category)

        for reference in candidates:
            if len(selected) >= max_nodes:
                break
            if reference not in selected:
                selected.append(reference)

        return NodeListScraper.sort_references(selected)

    async def scrape_node_details(self, references: List[NodeReference]) -> BatchResult:
        logger.info(f"Stage 2: Scraping {len(references)} node pages")
        return await self.node_detail_scraper.scrape_nodes(references)

    def transform_data(self, raws: List[RawRecord]) -> List[TransformationResult]:
        logger.info(f"Stage 3: Transforming {len(raws)} raw records")
        return self.transformer.transform_batch(raws)

    def merge_into_catalog(self, records: List[CanonicalRecord]) -> Dict[str, Any]:
        """Merge records into the catalog; consistency findings are reported, not enforced."""
        logger.info(f"Stage 4: Merging {len(records)} records into catalog")
        existing = self.catalog.snapshot()

        consistency = self.merger.check_consistency(records, existing)
        summary = self.merger.summarize(records, existing)
        self.catalog.merge(records)

        return {
            **summary,
            "catalog_size": len(self.catalog),
            "consistency": consistency.to_dict(),
        }

    async def run_full_pipeline(
        self, merge_existing: bool = False, save: bool = True
    ) -> Dict[str, Any]:
        """Run the pipeline over every discovered node."""
        return await self._run("full", None, merge_existing=merge_existing, save=save)

    async def run_test_pipeline(self, max_nodes: int = 10, save: bool = False) -> Dict[str, Any]:
        """Run the pipeline over a small, category-diverse selection of nodes."""
        return await self._run("test", max_nodes, merge_existing=False, save=save)

    async def validate_approach(self) -> Dict[str, Any]:
        """Smoke-test the pipeline end to end on a tiny sample."""
        logger.info("Validating scraping approach")
        run = await self.run_test_pipeline(max_nodes=APPROACH_SAMPLE_SIZE, save=False)
        records: List[CanonicalRecord] = run["records"]

        problems = []
        if not records:
            problems.append("No records produced")
        for record in records:
            if not record.name or not record.display_name:
                problems.append(f"{record.name or '<unnamed>'}: missing name or display name")
            if len(record.description or "") <= 10:
                problems.append(f"{record.name}: description too short")
            if not record.properties:
                problems.append(f"{record.name}: no properties")

        approach_valid = not problems
        if approach_valid:
            logger.info(f"Approach validated with {len(records)} sample records")
        else:
            logger.warning(f"Approach validation failed: {problems}")

        return {"approach_valid": approach_valid, "problems": problems, "run": run}

    async def _run(
        self,
        pipeline_type: str,
        max_nodes: Optional[int],
        merge_existing: bool,
        save: bool,
    ) -> Dict[str, Any]:
        logger.info(f"Starting {pipeline_type} pipeline")
        started = time.monotonic()

        results: Dict[str, Any] = {
            "pipeline_type": pipeline_type,
            "started_at": datetime.now(timezone.utc).isoformat(),
            "run_date": self.storage.current_date,
            "success": False,
        }

        try:
            references = await self.discover_nodes()
            selected = (
                self.select_test_nodes(references, max_nodes)
                if max_nodes is not None
                else references
            )
            results["discovery"] = {
                **self.node_list_scraper.get_discovery_stats(references),
                "selected": len(selected),
            }

            batch = await self.scrape_node_details(selected)
            transformations = self.transform_data(batch.records)
            records = [t.record for t in transformations if t.success and t.record is not None]

            if merge_existing:
                self._load_existing_catalog()
            results["merge"] = self.merge_into_catalog(records)

            stats = self._build_stats(selected, batch, records, started)
            self._last_stats = stats

            results["records"] = records
            results["stats"] = stats
            results["summary"] = self._summarize(selected, batch, transformations)
            results["scrape_errors"] = [e.to_dict() for e in batch.errors]
            results["completed_at"] = datetime.now(timezone.utc).isoformat()
            results["success"] = True

            if save:
                results["catalog_path"] = str(self.save_results(stats))
                results["manifest_path"] = str(
                    self.storage.save_run_manifest(self._manifest(results))
                )

            logger.info(
                f"{pipeline_type.capitalize()} pipeline completed: {len(records)} records, "
                f"success rate {results['summary']['success_rate']:.0%}, "
                f"average score {results['summary']['average_quality_score']}"
            )

        except OrchestrationError as e:
            logger.error(f"{pipeline_type.capitalize()} pipeline aborted: {e}")
            raise
        except Exception as e:
            logger.error(f"{pipeline_type.capitalize()} pipeline failed: {e}")
            raise OrchestrationError(f"{pipeline_type} pipeline failed: {e}") from e

        return results

    def _load_existing_catalog(self) -> None:
        try:
            stored = self.storage.load_catalog(merger=self.merger)
        except FileNotFoundError:
            logger.info("No stored catalog to merge with")
            return

        self.catalog.init(stored.snapshot() + self.catalog.snapshot())
        logger.info(f"Loaded {len(stored)} existing records for merging")

    def _build_stats(
        self,
        selected: List[NodeReference],
        batch: BatchResult,
        records: List[CanonicalRecord],
        started: float,
    ) -> ScraperStats:
        return ScraperStats(
            total_nodes=len(selected),
            successful_scrapes=batch.successful,
            failed_scrapes=batch.failed,
            average_response_time_ms=self.node_detail_scraper.get_average_response_time(),
            error_rate=batch.failed / len(selected) if selected else 0.0,
            category_counts=dict(Counter(r.category for r in records)),
            processing_time_ms=(time.monotonic() - started) * 1000,
        )

    def _summarize(
        self,
        selected: List[NodeReference],
        batch: BatchResult,
        transformations: List[TransformationResult],
    ) -> Dict[str, Any]:
        transform_stats = self.transformer.get_stats(transformations)
        transformed = transform_stats["successful"]

        return {
            "selected": len(selected),
            "scraped": batch.successful,
            "scrape_failures": batch.failed,
            "transformed": transformed,
            "transform_failures": transform_stats["failed"],
            "success_rate": transformed / len(selected) if selected else 0.0,
            "average_quality_score": transform_stats["average_quality_score"],
            "low_quality": sum(
                1 for t in transformations if t.success and t.score < self.quality_threshold
            ),
            "top_errors": transform_stats["top_errors"],
            "top_warnings": transform_stats["top_warnings"],
        }

    def _manifest(self, results: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "pipeline_type": results["pipeline_type"],
            "started_at": results["started_at"],
            "completed_at": results["completed_at"],
            "discovery": results["discovery"],
            "merge": results["merge"],
            "summary": results["summary"],
            "stats": results["stats"].to_dict(),
            "scrape_errors": results["scrape_errors"],
        }

    def get_stats(self) -> ScraperStats:
        """Statistics of the most recent run."""
        return self._last_stats

    def save_results(self, stats: Optional[ScraperStats] = None) -> Path:
        """Persist the current catalog with run statistics."""
        return self.storage.save_catalog(self.catalog, stats or self._last_stats)

    async def get_pipeline_status(self) -> Dict[str, Any]:
        """Get current status of pipeline components."""
        runs = self.storage.list_available_runs()
        latest = runs[-1] if runs else None

        return {
            "artifacts_path": str(self.artifacts_path),
            "current_run_date": self.storage.current_date,
            "available_runs": runs,
            "latest_manifest": self.storage.get_run_manifest(latest) if latest else None,
            "catalog_size": len(self.catalog),
            "scrapers": {
                scraper.get_source_name(): {
                    "base_url": scraper.config["base_url"],
                    "rate_limit_ms": scraper.config["rate_limit_ms"],
                    "max_retries": scraper.config["max_retries"],
                }
                for scraper in (self.node_list_scraper, self.node_detail_scraper)
            },
        }
