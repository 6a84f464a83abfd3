"""The node catalog and its dated on-disk storage."""

import json
import logging
import re
import threading
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..models import CanonicalRecord, ScraperStats
from .transform.merger import CatalogMerger

logger = logging.getLogger(__name__)

CATALOG_FILENAME = "catalog.json"
MANIFEST_FILENAME = "run_manifest.json"
RUN_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class Catalog:
    """Unique-by-name collection of canonical records.

    The catalog is only changed through ``init`` and ``merge``; merges are
    serialized so one completes fully before the next begins.
    """

    def __init__(
        self,
        records: Optional[Iterable[CanonicalRecord]] = None,
        merger: Optional[CatalogMerger] = None,
    ):
        self.merger = merger or CatalogMerger()
        self._lock = threading.Lock()
        self._records: Dict[str, CanonicalRecord] = {}
        if records is not None:
            self.init(records)

    def init(self, records: Iterable[CanonicalRecord]) -> None:
        """Replace the catalog contents; later duplicates of a name are merged in."""
        with self._lock:
            self._records = {}
            for record in records:
                existing = self._records.get(record.name)
                self._records[record.name] = (
                    record if existing is None else self.merger.merge_records(existing, record)
                )

    def merge(self, new_records: List[CanonicalRecord]) -> List[CanonicalRecord]:
        """Merge new records into the catalog and return the resulting snapshot."""
        with self._lock:
            merged = self.merger.merge(new_records, list(self._records.values()))
            self._records = {r.name: r for r in merged}
            return list(merged)

    def snapshot(self) -> List[CanonicalRecord]:
        with self._lock:
            return list(self._records.values())

    def get(self, name: str) -> Optional[CanonicalRecord]:
        with self._lock:
            return self._records.get(name)

    def get_all(self) -> List[CanonicalRecord]:
        return self.snapshot()

    def get_by_category(self, category: str) -> List[CanonicalRecord]:
        category = category.lower()
        return [r for r in self.snapshot() if r.category.lower() == category]

    def search(self, query: str) -> List[CanonicalRecord]:
        """Case-insensitive substring match over name, display name, description and category."""
        query = query.strip().lower()
        if not query:
            return []

        return [
            r
            for r in self.snapshot()
            if any(
                query in (value or "").lower()
                for value in (r.name, r.display_name, r.description, r.category)
            )
        ]

    def stats(self) -> Dict[str, Any]:
        records = self.snapshot()
        return {
            "total_nodes": len(records),
            "categories": dict(sorted(Counter(r.category for r in records).items())),
            "trigger_nodes": sum(1 for r in records if r.trigger_flag),
            "regular_nodes": sum(1 for r in records if r.regular_flag),
            "webhook_nodes": sum(1 for r in records if r.webhook_support),
            "polling_nodes": sum(1 for r in records if r.polling),
            "codeable_nodes": sum(1 for r in records if r.codeable),
            "with_credentials": sum(1 for r in records if r.credentials),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._records


class CatalogStorage:
    """Stores catalog runs in dated folders (``<base>/<YYYY-MM-DD>/catalog.json``)."""

    def __init__(self, base_path: Union[str, Path], run_date: Optional[str] = None):
        self.base_path = Path(base_path)
        self.current_date = run_date or datetime.now(timezone.utc).strftime("%Y-%m-%d")
        self.current_run_path = self.base_path / self.current_date

    def save_catalog(
        self, catalog: Catalog, scraper_stats: Optional[ScraperStats] = None
    ) -> Path:
        """Write the catalog records and aggregate counts for the current run."""
        self.current_run_path.mkdir(parents=True, exist_ok=True)
        stats = catalog.stats()

        payload = {
            "totalNodes": stats["total_nodes"],
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "categories": stats["categories"],
            "scraperStats": scraper_stats.to_dict() if scraper_stats else None,
            "nodes": [record.to_dict() for record in catalog.snapshot()],
        }

        catalog_path = self.current_run_path / CATALOG_FILENAME
        with open(catalog_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)

        logger.info(f"Saved catalog with {stats['total_nodes']} nodes: {catalog_path}")
        return catalog_path

    def save_run_manifest(self, summary: Dict[str, Any]) -> Path:
        """Save manifest file with the run summary."""
        self.current_run_path.mkdir(parents=True, exist_ok=True)
        manifest = {
            "run_date": self.current_date,
            "created_at": datetime.now(timezone.utc).isoformat(),
            **summary,
        }

        manifest_path = self.current_run_path / MANIFEST_FILENAME
        with open(manifest_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2, default=str)

        logger.info(f"Saved run manifest: {manifest_path}")
        return manifest_path

    def list_available_runs(self) -> List[str]:
        """List all run dates that have a stored catalog."""
        if not self.base_path.exists():
            return []

        runs = []
        for item in self.base_path.iterdir():
            if item.is_dir() and RUN_DATE_RE.match(item.name) and (item / CATALOG_FILENAME).exists():
                runs.append(item.name)

        return sorted(runs)

    def latest_run(self) -> Optional[str]:
        runs = self.list_available_runs()
        return runs[-1] if runs else None

    def get_run_manifest(self, run_date: str) -> Optional[Dict[str, Any]]:
        """Get manifest for a specific run."""
        manifest_path = self.base_path / run_date / MANIFEST_FILENAME
        if not manifest_path.exists():
            return None

        with open(manifest_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def load_payload(self, run_date: Optional[str] = None) -> Dict[str, Any]:
        run_date = run_date or self.latest_run()
        if run_date is None:
            raise FileNotFoundError(f"No stored catalog found under {self.base_path}")

        catalog_path = self.base_path / run_date / CATALOG_FILENAME
        if not catalog_path.exists():
            raise FileNotFoundError(f"No stored catalog for run {run_date}")

        with open(catalog_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def load_catalog(
        self, run_date: Optional[str] = None, merger: Optional[CatalogMerger] = None
    ) -> Catalog:
        """Load a stored catalog, the latest run when no date is given.

        Raises:
            FileNotFoundError: when no matching run is stored.
        """
        payload = self.load_payload(run_date)
        records = [CanonicalRecord.model_validate(node) for node in payload.get("nodes", [])]

        logger.info(f"Loaded catalog with {len(records)} nodes")
        return Catalog(records, merger=merger)
