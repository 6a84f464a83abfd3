"""Unit tests for the catalog and its storage."""

import json
import threading
from unittest.mock import MagicMock

import pytest

from n8n_node_catalog.models import ScraperStats
from n8n_node_catalog.pipelines.catalog import Catalog, CatalogStorage


@pytest.fixture
def catalog(record_factory):
    return Catalog(
        [
            record_factory(),
            record_factory(
                name="n8n-nodes-base.scheduletrigger",
                display_name="Schedule Trigger",
                description="Starts a workflow at fixed intervals or times.",
                category="Trigger",
                trigger_flag=True,
                regular_flag=False,
                inputs=[],
            ),
            record_factory(
                name="n8n-nodes-base.code",
                display_name="Code",
                description="Run custom JavaScript or Python code in a workflow.",
                category="Core",
                codeable=True,
            ),
        ]
    )


class TestCatalog:
    """Test the catalog read and merge API."""

    def test_get_all_and_len(self, catalog):
        assert len(catalog) == 3
        assert [r.name for r in catalog.get_all()][0] == "n8n-nodes-base.slack"
        assert "n8n-nodes-base.code" in catalog
        assert catalog.get("n8n-nodes-base.missing") is None

    def test_get_by_category(self, catalog):
        assert [r.name for r in catalog.get_by_category("trigger")] == [
            "n8n-nodes-base.scheduletrigger"
        ]
        assert catalog.get_by_category("Finance") == []

    def test_search(self, catalog):
        assert [r.name for r in catalog.search("JAVASCRIPT")] == ["n8n-nodes-base.code"]
        assert [r.name for r in catalog.search("core")] == ["n8n-nodes-base.code"]
        assert len(catalog.search("n8n-nodes-base")) == 3
        assert catalog.search("   ") == []

    def test_stats(self, catalog):
        stats = catalog.stats()

        assert stats["total_nodes"] == 3
        assert stats["categories"] == {"Communication": 1, "Core": 1, "Trigger": 1}
        assert stats["trigger_nodes"] == 1
        assert stats["regular_nodes"] == 2
        assert stats["codeable_nodes"] == 1

    def test_init_merges_duplicates(self, record_factory):
        catalog = Catalog(
            [record_factory(credentials=None), record_factory(credentials=["slackApi"])]
        )

        assert len(catalog) == 1
        assert catalog.get("n8n-nodes-base.slack").credentials == ["slackApi"]

    def test_merge_returns_snapshot(self, catalog, record_factory):
        snapshot = catalog.merge(
            [record_factory(webhook_support=True), record_factory(name="n8n-nodes-base.gmail")]
        )

        assert len(snapshot) == 4
        assert catalog.get("n8n-nodes-base.slack").webhook_support is True

        # Snapshots are independent of later merges
        catalog.merge([record_factory(name="n8n-nodes-base.discord")])
        assert len(snapshot) == 4
        assert len(catalog) == 5

    def test_concurrent_merges_are_serialized(self, record_factory):
        catalog = Catalog()

        def worker(offset):
            for i in range(20):
                catalog.merge([record_factory(name=f"n8n-nodes-base.node{offset}-{i}")])

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(catalog) == 80

    def test_reads_hold_the_lock(self, catalog):
        lock = MagicMock()
        catalog._lock = lock

        assert catalog.get("n8n-nodes-base.slack") is not None
        assert len(catalog) == 3
        assert "n8n-nodes-base.code" in catalog
        assert len(catalog.snapshot()) == 3

        assert lock.__enter__.call_count == 4
        assert lock.__exit__.call_count == 4


class TestCatalogStorage:
    """Test dated catalog persistence."""

    def test_save_and_load_roundtrip(self, tmp_path, catalog):
        storage = CatalogStorage(tmp_path, run_date="2025-01-20")
        stats = ScraperStats(total_nodes=3, successful_scrapes=3, category_counts={"Core": 1})

        path = storage.save_catalog(catalog, stats)

        assert path == tmp_path / "2025-01-20" / "catalog.json"
        with open(path) as f:
            payload = json.load(f)
        assert payload["totalNodes"] == 3
        assert payload["categories"] == {"Communication": 1, "Core": 1, "Trigger": 1}
        assert payload["scraperStats"]["successfulScrapes"] == 3
        assert "generatedAt" in payload
        assert payload["nodes"][1]["triggerFlag"] is True

        loaded = storage.load_catalog("2025-01-20")
        assert [r.to_dict() for r in loaded.get_all()] == [r.to_dict() for r in catalog.get_all()]

    def test_list_runs_and_latest(self, tmp_path, catalog):
        CatalogStorage(tmp_path, run_date="2025-01-19").save_catalog(catalog)
        CatalogStorage(tmp_path, run_date="2025-01-21").save_catalog(catalog)
        (tmp_path / "2025-01-22").mkdir()
        (tmp_path / "notes").mkdir()

        storage = CatalogStorage(tmp_path)

        assert storage.list_available_runs() == ["2025-01-19", "2025-01-21"]
        assert storage.latest_run() == "2025-01-21"
        assert len(storage.load_catalog()) == 3

    def test_load_missing_catalog(self, tmp_path):
        storage = CatalogStorage(tmp_path / "nowhere")

        assert storage.list_available_runs() == []
        with pytest.raises(FileNotFoundError):
            storage.load_catalog()
        with pytest.raises(FileNotFoundError):
            storage.load_catalog("2025-01-01")

    def test_run_manifest(self, tmp_path):
        storage = CatalogStorage(tmp_path, run_date="2025-01-20")

        storage.save_run_manifest({"pipeline_type": "test", "summary": {"transformed": 2}})
        manifest = storage.get_run_manifest("2025-01-20")

        assert manifest["run_date"] == "2025-01-20"
        assert manifest["pipeline_type"] == "test"
        assert manifest["summary"]["transformed"] == 2
        assert storage.get_run_manifest("2024-12-31") is None
