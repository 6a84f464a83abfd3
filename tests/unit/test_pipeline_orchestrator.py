"""Tests for pipeline orchestrator."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest

from n8n_node_catalog.pipelines.catalog import Catalog, CatalogStorage
from n8n_node_catalog.pipelines.orchestrator import (
    DiscoveryError,
    OrchestrationError,
    PipelineOrchestrator,
)

BASE_URL = "https://docs.n8n.io/integrations/builtin/"

LISTING_HTML = """
<ul>
    <li><a href="/integrations/builtin/app-nodes/n8n-nodes-base.slack/">Slack</a></li>
    <li><a href="/integrations/builtin/core-nodes/n8n-nodes-base.httprequest/">HTTP Request</a></li>
    <li><a href="/integrations/builtin/app-nodes/n8n-nodes-base.gmail/">Gmail</a></li>
</ul>
"""


def route(page_html, listing_html=LISTING_HTML, failing=()):
    """Fake single-request primitive serving the listing and node pages."""

    async def fake_request(url):
        if url == BASE_URL:
            return listing_html
        if any(name in url for name in failing):
            raise aiohttp.ClientResponseError(
                request_info=Mock(real_url=url), history=(), status=404, message="Not Found"
            )
        return page_html

    return fake_request


def patch_requests(orchestrator, fake_request):
    mock = AsyncMock(side_effect=fake_request)
    return (
        patch.object(orchestrator.node_list_scraper, "_request", mock),
        patch.object(orchestrator.node_detail_scraper, "_request", mock),
    )


class TestPipelineOrchestrator:
    """Test pipeline orchestrator functionality."""

    @pytest.fixture
    def orchestrator(self, tmp_path, fast_config):
        return PipelineOrchestrator(str(tmp_path), {"scraper": fast_config})

    def test_init_with_config(self, orchestrator, tmp_path):
        assert orchestrator.artifacts_path == Path(tmp_path)
        assert isinstance(orchestrator.storage, CatalogStorage)
        assert isinstance(orchestrator.catalog, Catalog)
        assert orchestrator.node_list_scraper.config["rate_limit_ms"] == 0
        assert orchestrator.node_detail_scraper.config["batch_cooldown_ms"] == 0
        assert len(orchestrator.catalog) == 0

    def test_select_test_nodes_prefers_category_mix(self, reference_factory):
        references = [
            reference_factory("a", priority=1, category="Core Nodes"),
            reference_factory("b", priority=1, category="Core Nodes"),
            reference_factory("c", priority=2, category="App Nodes"),
            reference_factory("d", priority=3, category="Trigger Nodes"),
            reference_factory("e", priority=5, category="Sub Nodes"),
        ]

        selected = PipelineOrchestrator.select_test_nodes(references, 3)

        assert [r.name for r in selected] == ["a", "b", "c"]
        assert [r.name for r in PipelineOrchestrator.select_test_nodes(references, 1)] == ["a"]

    @pytest.mark.asyncio
    async def test_run_test_pipeline(self, orchestrator, node_page_html):
        list_patch, detail_patch = patch_requests(orchestrator, route(node_page_html))

        with list_patch, detail_patch:
            results = await orchestrator.run_test_pipeline(max_nodes=2)

        assert results["success"] is True
        assert results["pipeline_type"] == "test"
        assert results["discovery"]["total_nodes"] == 3
        assert results["discovery"]["selected"] == 2
        assert len(results["records"]) == 2
        assert results["records"][0].name == "n8n-nodes-base.httprequest"
        assert results["stats"].total_nodes == 2
        assert results["stats"].successful_scrapes == 2
        assert results["summary"]["success_rate"] == 1.0
        assert results["summary"]["average_quality_score"] > 0
        assert "catalog_path" not in results
        assert orchestrator.storage.list_available_runs() == []

    @pytest.mark.asyncio
    async def test_rerun_on_identical_pages_is_identical(
        self, tmp_path, fast_config, node_page_html
    ):
        outputs = []
        for run in ("first", "second"):
            orchestrator = PipelineOrchestrator(str(tmp_path / run), {"scraper": fast_config})
            list_patch, detail_patch = patch_requests(orchestrator, route(node_page_html))

            with list_patch, detail_patch:
                results = await orchestrator.run_test_pipeline(max_nodes=3)

            outputs.append(
                json.dumps([r.to_dict() for r in results["records"]], sort_keys=True)
            )

        assert json.loads(outputs[0])
        assert outputs[0] == outputs[1]

    @pytest.mark.asyncio
    async def test_run_full_pipeline_isolates_failures(self, orchestrator, node_page_html):
        fake = route(node_page_html, failing=("gmail",))
        list_patch, detail_patch = patch_requests(orchestrator, fake)

        with list_patch, detail_patch:
            results = await orchestrator.run_full_pipeline()

        assert results["success"] is True
        assert len(results["records"]) == 2
        assert len(results["scrape_errors"]) == 1
        assert results["scrape_errors"][0]["nodeName"] == "n8n-nodes-basegmail"
        assert results["stats"].failed_scrapes == 1
        assert results["stats"].error_rate == pytest.approx(1 / 3)
        assert results["summary"]["success_rate"] == pytest.approx(2 / 3)

        catalog_path = Path(results["catalog_path"])
        assert catalog_path.exists()
        with open(catalog_path) as f:
            payload = json.load(f)
        assert payload["totalNodes"] == 2
        assert payload["scraperStats"]["failedScrapes"] == 1

        manifest = orchestrator.storage.get_run_manifest(results["run_date"])
        assert manifest["pipeline_type"] == "full"
        assert manifest["summary"]["scrape_failures"] == 1

    @pytest.mark.asyncio
    async def test_no_references_aborts_run(self, orchestrator, node_page_html):
        fake = route(node_page_html, listing_html="<html><p>nothing</p></html>")
        list_patch, detail_patch = patch_requests(orchestrator, fake)

        with list_patch, detail_patch:
            with pytest.raises(DiscoveryError):
                await orchestrator.run_full_pipeline()

    @pytest.mark.asyncio
    async def test_unexpected_stage_failure_is_wrapped(self, orchestrator, node_page_html):
        list_patch, detail_patch = patch_requests(orchestrator, route(node_page_html))

        with list_patch, detail_patch:
            with patch.object(
                orchestrator.transformer, "transform_batch", side_effect=RuntimeError("boom")
            ):
                with pytest.raises(OrchestrationError) as exc_info:
                    await orchestrator.run_test_pipeline(max_nodes=1)

        assert not isinstance(exc_info.value, DiscoveryError)
        assert "boom" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_merge_existing_catalog(self, orchestrator, node_page_html, record_factory):
        CatalogStorage(orchestrator.artifacts_path).save_catalog(
            Catalog([record_factory(), record_factory(name="n8n-nodes-base.legacy")])
        )
        list_patch, detail_patch = patch_requests(orchestrator, route(node_page_html))

        with list_patch, detail_patch:
            results = await orchestrator.run_full_pipeline(merge_existing=True)

        assert results["merge"]["collisions"] == 1
        assert results["merge"]["catalog_size"] == 4
        assert "n8n-nodes-base.legacy" in orchestrator.catalog

    @pytest.mark.asyncio
    async def test_validate_approach(self, orchestrator, node_page_html):
        list_patch, detail_patch = patch_requests(orchestrator, route(node_page_html))

        with list_patch, detail_patch:
            outcome = await orchestrator.validate_approach()

        assert outcome["approach_valid"] is True
        assert outcome["problems"] == []
        assert len(outcome["run"]["records"]) == 3

    @pytest.mark.asyncio
    async def test_validate_approach_without_records(self, orchestrator, node_page_html):
        fake = route(node_page_html, failing=("slack", "httprequest", "gmail"))
        list_patch, detail_patch = patch_requests(orchestrator, fake)

        with list_patch, detail_patch:
            outcome = await orchestrator.validate_approach()

        assert outcome["approach_valid"] is False
        assert outcome["problems"] == ["No records produced"]

    @pytest.mark.asyncio
    async def test_get_pipeline_status(self, orchestrator, catalog_run):
        status = await orchestrator.get_pipeline_status()

        assert status["artifacts_path"] == str(orchestrator.artifacts_path)
        assert status["available_runs"] == ["2025-01-20"]
        assert status["latest_manifest"]["pipeline_type"] == "full"
        assert set(status["scrapers"]) == {"n8n_node_list", "n8n_node_detail"}

    @pytest.fixture
    def catalog_run(self, orchestrator, record_factory):
        storage = CatalogStorage(orchestrator.artifacts_path, run_date="2025-01-20")
        storage.save_catalog(Catalog([record_factory()]))
        storage.save_run_manifest({"pipeline_type": "full"})
        return storage
