"""Tests for the `pipeline` CLI commands."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from n8n_node_catalog.cli.pipeline import pipeline
from n8n_node_catalog.models import ScraperStats
from n8n_node_catalog.pipelines.catalog import Catalog, CatalogStorage


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def run_results(record_factory):
    return {
        "pipeline_type": "test",
        "run_date": "2025-01-20",
        "discovery": {"total_nodes": 12, "selected": 2},
        "merge": {"new": 1, "collisions": 0, "catalog_size": 1},
        "records": [record_factory()],
        "stats": ScraperStats(
            total_nodes=2,
            successful_scrapes=1,
            failed_scrapes=1,
            category_counts={"Communication": 1},
        ),
        "summary": {
            "selected": 2,
            "scraped": 1,
            "scrape_failures": 1,
            "transformed": 1,
            "transform_failures": 0,
            "success_rate": 0.5,
            "average_quality_score": 95,
            "low_quality": 0,
            "top_errors": [],
            "top_warnings": [{"warning": "No examples found", "count": 1}],
        },
        "scrape_errors": [
            {"url": "https://x", "nodeName": "gmail", "error": "HTTP 404: Not Found", "retryCount": 0}
        ],
    }


def mock_orchestrator(**methods):
    orchestrator = MagicMock()
    for name, value in methods.items():
        setattr(orchestrator, name, AsyncMock(return_value=value))
    return orchestrator


class TestPipelineCLI:
    def test_help_lists_commands(self, cli_runner):
        result = cli_runner.invoke(pipeline, ["--help"])

        assert result.exit_code == 0
        for command in ("run", "test", "validate", "status", "show-run"):
            assert command in result.output

    def test_test_command_prints_summary(self, cli_runner, run_results):
        orchestrator = mock_orchestrator(run_test_pipeline=run_results)

        with patch(
            "n8n_node_catalog.cli.pipeline.PipelineOrchestrator", return_value=orchestrator
        ):
            result = cli_runner.invoke(pipeline, ["test", "--max-nodes", "2"])

        assert result.exit_code == 0
        orchestrator.run_test_pipeline.assert_awaited_once_with(max_nodes=2, save=False)
        assert "Test pipeline completed" in result.output
        assert "Scraped: 1/2 (1 failed)" in result.output
        assert "Success rate: 50%" in result.output
        assert "gmail: HTTP 404: Not Found" in result.output
        assert "n8n-nodes-base.slack: Slack [Communication]" in result.output

    def test_run_command_passes_flags(self, cli_runner, run_results):
        orchestrator = mock_orchestrator(run_full_pipeline=run_results)

        with patch(
            "n8n_node_catalog.cli.pipeline.PipelineOrchestrator", return_value=orchestrator
        ):
            result = cli_runner.invoke(pipeline, ["run", "--merge-existing", "--no-save"])

        assert result.exit_code == 0
        orchestrator.run_full_pipeline.assert_awaited_once_with(merge_existing=True, save=False)

    def test_run_command_reports_failure(self, cli_runner):
        orchestrator = MagicMock()
        orchestrator.run_full_pipeline = AsyncMock(side_effect=RuntimeError("boom"))

        with patch(
            "n8n_node_catalog.cli.pipeline.PipelineOrchestrator", return_value=orchestrator
        ):
            result = cli_runner.invoke(pipeline, ["run"])

        assert result.exit_code != 0
        assert "Full pipeline failed: boom" in result.output

    def test_validate_failure_exits_non_zero(self, cli_runner):
        orchestrator = mock_orchestrator(
            validate_approach={"approach_valid": False, "problems": ["No records produced"], "run": {}}
        )

        with patch(
            "n8n_node_catalog.cli.pipeline.PipelineOrchestrator", return_value=orchestrator
        ):
            result = cli_runner.invoke(pipeline, ["validate"])

        assert result.exit_code == 1
        assert "No records produced" in result.output

    def test_validate_success(self, cli_runner, run_results):
        orchestrator = mock_orchestrator(
            validate_approach={"approach_valid": True, "problems": [], "run": run_results}
        )

        with patch(
            "n8n_node_catalog.cli.pipeline.PipelineOrchestrator", return_value=orchestrator
        ):
            result = cli_runner.invoke(pipeline, ["validate"])

        assert result.exit_code == 0
        assert "Approach is valid (1 sample records)" in result.output

    def test_status(self, cli_runner, tmp_path):
        result = cli_runner.invoke(pipeline, ["status", "--artifacts-path", str(tmp_path)])

        assert result.exit_code == 0
        assert "Available runs: 0" in result.output
        assert "n8n_node_detail" in result.output

    def test_show_run_without_manifest(self, cli_runner, tmp_path):
        result = cli_runner.invoke(
            pipeline, ["show-run", "--run-date", "2025-01-20", "--artifacts-path", str(tmp_path)]
        )

        assert result.exit_code == 0
        assert "No manifest found for run 2025-01-20" in result.output

    def test_show_run_with_manifest(self, cli_runner, tmp_path):
        storage = CatalogStorage(tmp_path, run_date="2025-01-20")
        storage.save_run_manifest(
            {
                "pipeline_type": "full",
                "summary": {"selected": 3, "transformed": 2, "average_quality_score": 88},
                "stats": {"categoryCounts": {"Communication": 2}},
                "scrape_errors": [{"nodeName": "gmail"}],
            }
        )

        result = cli_runner.invoke(
            pipeline, ["show-run", "--run-date", "2025-01-20", "--artifacts-path", str(tmp_path)]
        )

        assert result.exit_code == 0
        assert "Pipeline: full" in result.output
        assert "Transformed: 2" in result.output
        assert "Communication: 2 nodes" in result.output
        assert "1 scrape errors" in result.output

    def test_status_shows_latest_manifest(self, cli_runner, tmp_path, record_factory):
        storage = CatalogStorage(tmp_path, run_date="2025-01-20")
        storage.save_catalog(Catalog([record_factory()]))
        storage.save_run_manifest(
            {
                "pipeline_type": "full",
                "summary": {"selected": 3, "transformed": 2, "average_quality_score": 88},
                "scrape_errors": [{"nodeName": "gmail"}],
            }
        )

        result = cli_runner.invoke(pipeline, ["status", "--artifacts-path", str(tmp_path)])

        assert result.exit_code == 0
        assert "Available runs: 1" in result.output
        assert "Latest run: 2025-01-20 (full, 2/3 nodes, average score 88/100)" in result.output
        assert "1 scrape errors in latest run" in result.output
