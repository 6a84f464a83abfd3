"""CLI commands for running the catalog pipeline."""

import asyncio
from typing import Any, Dict

import click

from ..core.config import settings
from ..pipelines.catalog import CatalogStorage
from ..pipelines.orchestrator import PipelineOrchestrator


@click.group()
def pipeline():
    """Pipeline commands for discovering, scraping and cataloging nodes."""
    pass


def _echo_run_summary(results: Dict[str, Any]) -> None:
    summary = results["summary"]
    stats = results["stats"]

    click.echo(f"   Run date: {results['run_date']}")
    click.echo(f"   Discovered: {results['discovery']['total_nodes']} nodes")
    click.echo(f"   Scraped: {summary['scraped']}/{summary['selected']} ({summary['scrape_failures']} failed)")
    click.echo(f"   Transformed: {summary['transformed']} ({summary['transform_failures']} failed)")
    click.echo(f"   Success rate: {summary['success_rate']:.0%}")
    click.echo(f"   Average quality score: {summary['average_quality_score']}/100")
    click.echo(f"   Catalog size: {results['merge']['catalog_size']}")

    if stats.category_counts:
        click.echo("   Categories:")
        for category, count in sorted(stats.category_counts.items()):
            click.echo(f"      • {category}: {count}")

    if summary["top_errors"]:
        click.echo("   Top errors:")
        for entry in summary["top_errors"]:
            click.echo(f"      ❌ {entry['error']} ({entry['count']})")

    if summary["top_warnings"]:
        click.echo("   Top warnings:")
        for entry in summary["top_warnings"]:
            click.echo(f"      ⚠️  {entry['warning']} ({entry['count']})")

    for error in results["scrape_errors"]:
        click.echo(f"   ❌ {error['nodeName']}: {error['error']} (retries: {error['retryCount']})")

    if results.get("catalog_path"):
        click.echo(f"   Saved catalog: {results['catalog_path']}")


@pipeline.command()
@click.option("--artifacts-path", default=None, help="Path to store catalog runs")
@click.option("--merge-existing", is_flag=True, help="Merge into the latest stored catalog")
@click.option("--no-save", is_flag=True, help="Do not persist the catalog")
def run(artifacts_path: str, merge_existing: bool, no_save: bool):
    """Run the full pipeline over every discovered node."""
    click.echo("🚀 Starting full pipeline...")

    async def run_full_pipeline():
        orchestrator = PipelineOrchestrator(artifacts_path)
        try:
            results = await orchestrator.run_full_pipeline(
                merge_existing=merge_existing, save=not no_save
            )

            click.echo("✅ Full pipeline completed!")
            _echo_run_summary(results)
            return results

        except Exception as e:
            click.echo(f"❌ Full pipeline failed: {e}")
            raise

    return asyncio.run(run_full_pipeline())


@pipeline.command()
@click.option("--max-nodes", default=10, show_default=True, help="Number of nodes to scrape")
@click.option("--artifacts-path", default=None, help="Path to store catalog runs")
@click.option("--save", is_flag=True, help="Persist the resulting catalog")
def test(max_nodes: int, artifacts_path: str, save: bool):
    """Run the pipeline over a small selection of nodes."""
    click.echo(f"🧪 Starting test pipeline ({max_nodes} nodes)...")

    async def run_test_pipeline():
        orchestrator = PipelineOrchestrator(artifacts_path)
        try:
            results = await orchestrator.run_test_pipeline(max_nodes=max_nodes, save=save)

            click.echo("✅ Test pipeline completed!")
            _echo_run_summary(results)
            for record in results["records"]:
                click.echo(f"   📦 {record.name}: {record.display_name} [{record.category}]")
            return results

        except Exception as e:
            click.echo(f"❌ Test pipeline failed: {e}")
            raise

    return asyncio.run(run_test_pipeline())


@pipeline.command()
@click.option("--artifacts-path", default=None, help="Path to store catalog runs")
def validate(artifacts_path: str):
    """Smoke-test the scraping approach on three nodes."""
    click.echo("🔎 Validating scraping approach...")

    async def run_validation():
        orchestrator = PipelineOrchestrator(artifacts_path)
        try:
            return await orchestrator.validate_approach()
        except Exception as e:
            click.echo(f"❌ Validation failed: {e}")
            raise

    outcome = asyncio.run(run_validation())

    if outcome["approach_valid"]:
        click.echo(f"✅ Approach is valid ({len(outcome['run']['records'])} sample records)")
        return

    click.echo("❌ Approach validation failed:")
    for problem in outcome["problems"]:
        click.echo(f"   • {problem}")
    raise SystemExit(1)


@pipeline.command()
@click.option("--artifacts-path", default=None, help="Path to catalog runs")
def status(artifacts_path: str):
    """Show pipeline status and stored runs."""
    click.echo("📊 Pipeline Status")

    async def show_status():
        orchestrator = PipelineOrchestrator(artifacts_path)
        try:
            status_info = await orchestrator.get_pipeline_status()

            click.echo(f"   Artifacts path: {status_info['artifacts_path']}")
            click.echo(f"   Current run: {status_info['current_run_date']}")
            click.echo(f"   Available runs: {len(status_info['available_runs'])}")

            # Show recent runs
            if status_info["available_runs"]:
                click.echo("   Recent runs:")
                for run_date in status_info["available_runs"][-5:]:
                    click.echo(f"      • {run_date}")

            latest = status_info["latest_manifest"]
            if latest:
                summary = latest.get("summary", {})
                click.echo(
                    f"   Latest run: {latest['run_date']} ({latest.get('pipeline_type')}, "
                    f"{summary.get('transformed', 0)}/{summary.get('selected', 0)} nodes, "
                    f"average score {summary.get('average_quality_score', 0)}/100)"
                )
                if latest.get("scrape_errors"):
                    click.echo(f"   ⚠️  {len(latest['scrape_errors'])} scrape errors in latest run")

            click.echo("   Scrapers:")
            for name, scraper_info in status_info["scrapers"].items():
                click.echo(f"      • {name}: {scraper_info['base_url']}")

            return status_info

        except Exception as e:
            click.echo(f"❌ Status check failed: {e}")
            raise

    return asyncio.run(show_status())


@pipeline.command()
@click.option("--run-date", required=True, help="Run date to show details for (YYYY-MM-DD)")
@click.option("--artifacts-path", default=None, help="Path to catalog runs")
def show_run(run_date: str, artifacts_path: str):
    """Show detailed information about a stored run."""
    click.echo(f"📋 Run Details: {run_date}")

    storage = CatalogStorage(artifacts_path or settings.artifacts_path)

    manifest = storage.get_run_manifest(run_date)
    if not manifest:
        click.echo(f"❌ No manifest found for run {run_date}")
        return

    summary = manifest.get("summary", {})
    click.echo(f"   Pipeline: {manifest.get('pipeline_type')}")
    click.echo(f"   Created: {manifest['created_at']}")
    click.echo(f"   Selected nodes: {summary.get('selected', 0)}")
    click.echo(f"   Transformed: {summary.get('transformed', 0)}")
    click.echo(f"   Average quality score: {summary.get('average_quality_score', 0)}/100")

    categories = manifest.get("stats", {}).get("categoryCounts", {})
    if categories:
        click.echo("   Categories:")
        for category, count in categories.items():
            click.echo(f"      • {category}: {count} nodes")

    errors = manifest.get("scrape_errors", [])
    if errors:
        click.echo(f"   ⚠️  {len(errors)} scrape errors")
