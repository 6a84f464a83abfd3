"""Catalog inspection CLI commands."""

import json as _json

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from ..core.config import settings
from ..pipelines.catalog import CatalogStorage
from ..pipelines.transform.validator import NodeValidator


@click.group()
def catalog():
    """Stored catalog commands."""
    pass


def _load(artifacts_path, run_date):
    storage = CatalogStorage(artifacts_path or settings.artifacts_path)
    try:
        return storage.load_catalog(run_date)
    except FileNotFoundError as e:
        raise click.ClickException(str(e))


@catalog.command("stats")
@click.option("--run-date", default=None, help="Run date (YYYY-MM-DD), defaults to latest")
@click.option("--artifacts-path", default=None, help="Path to catalog runs")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def catalog_stats(run_date, artifacts_path, as_json):
    """Show counts for a stored catalog."""
    stats = _load(artifacts_path, run_date).stats()

    if as_json:
        click.echo(_json.dumps(stats, indent=2))
        return

    console = Console()
    table = Table(title=f"Catalog ({stats['total_nodes']} nodes)")
    table.add_column("Category", no_wrap=True)
    table.add_column("Nodes", justify="right")
    for category, count in stats["categories"].items():
        table.add_row(category, str(count))
    console.print(table)

    for key in ("trigger_nodes", "regular_nodes", "webhook_nodes", "polling_nodes", "codeable_nodes"):
        console.print(f"{key.replace('_', ' ').capitalize()}: {stats[key]}")


@catalog.command("search")
@click.argument("query")
@click.option("--category", default=None, help="Restrict results to a category")
@click.option("--run-date", default=None, help="Run date (YYYY-MM-DD), defaults to latest")
@click.option("--artifacts-path", default=None, help="Path to catalog runs")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def catalog_search(query, category, run_date, artifacts_path, as_json):
    """Search node names, display names, descriptions and categories."""
    results = _load(artifacts_path, run_date).search(query)
    if category:
        results = [r for r in results if r.category.lower() == category.lower()]

    if as_json:
        click.echo(_json.dumps([r.to_dict() for r in results], indent=2))
        return

    console = Console()
    if not results:
        console.print(f"No nodes match '{query}'")
        return

    table = Table(title=f"Nodes matching '{query}'")
    table.add_column("Name", no_wrap=True)
    table.add_column("Display Name")
    table.add_column("Category", no_wrap=True)
    table.add_column("Type", no_wrap=True)
    for record in results:
        table.add_row(
            record.name,
            record.display_name,
            record.category,
            "trigger" if record.trigger_flag else "regular",
        )
    console.print(table)


@catalog.command("validate")
@click.option("--run-date", default=None, help="Run date (YYYY-MM-DD), defaults to latest")
@click.option("--artifacts-path", default=None, help="Path to catalog runs")
@click.option("--output", type=click.Path(dir_okay=False), help="Write the report to a file")
def catalog_validate(run_date, artifacts_path, output):
    """Validate every record of a stored catalog and print a report."""
    records = _load(artifacts_path, run_date).get_all()

    validator = NodeValidator()
    results = validator.validate_batch(records)
    report = validator.generate_report(results, records)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(report)
        click.echo(f"✅ Report written to {output}")
        return

    Console().print(Markdown(report))
