"""CLI interface for the n8n node catalog."""

import importlib
import logging

import click

from ..core.config import settings

# Map command names to their module:attribute for lazy import
_COMMANDS = {
    "pipeline": "n8n_node_catalog.cli.pipeline:pipeline",
    "catalog": "n8n_node_catalog.cli.catalog:catalog",
}

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


class LazyGroup(click.Group):
    """
    Lazy loading of CLI commands.

    Command groups live in separate modules and are only imported when invoked.
    """

    def list_commands(self, ctx):
        # Keep stable ordering for help output
        return list(_COMMANDS.keys())

    def get_command(self, ctx, name):
        target = _COMMANDS.get(name)
        if not target:
            return None
        module_path, attr = target.split(":", 1)
        mod = importlib.import_module(module_path)
        return getattr(mod, attr)


@click.group(cls=LazyGroup)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (defaults to LOG_LEVEL or INFO)",
)
def main(log_level):
    """n8n node catalog CLI."""
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format=LOG_FORMAT,
    )


if __name__ == "__main__":
    main()
