"""Specs command for Ralph CLI."""

from pathlib import Path

import click

from ralph_loop.config import ConfigError, apply_overrides, load_config
from ralph_loop.models.specs import SpecsRemaining
from ralph_loop.services.specs_service import SpecStatusOracle


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON config file (default: ~/.ralph/config.json)",
)
@click.option("--specs", "specs_dir", help="Specs directory containing README.md")
def specs(config_path, specs_dir):
    """Show whether the specs status table still lists work."""
    try:
        config = load_config(config_path)
        config = apply_overrides(config, {"paths": {"specs": specs_dir}})
    except ConfigError as e:
        raise click.ClickException(str(e))

    verdict = SpecStatusOracle(config.specs_path()).poll()
    if verdict.remaining == SpecsRemaining.MISSING:
        raise click.ClickException(verdict.error or "Specs status table missing")

    click.echo(f"Work remaining: {verdict.remaining.value}")
    click.echo(f"Active spec: {verdict.active_name or '-'}")
