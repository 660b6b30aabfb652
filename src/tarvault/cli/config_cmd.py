"""CLI command for showing the effective configuration."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import yaml

from tarvault.core.config import JobConfig, config_path, load_config
from tarvault.core.errors import ConfigError


@click.command("config")
@click.option(
    "--config",
    "config_file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to config.yaml (default: $TARVAULT_HOME/config.yaml).",
)
def config_cmd(config_file: Path | None) -> None:
    """Print the merged configuration and check that it is usable."""
    path = config_file or config_path()
    config = load_config(path)

    click.echo(f"# {path}{'' if path.exists() else ' (not found, defaults)'}")
    click.echo(yaml.dump(config, default_flow_style=False, sort_keys=False).rstrip())

    try:
        job = JobConfig.from_config(config)
    except ConfigError as e:
        click.echo(f"\nInvalid: {e}")
        sys.exit(2)

    click.echo(f"\n{len(job.targets)} target(s), keeping {job.keep} backup(s) each in {job.dest}")
