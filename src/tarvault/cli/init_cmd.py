"""CLI command for writing a starter config.yaml."""

from __future__ import annotations

import copy
import logging
from pathlib import Path

import click
import yaml

from tarvault.core.config import DEFAULTS, config_path, resolve_home
from tarvault.core.fileutil import ensure_dir

log = logging.getLogger(__name__)


def _default_config(home: Path) -> dict:
    config = copy.deepcopy(DEFAULTS)
    config["logging"]["file"] = str(home / "backup.log")
    return config


@click.command("init")
@click.option(
    "--home",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Override TARVAULT_HOME path.",
)
@click.option("--force", is_flag=True, help="Overwrite an existing config.yaml.")
def init_cmd(home: Path | None, force: bool) -> None:
    """Create TARVAULT_HOME with a default config.yaml.

    Edit the ``backup.targets`` list afterwards to choose what gets backed up.
    """
    home_path = (home or resolve_home()).expanduser().resolve()
    cfg_path = config_path(home_path)

    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}")
        click.echo("Use --force to overwrite it with defaults.")
        return

    ensure_dir(home_path)
    cfg_path.write_text(
        yaml.dump(_default_config(home_path), default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    log.debug("Wrote default config to %s", cfg_path)

    click.echo(f"Wrote default config to {cfg_path}")
    click.echo("Next: edit backup.targets and backup.dest, then run `tarvault backup run -v`.")
