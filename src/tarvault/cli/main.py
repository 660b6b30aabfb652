"""CLI entry point for tarvault."""

import click

from tarvault import __version__
from tarvault.cli.backup_cmd import backup_group
from tarvault.cli.config_cmd import config_cmd
from tarvault.cli.init_cmd import init_cmd


@click.group()
@click.version_option(version=__version__, prog_name="tarvault")
def cli() -> None:
    """tarvault: rotating, verified tar.gz backups of directories."""


cli.add_command(backup_group)
cli.add_command(init_cmd)
cli.add_command(config_cmd)


if __name__ == "__main__":
    cli()
