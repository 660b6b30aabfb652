"""CLI commands for backups: tarvault backup run/list/verify/rotate."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

import click

from tarvault.core.config import JobConfig, config_path, load_config
from tarvault.core.errors import AlreadyRunning, ConfigError, LockError, VerifyError
from tarvault.core.fileutil import human_size
from tarvault.core.lock import RunLock
from tarvault.core.models import BackupTarget
from tarvault.core.rotation import list_archives, rotate
from tarvault.core.runner import BackupRunner
from tarvault.core.verifier import verify_archive

EXIT_OK = 0
EXIT_TARGETS_FAILED = 1
EXIT_NOT_STARTED = 2
EXIT_INTERRUPTED = 130

_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _setup_logging(log_file: Path, level: str, verbose: bool) -> None:
    """Attach the run log file (and the console when verbose) to our logger.

    Handlers go on the ``tarvault`` logger rather than the root so repeated
    invocations in one process replace them instead of stacking up.
    """
    logger = logging.getLogger("tarvault")
    for handler in list(logger.handlers):
        if getattr(handler, "_tarvault", False):
            logger.removeHandler(handler)
            handler.close()

    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    handlers: list[logging.Handler] = []
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        handlers.append(file_handler)
    except OSError as e:
        click.echo(f"Warning: cannot write log file {log_file}: {e}", err=True)
        verbose = True

    if verbose:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter("%(message)s"))
        handlers.append(console)

    for handler in handlers:
        handler._tarvault = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


def _load(config_file: Path | None) -> dict:
    return load_config(config_file or config_path())


def _job_config(config: dict, **overrides) -> JobConfig:
    try:
        return JobConfig.from_config(config, **overrides)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_NOT_STARTED)


def _check_root(job: JobConfig) -> None:
    if job.require_root and os.geteuid() != 0:
        click.echo("This command needs to be run as root.", err=True)
        sys.exit(EXIT_NOT_STARTED)


_config_option = click.option(
    "--config",
    "config_file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to config.yaml (default: $TARVAULT_HOME/config.yaml).",
)


@click.group("backup")
def backup_group() -> None:
    """Create, list, verify and rotate directory backups."""


@backup_group.command("run")
@_config_option
@click.option(
    "--dir", "-d", "dirs",
    multiple=True,
    help="Back up only this directory (repeatable; replaces configured targets).",
)
@click.option("--keep", "-k", type=click.IntRange(min=1), default=None, help="Keep NUM backups per directory.")
@click.option("--dest", type=click.Path(path_type=Path, file_okay=False), default=None, help="Backup destination directory.")
@click.option("--lock-file", type=click.Path(path_type=Path, dir_okay=False), default=None, help="Lock file path.")
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output.")
def backup_run(
    config_file: Path | None,
    dirs: tuple[str, ...],
    keep: int | None,
    dest: Path | None,
    lock_file: Path | None,
    verbose: bool,
) -> None:
    """Back up every target, verify the archives and rotate old ones.

    Exit status: 0 all targets succeeded, 1 some targets failed,
    2 the run could not start, 130 interrupted.
    """
    config = _load(config_file)
    log_cfg = config.get("logging", {})
    _setup_logging(
        Path(log_cfg["file"]).expanduser(),
        log_cfg.get("level", "info"),
        verbose or bool(log_cfg.get("verbose", False)),
    )

    job = _job_config(config, dirs=dirs, keep=keep, dest=dest, lock_file=lock_file)
    _check_root(job)

    runner = BackupRunner(job)
    try:
        report = runner.run()
    except AlreadyRunning as e:
        click.echo(str(e), err=True)
        sys.exit(EXIT_NOT_STARTED)
    except LockError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_NOT_STARTED)

    for outcome in report.outcomes:
        if outcome.success and outcome.archive:
            deleted = len(outcome.rotation.deleted) if outcome.rotation else 0
            click.echo(
                f"  OK: {outcome.target.path} -> {outcome.archive.filename} "
                f"({human_size(outcome.archive.size)}, {deleted} rotated)"
            )
        else:
            click.echo(f"  FAILED: {outcome.target.path} ({outcome.stage.value}): {outcome.error}")

    click.echo(
        f"Success: {report.succeeded}, Failed: {report.failed} "
        f"({report.duration_seconds:.1f}s)"
    )

    if report.interrupted:
        click.echo("Backup interrupted", err=True)
        sys.exit(EXIT_INTERRUPTED)
    if report.failed:
        sys.exit(EXIT_TARGETS_FAILED)


@backup_group.command("list")
@_config_option
@click.option("--target", "-t", "target_names", multiple=True, help="Only list archives for this target name.")
@click.option("--dest", type=click.Path(path_type=Path, file_okay=False), default=None, help="Backup destination directory.")
def backup_list(config_file: Path | None, target_names: tuple[str, ...], dest: Path | None) -> None:
    """List archives per target, newest first."""
    config = _load(config_file)
    dest_root = Path(dest or config["backup"]["dest"]).expanduser()

    if target_names:
        names = list(target_names)
    else:
        raw_targets = config["backup"].get("targets") or []
        names = [BackupTarget.from_path(str(t)).name for t in raw_targets]

    if not names:
        click.echo("No backup targets configured.")
        return

    for name in names:
        click.echo(f"\n{name}:")
        archives = list_archives(name, dest_root)
        if not archives:
            click.echo("  No backups found.")
            continue
        for archive in archives:
            mtime = datetime.fromtimestamp(archive.path.stat().st_mtime)
            click.echo(
                f"  {archive.filename}  {human_size(archive.size):>7}  "
                f"{mtime:%Y-%m-%d %H:%M:%S}"
            )


@backup_group.command("verify")
@click.argument("paths", nargs=-1, required=True, type=click.Path(path_type=Path))
def backup_verify(paths: tuple[Path, ...]) -> None:
    """Check that archive files can be read end to end."""
    failed = 0
    for path in paths:
        try:
            members = verify_archive(path)
        except VerifyError as e:
            failed += 1
            click.echo(f"  FAILED: {e}")
        else:
            click.echo(f"  OK: {path} ({members} entries)")

    if failed:
        sys.exit(1)


@backup_group.command("rotate")
@_config_option
@click.option("--dir", "-d", "dirs", multiple=True, help="Rotate only this directory's archives (repeatable).")
@click.option("--keep", "-k", type=click.IntRange(min=1), default=None, help="Keep NUM backups per directory.")
@click.option("--dest", type=click.Path(path_type=Path, file_okay=False), default=None, help="Backup destination directory.")
@click.option("--lock-file", type=click.Path(path_type=Path, dir_okay=False), default=None, help="Lock file path.")
@click.option("--dry-run", is_flag=True, help="Show what would be deleted without deleting.")
def backup_rotate(
    config_file: Path | None,
    dirs: tuple[str, ...],
    keep: int | None,
    dest: Path | None,
    lock_file: Path | None,
    dry_run: bool,
) -> None:
    """Apply the retention policy without creating new backups."""
    config = _load(config_file)
    log_cfg = config.get("logging", {})
    _setup_logging(
        Path(log_cfg["file"]).expanduser(),
        log_cfg.get("level", "info"),
        bool(log_cfg.get("verbose", False)),
    )

    job = _job_config(config, dirs=dirs, keep=keep, dest=dest, lock_file=lock_file)
    _check_root(job)

    errors = 0
    try:
        with RunLock(job.lock_file):
            for target in job.targets:
                result = rotate(target.name, job.dest, job.keep, dry_run=dry_run)
                verb = "would delete" if dry_run else "deleted"
                click.echo(
                    f"{target.name}: kept {len(result.kept)}, "
                    f"{verb} {len(result.deleted)}"
                )
                for path, reason in result.errors:
                    errors += 1
                    click.echo(f"  FAILED to delete {path}: {reason}")
    except AlreadyRunning as e:
        click.echo(str(e), err=True)
        sys.exit(EXIT_NOT_STARTED)
    except LockError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_NOT_STARTED)

    if errors:
        sys.exit(EXIT_TARGETS_FAILED)
