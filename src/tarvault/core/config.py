"""Configuration loader for tarvault."""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from tarvault.core.errors import ConfigError
from tarvault.core.models import BackupTarget

log = logging.getLogger(__name__)

DEFAULTS: dict = {
    "backup": {
        "dest": "/var/backups/system",
        "keep": 7,
        "targets": [
            "/etc",
            "/home",
            "/var/www",
        ],
        "lock_file": "/tmp/tarvault.lock",
        "require_root": False,
    },
    "logging": {
        # None means backup.log next to config.yaml
        "file": None,
        "level": "info",
        "verbose": False,
    },
}


def resolve_home() -> Path:
    """Resolve TARVAULT_HOME: env var > default ~/.tarvault."""
    env_home = os.environ.get("TARVAULT_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path("~/.tarvault").expanduser().resolve()


def config_path(home: Path | None = None) -> Path:
    """Return the path to config.yaml."""
    if home is None:
        home = resolve_home()
    return home / "config.yaml"


def load_config(path: Path | None = None) -> dict:
    """Load config.yaml and merge with defaults.

    Args:
        path: Explicit path to config.yaml. If None, uses default location.

    Returns:
        Merged configuration dict.
    """
    if path is None:
        path = config_path()

    user_config: dict = {}
    if path.exists():
        try:
            raw = path.read_text(encoding="utf-8")
            user_config = yaml.safe_load(raw) or {}
        except Exception:
            log.warning("Failed to read config at %s, using defaults", path, exc_info=True)
        if not isinstance(user_config, dict):
            log.warning("Config at %s is not a mapping, using defaults", path)
            user_config = {}

    merged = _deep_merge(copy.deepcopy(DEFAULTS), user_config)
    for section in ("backup", "logging"):
        if not isinstance(merged.get(section), dict):
            log.warning("Config section %r in %s is not a mapping, using defaults", section, path)
            merged[section] = copy.deepcopy(DEFAULTS[section])

    if not merged["logging"].get("file"):
        merged["logging"]["file"] = str(path.parent / "backup.log")

    return merged


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


@dataclass(frozen=True)
class JobConfig:
    """Validated, immutable settings for a single backup run."""

    targets: tuple[BackupTarget, ...]
    dest: Path
    keep: int
    lock_file: Path
    require_root: bool = False

    @classmethod
    def from_config(
        cls,
        config: dict,
        *,
        dirs: list[str] | tuple[str, ...] | None = None,
        keep: int | None = None,
        dest: str | Path | None = None,
        lock_file: str | Path | None = None,
    ) -> JobConfig:
        """Build a JobConfig from a merged config dict plus CLI overrides.

        ``dirs`` replaces the configured targets entirely, like ``-d`` did
        in the shell version.

        Raises:
            ConfigError: on missing targets, a bad keep count or a target
                without a usable base name.
        """
        section = config.get("backup", {})

        raw_targets = list(dirs) if dirs else section.get("targets") or []
        if isinstance(raw_targets, str):
            raw_targets = [raw_targets]
        if not raw_targets:
            raise ConfigError("No backup targets configured")

        targets = []
        for raw in raw_targets:
            target = BackupTarget.from_path(str(raw))
            if not target.name:
                raise ConfigError(f"Cannot back up {raw!r}: target has no base name")
            targets.append(target)

        raw_keep = keep if keep is not None else section.get("keep")
        try:
            keep_count = int(raw_keep)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid keep count: {raw_keep!r}") from e
        if isinstance(raw_keep, bool) or keep_count < 1:
            raise ConfigError(f"Keep count must be at least 1, got {raw_keep!r}")

        dest_path = dest or section.get("dest")
        if not dest_path:
            raise ConfigError("No backup destination configured")

        lock_path = lock_file or section.get("lock_file")
        if not lock_path:
            raise ConfigError("No lock file configured")

        return cls(
            targets=tuple(targets),
            dest=Path(dest_path).expanduser(),
            keep=keep_count,
            lock_file=Path(lock_path).expanduser(),
            require_root=bool(section.get("require_root", False)),
        )
