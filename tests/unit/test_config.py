"""Tests for tarvault.core.config."""

from pathlib import Path

import pytest

from tarvault.core.config import DEFAULTS, JobConfig, _deep_merge, config_path, load_config, resolve_home
from tarvault.core.errors import ConfigError


class TestDeepMerge:
    def test_simple_override(self):
        base = {"a": 1, "b": 2}
        override = {"b": 3}
        result = _deep_merge(base, override)
        assert result == {"a": 1, "b": 3}

    def test_nested_merge(self):
        base = {"backup": {"keep": 7, "dest": "/var/backups"}}
        override = {"backup": {"keep": 3}}
        result = _deep_merge(base, override)
        assert result["backup"]["keep"] == 3
        assert result["backup"]["dest"] == "/var/backups"

    def test_lists_are_replaced(self):
        base = {"backup": {"targets": ["/etc", "/home"]}}
        override = {"backup": {"targets": ["/srv"]}}
        result = _deep_merge(base, override)
        assert result["backup"]["targets"] == ["/srv"]

    def test_does_not_mutate_base(self):
        base = {"a": {"b": 1}}
        override = {"a": {"b": 2}}
        _deep_merge(base, override)
        assert base["a"]["b"] == 1


class TestResolveHome:
    def test_env_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("TARVAULT_HOME", str(tmp_path / "custom"))
        assert resolve_home() == (tmp_path / "custom").resolve()
        assert config_path() == (tmp_path / "custom").resolve() / "config.yaml"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("TARVAULT_HOME", raising=False)
        assert resolve_home() == Path("~/.tarvault").expanduser().resolve()


class TestLoadConfig:
    def test_returns_defaults_when_no_file(self, tmp_path: Path):
        config = load_config(tmp_path / "nonexistent.yaml")
        assert config["backup"]["keep"] == DEFAULTS["backup"]["keep"]
        assert config["backup"]["targets"] == ["/etc", "/home", "/var/www"]

    def test_log_file_defaults_next_to_config(self, tmp_path: Path):
        config = load_config(tmp_path / "config.yaml")
        assert config["logging"]["file"] == str(tmp_path / "backup.log")

    def test_loads_and_merges(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("backup:\n  keep: 3\n")

        config = load_config(config_file)
        assert config["backup"]["keep"] == 3
        # Defaults preserved for unset keys
        assert config["backup"]["dest"] == "/var/backups/system"

    def test_does_not_mutate_defaults(self, tmp_path: Path):
        load_config(tmp_path / "config.yaml")
        assert DEFAULTS["logging"]["file"] is None

    def test_handles_empty_file(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        config = load_config(config_file)
        assert config["backup"]["keep"] == DEFAULTS["backup"]["keep"]

    def test_handles_corrupt_yaml(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(": : : invalid yaml [[[")

        config = load_config(config_file)
        assert "backup" in config

    def test_handles_non_mapping(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- just\n- a list\n")

        config = load_config(config_file)
        assert config["backup"]["keep"] == 7


class TestJobConfig:
    def _config(self, **backup) -> dict:
        return _deep_merge(DEFAULTS, {"backup": backup})

    def test_from_defaults(self):
        job = JobConfig.from_config(self._config())
        assert [t.name for t in job.targets] == ["etc", "home", "www"]
        assert job.keep == 7
        assert job.dest == Path("/var/backups/system")
        assert job.lock_file == Path("/tmp/tarvault.lock")
        assert job.require_root is False

    def test_dirs_replace_targets(self):
        job = JobConfig.from_config(self._config(), dirs=["/srv/data/"])
        assert len(job.targets) == 1
        assert job.targets[0].name == "data"
        assert job.targets[0].path == Path("/srv/data")

    def test_overrides(self, tmp_path: Path):
        job = JobConfig.from_config(
            self._config(),
            keep=2,
            dest=tmp_path / "out",
            lock_file=tmp_path / "x.lock",
        )
        assert job.keep == 2
        assert job.dest == tmp_path / "out"
        assert job.lock_file == tmp_path / "x.lock"

    def test_single_string_target(self):
        job = JobConfig.from_config(self._config(targets="/opt/app"))
        assert [t.name for t in job.targets] == ["app"]

    def test_no_targets(self):
        with pytest.raises(ConfigError, match="No backup targets"):
            JobConfig.from_config(self._config(targets=[]))

    def test_root_target_rejected(self):
        with pytest.raises(ConfigError, match="base name"):
            JobConfig.from_config(self._config(targets=["/"]))

    @pytest.mark.parametrize("keep", [0, -1, "many", None, True])
    def test_bad_keep(self, keep):
        with pytest.raises(ConfigError):
            JobConfig.from_config(self._config(keep=keep))

    def test_keep_from_string(self):
        job = JobConfig.from_config(self._config(keep="4"))
        assert job.keep == 4

    def test_missing_dest(self):
        with pytest.raises(ConfigError, match="destination"):
            JobConfig.from_config(self._config(dest=""))
