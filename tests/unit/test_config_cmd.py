"""Tests for tarvault.cli.config_cmd."""

from pathlib import Path

from click.testing import CliRunner

from tarvault.cli.config_cmd import config_cmd


class TestConfigShow:
    def test_shows_merged_config(self, tmp_path: Path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("backup:\n  keep: 4\n  targets: [/srv/app]\n", encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(config_cmd, ["--config", str(cfg)])

        assert result.exit_code == 0
        assert "keep: 4" in result.output
        assert "1 target(s), keeping 4 backup(s)" in result.output

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(config_cmd, ["--config", str(tmp_path / "none.yaml")])

        assert result.exit_code == 0
        assert "not found, defaults" in result.output
        assert "3 target(s), keeping 7 backup(s)" in result.output

    def test_invalid_config(self, tmp_path: Path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("backup:\n  targets: []\n", encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(config_cmd, ["--config", str(cfg)])

        assert result.exit_code == 2
        assert "Invalid" in result.output
