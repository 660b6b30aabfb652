"""Tests for tarvault.cli.main: the root command group."""

from click.testing import CliRunner

from tarvault import __version__
from tarvault.cli.main import cli


class TestMain:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_groups_registered(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("backup", "init", "config"):
            assert name in result.output
