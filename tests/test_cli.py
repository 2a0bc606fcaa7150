"""Tests for the depload CLI."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from depload.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_project(write_units, tmp_path: Path, namespace: str):
    """A project configured through pyproject.toml."""
    write_units(
        {
            "pyproject.toml": f'[tool.depload]\nnamespace = "{namespace}"\n',
            "models/b.py": f"from {namespace}.c import C\n\nclass B(C):\n    pass\n",
            "models/c.py": "class C:\n    pass\n",
            "lib/util.py": "X = 1\n",
        }
    )
    return tmp_path


class TestPathsCommand:
    """Tests for the paths command."""

    def test_lists_units(self, runner, cli_project):
        """Resolved units are printed."""
        result = runner.invoke(cli, ["paths", str(cli_project)])

        assert result.exit_code == 0
        assert "util.py" in result.output
        assert "b.py" in result.output

    def test_no_units(self, runner, tmp_path: Path):
        """An empty project reports that nothing matched."""
        result = runner.invoke(cli, ["paths", str(tmp_path)])

        assert result.exit_code == 0
        assert "No units matched" in result.output


class TestLoadCommand:
    """Tests for the load command."""

    def test_load_success(self, runner, cli_project):
        """A loadable project reports its counts."""
        result = runner.invoke(cli, ["load", str(cli_project)])

        assert result.exit_code == 0
        assert "3 units loaded in 2 passes (4 attempts)" in result.output

    def test_load_stalled(self, runner, cli_project, write_units):
        """A stalled load exits non-zero and lists pending units."""
        write_units({"models/zombie.py": "BRAINS = NeverDefined\n"})

        result = runner.invoke(cli, ["load", str(cli_project)])

        assert result.exit_code == 1
        assert "pending" in result.output
        assert "zombie.py" in result.output

    def test_invalid_configuration(self, runner, tmp_path: Path):
        """Broken settings exit non-zero."""
        (tmp_path / "pyproject.toml").write_text("[tool.depload\n")

        result = runner.invoke(cli, ["load", str(tmp_path)])

        assert result.exit_code == 1
        assert "Invalid loader configuration" in result.output


class TestWatchCommand:
    """Tests for the watch command."""

    def test_watch_fails_when_initial_load_fails(self, runner, cli_project, write_units):
        """The watcher does not start on a project that cannot load."""
        write_units({"lib/broken.py": "def broken(:\n"})

        result = runner.invoke(cli, ["watch", str(cli_project), "--poll-interval", "0.01"])

        assert result.exit_code == 1
        assert "broken.py" in result.output
