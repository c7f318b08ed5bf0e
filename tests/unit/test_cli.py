"""Unit tests for the command-line interface."""

import json

import pytest
from typer.testing import CliRunner

from omnirag import __version__
from omnirag.cli import app
from omnirag.config import get_settings

runner = CliRunner()


@pytest.fixture
def cli_env(clean_env, tmp_path):
    """Point the CLI at temporary storage."""
    clean_env.setenv("OMNIRAG_INDEX_DB_PATH", str(tmp_path / "index" / "omnirag.db"))
    clean_env.setenv("OMNIRAG_LIBRARY_PATH", str(tmp_path / "library.json"))
    clean_env.setenv("OMNIRAG_PROVIDER", "ollama")
    clean_env.chdir(tmp_path)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


@pytest.mark.unit
class TestCli:
    """Tests for CLI commands."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_index_then_search(self, cli_env, docs_dir):
        result = runner.invoke(app, ["index", str(docs_dir)])
        assert result.exit_code == 0, result.output
        assert "Files indexed: 2" in result.output

        result = runner.invoke(app, ["search", "Launch"])
        assert result.exit_code == 0, result.output
        assert "plan.txt" in result.output

    def test_index_missing_path(self, cli_env, tmp_path):
        result = runner.invoke(app, ["index", str(tmp_path / "nope")])
        assert result.exit_code == 1

    def test_project_lifecycle(self, cli_env):
        result = runner.invoke(app, ["project", "create", "Thesis"])
        assert result.exit_code == 0, result.output

        stored = json.loads((cli_env / "library.json").read_text(encoding="utf-8"))
        thesis = next(p for p in stored["omnirag.library.projects"] if p["name"] == "Thesis")

        result = runner.invoke(app, ["project", "activate", thesis["id"]])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, ["project", "list"])
        assert "Thesis" in result.output

    def test_activate_unknown_project(self, cli_env):
        result = runner.invoke(app, ["project", "activate", "00000000-0000-0000-0000-000000000000"])
        assert result.exit_code == 1

    def test_models_for_cloud_provider(self, cli_env):
        result = runner.invoke(app, ["models", "openai"])

        assert result.exit_code == 0
        assert "gpt-4o-mini" in result.output

    def test_models_unknown_provider(self, cli_env):
        result = runner.invoke(app, ["models", "acme"])
        assert result.exit_code == 1
