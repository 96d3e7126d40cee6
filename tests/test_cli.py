"""Tests for the command-line interface."""

from pathlib import Path

from typer.testing import CliRunner

from customer_intel.cli import app

runner = CliRunner()


class TestCli:
    """Test store commands that need no external services."""

    def test_init_store(self, tmp_path: Path):
        """init-store declares every collection on disk."""
        store = tmp_path / "store"

        result = runner.invoke(app, ["init-store", "--store", str(store)])

        assert result.exit_code == 0, result.output
        assert "Declared 9 collections" in result.output
        assert (store / "collections.json").exists()

    def test_show_empty_store(self, tmp_path: Path):
        """show lists every collection for an unknown domain."""
        store = tmp_path / "store"
        runner.invoke(app, ["init-store", "--store", str(store)])

        result = runner.invoke(app, ["show", "acme.com", "--store", str(store)])

        assert result.exit_code == 0, result.output
        assert "CompanyMasterData" in result.output
        assert "no" in result.output

    def test_research_requires_legal_name(self):
        """research refuses to run without a legal name."""
        result = runner.invoke(app, ["research", "acme.com"])
        assert result.exit_code != 0
