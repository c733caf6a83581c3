"""Tests for the CLI startup failures."""

from unittest.mock import patch

from typer.testing import CliRunner

from puppetdb_exporter.cli import app

runner = CliRunner()


class TestRunCommand:
    """Startup configuration errors must abort before serving."""

    def test_invalid_unreported_duration_exits(self):
        with patch("puppetdb_exporter.cli.uvicorn.run") as uvicorn_run:
            result = runner.invoke(
                app,
                ["run", "--puppetdb-url", "http://pdb:8080", "--unreported-node", "bogus"],
            )

        assert result.exit_code == 1
        uvicorn_run.assert_not_called()

    def test_invalid_scrape_interval_exits(self):
        with patch("puppetdb_exporter.cli.uvicorn.run") as uvicorn_run:
            result = runner.invoke(app, ["run", "--scrape-interval", "soon"])

        assert result.exit_code == 1
        assert "invalid configuration" in result.output
        uvicorn_run.assert_not_called()

    def test_valid_configuration_starts_server(self):
        with patch("puppetdb_exporter.cli.uvicorn.run") as uvicorn_run:
            result = runner.invoke(
                app,
                [
                    "run",
                    "--puppetdb-url",
                    "http://pdb:8080",
                    "--listen-port",
                    "9999",
                    "--unreported-node",
                    "4h",
                ],
            )

        assert result.exit_code == 0
        uvicorn_run.assert_called_once()
        assert uvicorn_run.call_args.kwargs["port"] == 9999
