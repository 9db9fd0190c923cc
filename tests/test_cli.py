"""Tests for CLI commands.

Commands run through Click's CliRunner against a real SQLite sink
database created in the test's temporary directory.
"""

import json

import yaml
from click.testing import CliRunner

from sinkview.cli import cli


# =============================================================================
# CLI Entry Point
# =============================================================================


class TestCLIEntryPoint:
    """Tests for main CLI entry point, flags, and options."""

    def test_help(self, cli_runner: CliRunner):
        result = cli_runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "SinkView" in result.output
        assert "providers" in result.output
        assert "fetch" in result.output

    def test_version(self, cli_runner: CliRunner):
        result = cli_runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "sinkview version" in result.output

    def test_invalid_output_format(self, cli_runner: CliRunner):
        result = cli_runner.invoke(cli, ["-o", "xml", "providers"])
        assert result.exit_code != 0
        assert "Invalid format" in result.output

    def test_invalid_config(self, cli_runner: CliRunner, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("providers:\n  - dialect: sqlite\n")
        result = cli_runner.invoke(cli, ["-c", str(path), "providers"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output


# =============================================================================
# providers
# =============================================================================


class TestProvidersCommand:
    """Tests for the providers command."""

    def test_lists_names(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(cli, ["--no-color", "-c", temp_config_file, "providers"])
        assert result.exit_code == 0
        assert "SQLite.Logs" in result.output

    def test_json(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(cli, ["--no-color", "-o", "json", "-c", temp_config_file, "providers"])
        assert result.exit_code == 0
        assert json.loads(result.output) == [
            {"name": "SQLite.Logs", "dialect": "sqlite", "schema": "", "table": "Logs"}
        ]

    def test_no_providers(self, cli_runner: CliRunner):
        result = cli_runner.invoke(cli, ["--no-color", "providers"])
        assert result.exit_code == 0
        assert "No providers configured" in result.output


# =============================================================================
# fetch
# =============================================================================


class TestFetchCommand:
    """Tests for the fetch command."""

    def test_table(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(cli, ["--no-color", "-c", temp_config_file, "fetch", "SQLite.Logs"])
        assert result.exit_code == 0
        assert "Request 25 handled" in result.output
        assert "Showing 1-10 of 25 (page 1 of 3)" in result.output

    def test_json_page(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(
            cli,
            ["--no-color", "-o", "json", "-c", temp_config_file, "fetch", "SQLite.Logs", "--page", "2"],
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["total_matching"] == 25
        assert [r["row_no"] for r in data["records"]] == [20, 21, 22, 23, 24]

    def test_yaml_level_filter(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(
            cli,
            ["--no-color", "-o", "yaml", "-c", temp_config_file, "fetch", "SQLite.Logs", "--level", "error"],
        )
        assert result.exit_code == 0
        data = yaml.safe_load(result.output)
        assert data["total_matching"] == 7
        assert {r["level"] for r in data["records"]} == {"Error"}

    def test_raw(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(
            cli,
            ["--no-color", "-o", "raw", "-c", temp_config_file, "fetch", "SQLite.Logs", "--count", "2"],
        )
        assert result.exit_code == 0
        lines = [line for line in result.output.splitlines() if "Request" in line]
        assert len(lines) == 2
        assert lines[0].startswith("0 ")

    def test_details(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(
            cli,
            ["--no-color", "-c", temp_config_file, "fetch", "SQLite.Logs", "--level", "Error", "--count", "1", "--details"],
        )
        assert result.exit_code == 0
        assert "System.Exception: boom" in result.output
        assert "RequestId" in result.output

    def test_no_results(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(
            cli,
            ["--no-color", "-c", temp_config_file, "fetch", "SQLite.Logs", "--search", "nothing like this"],
        )
        assert result.exit_code == 0
        assert "No logs found" in result.output

    def test_unknown_provider(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(cli, ["--no-color", "-c", temp_config_file, "fetch", "missing"])
        assert result.exit_code != 0
        assert "Provider 'missing' not found" in result.output

    def test_count_above_max(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(
            cli,
            ["--no-color", "-c", temp_config_file, "fetch", "SQLite.Logs", "--count", "500"],
        )
        assert result.exit_code != 0
        assert "must not exceed 100" in result.output

    def test_since_and_start_conflict(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(
            cli,
            [
                "--no-color", "-c", temp_config_file, "fetch", "SQLite.Logs",
                "--since", "1h", "--start", "2024-01-01T00:00:00Z",
            ],
        )
        assert result.exit_code != 0
        assert "either --since or --start" in result.output

    def test_date_range(self, cli_runner: CliRunner, temp_config_file: str):
        result = cli_runner.invoke(
            cli,
            [
                "--no-color", "-o", "json", "-c", temp_config_file, "fetch", "SQLite.Logs",
                "--start", "2024-03-01T12:05:00Z", "--end", "2024-03-01T12:09:00Z",
                "--sort-by", "asc",
            ],
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["total_matching"] == 5
        assert data["records"][0]["message"] == "Request 5 handled"

    def test_unavailable_provider(self, cli_runner: CliRunner, tmp_path):
        config = tmp_path / "down.yaml"
        config.write_text(
            yaml.safe_dump(
                {
                    "providers": [
                        {
                            "dialect": "sqlite",
                            "table": "Logs",
                            "connection_string": f"sqlite:///{tmp_path / 'gone' / 'logs.db'}",
                        }
                    ]
                }
            )
        )
        result = cli_runner.invoke(cli, ["--no-color", "-c", str(config), "fetch", "SQLite.Logs"])
        assert result.exit_code != 0
        assert "try again later" in result.output
