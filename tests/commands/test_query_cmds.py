"""Tests for the list and dashboard commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from notectl.cli import cli
from tests.conftest import ALL_RECORDS


@pytest.mark.usefixtures("_isolated_vault")
class TestListCommand:
    def test_list_everything(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "list"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["ok"] is True
        assert data["data"]["count"] == len(ALL_RECORDS)

    def test_list_by_type_with_fields(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(
            cli, ["--json", "list", "-t", "objective/task", "-f", "status", "-f", "due"]
        )
        assert result.exit_code == 0
        items = json.loads(result.output)["data"]["items"]
        assert [i["path"] for i in items] == ["Objectives/Tasks/ship.md", "Objectives/Tasks/write-tests.md"]
        assert items[1]["fields"] == {"status": "active", "due": "2025-03-01"}

    def test_list_where(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "list", "-t", "idea", "-w", "contains(tags, ml)"])
        assert [i["path"] for i in json.loads(result.output)["data"]["items"]] == ["Ideas/alpha.md"]

    def test_list_table(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["list", "-t", "objective", "-f", "status"])
        assert result.exit_code == 0
        assert "Objectives/Milestones/v1.md" in result.output
        assert "status" in result.output
        assert "3 records" in result.output

    def test_list_quiet(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["-q", "list", "-p", "Ideas"])
        assert result.exit_code == 0
        assert result.output.splitlines() == ["Ideas/alpha.md", "Ideas/beta.md", "Ideas/loose.md"]

    def test_unknown_field_in_where(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "list", "-t", "idea", "-w", "stauts = raw"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["error"]["code"] == "WHERE_INVALID"
        assert "status" in data["error"]["detail"]["errors"][0]["suggestions"]

    def test_unknown_type_human_output(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["list", "-t", "task"])
        assert result.exit_code == 1
        assert "UNKNOWN_TYPE" in result.output
        assert "objective/task" in result.output


@pytest.mark.usefixtures("_isolated_vault")
class TestDashboardCommand:
    def test_dashboard_json(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "dashboard", "active-tasks"])
        assert result.exit_code == 0
        data = json.loads(result.output)["data"]
        assert data["name"] == "active-tasks"
        assert data["count"] == 1

    def test_dashboard_list_output(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["dashboard", "ideas", "-w", "status = raw"])
        assert result.exit_code == 0
        assert "Dashboard: ideas" in result.output
        assert "Ideas/beta.md" in result.output
        assert "Ideas/alpha.md" not in result.output

    def test_unknown_dashboard(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "dashboard", "weekly"])
        assert result.exit_code == 1
        assert json.loads(result.output)["error"]["code"] == "NOT_FOUND"


class TestVaultOption:
    def test_vault_flag(self, cli_runner: CliRunner, vault_root: Path) -> None:
        result = cli_runner.invoke(cli, ["--json", "--vault", str(vault_root), "list", "-t", "idea"])
        assert result.exit_code == 0
        assert json.loads(result.output)["data"]["count"] == 3

    def test_missing_schema(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = cli_runner.invoke(cli, ["--json", "--vault", str(tmp_path), "list"])
        assert result.exit_code == 1
        assert json.loads(result.output)["error"]["code"] == "SCHEMA_ERROR"
