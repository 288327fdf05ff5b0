from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import pytest
from click.testing import CliRunner

from clone_cli.clone_table import main as clone_main
from clone_cli.clone_table.catalog import TargetSession
from clone_cli.shared import paths
from tests.clone_table.conftest import FakeConnection, StubCatalog


@pytest.fixture()
def wired(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, orders_catalog: StubCatalog
) -> dict[str, object]:
    """Route the CLI's connections to the stub catalog and a fake target."""
    monkeypatch.setenv(paths.CONFIG_FILE_ENV, str(tmp_path / "missing.yaml"))
    for name in ("TABLECLONE_TARGET_DATABASE", "TABLECLONE_CONTINUE_ON_ERROR", "TABLECLONE_DELIMITER"):
        monkeypatch.delenv(name, raising=False)

    target = FakeConnection()
    opened: list[str | None] = []

    @contextmanager
    def fake_connect(config, *, database=None, env=None) -> Iterator[object]:
        opened.append(database)
        yield target if database else object()

    monkeypatch.setattr(clone_main, "connect", fake_connect)
    monkeypatch.setattr(clone_main, "SourceCatalog", lambda connection: orders_catalog)
    monkeypatch.setattr(clone_main, "TargetSession", lambda connection, database: TargetSession(target, database))
    return {"target": target, "opened": opened, "catalog": orders_catalog}


def test_dry_run_prints_script_and_summary(wired: dict[str, object]) -> None:
    runner = CliRunner()
    result = runner.invoke(clone_main.cli, ["--schemas", "dbo", "--tables", "Orders", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "CREATE TABLE [dbo].[Orders](" in result.output
    assert "\nGO\n" in result.output
    assert "Clone of [SalesDb] into [SalesDb] (dry run)" in result.output
    target = wired["target"]
    assert isinstance(target, FakeConnection)
    assert target.attempted == []
    assert wired["opened"] == [None, "SalesDb"]


def test_json_format_reports_outcomes(wired: dict[str, object]) -> None:
    runner = CliRunner()
    result = runner.invoke(
        clone_main.cli,
        ["--schemas", "dbo", "--tables", "Customer;Orders", "--delimiter", ";", "--format", "json"],
    )

    assert result.exit_code == 0, result.output
    start = result.output.index("{")
    end = result.output.rindex("}") + 1
    payload = json.loads(result.output[start:end])
    assert payload["succeeded"] is True
    assert [table["table"] for table in payload["tables"]] == ["Customer", "Orders"]
    assert all(table["clone_succeeded"] for table in payload["tables"])


def test_failed_run_exits_non_zero(wired: dict[str, object]) -> None:
    target = wired["target"]
    assert isinstance(target, FakeConnection)
    target.failures["[PK_Orders]"] = "Table already has a primary key defined."

    runner = CliRunner()
    result = runner.invoke(clone_main.cli, ["--schemas", "dbo", "--tables", "Orders"])

    assert result.exit_code == 1
    assert "Clone run failed and was rolled back." in result.output
    assert target.committed == []


def test_unknown_target_database_is_reported(wired: dict[str, object]) -> None:
    runner = CliRunner()
    result = runner.invoke(
        clone_main.cli, ["--schemas", "dbo", "--tables", "Orders", "--target-db", "Elsewhere"]
    )

    assert result.exit_code == 1
    assert "Could not find target database: [Elsewhere]" in result.output


def test_bad_delimiter_is_a_configuration_error(wired: dict[str, object]) -> None:
    runner = CliRunner()
    result = runner.invoke(clone_main.cli, ["--schemas", "dbo", "--tables", "Orders", "--delimiter", "::"])

    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_schemas_and_tables_are_required() -> None:
    runner = CliRunner()
    result = runner.invoke(clone_main.cli, ["--schemas", "dbo"])

    assert result.exit_code == 2
    assert "--tables" in result.output
