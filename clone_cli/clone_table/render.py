"""Output rendering helpers for clone-table."""

from __future__ import annotations

import json
import sys
from typing import IO, Any, Iterable, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .names import quote_name
from .types import CloneReport, PlannedStatement

BATCH_SEPARATOR = "GO"

_CONSTRAINT_KIND_NAMES = {
    "PK": "PRIMARY KEY",
    "UQ": "UNIQUE",
    "D": "DEFAULT",
    "C": "CHECK",
    "F": "FOREIGN KEY",
}


def render_statements(statements: Sequence[PlannedStatement], *, stream: IO[str] | None = None) -> None:
    """Print dry-run statements as a script, one batch per statement."""
    output_stream = stream or sys.stdout
    for planned in statements:
        print(planned.statement, file=output_stream)
        print(BATCH_SEPARATOR, file=output_stream)


def render_report(report: CloneReport, *, output_format: str, stream: IO[str] | None = None) -> None:
    """Render the per-object clone summaries."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "table").lower()
    if fmt == "json":
        json.dump(report_payload(report), output_stream, indent=2)
        output_stream.write("\n")
    elif fmt == "table":
        _render_tables(report, stream=output_stream)
    else:  # pragma: no cover - Click validation should prevent this
        raise ValueError(f"Unsupported output format '{output_format}'.")


def report_payload(report: CloneReport) -> dict[str, Any]:
    plan = report.plan
    tables = {table.object_id: table.qualified_name for table in plan.tables}
    return {
        "source_database": plan.source_database,
        "target_database": plan.target_database,
        "dry_run": report.dry_run,
        "succeeded": report.succeeded,
        "fatal_error": report.fatal_error,
        "tables": [
            {
                "id": table.id,
                "schema": table.schema_name,
                "table": table.table_name,
                "clone_succeeded": table.clone_succeeded,
                "error_message": table.error_message,
            }
            for table in plan.tables
        ],
        "constraints": [
            {
                "table": tables.get(constraint.object_id),
                "name": constraint.name,
                "type": _CONSTRAINT_KIND_NAMES.get(constraint.kind, constraint.kind),
                "clone_succeeded": constraint.clone_succeeded,
                "error_message": constraint.error_message,
            }
            for constraint in plan.constraints
        ],
        "indexes": [
            {
                "table": tables.get(index.object_id),
                "name": index.name,
                "type": index.type_description,
                "clone_succeeded": index.clone_succeeded,
                "error_message": index.error_message,
            }
            for index in plan.indexes
        ],
        "triggers": [
            {
                "table": tables.get(trigger.object_id),
                "name": trigger.name,
                "is_encrypted": trigger.is_encrypted,
                "clone_succeeded": trigger.clone_succeeded,
                "error_message": trigger.error_message,
            }
            for trigger in plan.triggers
        ],
        "statements": [
            {"phase": planned.phase, "statement": planned.statement} for planned in report.statements
        ],
    }


def _render_tables(report: CloneReport, *, stream: IO[str]) -> None:
    plan = report.plan
    console = Console(file=stream, highlight=False, force_terminal=False)
    names = {table.object_id: table.qualified_name for table in plan.tables}

    console.print(
        f"[bold]Clone of {escape(quote_name(plan.source_database))} into "
        f"{escape(quote_name(plan.target_database))}[/bold]" + (" (dry run)" if report.dry_run else "")
    )
    _print_section(
        console,
        "Tables",
        ("Table",),
        ((table.qualified_name, table.clone_succeeded, table.error_message) for table in plan.tables),
    )
    _print_section(
        console,
        "Constraints",
        ("Table", "Constraint", "Type"),
        (
            (
                names.get(constraint.object_id, ""),
                quote_name(constraint.name),
                _CONSTRAINT_KIND_NAMES.get(constraint.kind, constraint.kind),
                constraint.clone_succeeded,
                constraint.error_message,
            )
            for constraint in plan.constraints
        ),
    )
    _print_section(
        console,
        "Indexes",
        ("Table", "Index", "Type"),
        (
            (
                names.get(index.object_id, ""),
                quote_name(index.name),
                index.type_description,
                index.clone_succeeded,
                index.error_message,
            )
            for index in plan.indexes
        ),
    )
    _print_section(
        console,
        "Triggers",
        ("Table", "Trigger"),
        (
            (names.get(trigger.object_id, ""), quote_name(trigger.name), trigger.clone_succeeded, trigger.error_message)
            for trigger in plan.triggers
        ),
    )
    if report.fatal_error:
        console.print(f"[bold red]{escape(report.fatal_error)}[/bold red]")


def _print_section(
    console: Console,
    title: str,
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
) -> None:
    materialized = list(rows)
    if not materialized:
        console.print(f"No {title.lower()} to report.")
        return
    table = Table(title=title, box=box.SIMPLE, show_header=True, header_style="bold")
    for header in headers:
        table.add_column(header, no_wrap=True)
    table.add_column("Succeeded", no_wrap=True)
    table.add_column("Error")
    for row in materialized:
        *labels, succeeded, error = row
        # Cells go through markup; bracketed identifiers must be escaped.
        table.add_row(*(escape(str(label)) for label in labels), _status(succeeded), escape(error or ""))
    console.print(table)


def _status(succeeded: bool | None) -> str:
    if succeeded is None:
        return "-"
    return "yes" if succeeded else "no"
