"""clone-table CLI entrypoint."""

from __future__ import annotations

from typing import TypeVar

import click

from clone_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors
from clone_cli.shared.config import AppConfig
from clone_cli.shared.database import connect
from clone_cli.shared.logging import Logger

from . import render
from .catalog import SourceCatalog, TargetSession
from .orchestrator import CloneOrchestrator
from .plan import build_plan
from .types import CloneOptions, CloneReport

OUTPUT_FORMAT_CHOICES = ("table", "json")

T = TypeVar("T")


@click.command(help="Clone table structure (columns, constraints, indexes, triggers) between SQL Server databases.")
@click.option("--schemas", "schema_names", required=True, help="Delimited list of source schemas.")
@click.option("--tables", "table_names", required=True, help="Delimited list of table names to look up in each schema.")
@click.option("--delimiter", type=str, help="Single-character list delimiter (default from config, ',').")
@click.option(
    "--continue-on-error/--stop-on-error",
    "continue_on_error",
    default=None,
    help="Record failing constraints, indexes and triggers instead of rolling back the run.",
)
@click.option(
    "--translate-user-types/--keep-user-types",
    "translate_user_types",
    default=None,
    help="Replace user-defined column types with their base system types.",
)
@click.option("--target-db", "target_db", type=str, help="Destination database (default: the source database).")
@click.option(
    "--keep-collation/--target-collation",
    "keep_collation",
    default=None,
    help="Keep source column collations that differ from the target default.",
)
@click.option(
    "--create-schema/--no-create-schema",
    "create_schema",
    default=None,
    help="Create target schemas that do not exist yet.",
)
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(OUTPUT_FORMAT_CHOICES),
)
@common_cli_options
@handle_cli_errors
def cli(
    schema_names: str,
    table_names: str,
    delimiter: str | None,
    continue_on_error: bool | None,
    translate_user_types: bool | None,
    target_db: str | None,
    keep_collation: bool | None,
    create_schema: bool | None,
    output_format: str,
    cli_ctx: CLIContext,
) -> None:
    """Recreate the structure of the selected tables in the target database."""
    config = cli_ctx.config
    if target_db:
        config = config.with_target_database(target_db)
    options = CloneOptions(
        schema_names=schema_names,
        table_names=table_names,
        delimiter=_pick(delimiter, config.clone.delimiter),
        dry_run=cli_ctx.dry_run,
        continue_on_error=_pick(continue_on_error, config.clone.continue_on_error),
        translate_user_types=_pick(translate_user_types, config.clone.translate_user_types),
        target_database=config.target_database,
        preserve_source_collation=_pick(keep_collation, config.clone.preserve_source_collation),
        create_missing_target_schema=_pick(create_schema, config.clone.create_missing_target_schema),
    )
    cli_ctx.logger.debug(f"Clone options: {options}")

    report = run_clone(config, options, logger=cli_ctx.logger)

    if report.dry_run and output_format == "table":
        render.render_statements(report.statements)
    render.render_report(report, output_format=output_format)

    if report.fatal_error:
        raise click.ClickException("Clone run failed and was rolled back.")
    if not report.dry_run:
        cli_ctx.logger.success(
            f"Cloned {len(report.plan.tables)} table(s) into [{report.plan.target_database}]."
        )


def run_clone(config: AppConfig, options: CloneOptions, *, logger: Logger) -> CloneReport:
    """Plan against the source database, then replay the plan on the target."""
    with connect(config) as source_connection:
        plan = build_plan(SourceCatalog(source_connection), options, logger=logger)

    with connect(config, database=plan.target_database) as target_connection:
        session = TargetSession(target_connection, plan.target_database)
        return CloneOrchestrator(plan, session, options, logger=logger).run()


def _pick(value: T | None, default: T) -> T:
    return default if value is None else value


def main() -> None:
    """Entry point for console_scripts."""
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
