"""Assemble a :class:`ClonePlan` from the source catalog."""

from __future__ import annotations

from clone_cli.shared.exceptions import ResolutionError
from clone_cli.shared.logging import Logger

from .catalog import SourceCatalog
from .collectors import collect_columns, collect_constraints, collect_indexes, collect_triggers
from .names import parse_name_list, quote_name
from .resolver import resolve_tables
from .types import ClonePlan, CloneOptions


def build_plan(catalog: SourceCatalog, options: CloneOptions, *, logger: Logger) -> ClonePlan:
    """Resolve the requested tables and collect everything needed to recreate them.

    Nothing is written anywhere; the plan only reads the source catalog. The
    target database defaults to the source database when no override is given.
    """
    source_database = catalog.current_database()
    target_database = options.target_database or source_database
    if not catalog.database_exists(target_database):
        raise ResolutionError(f"Could not find target database: {quote_name(target_database)}")
    target_collation = catalog.database_collation(target_database)
    logger.debug(f"Target database {quote_name(target_database)} uses collation {target_collation}.")

    schemas, tables = parse_name_list(options.schema_names, options.table_names, options.delimiter)
    selected = resolve_tables(catalog, schemas, tables, logger=logger)

    columns = collect_columns(
        catalog,
        selected,
        target_collation=target_collation,
        preserve_collation=options.preserve_source_collation,
        logger=logger,
    )
    constraints = collect_constraints(catalog, selected, logger=logger)
    indexes = collect_indexes(catalog, selected, constraints, logger=logger)
    triggers = collect_triggers(catalog, selected, logger=logger)

    return ClonePlan(
        source_database=source_database,
        target_database=target_database,
        target_collation=target_collation,
        tables=selected,
        columns=columns,
        constraints=constraints,
        indexes=indexes,
        triggers=triggers,
    )
