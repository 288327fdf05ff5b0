"""Resolve schema/table name lists to catalog object identities."""

from __future__ import annotations

from collections.abc import Sequence

from clone_cli.shared.exceptions import ResolutionError
from clone_cli.shared.logging import Logger

from .catalog import SourceCatalog
from .types import SelectedTable


def resolve_tables(
    catalog: SourceCatalog,
    schemas: Sequence[str],
    tables: Sequence[str],
    *,
    logger: Logger,
) -> tuple[SelectedTable, ...]:
    """Cross-join schema and table tokens and keep the pairs that exist.

    An unknown schema, or a table name found in no schema at all, aborts the
    whole resolution. A table that exists elsewhere but not under the current
    schema is skipped, since every table token is tried against every schema.
    """
    selected: list[SelectedTable] = []
    seen: set[int] = set()
    for schema_name in schemas:
        schema_id = catalog.schema_id(schema_name)
        if schema_id is None:
            raise ResolutionError(f"Could not find schema: {schema_name}")
        for table_name in tables:
            if not catalog.table_exists(table_name):
                raise ResolutionError(f"Could not find table: {table_name}")
            object_id = catalog.table_object_id(schema_id, table_name)
            if object_id is None or object_id in seen:
                continue
            seen.add(object_id)
            selected.append(
                SelectedTable(
                    id=len(selected) + 1,
                    schema_id=schema_id,
                    object_id=object_id,
                    schema_name=schema_name,
                    table_name=table_name,
                )
            )

    if not selected:
        raise ResolutionError(
            "Could not find any objects specified in the list of schemas: "
            f"[{', '.join(schemas)}] and tables: [{', '.join(tables)}] "
            f"in database: [{catalog.current_database()}]."
        )
    logger.info(f"Resolved {len(selected)} table(s) to clone.")
    return tuple(selected)
