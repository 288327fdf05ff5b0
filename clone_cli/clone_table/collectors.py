"""Metadata collectors turning catalog rows into typed clone records."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from clone_cli.shared.exceptions import EmptyResultError
from clone_cli.shared.logging import Logger

from . import ddl
from .catalog import Row, SourceCatalog
from .names import join_quoted, qualified_name, quote_name
from .types import (
    PRIMARY_KEY,
    UNIQUE,
    ColumnDef,
    ConstraintDef,
    IndexDef,
    IndexKeyColumn,
    SelectedTable,
    TriggerDef,
    TriggerSourceLine,
)

COLUMNSTORE_TYPES = frozenset({5, 6})

ENCRYPTED_TRIGGER_MESSAGE = "Definition of trigger {name} is encrypted, unable to clone it."
UNREADABLE_TRIGGER_MESSAGE = "Definition of trigger {name} is not readable, unable to clone it."


def _object_ids(tables: Sequence[SelectedTable]) -> list[int]:
    return [table.object_id for table in tables]


def _kind(row: Row) -> str:
    # sys.objects.type is CHAR(2), so one-letter kinds arrive padded ('D ').
    return str(row["type"]).strip()


# ---------------------------------------------------------------------------
# Columns


def collect_columns(
    catalog: SourceCatalog,
    tables: Sequence[SelectedTable],
    *,
    target_collation: str | None,
    preserve_collation: bool,
    logger: Logger,
) -> tuple[ColumnDef, ...]:
    """Build native and translated definitions for every column of ``tables``."""
    columns = tuple(
        _column_from_row(row, target_collation=target_collation, preserve_collation=preserve_collation)
        for row in catalog.column_rows(_object_ids(tables))
    )
    if not columns:
        names = ", ".join(table.qualified_name for table in tables)
        raise EmptyResultError(f"Could not find any columns for tables: [{names}].")
    logger.info(f"Collected {len(columns)} column definition(s).")
    return tuple(sorted(columns, key=lambda column: (column.object_id, column.column_id)))


def _column_from_row(row: Row, *, target_collation: str | None, preserve_collation: bool) -> ColumnDef:
    user_defined = bool(row["is_user_defined"])
    common: dict[str, Any] = {
        "is_nullable": bool(row["is_nullable"]),
        "collation": row["collation_name"],
        "target_collation": target_collation,
        "is_identity": bool(row["is_identity"]),
        "seed": row["seed_value"],
        "increment": row["increment_value"],
        "computed_definition": row["computed_definition"] if row["is_computed"] else None,
    }
    native = ddl.column_definition(
        type_name=row["type_name"],
        max_length=row["max_length"],
        precision=row["precision"],
        scale=row["scale"],
        # alias types carry their own collation
        preserve_collation=preserve_collation and not user_defined,
        **common,
    )
    translated = ""
    if user_defined:
        translated = ddl.column_definition(
            type_name=row["system_type_name"],
            max_length=row["system_max_length"],
            precision=row["system_precision"],
            scale=row["system_scale"],
            preserve_collation=preserve_collation,
            **common,
        )
    return ColumnDef(
        object_id=int(row["object_id"]),
        column_id=int(row["column_id"]),
        name=row["column_name"],
        native_definition=native,
        translated_definition=translated,
    )


# ---------------------------------------------------------------------------
# Index columns, shared by key constraints and indexes


def group_index_columns(rows: Iterable[Row]) -> dict[tuple[int, int], list[Row]]:
    """Group index column rows per ``(object_id, index_id)``, one row per column."""
    grouped: dict[tuple[int, int], list[Row]] = defaultdict(list)
    seen: set[tuple[int, int, int]] = set()
    for row in rows:
        key = (int(row["object_id"]), int(row["index_id"]), int(row["column_id"]))
        if key in seen:
            continue
        seen.add(key)
        grouped[key[:2]].append(row)
    return grouped


def key_columns(rows: Sequence[Row], index_type: int | None = None) -> list[IndexKeyColumn]:
    """Return indexed columns in key-ordinal order."""
    if index_type in COLUMNSTORE_TYPES:
        candidates = sorted(rows, key=lambda row: row["index_column_id"])
    else:
        # Partitioning columns appended to non-unique indexes have key_ordinal 0.
        candidates = sorted(
            (
                row
                for row in rows
                if not row["is_included_column"] and (row["key_ordinal"] or not row["partition_ordinal"])
            ),
            key=lambda row: (row["key_ordinal"], row["index_column_id"]),
        )
    return [IndexKeyColumn(name=row["column_name"], is_descending=bool(row["is_descending_key"])) for row in candidates]


def included_columns(rows: Sequence[Row]) -> tuple[str, ...]:
    ordered = sorted((row for row in rows if row["is_included_column"]), key=lambda row: row["index_column_id"])
    return tuple(row["column_name"] for row in ordered)


def partition_column(rows: Sequence[Row]) -> str | None:
    for row in rows:
        if row["partition_ordinal"] == 1:
            return row["column_name"]
    return None


# ---------------------------------------------------------------------------
# Constraints


def collect_constraints(
    catalog: SourceCatalog,
    tables: Sequence[SelectedTable],
    *,
    logger: Logger,
) -> tuple[ConstraintDef, ...]:
    """Union primary key/unique, default, check and foreign key constraints."""
    object_ids = _object_ids(tables)
    index_columns = group_index_columns(catalog.index_column_rows(object_ids))

    constraints: list[ConstraintDef] = []
    constraints += _key_constraints(catalog.key_constraint_rows(object_ids), index_columns)
    constraints += _default_constraints(catalog.default_constraint_rows(object_ids))
    constraints += _check_constraints(catalog.check_constraint_rows(object_ids))
    constraints += _foreign_keys(catalog.foreign_key_rows(object_ids))

    constraints.sort(key=lambda constraint: (constraint.object_id, constraint.constraint_id))
    logger.info(f"Collected {len(constraints)} constraint definition(s).")
    return tuple(constraints)


def _key_constraints(
    rows: Iterable[Row],
    index_columns: Mapping[tuple[int, int], list[Row]],
) -> list[ConstraintDef]:
    constraints = []
    for row in rows:
        object_id = int(row["object_id"])
        index_id = int(row["index_id"])
        columns = index_columns.get((object_id, index_id), [])
        column_list = ", ".join(
            f"{quote_name(column.name)} {'DESC' if column.is_descending else 'ASC'}"
            for column in key_columns(columns)
        )
        constraints.append(
            ConstraintDef(
                object_id=object_id,
                constraint_id=int(row["constraint_id"]),
                name=row["name"],
                kind=_kind(row),
                type_clause=ddl.constraint_type_clause(row["type_desc"], row["index_type_desc"]),
                column_list=column_list,
                definition_text="",
                data_space=row["data_space_name"],
                partition_column=partition_column(columns),
                index_id=index_id,
            )
        )
    return constraints


def _default_constraints(rows: Iterable[Row]) -> list[ConstraintDef]:
    return [
        ConstraintDef(
            object_id=int(row["object_id"]),
            constraint_id=int(row["constraint_id"]),
            name=row["name"],
            kind=_kind(row),
            type_clause=ddl.constraint_type_clause(row["type_desc"]),
            column_list=quote_name(row["column_name"]),
            definition_text=row["definition"],
        )
        for row in rows
    ]


def _check_constraints(rows: Iterable[Row]) -> list[ConstraintDef]:
    return [
        ConstraintDef(
            object_id=int(row["object_id"]),
            constraint_id=int(row["constraint_id"]),
            name=row["name"],
            kind=_kind(row),
            type_clause=ddl.constraint_type_clause(row["type_desc"]),
            column_list="",
            definition_text=row["definition"],
        )
        for row in rows
    ]


def _foreign_keys(rows: Iterable[Row]) -> list[ConstraintDef]:
    grouped: dict[int, list[Row]] = defaultdict(list)
    for row in rows:
        grouped[int(row["constraint_id"])].append(row)

    constraints = []
    for constraint_id, fk_rows in grouped.items():
        # Both column lists follow the referenced table's column order so the
        # pairs stay aligned.
        fk_rows.sort(key=lambda row: row["referenced_column_id"])
        first = fk_rows[0]
        referencing = join_quoted([row["column_name"] for row in fk_rows])
        referenced = join_quoted([row["referenced_column"] for row in fk_rows])
        definition = (
            f"REFERENCES {qualified_name(first['referenced_schema'], first['referenced_table'])} "
            f"({referenced})"
            + ddl.referential_actions(first["delete_referential_action"], first["update_referential_action"])
        )
        constraints.append(
            ConstraintDef(
                object_id=int(first["object_id"]),
                constraint_id=constraint_id,
                name=first["name"],
                kind=_kind(first),
                type_clause=ddl.constraint_type_clause(first["type_desc"]),
                column_list=referencing,
                definition_text=definition,
            )
        )
    return constraints


# ---------------------------------------------------------------------------
# Indexes


def collect_indexes(
    catalog: SourceCatalog,
    tables: Sequence[SelectedTable],
    constraints: Sequence[ConstraintDef],
    *,
    logger: Logger,
) -> tuple[IndexDef, ...]:
    """Collect every index that is not the backing index of a PK/UNIQUE constraint."""
    object_ids = _object_ids(tables)
    represented = {
        (constraint.object_id, constraint.index_id)
        for constraint in constraints
        if constraint.kind in (PRIMARY_KEY, UNIQUE) and constraint.index_id is not None
    }
    index_columns = group_index_columns(catalog.index_column_rows(object_ids))

    indexes: list[IndexDef] = []
    for row in catalog.index_rows(object_ids):
        key = (int(row["object_id"]), int(row["index_id"]))
        if key in represented:
            logger.debug(f"Index {row['name']} is cloned with its constraint; skipping.")
            continue
        indexes.append(_index_from_row(row, index_columns.get(key, [])))

    indexes.sort(key=lambda index: (index.object_id, index.index_id))
    logger.info(f"Collected {len(indexes)} index definition(s).")
    return tuple(indexes)


def _index_from_row(row: Row, columns: Sequence[Row]) -> IndexDef:
    index_type = int(row["type"])
    xml_index_type = row["xml_index_type"]
    secondary = xml_index_type == 1
    return IndexDef(
        object_id=int(row["object_id"]),
        index_id=int(row["index_id"]),
        index_type=index_type,
        is_unique=bool(row["is_unique"]),
        type_description=row["type_desc"],
        name=row["name"],
        qualified_table=qualified_name(row["schema_name"], row["table_name"]),
        indexed_columns=tuple(key_columns(columns, index_type)),
        included_columns=() if index_type in COLUMNSTORE_TYPES else included_columns(columns),
        xml_role="PRIMARY" if xml_index_type == 0 else None,
        data_space=row["data_space_name"],
        partition_column=partition_column(columns),
        using_xml_index=row["using_xml_index"] if secondary else None,
        secondary_xml_type=row["secondary_type_desc"] if secondary else None,
        filter_predicate=row["filter_definition"] if row["has_filter"] else None,
    )


# ---------------------------------------------------------------------------
# Triggers


def split_trigger_definition(object_id: int, trigger_id: int, definition: str) -> tuple[TriggerSourceLine, ...]:
    """Split a stored module definition into numbered lines."""
    return tuple(
        TriggerSourceLine(object_id=object_id, trigger_id=trigger_id, line_number=number, text=text)
        for number, text in enumerate(definition.split(ddl.TRIGGER_LINE_TERMINATOR), start=1)
    )


def collect_triggers(
    catalog: SourceCatalog,
    tables: Sequence[SelectedTable],
    *,
    logger: Logger,
) -> tuple[TriggerDef, ...]:
    """Collect trigger bodies; unreadable ones are recorded without lines."""
    triggers: list[TriggerDef] = []
    for row in sorted(catalog.trigger_rows(_object_ids(tables)), key=lambda row: row["trigger_id"]):
        object_id = int(row["object_id"])
        trigger_id = int(row["trigger_id"])
        is_encrypted = bool(row["is_encrypted"])
        if is_encrypted or row["definition"] is None:
            # NULL definitions come back when VIEW DEFINITION is not granted.
            template = ENCRYPTED_TRIGGER_MESSAGE if is_encrypted else UNREADABLE_TRIGGER_MESSAGE
            message = template.format(name=quote_name(row["name"]))
            logger.warning(message)
            triggers.append(
                TriggerDef(
                    object_id=object_id,
                    trigger_id=trigger_id,
                    name=row["name"],
                    is_encrypted=is_encrypted,
                    error_message=message,
                )
            )
            continue
        triggers.append(
            TriggerDef(
                object_id=object_id,
                trigger_id=trigger_id,
                name=row["name"],
                is_encrypted=False,
                lines=split_trigger_definition(object_id, trigger_id, row["definition"]),
            )
        )
    logger.info(f"Collected {len(triggers)} trigger definition(s).")
    return tuple(triggers)
