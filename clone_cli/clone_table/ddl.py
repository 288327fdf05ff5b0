"""Pure functions turning collected catalog records into T-SQL text."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .names import join_quoted, quote_name
from .types import (
    CHECK,
    DEFAULT,
    FOREIGN_KEY,
    ColumnDef,
    ConstraintDef,
    IndexDef,
    SelectedTable,
    TriggerDef,
)

CHARACTER_TYPES = frozenset({"varchar", "char", "varbinary", "binary", "text"})
WIDE_CHARACTER_TYPES = frozenset({"nvarchar", "nchar", "ntext"})
TIME_TYPES = frozenset({"datetime2", "time", "datetimeoffset"})
EXACT_NUMERIC_TYPES = frozenset({"decimal", "numeric"})

# sys.indexes.type values
CLUSTERED = 1
NONCLUSTERED = 2
XML = 3
CLUSTERED_COLUMNSTORE = 5

REFERENTIAL_ACTIONS = {1: "CASCADE", 2: "SET NULL", 3: "SET DEFAULT"}

TRIGGER_LINE_TERMINATOR = "\r\n"


# ---------------------------------------------------------------------------
# Column clauses


def type_suffix(type_name: str, max_length: int | None, precision: int | None, scale: int | None) -> str:
    """Return the length/precision/scale suffix for a type family."""
    name = type_name.lower()
    if name in CHARACTER_TYPES:
        return "(MAX)" if max_length == -1 else f"({max_length})"
    if name in WIDE_CHARACTER_TYPES:
        # max_length is in bytes; two per character
        return "(MAX)" if max_length == -1 else f"({int(max_length or 0) // 2})"
    if name in TIME_TYPES:
        return f"({scale})"
    if name in EXACT_NUMERIC_TYPES:
        return f"({precision},{scale})"
    return ""


def collation_clause(collation: str | None, target_collation: str | None, preserve: bool) -> str:
    if not preserve or not collation or collation == target_collation:
        return ""
    return f" COLLATE {collation}"


def identity_clause(seed: Any, increment: Any) -> str:
    # Seed and increment keep only their first character: IDENTITY(10,5) renders
    # as IDENTITY(1,5). Known limitation, matched on purpose.
    seed_text = str(seed if seed is not None else 0)[:1]
    increment_text = str(increment if increment is not None else 1)[:1]
    return f" IDENTITY({seed_text},{increment_text})"


def column_definition(
    *,
    type_name: str,
    max_length: int | None,
    precision: int | None,
    scale: int | None,
    is_nullable: bool,
    collation: str | None = None,
    target_collation: str | None = None,
    preserve_collation: bool = False,
    is_identity: bool = False,
    seed: Any = None,
    increment: Any = None,
    computed_definition: str | None = None,
) -> str:
    """Compose the text following a column name inside CREATE TABLE."""
    if computed_definition is not None:
        return f"AS {computed_definition}"
    text = type_name.upper() + type_suffix(type_name, max_length, precision, scale)
    text += collation_clause(collation, target_collation, preserve_collation)
    text += " NULL" if is_nullable else " NOT NULL"
    if is_identity:
        text += identity_clause(seed, increment)
    return text


# ---------------------------------------------------------------------------
# Statements


def create_schema_statement(schema_name: str) -> str:
    return f"CREATE SCHEMA {quote_name(schema_name)}"


def create_table_statement(
    table: SelectedTable,
    columns: Sequence[ColumnDef],
    *,
    translate_user_types: bool,
) -> str:
    lines = [
        f"{', ' if position else ''}{quote_name(column.name)} {column.definition(translate_user_types)}"
        for position, column in enumerate(columns)
    ]
    body = "\n".join(lines)
    return f"CREATE TABLE {table.qualified_name}(\n{body}\n);"


def constraint_type_clause(type_desc: str, index_type_desc: str | None = None) -> str:
    """Turn ``PRIMARY_KEY_CONSTRAINT`` + ``CLUSTERED`` into ``PRIMARY KEY CLUSTERED``."""
    clause = type_desc.replace("_", " ").replace("CONSTRAINT", "").strip()
    if index_type_desc:
        clause = f"{clause} {index_type_desc}"
    return clause


def placement_clause(data_space: str | None, partition_column: str | None = None) -> str:
    if not data_space:
        return ""
    clause = f"ON {quote_name(data_space)}"
    if partition_column:
        clause += f"({quote_name(partition_column)})"
    return clause


def referential_actions(delete_action: int | None, update_action: int | None) -> str:
    clause = ""
    if delete_action in REFERENTIAL_ACTIONS:
        clause += f" ON DELETE {REFERENTIAL_ACTIONS[delete_action]}"
    if update_action in REFERENTIAL_ACTIONS:
        clause += f" ON UPDATE {REFERENTIAL_ACTIONS[update_action]}"
    return clause


def constraint_statement(table: SelectedTable, constraint: ConstraintDef) -> str:
    prefix = f"ALTER TABLE {table.qualified_name} ADD CONSTRAINT {quote_name(constraint.name)}"
    if constraint.kind == CHECK:
        return f"{prefix} {constraint.type_clause} {constraint.definition_text};"
    if constraint.kind == DEFAULT:
        return (
            f"{prefix} {constraint.type_clause} {constraint.definition_text} "
            f"FOR {constraint.column_list};"
        )
    if constraint.kind == FOREIGN_KEY:
        return f"{prefix} {constraint.type_clause} ({constraint.column_list}) {constraint.definition_text};"
    statement = f"{prefix} {constraint.type_clause} ({constraint.column_list})"
    placement = placement_clause(constraint.data_space, constraint.partition_column)
    if placement:
        statement += f" {placement}"
    return statement + ";"


def index_column_list(index: IndexDef) -> str:
    """Render the key column list; only row-store indexes carry a direction."""
    with_direction = index.index_type in (CLUSTERED, NONCLUSTERED)
    parts = []
    for column in index.indexed_columns:
        part = quote_name(column.name)
        if with_direction:
            part += " DESC" if column.is_descending else " ASC"
        parts.append(part)
    return "(" + ", ".join(parts) + ")"


def index_statement(index: IndexDef) -> str:
    parts = ["CREATE"]
    if index.is_unique:
        parts.append("UNIQUE")
    if index.xml_role:
        parts.append(index.xml_role)
    parts += [index.type_description, "INDEX", quote_name(index.name), "ON", index.qualified_table]
    if index.index_type != CLUSTERED_COLUMNSTORE and index.indexed_columns:
        parts.append(index_column_list(index))
    if index.included_columns:
        parts.append(f"INCLUDE ({join_quoted(index.included_columns)})")
    if index.filter_predicate:
        parts.append(f"WHERE {index.filter_predicate}")
    if index.index_type != XML:
        placement = placement_clause(index.data_space, index.partition_column)
        if placement:
            parts.append(placement)
    if index.using_xml_index:
        parts.append(f"USING XML INDEX {quote_name(index.using_xml_index)} FOR {index.secondary_xml_type}")
    return " ".join(parts) + ";"


def trigger_statement(trigger: TriggerDef) -> str:
    return TRIGGER_LINE_TERMINATOR.join(line.text for line in trigger.lines)
