"""Catalog queries against the source database and the target session."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import pymssql

from clone_cli.shared.exceptions import ObjectDdlError, ResolutionError

from .names import quote_name

Row = Mapping[str, Any]

COLUMNS_SQL = """
SELECT sc.object_id,
       sc.column_id,
       sc.name AS column_name,
       sc.is_computed,
       cc.definition AS computed_definition,
       tp.name AS type_name,
       tp.is_user_defined,
       sc.max_length,
       sc.precision,
       sc.scale,
       sc.collation_name,
       sc.is_nullable,
       sc.is_identity,
       ic.seed_value,
       ic.increment_value,
       TYPE_NAME(tp.system_type_id) AS system_type_name,
       tp.max_length AS system_max_length,
       tp.precision AS system_precision,
       tp.scale AS system_scale
FROM sys.columns AS sc
JOIN sys.types AS tp
    ON tp.user_type_id = sc.user_type_id
LEFT JOIN sys.computed_columns AS cc
    ON cc.object_id = sc.object_id
    AND cc.column_id = sc.column_id
LEFT JOIN sys.identity_columns AS ic
    ON sc.is_identity = 1
    AND ic.object_id = sc.object_id
    AND ic.column_id = sc.column_id
WHERE sc.object_id IN ({ids})
ORDER BY sc.object_id, sc.column_id
"""

KEY_CONSTRAINTS_SQL = """
SELECT kc.parent_object_id AS object_id,
       kc.object_id AS constraint_id,
       kc.name,
       kc.type,
       kc.type_desc,
       kc.unique_index_id AS index_id,
       si.type_desc AS index_type_desc,
       ds.name AS data_space_name
FROM sys.key_constraints AS kc
JOIN sys.indexes AS si
    ON si.object_id = kc.parent_object_id
    AND si.index_id = kc.unique_index_id
LEFT JOIN sys.data_spaces AS ds
    ON ds.data_space_id = si.data_space_id
WHERE kc.parent_object_id IN ({ids})
AND kc.type IN ('PK', 'UQ')
"""

DEFAULT_CONSTRAINTS_SQL = """
SELECT dc.parent_object_id AS object_id,
       dc.object_id AS constraint_id,
       dc.name,
       dc.type,
       dc.type_desc,
       dc.definition,
       sc.name AS column_name
FROM sys.default_constraints AS dc
JOIN sys.columns AS sc
    ON sc.object_id = dc.parent_object_id
    AND sc.column_id = dc.parent_column_id
WHERE dc.parent_object_id IN ({ids})
"""

CHECK_CONSTRAINTS_SQL = """
SELECT cc.parent_object_id AS object_id,
       cc.object_id AS constraint_id,
       cc.name,
       cc.type,
       cc.type_desc,
       cc.definition
FROM sys.check_constraints AS cc
WHERE cc.parent_object_id IN ({ids})
"""

FOREIGN_KEYS_SQL = """
SELECT fk.parent_object_id AS object_id,
       fk.object_id AS constraint_id,
       fk.name,
       fk.type,
       fk.type_desc,
       fk.delete_referential_action,
       fk.update_referential_action,
       pc.name AS column_name,
       rs.name AS referenced_schema,
       rt.name AS referenced_table,
       fkc.referenced_column_id,
       rc.name AS referenced_column
FROM sys.foreign_keys AS fk
JOIN sys.foreign_key_columns AS fkc
    ON fkc.constraint_object_id = fk.object_id
JOIN sys.columns AS pc
    ON pc.object_id = fkc.parent_object_id
    AND pc.column_id = fkc.parent_column_id
JOIN sys.objects AS rt
    ON rt.object_id = fkc.referenced_object_id
JOIN sys.schemas AS rs
    ON rs.schema_id = rt.schema_id
JOIN sys.columns AS rc
    ON rc.object_id = fkc.referenced_object_id
    AND rc.column_id = fkc.referenced_column_id
WHERE fk.parent_object_id IN ({ids})
"""

INDEXES_SQL = """
SELECT si.object_id,
       si.index_id,
       si.name,
       si.type,
       si.type_desc,
       si.is_unique,
       si.has_filter,
       si.filter_definition,
       ds.name AS data_space_name,
       ss.name AS schema_name,
       so.name AS table_name,
       xm.xml_index_type,
       xm.secondary_type_desc,
       px.name AS using_xml_index
FROM sys.indexes AS si
JOIN sys.objects AS so
    ON so.object_id = si.object_id
JOIN sys.schemas AS ss
    ON ss.schema_id = so.schema_id
LEFT JOIN sys.data_spaces AS ds
    ON ds.data_space_id = si.data_space_id
LEFT JOIN sys.xml_indexes AS xm
    ON xm.object_id = si.object_id
    AND xm.index_id = si.index_id
LEFT JOIN sys.xml_indexes AS px
    ON px.object_id = xm.object_id
    AND px.index_id = xm.using_xml_index_id
WHERE si.object_id IN ({ids})
AND so.is_ms_shipped = 0
AND si.is_hypothetical = 0
AND si.type > 0
AND si.index_id <> 0
"""

INDEX_COLUMNS_SQL = """
SELECT ic.object_id,
       ic.index_id,
       ic.index_column_id,
       ic.column_id,
       sc.name AS column_name,
       ic.key_ordinal,
       ic.partition_ordinal,
       ic.is_descending_key,
       ic.is_included_column
FROM sys.index_columns AS ic
JOIN sys.columns AS sc
    ON sc.object_id = ic.object_id
    AND sc.column_id = ic.column_id
WHERE ic.object_id IN ({ids})
"""

TRIGGERS_SQL = """
SELECT tr.parent_id AS object_id,
       tr.object_id AS trigger_id,
       tr.name,
       CAST(OBJECTPROPERTY(tr.object_id, 'IsEncrypted') AS BIT) AS is_encrypted,
       sm.definition
FROM sys.triggers AS tr
LEFT JOIN sys.sql_modules AS sm
    ON sm.object_id = tr.object_id
WHERE tr.parent_id IN ({ids})
"""


class SourceCatalog:
    """Read-only access to the ``sys`` catalog views of the source database."""

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    # -- scalar lookups ------------------------------------------------------

    def current_database(self) -> str:
        row = self._fetch_one("SELECT DB_NAME() AS name")
        return str(row["name"]) if row else ""

    def database_exists(self, name: str) -> bool:
        return self._fetch_one("SELECT 1 AS found FROM sys.databases WHERE name = %s", (name,)) is not None

    def database_collation(self, name: str) -> str | None:
        row = self._fetch_one("SELECT collation_name FROM sys.databases WHERE name = %s", (name,))
        return row["collation_name"] if row else None

    def schema_id(self, name: str) -> int | None:
        row = self._fetch_one("SELECT schema_id FROM sys.schemas WHERE name = %s", (name,))
        return int(row["schema_id"]) if row else None

    def table_exists(self, name: str) -> bool:
        """Return whether a user table with this name exists in any schema."""
        return self._fetch_one("SELECT 1 AS found FROM sys.tables WHERE name = %s", (name,)) is not None

    def table_object_id(self, schema_id: int, name: str) -> int | None:
        row = self._fetch_one(
            "SELECT object_id FROM sys.tables WHERE schema_id = %s AND name = %s",
            (schema_id, name),
        )
        return int(row["object_id"]) if row else None

    # -- set-based reads, one query per catalog view family ------------------

    def column_rows(self, object_ids: Sequence[int]) -> list[Row]:
        return self._fetch_for_objects(COLUMNS_SQL, object_ids)

    def key_constraint_rows(self, object_ids: Sequence[int]) -> list[Row]:
        return self._fetch_for_objects(KEY_CONSTRAINTS_SQL, object_ids)

    def default_constraint_rows(self, object_ids: Sequence[int]) -> list[Row]:
        return self._fetch_for_objects(DEFAULT_CONSTRAINTS_SQL, object_ids)

    def check_constraint_rows(self, object_ids: Sequence[int]) -> list[Row]:
        return self._fetch_for_objects(CHECK_CONSTRAINTS_SQL, object_ids)

    def foreign_key_rows(self, object_ids: Sequence[int]) -> list[Row]:
        return self._fetch_for_objects(FOREIGN_KEYS_SQL, object_ids)

    def index_rows(self, object_ids: Sequence[int]) -> list[Row]:
        return self._fetch_for_objects(INDEXES_SQL, object_ids)

    def index_column_rows(self, object_ids: Sequence[int]) -> list[Row]:
        return self._fetch_for_objects(INDEX_COLUMNS_SQL, object_ids)

    def trigger_rows(self, object_ids: Sequence[int]) -> list[Row]:
        return self._fetch_for_objects(TRIGGERS_SQL, object_ids)

    # -- internals -----------------------------------------------------------

    def _fetch_for_objects(self, template: str, object_ids: Sequence[int]) -> list[Row]:
        ids = tuple(int(object_id) for object_id in object_ids)
        if not ids:
            return []
        placeholders = ", ".join(["%s"] * len(ids))
        return self._fetch_all(template.format(ids=placeholders), ids)

    def _fetch_all(self, sql: str, params: tuple[Any, ...] | None = None) -> list[Row]:
        cursor = self._connection.cursor(as_dict=True)
        try:
            cursor.execute(sql, params)
            return list(cursor.fetchall())
        finally:
            cursor.close()

    def _fetch_one(self, sql: str, params: tuple[Any, ...] | None = None) -> Row | None:
        rows = self._fetch_all(sql, params)
        return rows[0] if rows else None


class TargetSession:
    """Submits DDL to the target database one statement at a time.

    The connection runs with autocommit off, so everything executed belongs to
    the open transaction until :meth:`commit` or :meth:`rollback` is called.
    """

    def __init__(self, connection: Any, database: str) -> None:
        self._connection = connection
        self.database = database

    def schema_exists(self, name: str) -> bool:
        cursor = self._connection.cursor()
        try:
            cursor.execute("SELECT 1 FROM sys.schemas WHERE name = %s", (name,))
            return cursor.fetchone() is not None
        except pymssql.Error as exc:
            message = f"Could not look up target schema {quote_name(name)}: {driver_message(exc)}"
            raise ResolutionError(message) from exc
        finally:
            cursor.close()

    def execute(self, statement: str) -> None:
        """Run ``statement``; driver failures surface as :class:`ObjectDdlError`."""
        cursor = self._connection.cursor()
        try:
            # No parameters, so literal '%' in definitions is passed through untouched.
            cursor.execute(statement)
        except pymssql.Error as exc:
            raise ObjectDdlError(driver_message(exc), statement) from exc
        finally:
            cursor.close()

    def checkpoint(self) -> None:
        """Commit work so far; a later :meth:`discard` only undoes what follows."""
        self._connection.commit()

    def discard(self) -> None:
        self._connection.rollback()

    def commit(self) -> None:
        self._connection.commit()

    def rollback(self) -> None:
        self._connection.rollback()


def driver_message(exc: BaseException) -> str:
    """Flatten pymssql's ``(number, b'message')`` error args into readable text."""
    parts: list[str] = []
    for arg in _flatten(exc.args):
        if isinstance(arg, bytes):
            parts.append(arg.decode("utf-8", errors="replace").strip())
        elif isinstance(arg, str):
            parts.append(arg.strip())
    return " ".join(part for part in parts if part) or exc.__class__.__name__


def _flatten(values: Iterable[Any]) -> Iterable[Any]:
    for value in values:
        if isinstance(value, tuple):
            yield from _flatten(value)
        else:
            yield value
