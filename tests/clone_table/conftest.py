"""Shared fixtures for clone-table tests.

The source side is an in-memory stand-in for :class:`SourceCatalog` that
serves canned ``sys`` catalog rows, and the target side is a fake DB-API
connection that records every statement and models commit/rollback, so the
orchestrator can be exercised without a SQL Server instance.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

import pymssql
import pytest

from clone_cli.clone_table.catalog import TargetSession


class StubLogger:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def debug(self, message: str) -> None:
        self.messages.append(("debug", message))

    def of(self, level: str) -> list[str]:
        return [message for recorded, message in self.messages if recorded == level]


# ---------------------------------------------------------------------------
# Catalog row builders


def column_row(object_id: int, column_id: int, name: str, type_name: str = "int", **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "object_id": object_id,
        "column_id": column_id,
        "column_name": name,
        "is_computed": False,
        "computed_definition": None,
        "type_name": type_name,
        "is_user_defined": False,
        "max_length": 4,
        "precision": 10,
        "scale": 0,
        "collation_name": None,
        "is_nullable": False,
        "is_identity": False,
        "seed_value": None,
        "increment_value": None,
        "system_type_name": type_name,
        "system_max_length": 4,
        "system_precision": 10,
        "system_scale": 0,
    }
    row.update(overrides)
    return row


def index_column_row(
    object_id: int,
    index_id: int,
    index_column_id: int,
    column_id: int,
    name: str,
    *,
    key_ordinal: int | None = None,
    partition_ordinal: int = 0,
    is_descending_key: bool = False,
    is_included_column: bool = False,
) -> dict[str, Any]:
    return {
        "object_id": object_id,
        "index_id": index_id,
        "index_column_id": index_column_id,
        "column_id": column_id,
        "column_name": name,
        "key_ordinal": index_column_id if key_ordinal is None else key_ordinal,
        "partition_ordinal": partition_ordinal,
        "is_descending_key": is_descending_key,
        "is_included_column": is_included_column,
    }


def index_row(object_id: int, index_id: int, name: str, **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "object_id": object_id,
        "index_id": index_id,
        "name": name,
        "type": 2,
        "type_desc": "NONCLUSTERED",
        "is_unique": False,
        "has_filter": False,
        "filter_definition": None,
        "data_space_name": "PRIMARY",
        "schema_name": "dbo",
        "table_name": "Orders",
        "xml_index_type": None,
        "secondary_type_desc": None,
        "using_xml_index": None,
    }
    row.update(overrides)
    return row


class StubCatalog:
    """In-memory implementation of the SourceCatalog query surface."""

    def __init__(
        self,
        *,
        database: str = "SalesDb",
        databases: dict[str, str | None] | None = None,
        schemas: dict[str, int] | None = None,
        tables: dict[tuple[int, str], int] | None = None,
        columns: Iterable[dict[str, Any]] = (),
        key_constraints: Iterable[dict[str, Any]] = (),
        default_constraints: Iterable[dict[str, Any]] = (),
        check_constraints: Iterable[dict[str, Any]] = (),
        foreign_keys: Iterable[dict[str, Any]] = (),
        indexes: Iterable[dict[str, Any]] = (),
        index_columns: Iterable[dict[str, Any]] = (),
        triggers: Iterable[dict[str, Any]] = (),
    ) -> None:
        self.database = database
        self.databases = databases if databases is not None else {database: "SQL_Latin1_General_CP1_CI_AS"}
        self.schemas = schemas or {}
        self.tables = tables or {}
        self._rows = {
            "columns": list(columns),
            "key_constraints": list(key_constraints),
            "default_constraints": list(default_constraints),
            "check_constraints": list(check_constraints),
            "foreign_keys": list(foreign_keys),
            "indexes": list(indexes),
            "index_columns": list(index_columns),
            "triggers": list(triggers),
        }

    def current_database(self) -> str:
        return self.database

    def database_exists(self, name: str) -> bool:
        return name in self.databases

    def database_collation(self, name: str) -> str | None:
        return self.databases.get(name)

    def schema_id(self, name: str) -> int | None:
        return self.schemas.get(name)

    def table_exists(self, name: str) -> bool:
        return any(table_name == name for _, table_name in self.tables)

    def table_object_id(self, schema_id: int, name: str) -> int | None:
        return self.tables.get((schema_id, name))

    def _select(self, family: str, object_ids: Sequence[int]) -> list[dict[str, Any]]:
        wanted = set(object_ids)
        return [row for row in self._rows[family] if row["object_id"] in wanted]

    def column_rows(self, object_ids: Sequence[int]) -> list[dict[str, Any]]:
        return self._select("columns", object_ids)

    def key_constraint_rows(self, object_ids: Sequence[int]) -> list[dict[str, Any]]:
        return self._select("key_constraints", object_ids)

    def default_constraint_rows(self, object_ids: Sequence[int]) -> list[dict[str, Any]]:
        return self._select("default_constraints", object_ids)

    def check_constraint_rows(self, object_ids: Sequence[int]) -> list[dict[str, Any]]:
        return self._select("check_constraints", object_ids)

    def foreign_key_rows(self, object_ids: Sequence[int]) -> list[dict[str, Any]]:
        return self._select("foreign_keys", object_ids)

    def index_rows(self, object_ids: Sequence[int]) -> list[dict[str, Any]]:
        return self._select("indexes", object_ids)

    def index_column_rows(self, object_ids: Sequence[int]) -> list[dict[str, Any]]:
        return self._select("index_columns", object_ids)

    def trigger_rows(self, object_ids: Sequence[int]) -> list[dict[str, Any]]:
        return self._select("triggers", object_ids)


# ---------------------------------------------------------------------------
# Target connection


class FakeCursor:
    def __init__(self, connection: FakeConnection) -> None:
        self._connection = connection
        self._result: tuple[Any, ...] | None = None

    def execute(self, statement: str, params: tuple[Any, ...] | None = None) -> None:
        if statement.startswith("SELECT 1 FROM sys.schemas"):
            assert params is not None
            if self._connection.schema_lookup_error:
                raise pymssql.OperationalError(229, self._connection.schema_lookup_error.encode("utf-8"))
            self._result = (1,) if params[0] in self._connection.schemas else None
            return
        self._connection.attempted.append(statement)
        for marker, message in self._connection.failures.items():
            if marker in statement:
                raise pymssql.OperationalError(2714, message.encode("utf-8"))
        self._connection.pending.append(statement)

    def fetchone(self) -> tuple[Any, ...] | None:
        return self._result

    def close(self) -> None:
        pass


class FakeConnection:
    """DB-API connection double with explicit transaction bookkeeping."""

    def __init__(
        self,
        *,
        schemas: Iterable[str] = ("dbo",),
        failures: dict[str, str] | None = None,
        schema_lookup_error: str | None = None,
    ) -> None:
        self.schemas = set(schemas)
        self.failures = failures or {}
        self.schema_lookup_error = schema_lookup_error
        self.attempted: list[str] = []
        self.pending: list[str] = []
        self.committed: list[str] = []
        self.commits = 0
        self.rollbacks = 0

    def cursor(self, as_dict: bool = False) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1
        self.committed.extend(self.pending)
        self.pending.clear()

    def rollback(self) -> None:
        self.rollbacks += 1
        self.pending.clear()


@pytest.fixture()
def stub_logger() -> StubLogger:
    return StubLogger()


@pytest.fixture()
def orders_catalog() -> StubCatalog:
    """dbo.Customer and dbo.Orders with keys, a default, a check, an index and a trigger."""
    return StubCatalog(
        schemas={"dbo": 1, "Sales": 5},
        tables={(1, "Customer"): 100, (1, "Orders"): 200, (5, "Orders"): 300},
        columns=[
            column_row(100, 1, "CustomerId", is_identity=True, seed_value=1, increment_value=1),
            column_row(
                100,
                2,
                "Name",
                "nvarchar",
                max_length=200,
                collation_name="Latin1_General_CI_AS",
                is_nullable=True,
            ),
            column_row(200, 1, "OrderId"),
            column_row(200, 2, "CustomerId"),
            column_row(200, 3, "Status", "char", max_length=1),
        ],
        key_constraints=[
            {
                "object_id": 100,
                "constraint_id": 1001,
                "name": "PK_Customer",
                "type": "PK",
                "type_desc": "PRIMARY_KEY_CONSTRAINT",
                "index_id": 1,
                "index_type_desc": "CLUSTERED",
                "data_space_name": "PRIMARY",
            },
            {
                "object_id": 200,
                "constraint_id": 2001,
                "name": "PK_Orders",
                "type": "PK",
                "type_desc": "PRIMARY_KEY_CONSTRAINT",
                "index_id": 1,
                "index_type_desc": "CLUSTERED",
                "data_space_name": "PRIMARY",
            },
        ],
        default_constraints=[
            {
                "object_id": 200,
                "constraint_id": 2002,
                "name": "DF_Orders_Status",
                "type": "D ",
                "type_desc": "DEFAULT_CONSTRAINT",
                "definition": "('N')",
                "column_name": "Status",
            }
        ],
        check_constraints=[
            {
                "object_id": 200,
                "constraint_id": 2003,
                "name": "CK_Orders_Status",
                "type": "C ",
                "type_desc": "CHECK_CONSTRAINT",
                "definition": "([Status] IN ('N', 'S'))",
            }
        ],
        foreign_keys=[
            {
                "object_id": 200,
                "constraint_id": 2004,
                "name": "FK_Orders_Customer",
                "type": "F ",
                "type_desc": "FOREIGN_KEY_CONSTRAINT",
                "delete_referential_action": 1,
                "update_referential_action": 0,
                "column_name": "CustomerId",
                "referenced_schema": "dbo",
                "referenced_table": "Customer",
                "referenced_column_id": 1,
                "referenced_column": "CustomerId",
            }
        ],
        indexes=[
            index_row(100, 1, "PK_Customer", type=1, type_desc="CLUSTERED", is_unique=True, table_name="Customer"),
            index_row(200, 1, "PK_Orders", type=1, type_desc="CLUSTERED", is_unique=True),
            index_row(200, 2, "IX_Orders_CustomerId"),
        ],
        index_columns=[
            index_column_row(100, 1, 1, 1, "CustomerId"),
            index_column_row(200, 1, 1, 1, "OrderId"),
            index_column_row(200, 2, 1, 2, "CustomerId"),
            index_column_row(200, 2, 2, 3, "Status", key_ordinal=0, is_included_column=True),
        ],
        triggers=[
            {
                "object_id": 200,
                "trigger_id": 2100,
                "name": "TR_Orders_Audit",
                "is_encrypted": False,
                "definition": "CREATE TRIGGER [dbo].[TR_Orders_Audit] ON [dbo].[Orders]\r\nAFTER INSERT\r\nAS\r\nSET NOCOUNT ON;",
            }
        ],
    )


@pytest.fixture()
def target_connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture()
def target_session(target_connection: FakeConnection) -> TargetSession:
    return TargetSession(target_connection, "SalesDb")
