"""Data structures shared across clone-table modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .names import qualified_name

# Constraint kinds, as reported by sys.objects.type.
PRIMARY_KEY = "PK"
UNIQUE = "UQ"
DEFAULT = "D"
CHECK = "C"
FOREIGN_KEY = "F"

# Execution phases, in the order the orchestrator runs them.
PHASE_SCHEMA = "schema"
PHASE_TABLE = "table"
PHASE_CHECK_DEFAULT = "check/default"
PHASE_KEY = "primary key/unique"
PHASE_INDEX = "index"
PHASE_FOREIGN_KEY = "foreign key"
PHASE_TRIGGER = "trigger"

ERROR_SEPARATOR = "; "


@dataclass(frozen=True, slots=True)
class CloneOptions:
    """Per-run invocation parameters."""

    schema_names: str
    table_names: str
    delimiter: str = ","
    dry_run: bool = False
    continue_on_error: bool = False
    translate_user_types: bool = True
    target_database: str | None = None
    preserve_source_collation: bool = False
    create_missing_target_schema: bool = True


class _Outcome:
    """Bookkeeping helpers for records the orchestrator marks as it runs."""

    __slots__ = ()

    clone_succeeded: bool | None
    error_message: str | None

    def mark_success(self) -> None:
        self.clone_succeeded = True

    def record_error(self, message: str) -> None:
        """Append ``message`` to any earlier errors and flag the record failed."""
        self.clone_succeeded = False
        if self.error_message:
            self.error_message = f"{self.error_message}{ERROR_SEPARATOR}{message}"
        else:
            self.error_message = message


@dataclass(slots=True)
class SelectedTable(_Outcome):
    id: int
    schema_id: int
    object_id: int
    schema_name: str
    table_name: str
    clone_succeeded: bool | None = None
    error_message: str | None = None

    @property
    def qualified_name(self) -> str:
        return qualified_name(self.schema_name, self.table_name)


@dataclass(frozen=True, slots=True)
class ColumnDef:
    object_id: int
    column_id: int
    name: str
    native_definition: str
    translated_definition: str

    def definition(self, translate_user_types: bool) -> str:
        if translate_user_types and self.translated_definition:
            return self.translated_definition
        return self.native_definition


@dataclass(slots=True)
class ConstraintDef(_Outcome):
    object_id: int
    constraint_id: int
    name: str
    kind: str
    type_clause: str
    column_list: str
    definition_text: str
    data_space: str | None = None
    partition_column: str | None = None
    index_id: int | None = None
    clone_succeeded: bool | None = None
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class IndexKeyColumn:
    name: str
    is_descending: bool


@dataclass(slots=True)
class IndexDef(_Outcome):
    object_id: int
    index_id: int
    index_type: int
    is_unique: bool
    type_description: str
    name: str
    qualified_table: str
    indexed_columns: tuple[IndexKeyColumn, ...]
    included_columns: tuple[str, ...] = ()
    xml_role: str | None = None
    data_space: str | None = None
    partition_column: str | None = None
    using_xml_index: str | None = None
    secondary_xml_type: str | None = None
    filter_predicate: str | None = None
    constraint_id: int | None = None
    clone_succeeded: bool | None = None
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class TriggerSourceLine:
    object_id: int
    trigger_id: int
    line_number: int
    text: str


@dataclass(slots=True)
class TriggerDef(_Outcome):
    object_id: int
    trigger_id: int
    name: str
    is_encrypted: bool
    lines: tuple[TriggerSourceLine, ...] = ()
    clone_succeeded: bool | None = None
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class ClonePlan:
    """Everything collected from the source catalog for one run."""

    source_database: str
    target_database: str
    target_collation: str | None
    tables: tuple[SelectedTable, ...]
    columns: tuple[ColumnDef, ...]
    constraints: tuple[ConstraintDef, ...]
    indexes: tuple[IndexDef, ...]
    triggers: tuple[TriggerDef, ...]

    def columns_for(self, object_id: int) -> list[ColumnDef]:
        return sorted(
            (column for column in self.columns if column.object_id == object_id),
            key=lambda column: column.column_id,
        )

    def constraints_for(self, object_id: int, kinds: Sequence[str]) -> list[ConstraintDef]:
        return sorted(
            (c for c in self.constraints if c.object_id == object_id and c.kind in kinds),
            key=lambda c: c.constraint_id,
        )

    def indexes_for(self, object_id: int) -> list[IndexDef]:
        return sorted(
            (index for index in self.indexes if index.object_id == object_id),
            key=lambda index: index.index_id,
        )

    def triggers_for(self, object_id: int) -> list[TriggerDef]:
        return sorted(
            (trigger for trigger in self.triggers if trigger.object_id == object_id),
            key=lambda trigger: trigger.trigger_id,
        )

    def table_for(self, object_id: int) -> SelectedTable:
        for table in self.tables:
            if table.object_id == object_id:
                return table
        raise KeyError(object_id)


@dataclass(frozen=True, slots=True)
class PlannedStatement:
    phase: str
    statement: str


@dataclass(slots=True)
class CloneReport:
    """Outcome of a clone run, produced whether or not it completed."""

    plan: ClonePlan
    dry_run: bool
    statements: list[PlannedStatement] = field(default_factory=list)
    fatal_error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.fatal_error is None
