"""Phase-ordered replay of a clone plan against the target database."""

from __future__ import annotations

from clone_cli.shared.exceptions import CloneError, CreationError, ObjectDdlError, ResolutionError
from clone_cli.shared.logging import Logger

from . import ddl
from .catalog import TargetSession
from .names import quote_name
from .types import (
    CHECK,
    DEFAULT,
    FOREIGN_KEY,
    PHASE_CHECK_DEFAULT,
    PHASE_FOREIGN_KEY,
    PHASE_INDEX,
    PHASE_KEY,
    PHASE_SCHEMA,
    PHASE_TABLE,
    PHASE_TRIGGER,
    PRIMARY_KEY,
    UNIQUE,
    ClonePlan,
    CloneOptions,
    CloneReport,
    ConstraintDef,
    IndexDef,
    PlannedStatement,
    TriggerDef,
)

ROLLBACK_PREFIX = "/* Rolling back transaction: */"

_CONSTRAINT_LABELS = {
    CHECK: "check constraint",
    DEFAULT: "default constraint",
    PRIMARY_KEY: "primary key",
    UNIQUE: "unique constraint",
    FOREIGN_KEY: "foreign key",
}


class CloneOrchestrator:
    """Runs the seven clone phases in order and records each object's outcome.

    Everything happens inside one transaction on the target connection. With
    ``continue_on_error`` the transaction is committed around every constraint,
    index and trigger statement so that a failure rolls back only that object.
    In dry-run mode statements are collected on the report and nothing is
    executed; the target is consulted only to see which schemas exist.
    """

    def __init__(
        self,
        plan: ClonePlan,
        session: TargetSession,
        options: CloneOptions,
        *,
        logger: Logger,
    ) -> None:
        self.plan = plan
        self.session = session
        self.options = options
        self.logger = logger

    def run(self) -> CloneReport:
        report = CloneReport(plan=self.plan, dry_run=self.options.dry_run)
        try:
            self._ensure_schemas(report)
            self._create_tables(report)
            self._add_constraints(report, PHASE_CHECK_DEFAULT, (CHECK, DEFAULT))
            self._add_constraints(report, PHASE_KEY, (PRIMARY_KEY, UNIQUE))
            self._create_indexes(report)
            self._add_constraints(report, PHASE_FOREIGN_KEY, (FOREIGN_KEY,))
            self._create_triggers(report)
        except CloneError as exc:
            if not self.options.dry_run:
                self.session.rollback()
            message = exc.describe() if isinstance(exc, ObjectDdlError) else str(exc)
            report.fatal_error = f"{ROLLBACK_PREFIX} {message}"
            self.logger.error(report.fatal_error)
            return report

        if not self.options.dry_run:
            self.session.commit()
        return report

    # -- phases --------------------------------------------------------------

    def _ensure_schemas(self, report: CloneReport) -> None:
        seen: set[str] = set()
        for table in self.plan.tables:
            schema = table.schema_name
            if schema in seen:
                continue
            seen.add(schema)
            if self.session.schema_exists(schema):
                continue
            if not self.options.create_missing_target_schema:
                raise ResolutionError(
                    f"Could not find schema {quote_name(schema)} in target database "
                    f"{quote_name(self.plan.target_database)}."
                )
            statement = ddl.create_schema_statement(schema)
            if self._record_only(report, PHASE_SCHEMA, statement):
                continue
            try:
                self.session.execute(statement)
            except ObjectDdlError as exc:
                raise CreationError(exc.describe()) from exc
            self.logger.success(f"Created schema {quote_name(schema)} in {self._target}")

    def _create_tables(self, report: CloneReport) -> None:
        for table in self.plan.tables:
            statement = ddl.create_table_statement(
                table,
                self.plan.columns_for(table.object_id),
                translate_user_types=self.options.translate_user_types,
            )
            if self._record_only(report, PHASE_TABLE, statement):
                continue
            try:
                self.session.execute(statement)
            except ObjectDdlError as exc:
                table.record_error(exc.describe())
                raise CreationError(exc.describe()) from exc
            table.mark_success()
            self.logger.success(f"Created table {table.qualified_name} in {self._target}")

    def _add_constraints(self, report: CloneReport, phase: str, kinds: tuple[str, ...]) -> None:
        for table in self.plan.tables:
            for constraint in self.plan.constraints_for(table.object_id, kinds):
                statement = ddl.constraint_statement(table, constraint)
                label = f"{_CONSTRAINT_LABELS[constraint.kind]} {quote_name(constraint.name)} on {table.qualified_name}"
                self._apply(report, phase, constraint, statement, label)

    def _create_indexes(self, report: CloneReport) -> None:
        for table in self.plan.tables:
            for index in self.plan.indexes_for(table.object_id):
                label = f"index {quote_name(index.name)} on {table.qualified_name}"
                self._apply(report, PHASE_INDEX, index, ddl.index_statement(index), label)

    def _create_triggers(self, report: CloneReport) -> None:
        for table in self.plan.tables:
            for trigger in self.plan.triggers_for(table.object_id):
                if trigger.is_encrypted or not trigger.lines:
                    self.logger.debug(f"Skipping trigger {quote_name(trigger.name)}; no definition to replay.")
                    continue
                label = f"trigger {quote_name(trigger.name)} on {table.qualified_name}"
                self._apply(report, PHASE_TRIGGER, trigger, ddl.trigger_statement(trigger), label)

    # -- statement submission ------------------------------------------------

    @property
    def _target(self) -> str:
        return quote_name(self.plan.target_database)

    def _record_only(self, report: CloneReport, phase: str, statement: str) -> bool:
        if not self.options.dry_run:
            return False
        report.statements.append(PlannedStatement(phase=phase, statement=statement))
        return True

    def _apply(
        self,
        report: CloneReport,
        phase: str,
        record: ConstraintDef | IndexDef | TriggerDef,
        statement: str,
        label: str,
    ) -> None:
        if self._record_only(report, phase, statement):
            return

        if not self.options.continue_on_error:
            try:
                self.session.execute(statement)
            except ObjectDdlError as exc:
                # run() turns this into the fatal rollback
                record.record_error(exc.describe())
                raise
            record.mark_success()
            self.logger.success(f"Created {label} in {self._target}")
            return

        self.session.checkpoint()
        try:
            self.session.execute(statement)
        except ObjectDdlError as exc:
            self.session.discard()
            record.record_error(exc.describe())
            self.logger.warning(f"Could not create {label}: {exc.describe()}")
            return
        self.session.checkpoint()
        record.mark_success()
        self.logger.success(f"Created {label} in {self._target}")
