"""DDL execution strategies.

Two strategies share one interface and are chosen by probing the database
rather than by catching failures:

- ``AtomicExecutor`` submits the complete compiled text in one round trip.
  The text carries its own ``BEGIN``/``COMMIT``, so it runs on an
  AUTOCOMMIT connection and either everything is applied or nothing is.
- ``PerEntityExecutor`` runs the shared statements, then each table's
  statements in a separate transaction, referenced tables first, recording
  failures per table and continuing with the rest.

These classes are the only code that sends DDL to a database, and they only
accept ``CompiledDdl`` objects produced by the compiler.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Literal, Optional

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from schema_forge.config import get_settings
from schema_forge.exceptions import ProvisioningError
from schema_forge.infrastructure.schema.ddl_generator import CompiledDdl
from schema_forge.utils.logging import get_logger

logger = get_logger(__name__)

Strategy = Literal["auto", "atomic", "per_entity"]


@dataclass(frozen=True)
class ExecutionCapabilities:
    """What the target database can do with compiled DDL."""

    dialect: str
    multi_statement: bool
    transactional_ddl: bool


def probe_capabilities(engine: Engine) -> ExecutionCapabilities:
    """
    Inspect the engine's dialect.

    PostgreSQL drivers accept a multi-statement script in one call and run
    DDL transactionally. SQLite runs DDL transactionally but its driver
    executes one statement per call. Anything else gets neither.
    """
    dialect = engine.dialect.name
    if dialect == "postgresql":
        return ExecutionCapabilities(dialect, multi_statement=True, transactional_ddl=True)
    if dialect == "sqlite":
        return ExecutionCapabilities(dialect, multi_statement=False, transactional_ddl=True)
    return ExecutionCapabilities(dialect, multi_statement=False, transactional_ddl=False)


@dataclass
class ExecutionReport:
    strategy: str
    tables_created: List[str] = field(default_factory=list)
    errors: List[ProvisioningError] = field(default_factory=list)
    sql_executed: List[str] = field(default_factory=list)


def _raw(conn: Connection) -> Connection:
    # no_parameters keeps DBAPI drivers from treating '%' in literals as placeholders
    return conn.execution_options(no_parameters=True)


def _describe(exc: SQLAlchemyError) -> str:
    original = getattr(exc, "orig", None)
    return str(original if original is not None else exc).strip()


class DdlExecutor(ABC):
    """Executes compiled DDL against one engine."""

    strategy: str = ""

    def __init__(self, engine: Engine):
        self.engine = engine

    @abstractmethod
    def execute(self, ddl: CompiledDdl) -> ExecutionReport:
        raise NotImplementedError


class AtomicExecutor(DdlExecutor):
    """Submit the whole transactional script as one unit."""

    strategy = "atomic"

    def execute(self, ddl: CompiledDdl) -> ExecutionReport:
        report = ExecutionReport(strategy=self.strategy)
        with self.engine.connect() as conn:
            conn = conn.execution_options(isolation_level="AUTOCOMMIT", no_parameters=True)
            try:
                conn.exec_driver_sql(ddl.text)
            except SQLAlchemyError as exc:
                self._abort(conn)
                message = _describe(exc)
                logger.error(
                    "provisioning.atomic_failed",
                    tables=list(ddl.tables),
                    error=message,
                )
                report.errors = [
                    ProvisioningError(message, table=name, original_error=exc) for name in ddl.tables
                ]
                return report

        report.tables_created = list(ddl.tables)
        report.sql_executed = [ddl.text]
        logger.info("provisioning.atomic_applied", tables=report.tables_created)
        return report

    @staticmethod
    def _abort(conn: Connection) -> None:
        # The script opened its own transaction; close it before the connection is pooled.
        try:
            conn.exec_driver_sql("ROLLBACK")
        except SQLAlchemyError as exc:
            logger.warning("provisioning.rollback_failed", error=_describe(exc))


class PerEntityExecutor(DdlExecutor):
    """Apply each table in its own transaction and keep going on failure.

    Tables run in foreign-key dependency order so a table declared before the
    table it references still finds it created.
    """

    strategy = "per_entity"

    def execute(self, ddl: CompiledDdl) -> ExecutionReport:
        report = ExecutionReport(strategy=self.strategy)

        try:
            with self.engine.begin() as conn:
                for statement in ddl.shared_statements:
                    _raw(conn).exec_driver_sql(statement)
            report.sql_executed.extend(ddl.shared_statements)
        except SQLAlchemyError as exc:
            message = _describe(exc)
            logger.error("provisioning.shared_failed", error=message)
            report.errors.append(ProvisioningError(message, original_error=exc))

        for name in ddl.dependency_order():
            statements = ddl.for_table(name)
            try:
                with self.engine.begin() as conn:
                    for statement in statements:
                        _raw(conn).exec_driver_sql(statement)
            except SQLAlchemyError as exc:
                message = _describe(exc)
                logger.warning("provisioning.table_failed", table=name, error=message)
                report.errors.append(ProvisioningError(message, table=name, original_error=exc))
                continue
            report.tables_created.append(name)
            report.sql_executed.extend(statements)
            logger.debug("provisioning.table_applied", table=name, statements=len(statements))

        return report


def select_executor(engine: Engine, strategy: Optional[Strategy] = None) -> DdlExecutor:
    """
    Choose an executor for ``engine``.

    ``auto`` (the default from settings) picks the atomic path when the
    database accepts multi-statement transactional scripts and the per-entity
    path otherwise; ``atomic`` and ``per_entity`` are honoured as given.
    """
    strategy = strategy or get_settings().provisioning_strategy
    if strategy == "atomic":
        return AtomicExecutor(engine)
    if strategy == "per_entity":
        return PerEntityExecutor(engine)
    if strategy != "auto":
        raise ValueError(f"Unknown provisioning strategy: {strategy}")

    capabilities = probe_capabilities(engine)
    executor: DdlExecutor
    if capabilities.multi_statement and capabilities.transactional_ddl:
        executor = AtomicExecutor(engine)
    else:
        executor = PerEntityExecutor(engine)
    logger.info(
        "provisioning.executor_selected",
        dialect=capabilities.dialect,
        strategy=executor.strategy,
    )
    return executor


__all__ = [
    "ExecutionCapabilities",
    "ExecutionReport",
    "DdlExecutor",
    "AtomicExecutor",
    "PerEntityExecutor",
    "probe_capabilities",
    "select_executor",
]
