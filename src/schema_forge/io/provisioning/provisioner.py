"""Provisioning entry point: verify, execute, record one decision trace."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from schema_forge.domain.versioning.models import DecisionTrace
from schema_forge.exceptions import ProvisioningError
from schema_forge.infrastructure.schema.core import EntitySchema
from schema_forge.infrastructure.schema.ddl_generator import CompiledDdl, compile_schema
from schema_forge.io.repositories.decision_trace_repository import DecisionTraceRepository
from schema_forge.utils.logging import get_logger

from .executor import DdlExecutor

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProvisioningContext:
    """Who asked for the change and why; copied into the decision trace."""

    user_id: str
    project_id: Optional[str] = None
    intent: str = "Provision schema"
    precedent: Optional[str] = None
    schema_before: Optional[EntitySchema] = None


@dataclass
class ProvisionResult:
    success: bool
    tables_created: List[str] = field(default_factory=list)
    errors: List[ProvisioningError] = field(default_factory=list)
    sql_executed: List[str] = field(default_factory=list)
    strategy: str = ""
    trace_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "tables_created": list(self.tables_created),
            "errors": [e.to_dict() for e in self.errors],
            "sql_executed": list(self.sql_executed),
            "strategy": self.strategy,
            "trace_id": self.trace_id,
        }


class Provisioner:
    """
    Applies compiled DDL through one executor strategy.

    Only a ``CompiledDdl`` identical to a fresh compilation of ``schema``
    (text, statements and fingerprint) is executed, so nothing but compiler
    output can reach the database through this class.

    Usage:
        provisioner = Provisioner(select_executor(engine), DecisionTraceRepository(engine))
        result = provisioner.provision(compile_schema(schema), schema,
                                       context=ProvisioningContext(user_id="u1"))
    """

    def __init__(self, executor: DdlExecutor, trace_repository: Optional[DecisionTraceRepository] = None):
        self.executor = executor
        self.trace_repository = trace_repository

    def _verify(self, ddl: Any, schema: EntitySchema) -> CompiledDdl:
        if not isinstance(ddl, CompiledDdl):
            logger.error("provisioning.rejected_input", input_type=type(ddl).__name__)
            raise ProvisioningError(
                f"Provisioning accepts compiled DDL only, got {type(ddl).__name__}"
            )
        expected = compile_schema(schema, ddl.options)
        if expected != ddl:
            logger.error(
                "provisioning.fingerprint_mismatch",
                expected=expected.fingerprint[:12],
                received=ddl.fingerprint[:12],
            )
            raise ProvisioningError("Compiled DDL does not match the schema being provisioned")
        return ddl

    def provision(self, ddl: CompiledDdl, schema: EntitySchema, *, context: ProvisioningContext) -> ProvisionResult:
        """
        Execute ``ddl`` and record a decision trace.

        Returns:
            ProvisionResult; ``success`` is True iff no errors were recorded

        Raises:
            ProvisioningError: If ``ddl`` is not compiler output for ``schema``
        """
        ddl = self._verify(ddl, schema)
        logger.info(
            "provisioning.started",
            strategy=self.executor.strategy,
            tables=list(ddl.tables),
            user_id=context.user_id,
            project_id=context.project_id,
        )
        report = self.executor.execute(ddl)
        result = ProvisionResult(
            success=not report.errors,
            tables_created=report.tables_created,
            errors=report.errors,
            sql_executed=report.sql_executed,
            strategy=report.strategy,
        )

        if self.trace_repository is not None:
            trace = self.trace_repository.append(
                DecisionTrace(
                    user_id=context.user_id,
                    project_id=context.project_id,
                    intent=context.intent,
                    action="provision",
                    precedent=context.precedent,
                    version=schema.version,
                    schema_before=context.schema_before.to_payload() if context.schema_before else None,
                    schema_after=schema.to_payload(),
                    details={
                        "strategy": result.strategy,
                        "tables_created": result.tables_created,
                        "errors": [str(e) for e in result.errors],
                    },
                )
            )
            result.trace_id = trace.id

        log = logger.info if result.success else logger.warning
        log(
            "provisioning.completed",
            success=result.success,
            tables_created=result.tables_created,
            error_count=len(result.errors),
            strategy=result.strategy,
        )
        return result


__all__ = ["ProvisioningContext", "ProvisionResult", "Provisioner"]
