"""
End-to-end schema provisioning.

``SchemaProvisioningPipeline.run`` takes a candidate schema through
validate -> compile -> provision -> create_version -> publish. Each stage
only runs when the previous one succeeded:

- a validation failure returns before anything touches the database
- provisioning errors return the partial report and no version is stored
- the resource registry is published only after the version is stored
"""

from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from schema_forge.domain.resources.registrar import RegistrationResult, publish_schema
from schema_forge.domain.resources.registry import ResourceRegistry
from schema_forge.domain.versioning.models import SchemaVersion
from schema_forge.domain.versioning.version_store import VersionStore
from schema_forge.infrastructure.schema.core import EntitySchema
from schema_forge.infrastructure.schema.ddl_generator import CompiledDdl, CompilerOptions, compile_schema
from schema_forge.infrastructure.validation import ValidationResult, validate
from schema_forge.io.provisioning.provisioner import ProvisioningContext, ProvisionResult, Provisioner
from schema_forge.io.repositories.schema_lock_repository import SchemaLockRepository
from schema_forge.utils.logging import bind_context

from .locks import schema_edit_lock

Candidate = Union[EntitySchema, Mapping[str, Any]]


@dataclass
class PipelineResult:
    """Outcome of one pipeline run; ``stage`` names the last stage reached."""

    success: bool
    stage: str
    validation: ValidationResult
    ddl: Optional[CompiledDdl] = None
    provisioning: Optional[ProvisionResult] = None
    version: Optional[SchemaVersion] = None
    registration: Optional[RegistrationResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "stage": self.stage,
            "validation": self.validation.to_dict(),
            "fingerprint": self.ddl.fingerprint if self.ddl else None,
            "provisioning": self.provisioning.to_dict() if self.provisioning else None,
            "version": self.version.to_dict() if self.version else None,
            "registration": self.registration.to_dict() if self.registration else None,
        }


class SchemaProvisioningPipeline:
    """
    Wires validator, compiler, provisioner, version store and registry.

    Usage:
        pipeline = SchemaProvisioningPipeline(
            VersionStore.from_engine(engine),
            Provisioner(select_executor(engine), DecisionTraceRepository(engine)),
            create_registry(),
            lock_repository=SchemaLockRepository(engine),
        )
        result = pipeline.run(candidate, user_id="u1", project_id="p1",
                              description="Initial CRM schema")
    """

    def __init__(
        self,
        version_store: VersionStore,
        provisioner: Provisioner,
        registry: ResourceRegistry,
        lock_repository: Optional[SchemaLockRepository] = None,
        compiler_options: Optional[CompilerOptions] = None,
    ):
        self.version_store = version_store
        self.provisioner = provisioner
        self.registry = registry
        self.lock_repository = lock_repository
        self.compiler_options = compiler_options

    def _lock(self, project_id: Optional[str], user_id: str):
        if self.lock_repository is None or project_id is None:
            return nullcontext()
        return schema_edit_lock(self.lock_repository, project_id, user_id)

    def run(
        self,
        candidate: Candidate,
        *,
        user_id: str,
        project_id: Optional[str] = None,
        description: str = "",
        intent: str = "Provision schema",
        precedent: Optional[str] = None,
    ) -> PipelineResult:
        """
        Validate, compile, provision, store and publish ``candidate``.

        Raises:
            ConcurrencyError: If another user holds the project's edit lock
        """
        log = bind_context(user_id=user_id, project_id=project_id)
        validation = validate(candidate)
        if not validation.passed:
            log.warning("pipeline.validation_failed", rules_failed=validation.rules_failed())
            return PipelineResult(success=False, stage="validate", validation=validation)
        schema = validation.schema

        with self._lock(project_id, user_id):
            ddl = compile_schema(schema, self.compiler_options)
            active = self.version_store.get_active_version(user_id=user_id, project_id=project_id)
            provisioning = self.provisioner.provision(
                ddl,
                schema,
                context=ProvisioningContext(
                    user_id=user_id,
                    project_id=project_id,
                    intent=intent,
                    precedent=precedent,
                    schema_before=active.snapshot if active else None,
                ),
            )
            if not provisioning.success:
                log.warning(
                    "pipeline.provisioning_failed",
                    tables_created=provisioning.tables_created,
                    error_count=len(provisioning.errors),
                )
                return PipelineResult(
                    success=False,
                    stage="provision",
                    validation=validation,
                    ddl=ddl,
                    provisioning=provisioning,
                )

            version = self.version_store.create_version(
                schema,
                description or intent,
                user_id=user_id,
                project_id=project_id,
            )

        registration = publish_schema(
            self.registry, schema, previous=active.snapshot if active else None
        )
        if not registration.success:
            log.warning("pipeline.resources_failed", resources=registration.resources_failed)
        log.info(
            "pipeline.completed",
            version_id=version.id,
            version=version.version,
            resources=registration.resources_registered,
        )
        return PipelineResult(
            success=True,
            stage="publish",
            validation=validation,
            ddl=ddl,
            provisioning=provisioning,
            version=version,
            registration=registration,
        )

    def restore_version(
        self,
        version_id: str,
        *,
        user_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PipelineResult:
        """
        Make a stored version live again.

        The snapshot goes through the whole pipeline and is stored as a new
        version; earlier versions are never reactivated in place.

        Raises:
            VersionNotFoundError: If ``version_id`` is unknown
        """
        stored = self.version_store.get_version(version_id)
        snapshot = self.version_store.rollback_to_version(version_id)
        return self.run(
            snapshot,
            user_id=user_id or stored.user_id,
            project_id=stored.project_id,
            description=description or f"Restored version {stored.version} ({version_id})",
            intent="Rollback",
            precedent=version_id,
        )


__all__ = ["PipelineResult", "SchemaProvisioningPipeline"]
