"""Orchestration: the provisioning pipeline and schema edit locks."""

from .locks import schema_edit_lock
from .pipeline import PipelineResult, SchemaProvisioningPipeline

__all__ = ["schema_edit_lock", "PipelineResult", "SchemaProvisioningPipeline"]
