"""DDL provisioning: executor strategies and the provisioning entry point."""

from .executor import (
    AtomicExecutor,
    DdlExecutor,
    ExecutionCapabilities,
    ExecutionReport,
    PerEntityExecutor,
    probe_capabilities,
    select_executor,
)
from .provisioner import ProvisioningContext, ProvisionResult, Provisioner

__all__ = [
    "ExecutionCapabilities",
    "ExecutionReport",
    "DdlExecutor",
    "AtomicExecutor",
    "PerEntityExecutor",
    "probe_capabilities",
    "select_executor",
    "ProvisioningContext",
    "ProvisionResult",
    "Provisioner",
]
