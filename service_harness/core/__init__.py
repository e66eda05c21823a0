"""
Core service lifecycle components.

Usage:
    from service_harness.core import ServiceOrchestrator

    orchestrator = ServiceOrchestrator()
    report = await orchestrator.set_up(["alpha", "beta"])
"""

from service_harness.core.artifact_cleaner import ArtifactCleaner
from service_harness.core.command_runner import CommandResult, CommandRunner
from service_harness.core.env_provisioner import (
    EnvironmentProvisioner,
    ProvisionResult,
    ProvisionStatus,
)
from service_harness.core.errors import (
    AbortRun,
    AmbiguousProcessMatch,
    BranchMismatch,
    BranchQueryFailure,
    BuildFailure,
    CommandFailure,
    CommandTimeout,
    CompileFailure,
    HarnessError,
    MissingArtifact,
    ProcessNotFound,
    SchemaNotFound,
    SubmoduleFetchFailure,
)
from service_harness.core.models import (
    BindingArtifact,
    BindingLanguage,
    RunReport,
    SchemaArtifactPair,
    Service,
    ServiceHandle,
    ServiceResult,
    StepStatus,
    TerminationOutcome,
)
from service_harness.core.orchestrator import ServiceOrchestrator
from service_harness.core.process_launcher import ProcessLauncher
from service_harness.core.process_registry import ProcessRegistry
from service_harness.core.process_terminator import ProcessLocator, ProcessTerminator
from service_harness.core.schema_compiler import SchemaCompilerGateway

__all__ = [
    "AbortRun",
    "AmbiguousProcessMatch",
    "ArtifactCleaner",
    "BindingArtifact",
    "BindingLanguage",
    "BranchMismatch",
    "BranchQueryFailure",
    "BuildFailure",
    "CommandFailure",
    "CommandResult",
    "CommandRunner",
    "CommandTimeout",
    "CompileFailure",
    "EnvironmentProvisioner",
    "HarnessError",
    "MissingArtifact",
    "ProcessLauncher",
    "ProcessLocator",
    "ProcessNotFound",
    "ProcessRegistry",
    "ProcessTerminator",
    "ProvisionResult",
    "ProvisionStatus",
    "RunReport",
    "SchemaArtifactPair",
    "SchemaCompilerGateway",
    "Service",
    "ServiceHandle",
    "ServiceOrchestrator",
    "ServiceResult",
    "StepStatus",
    "SubmoduleFetchFailure",
    "TerminationOutcome",
]
