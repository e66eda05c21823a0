"""
Value types shared by the harness components.

Nothing here is persisted. ``Service`` values are rebuilt from configuration
on every call, handles live in the orchestrator's registry, and reports are
returned to whoever drove the run.
"""

from __future__ import annotations

import enum
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Dict, List, Optional, Union

from service_harness.config import HarnessConfig
from service_harness.core.errors import AbortRun


# =============================================================================
# Services and schema artifacts
# =============================================================================


@dataclass(frozen=True)
class Service:
    """A locally built service and the files the harness manages for it."""

    name: str
    source_dir: Path
    env_template: Path
    env_file: Path
    binary: Path
    log_file: Path

    @classmethod
    def from_config(cls, name: str, config: HarnessConfig) -> "Service":
        if not name or "/" in name or name in (".", ".."):
            raise ValueError(f"Invalid service name: {name!r}")
        source_dir = config.source_root / name
        env_name = f"{name}{config.env_suffix}"
        return cls(
            name=name,
            source_dir=source_dir,
            env_template=config.support_dir / env_name,
            env_file=source_dir / env_name,
            binary=source_dir / name,
            log_file=config.log_dir / f"{name}{config.log_suffix}",
        )

    def exists(self) -> bool:
        return self.source_dir.is_dir()


@dataclass(frozen=True)
class SchemaArtifactPair:
    """A schema definition and the bindings compiled from it."""

    schema_file: Path
    generated_file: Path

    def is_current(self) -> bool:
        """True when the bindings exist and are strictly newer than the schema."""
        if not self.generated_file.exists():
            return False
        return self.generated_file.stat().st_mtime_ns > self.schema_file.stat().st_mtime_ns


class BindingLanguage(enum.Enum):
    """Target languages the schema compiler can emit."""

    GO = "go"
    RUBY = "ruby"
    PYTHON = "python"

    @property
    def out_flag(self) -> str:
        return f"--{self.value}_out=."

    def generated_name(self, schema_name: str) -> str:
        if self is BindingLanguage.GO:
            return f"{schema_name}.pb.go"
        if self is BindingLanguage.RUBY:
            return f"{schema_name}.rb"
        return f"{schema_name}_pb2.py"

    @classmethod
    def parse(cls, value: Union[str, "BindingLanguage"]) -> "BindingLanguage":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Unsupported binding language {value!r}; "
                f"choose from {[lang.value for lang in cls]}"
            ) from None


@dataclass
class BindingArtifact:
    """Bindings generated for one language, plus the loaded module for Python."""

    language: BindingLanguage
    path: Path
    module: Optional[ModuleType] = None


# =============================================================================
# Running processes
# =============================================================================


@dataclass
class ServiceHandle:
    """A launched service as recorded by the process registry."""

    name: str
    pid: int
    log_file: Path
    pgid: Optional[int] = None
    started_at: float = field(default_factory=time.time)
    process: Optional[subprocess.Popen] = field(default=None, repr=False)

    @property
    def age_seconds(self) -> float:
        return time.time() - self.started_at

    def is_running(self) -> bool:
        if self.process is None:
            return False
        return self.process.poll() is None


class TerminationOutcome(enum.Enum):
    TERMINATED = "terminated"
    KILLED = "killed"
    NOT_FOUND = "not_found"
    FAILED = "failed"


# =============================================================================
# Reporting
# =============================================================================


class StepStatus(enum.Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class ServiceResult:
    """Per-step outcome for one service within a set-up or tear-down pass."""

    service: str
    steps: Dict[str, StepStatus] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def record(self, step: str, status: StepStatus, message: Optional[str] = None) -> None:
        self.steps[step] = status
        if message:
            if status in (StepStatus.FAILED, StepStatus.ABORTED):
                self.errors.append(f"{step}: {message}")
            else:
                self.warnings.append(f"{step}: {message}")

    @property
    def ok(self) -> bool:
        return not any(
            status in (StepStatus.FAILED, StepStatus.ABORTED) for status in self.steps.values()
        )

    @property
    def aborted(self) -> bool:
        return StepStatus.ABORTED in self.steps.values()


@dataclass
class RunReport:
    """Aggregate outcome of ``set_up`` or ``tear_down``."""

    operation: str
    results: List[ServiceResult] = field(default_factory=list)
    aborted_by: Optional[str] = None
    rollback: Optional["RunReport"] = None
    """Tear-down of already launched services after an abort, when the policy asks for it."""

    def add(self, result: ServiceResult) -> ServiceResult:
        self.results.append(result)
        return result

    def get(self, service: str) -> Optional[ServiceResult]:
        for result in self.results:
            if result.service == service:
                return result
        return None

    @property
    def aborted(self) -> bool:
        return self.aborted_by is not None

    @property
    def failed(self) -> List[str]:
        return [result.service for result in self.results if not result.ok]

    @property
    def ok(self) -> bool:
        return not self.aborted and not self.failed

    def raise_for_abort(self) -> None:
        """Turn an aborted report into :class:`AbortRun` for the top-level runner."""
        if self.aborted_by is not None:
            result = self.get(self.aborted_by)
            reason = result.errors[-1] if result and result.errors else ""
            raise AbortRun(self.aborted_by, reason)

    def summary(self) -> str:
        lines = [f"{self.operation}: {len(self.results)} service(s)"]
        for result in self.results:
            steps = ", ".join(f"{step}={status.value}" for step, status in result.steps.items())
            lines.append(f"  {result.service}: {steps or 'nothing done'}")
            lines.extend(f"    ! {error}" for error in result.errors)
            lines.extend(f"    ~ {warning}" for warning in result.warnings)
        if self.aborted_by:
            lines.append(f"  run aborted by {self.aborted_by}")
        if self.rollback is not None:
            lines.append(self.rollback.summary())
        return "\n".join(lines)
