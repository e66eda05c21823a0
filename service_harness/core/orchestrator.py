"""
Service Orchestrator
====================

Brings a set of locally built services up for a test run and takes them down
again afterwards.

    set_up:    provision → schema → branch → build → start   (per service, in order)
    tear_down: terminate → remove env config → remove binary (per service, in order)

Failures are collected per service in a :class:`RunReport` instead of
stopping at the first error. The one exception is a missing checkout during
provisioning: that marks the report as aborted and no further services are
set up. What happens to services already started at that point is governed
by ``abort_policy``.

Usage:
    orchestrator = ServiceOrchestrator(HarnessConfig.from_env())
    orchestrator.cleanup_logs()

    report = await orchestrator.set_up(["alpha", "beta"])
    report.raise_for_abort()
    ...
    await orchestrator.tear_down(["alpha", "beta"])

    # or
    async with orchestrator.running(["alpha", "beta"]) as report:
        ...
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional, Sequence, Union

from service_harness.config import HarnessConfig, get_config
from service_harness.core.artifact_cleaner import ArtifactCleaner
from service_harness.core.command_runner import CommandRunner
from service_harness.core.env_provisioner import EnvironmentProvisioner
from service_harness.core.errors import HarnessError, ProcessNotFound
from service_harness.core.models import (
    BindingArtifact,
    BindingLanguage,
    RunReport,
    Service,
    ServiceResult,
    StepStatus,
    TerminationOutcome,
)
from service_harness.core.process_launcher import ProcessLauncher
from service_harness.core.process_registry import ProcessRegistry
from service_harness.core.process_terminator import ProcessLocator, ProcessTerminator
from service_harness.core.schema_compiler import SchemaCompilerGateway

logger = logging.getLogger(__name__)

ServiceRef = Union[str, Service]

LAUNCH_STEPS = ("schema", "branch", "build", "start")


class ServiceOrchestrator:
    """Owns the process registry and sequences every set-up and tear-down step."""

    def __init__(
        self,
        config: Optional[HarnessConfig] = None,
        runner: Optional[CommandRunner] = None,
        registry: Optional[ProcessRegistry] = None,
        locator: Optional[ProcessLocator] = None,
    ):
        self.config = config or get_config()
        self.runner = runner or CommandRunner()
        self.registry = registry if registry is not None else ProcessRegistry()

        self.schema_gateway = SchemaCompilerGateway(self.config, self.runner)
        self.provisioner = EnvironmentProvisioner()
        self.launcher = ProcessLauncher(self.config, self.runner, self.schema_gateway)
        self.terminator = ProcessTerminator(self.config, self.registry, locator)
        self.cleaner = ArtifactCleaner()

    def service(self, ref: ServiceRef) -> Service:
        if isinstance(ref, Service):
            return ref
        return Service.from_config(ref, self.config)

    # -------------------------------------------------------------------------
    # Set-up
    # -------------------------------------------------------------------------

    async def set_up(self, services: Sequence[ServiceRef]) -> RunReport:
        """Provision and launch ``services`` in order."""
        report = RunReport("set_up")
        launched: List[Service] = []

        for ref in services:
            service = self.service(ref)
            result = report.add(ServiceResult(service.name))

            try:
                provisioned = self.provisioner.provision(service)
            except OSError as e:
                logger.error(f"Provisioning {service.name} failed: {e}")
                result.record("provision", StepStatus.FAILED, str(e))
                continue

            if provisioned.should_abort:
                result.record("provision", StepStatus.ABORTED, provisioned.reason)
                report.aborted_by = service.name
                logger.error(f"Aborting set-up at {service.name}: {provisioned.reason}")
                if self.config.abort_policy == "teardown" and launched:
                    logger.info(f"Tearing down {len(launched)} service(s) started before the abort")
                    report.rollback = await self.tear_down(launched)
                break
            result.record("provision", StepStatus.OK)

            try:
                handle = await self.launcher.launch(service, result)
            except (HarnessError, OSError) as e:
                step = next((s for s in LAUNCH_STEPS if s not in result.steps), "start")
                logger.error(f"Launching {service.name} failed at {step}: {e}")
                result.record(step, StepStatus.FAILED, str(e))
                continue

            self.registry.register(handle)
            launched.append(service)

        if report.ok:
            logger.info(f"Set up {len(report.results)} service(s)")
        else:
            logger.warning(report.summary())
        return report

    # -------------------------------------------------------------------------
    # Tear-down
    # -------------------------------------------------------------------------

    async def tear_down(self, services: Sequence[ServiceRef]) -> RunReport:
        """Stop ``services`` and remove their artifacts; one failure never blocks the rest."""
        report = RunReport("tear_down")

        for ref in services:
            service = self.service(ref)
            result = report.add(ServiceResult(service.name))

            try:
                outcome = await self.terminator.terminate(service.name)
            except ProcessNotFound:
                result.record("terminate", StepStatus.SKIPPED, "no running process")
            except (HarnessError, OSError) as e:
                logger.error(f"Terminating {service.name} failed: {e}")
                result.record("terminate", StepStatus.FAILED, str(e))
            else:
                if outcome is TerminationOutcome.FAILED:
                    result.record("terminate", StepStatus.FAILED, "process survived SIGKILL")
                elif outcome is TerminationOutcome.NOT_FOUND:
                    result.record("terminate", StepStatus.SKIPPED, "no running process")
                else:
                    result.record("terminate", StepStatus.OK)

            for step, remove in (
                ("env_config", self.cleaner.remove_env_config),
                ("binary", self.cleaner.remove_binary),
            ):
                try:
                    removed = remove(service)
                except (HarnessError, OSError) as e:
                    logger.error(f"Removing {step} for {service.name} failed: {e}")
                    result.record(step, StepStatus.FAILED, str(e))
                else:
                    result.record(step, StepStatus.OK if removed else StepStatus.SKIPPED)

        if report.failed:
            logger.warning(report.summary())
        return report

    @asynccontextmanager
    async def running(self, services: Sequence[ServiceRef]) -> AsyncIterator[RunReport]:
        """
        Set ``services`` up for the body of the block and always tear them down.

        Raises:
            AbortRun: If a checkout is missing.
        """
        report = None
        try:
            report = await self.set_up(services)
            report.raise_for_abort()
            yield report
        finally:
            if report is None:
                # set_up itself raised; stop whatever it had already started
                await self.tear_down(self.registry.names())
            else:
                await self.tear_down(services)

    # -------------------------------------------------------------------------
    # Session helpers
    # -------------------------------------------------------------------------

    def cleanup_logs(self) -> List[Path]:
        """Remove service logs left by the previous run."""
        return self.cleaner.cleanup_logs(self.config.log_dir, self.config.log_suffix)

    async def compile_binding(
        self,
        service: str,
        language: Union[str, BindingLanguage, None] = None,
    ) -> BindingArtifact:
        """Compile (and for Python, import) wire-format bindings for ``service``."""
        return await self.schema_gateway.compile_binding_for_language(service, language)

    def find_pid(self, service: str) -> Optional[int]:
        return self.terminator.find_pid(service)
