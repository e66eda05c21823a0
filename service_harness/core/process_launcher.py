"""
Process Launcher
================

Builds a service from its checkout and starts it in the background:

    schema check → branch check → build → detached start

The started process runs in its own session with the service's environment
script sourced and combined output redirected to the service log. The
launcher returns a :class:`ServiceHandle` immediately and never waits on the
child, so the caller can move on to the next service.
"""

import logging
import os
import shlex
import subprocess
from typing import Optional

from service_harness.config import HarnessConfig
from service_harness.core.command_runner import CommandRunner
from service_harness.core.errors import BranchMismatch, BranchQueryFailure, BuildFailure
from service_harness.core.models import Service, ServiceHandle, ServiceResult, StepStatus
from service_harness.core.schema_compiler import SchemaCompilerGateway

logger = logging.getLogger(__name__)


class ProcessLauncher:
    """Prepares, builds and starts one service at a time."""

    def __init__(
        self,
        config: HarnessConfig,
        runner: Optional[CommandRunner] = None,
        schema_gateway: Optional[SchemaCompilerGateway] = None,
    ):
        self.config = config
        self.runner = runner or CommandRunner()
        self.schema_gateway = schema_gateway or SchemaCompilerGateway(config, self.runner)

    async def launch(
        self, service: Service, result: Optional[ServiceResult] = None
    ) -> ServiceHandle:
        """
        Prepare, build and start ``service``.

        Args:
            service: Service to launch.
            result: Optional per-service result; each completed step and any
                branch warning is recorded on it.

        Raises:
            SubmoduleFetchFailure, CompileFailure: Schema preparation failed.
            BranchMismatch: Off the primary branch with ``branch_policy=fail``.
            BuildFailure: The build tool exited non-zero.
            CommandTimeout: Any external tool hung past its timeout.
        """
        result = result if result is not None else ServiceResult(service.name)

        await self.schema_gateway.ensure_service_schema(service.source_dir)
        result.record("schema", StepStatus.OK)

        warning = await self.check_branch(service)
        result.record("branch", StepStatus.OK, warning)

        await self.build(service)
        result.record("build", StepStatus.OK)

        handle = self.start(service)
        result.record("start", StepStatus.OK)
        return handle

    async def current_branch(self, service: Service) -> str:
        argv = [self.config.git, "rev-parse", "--abbrev-ref", "HEAD"]
        result = await self.runner.run(argv, cwd=service.source_dir, timeout=self.config.git_timeout)
        result.check(BranchQueryFailure)
        return result.stdout.strip()

    async def check_branch(self, service: Service) -> Optional[str]:
        """
        Compare the checkout's branch with the primary branch.

        Returns:
            A warning message when off-branch under the ``warn`` policy, else None.
        """
        branch = await self.current_branch(service)
        if branch == self.config.primary_branch:
            return None

        if self.config.branch_policy == "fail":
            raise BranchMismatch(service.name, branch, self.config.primary_branch)

        message = (
            f"ALERT! Your version of {service.name} is not on {self.config.primary_branch} "
            f"branch but on branch: {branch}. Adjust if necessary"
        )
        logger.warning(message)
        return message

    async def build(self, service: Service) -> None:
        argv = self.config.build_argv
        logger.info(f"Building {service.name} with {' '.join(argv)}")
        result = await self.runner.run(argv, cwd=service.source_dir, timeout=self.config.build_timeout)
        result.check(BuildFailure)

    def start(self, service: Service) -> ServiceHandle:
        """
        Start the built binary detached from the harness.

        The shell sources the environment script and then ``exec``s the
        binary, so the recorded PID is the service itself and its process
        group holds anything the service forks.
        """
        service.log_file.parent.mkdir(parents=True, exist_ok=True)
        command = (
            f". {shlex.quote(str(service.env_file))} && "
            f"exec {shlex.quote(str(service.binary))}"
        )

        with open(service.log_file, "wb") as log:
            process = subprocess.Popen(
                [self.config.shell, "-c", command],
                cwd=str(service.source_dir),
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )

        try:
            pgid = os.getpgid(process.pid)
        except (ProcessLookupError, PermissionError):
            pgid = None

        logger.info(f"Started {service.name} (PID={process.pid}), logging to {service.log_file}")
        return ServiceHandle(
            name=service.name,
            pid=process.pid,
            pgid=pgid,
            log_file=service.log_file,
            process=process,
        )
