"""
Async external command execution.

Every tool the harness shells out to (git, the schema compiler, the build
tool) goes through :class:`CommandRunner`. Commands always run with an
explicit working directory and a timeout; nothing here changes the process
working directory.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Type

from service_harness.core.errors import CommandFailure, CommandTimeout

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured outcome of one external command."""

    argv: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self, error_cls: Type[CommandFailure] = CommandFailure) -> "CommandResult":
        """Raise ``error_cls`` when the command exited non-zero."""
        if not self.ok:
            raise error_cls(self.argv, self.returncode, self.stdout, self.stderr)
        return self


class CommandRunner:
    """Runs external tools through ``asyncio.create_subprocess_exec``."""

    async def run(
        self,
        argv: Sequence[str],
        cwd: Path,
        timeout: float,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """
        Run ``argv`` in ``cwd`` and capture its output.

        Args:
            argv: Program and arguments. No shell is involved.
            cwd: Working directory for the child only.
            timeout: Seconds before the child is killed.
            env: Extra environment variables layered over ``os.environ``.

        Returns:
            CommandResult with decoded stdout/stderr.

        Raises:
            CommandTimeout: If the command outlives ``timeout``.
            FileNotFoundError: If the program does not exist.
        """
        argv = [str(arg) for arg in argv]
        if not argv:
            raise ValueError("Empty command")

        child_env = None
        if env:
            child_env = dict(os.environ)
            child_env.update(env)

        logger.debug(f"Running {' '.join(argv)} (cwd={cwd}, timeout={timeout}s)")
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd),
            env=child_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{argv[0]} timed out after {timeout}s, killing PID {process.pid}")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            raise CommandTimeout(argv, timeout) from None

        result = CommandResult(
            argv=argv,
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        if not result.ok:
            logger.debug(f"{argv[0]} exited with {result.returncode}: {result.stderr.strip()}")
        return result
