"""
Process Locator / Terminator
============================

Stops services started for a test run.

Termination prefers the handle the launcher registered: the exact PID and
process group, no guessing. When no handle exists (the harness was restarted,
or the service was started by hand) the live process table is scanned with
psutil for a command name starting with the service name. Linux truncates
command names to 15 characters, so a truncated name also matches when the
service name begins with it.

Signals escalate the same way everywhere: SIGTERM, a grace period, then
SIGKILL.
"""

import asyncio
import logging
import os
import signal
import time
from typing import List, Optional

import psutil

from service_harness.config import HarnessConfig
from service_harness.core.errors import AmbiguousProcessMatch
from service_harness.core.models import ServiceHandle, TerminationOutcome
from service_harness.core.process_registry import ProcessRegistry

logger = logging.getLogger(__name__)

# Kernel limit on the command name (TASK_COMM_LEN - 1)
COMM_MAX_LEN = 15

_POLL_INTERVAL = 0.1


def name_matches(process_name: str, service: str) -> bool:
    """True if ``process_name`` is the service's command name or starts with it."""
    if not process_name or not service:
        return False
    if process_name.startswith(service):
        return True
    return len(process_name) == COMM_MAX_LEN and service.startswith(process_name)


class ProcessLocator:
    """Finds running processes by command-name prefix."""

    def __init__(self, ambiguity_policy: str = "error"):
        self.ambiguity_policy = ambiguity_policy
        self.current_pid = os.getpid()

    def find_pids(self, service: str) -> List[int]:
        """All live PIDs whose command name matches ``service``, in table order."""
        found = []
        for proc in psutil.process_iter(["pid", "name"]):
            try:
                info = proc.info
                pid = info["pid"]
                if pid == self.current_pid:
                    continue
                if name_matches(info.get("name") or "", service):
                    found.append(pid)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return found

    def find_pid(self, service: str) -> Optional[int]:
        """
        The PID of the process running ``service``, or None.

        Raises:
            AmbiguousProcessMatch: More than one process matches and the
                policy is ``error``.
        """
        pids = self.find_pids(service)
        if not pids:
            return None
        if len(pids) > 1:
            if self.ambiguity_policy == "error":
                raise AmbiguousProcessMatch(service, pids)
            logger.warning(
                f"{len(pids)} processes match {service!r} ({pids}), using first PID {pids[0]}"
            )
        return pids[0]


class ProcessTerminator:
    """Terminates services through the registry, falling back to a name scan."""

    def __init__(
        self,
        config: HarnessConfig,
        registry: Optional[ProcessRegistry] = None,
        locator: Optional[ProcessLocator] = None,
    ):
        self.config = config
        self.registry = registry if registry is not None else ProcessRegistry()
        self.locator = locator or ProcessLocator(config.ambiguity_policy)

    def find_pid(self, service: str) -> Optional[int]:
        """Registered PID if the service is tracked, else the name-scan result."""
        handle = self.registry.get(service)
        if handle is not None:
            return handle.pid
        return self.locator.find_pid(service)

    async def terminate(self, service: str) -> TerminationOutcome:
        """
        Stop ``service``.

        Returns:
            NOT_FOUND when nothing is running under that name; this is not
            treated as an error.

        Raises:
            AmbiguousProcessMatch: From the name-scan fallback.
        """
        handle = self.registry.pop(service)
        if handle is not None:
            return await self.terminate_handle(handle)

        pid = self.locator.find_pid(service)
        if pid is None:
            logger.info(f"No running process found for {service}, nothing to terminate")
            return TerminationOutcome.NOT_FOUND

        logger.info(f"Terminating {service} (PID={pid}, found by name)")
        return await self._signal_and_wait(service, pid)

    async def terminate_handle(self, handle: ServiceHandle) -> TerminationOutcome:
        logger.info(
            f"Terminating {handle.name} (PID={handle.pid}, PGID={handle.pgid}, "
            f"up {handle.age_seconds:.1f}s)"
        )
        return await self._signal_and_wait(
            handle.name, handle.pid, pgid=handle.pgid, process=handle.process
        )

    async def _signal_and_wait(
        self,
        name: str,
        pid: int,
        pgid: Optional[int] = None,
        process=None,
    ) -> TerminationOutcome:
        try:
            self._send(pid, pgid, signal.SIGTERM)
        except ProcessLookupError:
            self._reap(process)
            logger.debug(f"{name} (PID={pid}) was already gone")
            return TerminationOutcome.NOT_FOUND
        except PermissionError:
            logger.error(f"Permission denied sending SIGTERM to {name} (PID={pid})")
            return TerminationOutcome.FAILED

        if await self._wait_for_exit(pid, process, self.config.terminate_timeout):
            logger.info(f"✓ {name} terminated")
            return TerminationOutcome.TERMINATED

        logger.warning(f"{name} (PID={pid}) ignored SIGTERM, sending SIGKILL")
        try:
            self._send(pid, pgid, signal.SIGKILL)
        except ProcessLookupError:
            self._reap(process)
            return TerminationOutcome.TERMINATED
        except PermissionError:
            logger.error(f"Permission denied sending SIGKILL to {name} (PID={pid})")
            return TerminationOutcome.FAILED

        if await self._wait_for_exit(pid, process, self.config.kill_timeout):
            logger.info(f"{name} killed")
            return TerminationOutcome.KILLED

        logger.error(f"{name} (PID={pid}) still alive after SIGKILL")
        return TerminationOutcome.FAILED

    @staticmethod
    def _send(pid: int, pgid: Optional[int], sig: int) -> None:
        if pgid is not None and pgid > 0:
            os.killpg(pgid, sig)
        else:
            os.kill(pid, sig)

    @staticmethod
    def _reap(process) -> None:
        if process is not None:
            process.poll()

    @staticmethod
    def _has_exited(pid: int, process) -> bool:
        if process is not None:
            return process.poll() is not None
        try:
            return psutil.Process(pid).status() == psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return True
        except psutil.AccessDenied:
            return not psutil.pid_exists(pid)

    async def _wait_for_exit(self, pid: int, process, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while True:
            if self._has_exited(pid, process):
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(_POLL_INTERVAL)
