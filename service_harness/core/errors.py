"""
Harness exception hierarchy.

Everything the harness raises derives from :class:`HarnessError`. Failures of
external tools carry the argv, exit status and captured output so a failed
build can be diagnosed from the report alone.
"""

from typing import Optional, Sequence


class HarnessError(Exception):
    """Base class for service harness failures."""


class AbortRun(HarnessError):
    """A service checkout is missing; the whole test run must stop."""

    def __init__(self, service: str, reason: str = ""):
        self.service = service
        self.reason = reason or f"source directory for {service} not found"
        super().__init__(f"Aborting test run: {self.reason}")


class CommandFailure(HarnessError):
    """An external tool exited with a non-zero status."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        message: Optional[str] = None,
    ):
        self.argv = list(argv)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = stderr.strip() or stdout.strip()
        text = message or f"{' '.join(self.argv)} exited with status {returncode}"
        if detail:
            text = f"{text}: {detail.splitlines()[-1]}"
        super().__init__(text)


class BuildFailure(CommandFailure):
    """The build tool could not produce the service binary."""


class CompileFailure(CommandFailure):
    """The schema compiler failed to generate bindings."""


class SubmoduleFetchFailure(CompileFailure):
    """Fetching the schema submodule failed."""


class BranchQueryFailure(CommandFailure):
    """Asking version control for the current branch failed."""


class CommandTimeout(HarnessError):
    """An external tool did not finish within its timeout."""

    def __init__(self, argv: Sequence[str], timeout: float):
        self.argv = list(argv)
        self.timeout = timeout
        super().__init__(f"{' '.join(self.argv)} timed out after {timeout:.1f}s")


class BranchMismatch(HarnessError):
    """A checkout is not on the primary branch and the policy forbids it."""

    def __init__(self, service: str, branch: str, expected: str):
        self.service = service
        self.branch = branch
        self.expected = expected
        super().__init__(f"{service} is on branch {branch!r}, expected {expected!r}")


class SchemaNotFound(HarnessError):
    """No schema definition exists where one is required."""


class ProcessNotFound(HarnessError):
    """No running process matches the service name."""

    def __init__(self, service: str):
        self.service = service
        super().__init__(f"No running process found for {service}")


class AmbiguousProcessMatch(HarnessError):
    """Several running processes match the service name prefix."""

    def __init__(self, service: str, pids: Sequence[int]):
        self.service = service
        self.pids = list(pids)
        super().__init__(
            f"{len(self.pids)} processes match {service!r}: {', '.join(map(str, self.pids))}"
        )


class MissingArtifact(HarnessError):
    """A file scheduled for removal does not exist."""
