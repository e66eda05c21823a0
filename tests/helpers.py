"""Test doubles and filesystem helpers shared across the harness tests."""

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from service_harness.core.command_runner import CommandResult, CommandRunner

ENV_TEMPLATE = "export SERVICE_PORT=4242\n"

SERVICE_SCRIPT = """#!/bin/sh
echo "$(basename "$0") listening on ${SERVICE_PORT:-unset}"
while :; do sleep 0.2; done
"""


@dataclass
class Call:
    argv: List[str]
    cwd: Path


class FakeRunner(CommandRunner):
    """
    Records every command and answers from registered handlers.

    Handlers match on an argv prefix; the most recent registration wins.
    Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.calls: List[Call] = []
        self._handlers = []

    def on(
        self,
        prefix: Sequence[str],
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Optional[Callable[[List[str], Path], None]] = None,
        raises: Optional[BaseException] = None,
    ) -> "FakeRunner":
        self._handlers.append((list(prefix), returncode, stdout, stderr, effect, raises))
        return self

    def calls_to(self, *prefix: str) -> List[Call]:
        return [call for call in self.calls if call.argv[: len(prefix)] == list(prefix)]

    async def run(self, argv, cwd, timeout, env=None):
        argv = [str(arg) for arg in argv]
        self.calls.append(Call(argv, Path(cwd)))
        await asyncio.sleep(0)
        for prefix, returncode, stdout, stderr, effect, raises in reversed(self._handlers):
            if argv[: len(prefix)] != prefix:
                continue
            if raises is not None:
                raise raises
            if effect is not None and returncode == 0:
                effect(argv, Path(cwd))
            return CommandResult(argv, returncode, stdout, stderr)
        return CommandResult(argv, 0, "", "")


def touch_newer(path: Path, reference: Path, content: str = "") -> None:
    """Write ``path`` and stamp it one second newer than ``reference``."""
    path.write_text(content)
    ref_ns = reference.stat().st_mtime_ns
    os.utime(path, ns=(ref_ns + 1_000_000_000, ref_ns + 1_000_000_000))


def compile_go_effect(argv: List[str], cwd: Path) -> None:
    """Pretend to be ``protoc --go_out=.``: one .pb.go per schema argument."""
    for arg in argv[2:]:
        schema = (cwd / arg).resolve()
        touch_newer(schema.with_name(schema.stem + ".pb.go"), schema, "package wire\n")


def build_script_effect(argv: List[str], cwd: Path) -> None:
    """Pretend to be ``go build``: drop an executable named after the checkout."""
    write_service_binary(cwd / cwd.name)


def write_service_binary(path: Path, body: str = SERVICE_SCRIPT) -> Path:
    path.write_text(body)
    path.chmod(0o755)
    return path

