"""
Command-line interface for the service harness.

    service-harness up alpha beta            # build and start, then exit
    service-harness up alpha beta --wait     # ... and tear down on Ctrl-C
    service-harness down alpha beta
    service-harness clean-logs
    service-harness find-pid alpha
    service-harness compile go-cart-tests --language python

Exit status: 0 on success, 1 when any service failed, 2 when the run was
aborted because a checkout is missing.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from service_harness import __version__
from service_harness.config import HarnessConfig
from service_harness.core.errors import HarnessError
from service_harness.core.models import BindingLanguage, RunReport
from service_harness.core.orchestrator import ServiceOrchestrator
from service_harness.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ABORTED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="service-harness",
        description="Build, start and stop locally checked-out services for integration tests",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Harness root (defaults to HARNESS_ROOT or the current directory)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to HARNESS_LOG_LEVEL or INFO)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    up = commands.add_parser("up", help="Provision, build and start services")
    up.add_argument("services", nargs="+")
    up.add_argument(
        "--wait",
        action="store_true",
        help="Stay in the foreground and tear the services down on SIGINT/SIGTERM",
    )
    up.add_argument(
        "--clean-logs",
        action="store_true",
        help="Remove logs from the previous run before starting",
    )

    down = commands.add_parser("down", help="Stop services and remove generated files")
    down.add_argument("services", nargs="+")

    commands.add_parser("clean-logs", help="Remove service logs from the previous run")

    find = commands.add_parser("find-pid", help="Print the PID of a running service")
    find.add_argument("service")

    compile_cmd = commands.add_parser("compile", help="Compile wire-format bindings")
    compile_cmd.add_argument("service")
    compile_cmd.add_argument(
        "--language",
        choices=[lang.value for lang in BindingLanguage],
        default=None,
        help="Target language (defaults to the configured secondary language)",
    )
    return parser


def _report_exit_code(report: RunReport) -> int:
    print(report.summary())
    if report.aborted:
        return EXIT_ABORTED
    return EXIT_OK if report.ok else EXIT_FAILED


async def _wait_for_stop_signal() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    try:
        await stop.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


async def _up(orchestrator: ServiceOrchestrator, services: List[str], wait: bool) -> int:
    report = await orchestrator.set_up(services)
    code = _report_exit_code(report)
    if not wait or report.aborted:
        return code

    logger.info("Services running, press Ctrl-C to tear down")
    await _wait_for_stop_signal()
    down = await orchestrator.tear_down(services)
    return max(code, _report_exit_code(down))


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    config = HarnessConfig.from_env(harness_root=args.root)
    orchestrator = ServiceOrchestrator(config)

    try:
        if args.command == "up":
            if args.clean_logs:
                orchestrator.cleanup_logs()
            return asyncio.run(_up(orchestrator, args.services, args.wait))

        if args.command == "down":
            return _report_exit_code(asyncio.run(orchestrator.tear_down(args.services)))

        if args.command == "clean-logs":
            removed = orchestrator.cleanup_logs()
            print(f"Removed {len(removed)} log file(s) from {config.log_dir}")
            return EXIT_OK

        if args.command == "find-pid":
            pid = orchestrator.find_pid(args.service)
            if pid is None:
                print(f"No running process found for {args.service}", file=sys.stderr)
                return EXIT_FAILED
            print(pid)
            return EXIT_OK

        if args.command == "compile":
            artifact = asyncio.run(orchestrator.compile_binding(args.service, args.language))
            print(artifact.path)
            return EXIT_OK
    except (HarnessError, OSError) as e:
        logger.error(str(e))
        return EXIT_FAILED

    return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
