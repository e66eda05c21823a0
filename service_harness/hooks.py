"""
Synchronous entry points for BDD environment files.

Set-up and tear-down usually happen in two separate hooks (``before_all`` /
``after_all``), so both share one module-level orchestrator and its process
registry. Each call runs its own event loop.

    # features/environment.py
    from service_harness import hooks

    def before_all(context):
        hooks.cleanup_test_logs()
        hooks.set_up_services(["alpha", "beta"])

    def after_all(context):
        hooks.tear_down_services(["alpha", "beta"])
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from service_harness.config import HarnessConfig
from service_harness.core.models import BindingArtifact, RunReport
from service_harness.core.orchestrator import ServiceOrchestrator

logger = logging.getLogger(__name__)

_orchestrator: Optional[ServiceOrchestrator] = None


def get_orchestrator(config: Optional[HarnessConfig] = None) -> ServiceOrchestrator:
    """
    The shared orchestrator.

    Passing ``config`` replaces it; services already launched stay in the
    process registry so a later tear-down still stops them by handle.
    """
    global _orchestrator
    if config is not None or _orchestrator is None:
        registry = _orchestrator.registry if _orchestrator is not None else None
        if registry is not None and len(registry):
            logger.info(f"Reconfiguring harness, keeping {len(registry)} running service(s)")
        _orchestrator = ServiceOrchestrator(config, registry=registry)
    return _orchestrator


def reset_orchestrator() -> None:
    global _orchestrator
    _orchestrator = None


def set_up_services(
    services: Sequence[str],
    config: Optional[HarnessConfig] = None,
    raise_on_abort: bool = True,
) -> RunReport:
    """
    Provision and launch ``services``.

    Raises:
        AbortRun: A checkout is missing and ``raise_on_abort`` is set.
    """
    report = asyncio.run(get_orchestrator(config).set_up(services))
    if raise_on_abort:
        report.raise_for_abort()
    return report


def tear_down_services(services: Sequence[str]) -> RunReport:
    return asyncio.run(get_orchestrator().tear_down(services))


def cleanup_test_logs() -> List[Path]:
    return get_orchestrator().cleanup_logs()


def compile_wire_format(service: str, language: Optional[str] = None) -> BindingArtifact:
    return asyncio.run(get_orchestrator().compile_binding(service, language))
