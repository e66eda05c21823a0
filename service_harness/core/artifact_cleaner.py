"""Removes files the harness created: env scripts, binaries and old logs."""

import logging
from pathlib import Path
from typing import List

from service_harness.core.errors import MissingArtifact
from service_harness.core.models import Service

logger = logging.getLogger(__name__)


class ArtifactCleaner:
    """
    Deletes generated artifacts.

    Absent files are skipped with a log line. Pass ``strict=True`` to get
    :class:`MissingArtifact` instead.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def _remove(self, path: Path, what: str) -> bool:
        if not path.exists():
            if self.strict:
                raise MissingArtifact(f"{what} not found: {path}")
            logger.info(f"{what} {path} already absent, skipping")
            return False
        path.unlink()
        logger.debug(f"Removed {what} {path}")
        return True

    def remove_env_config(self, service: Service) -> bool:
        """Delete the environment script copied into the checkout."""
        return self._remove(service.env_file, "environment config")

    def remove_binary(self, service: Service) -> bool:
        """Delete the binary built in the checkout."""
        return self._remove(service.binary, "service binary")

    def cleanup_logs(self, log_dir: Path, suffix: str = "_cucumber.log") -> List[Path]:
        """
        Delete every ``*cucumber.log`` in ``log_dir``.

        Meant to run once at the start of a session, before any launch.
        Other files are left alone.
        """
        log_dir = Path(log_dir)
        if not log_dir.is_dir():
            return []

        pattern = f"*{suffix.lstrip('_')}"
        removed = []
        for path in sorted(log_dir.glob(pattern)):
            if path.is_file():
                path.unlink()
                removed.append(path)
        if removed:
            logger.info(f"Removed {len(removed)} log file(s) from {log_dir}")
        return removed
