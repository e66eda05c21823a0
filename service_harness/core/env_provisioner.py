"""Copies per-service environment scripts into service checkouts."""

import enum
import logging
import shutil
from dataclasses import dataclass
from typing import Optional

from service_harness.core.models import Service

logger = logging.getLogger(__name__)


class ProvisionStatus(enum.Enum):
    PROVISIONED = "provisioned"
    ABORT_RUN = "abort_run"


@dataclass
class ProvisionResult:
    service: str
    status: ProvisionStatus
    reason: Optional[str] = None

    @property
    def should_abort(self) -> bool:
        return self.status is ProvisionStatus.ABORT_RUN


class EnvironmentProvisioner:
    """
    Places ``<service>_env.sh`` from the support directory into the checkout.

    A missing checkout is not an error for this service alone: the result
    carries ``ABORT_RUN`` and the caller decides to stop the whole run.
    """

    def provision(self, service: Service) -> ProvisionResult:
        if not service.exists():
            reason = f"source directory {service.source_dir} does not exist"
            logger.error(f"Cannot provision {service.name}: {reason}")
            return ProvisionResult(service.name, ProvisionStatus.ABORT_RUN, reason)

        shutil.copy2(service.env_template, service.env_file)
        logger.debug(f"Copied {service.env_template} -> {service.env_file}")
        return ProvisionResult(service.name, ProvisionStatus.PROVISIONED)
