"""In-memory record of the services this harness has launched."""

import logging
from typing import Dict, List, Optional

from service_harness.core.models import ServiceHandle

logger = logging.getLogger(__name__)


class ProcessRegistry:
    """
    Maps service name to the handle returned by the launcher.

    Termination looks here first; scanning the process table by name is only
    the recovery path for services started by something else.
    """

    def __init__(self):
        self._handles: Dict[str, ServiceHandle] = {}

    def register(self, handle: ServiceHandle) -> None:
        previous = self._handles.get(handle.name)
        if previous is not None and previous.pid != handle.pid:
            logger.warning(
                f"Replacing handle for {handle.name}: PID {previous.pid} -> {handle.pid}"
            )
        self._handles[handle.name] = handle

    def get(self, name: str) -> Optional[ServiceHandle]:
        return self._handles.get(name)

    def pop(self, name: str) -> Optional[ServiceHandle]:
        return self._handles.pop(name, None)

    def names(self) -> List[str]:
        return list(self._handles)

    def __contains__(self, name: str) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)
