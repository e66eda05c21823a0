"""Logging setup shared by the CLI and the synchronous hooks."""

import logging
from typing import Optional, Union

from service_harness.utils.env_config import get_env_str

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[Union[str, int]] = None) -> int:
    """
    Configure root logging once for a harness run.

    Args:
        level: Level name or number. Falls back to ``HARNESS_LOG_LEVEL`` and
            then ``INFO``.

    Returns:
        The numeric level that was applied.
    """
    if level is None:
        level = get_env_str("HARNESS_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        numeric = getattr(logging, level.upper(), None)
        if not isinstance(numeric, int):
            numeric = logging.INFO
    else:
        numeric = level

    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric)
    return numeric
