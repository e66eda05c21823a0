"""
Environment variable helpers.

Every reader takes the variable name and a default. Malformed values are
logged and replaced by the default so a typo in a CI variable never stops a
test run before it starts.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


def get_env_str(key: str, default: str) -> str:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def get_env_choice(key: str, default: str, choices: Sequence[str]) -> str:
    """Read a string restricted to ``choices`` (case-insensitive)."""
    value = get_env_str(key, default).lower()
    if value not in choices:
        logger.warning(
            f"Invalid value for {key}: {value!r} (expected one of {list(choices)}), "
            f"using default {default!r}"
        )
        return default
    return value


def get_env_float(
    key: str,
    default: float,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid float for {key}: {raw!r}, using default {default}")
        return default
    if min_val is not None and value < min_val:
        logger.warning(f"{key}={value} is below minimum {min_val}, using default {default}")
        return default
    if max_val is not None and value > max_val:
        logger.warning(f"{key}={value} is above maximum {max_val}, using default {default}")
        return default
    return value


def get_env_int(key: str, default: int, min_val: Optional[int] = None) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {key}: {raw!r}, using default {default}")
        return default
    if min_val is not None and value < min_val:
        logger.warning(f"{key}={value} is below minimum {min_val}, using default {default}")
        return default
    return value


def get_env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    logger.warning(f"Invalid boolean for {key}: {raw!r}, using default {default}")
    return default


def get_env_path(key: str, default: Path) -> Path:
    """Read a path, expanding ``~`` and environment references."""
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    return Path(os.path.expandvars(os.path.expanduser(raw.strip())))


def home_dir() -> Path:
    """The user's home directory, preferring ``$HOME`` when it is set."""
    home = os.getenv("HOME")
    return Path(home) if home else Path.home()
