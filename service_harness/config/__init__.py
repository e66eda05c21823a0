"""
Configuration package for the service harness.

Usage:
    from service_harness.config import HarnessConfig, get_config

    config = get_config()
    config.log_dir
"""

from service_harness.config.harness_config import (
    ABORT_POLICIES,
    AMBIGUITY_POLICIES,
    BRANCH_POLICIES,
    HarnessConfig,
    get_config,
    reset_config,
)

__all__ = [
    "ABORT_POLICIES",
    "AMBIGUITY_POLICIES",
    "BRANCH_POLICIES",
    "HarnessConfig",
    "get_config",
    "reset_config",
]
