"""
Harness Configuration
=====================

Single source of truth for every path, command and timeout the harness uses.
All values can be overridden through ``HARNESS_*`` environment variables (or
a ``.env`` file next to the harness). Relative paths are anchored to
``harness_root`` once, when the config is built, so nothing downstream ever
depends on the process working directory.

Environment Variables:
----------------------

### Layout
- HARNESS_ROOT: Directory the BDD suite lives in (default: current directory)
- HARNESS_SOURCE_ROOT: Checkout root holding every service
  (default: $HOME/go/src/github.com)
- HARNESS_SUPPORT_DIR: Where ``<service>_env.sh`` templates live
  (default: <root>/features/support)
- HARNESS_LOG_DIR: Where service logs are written (default: <support>/logs)
- HARNESS_SERVICE: Name of the suite's own checkout (default: go-cart-tests)

### Wire format
- HARNESS_SCHEMA_DIR: Schema directory name (default: myWireFormat)
- HARNESS_SCHEMA_NAME: Schema file stem (default: my_wire_format)
- HARNESS_PRIMARY_LANGUAGE / HARNESS_SECONDARY_LANGUAGE (default: go / python)

### Tools
- HARNESS_BUILD_COMMAND (default: "godep go build")
- HARNESS_COMPILER (default: protoc)
- HARNESS_GIT (default: git)

### Policy
- HARNESS_PRIMARY_BRANCH (default: master)
- HARNESS_BRANCH_POLICY: warn | fail (default: warn)
- HARNESS_ABORT_POLICY: keep | teardown (default: keep)
- HARNESS_AMBIGUITY_POLICY: error | first (default: error)

### Timeouts (seconds)
- HARNESS_GIT_TIMEOUT (30), HARNESS_COMPILE_TIMEOUT (120),
  HARNESS_BUILD_TIMEOUT (600), HARNESS_TERMINATE_TIMEOUT (5),
  HARNESS_KILL_TIMEOUT (2)

Usage:
    from service_harness.config import HarnessConfig, get_config

    config = HarnessConfig.from_env()
    service_dir = config.source_root / "alpha"
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from dotenv import load_dotenv

from service_harness.utils.env_config import (
    get_env_choice,
    get_env_float,
    get_env_path,
    get_env_str,
    home_dir,
)

logger = logging.getLogger(__name__)


# =============================================================================
# DEFAULT VALUES
# =============================================================================

_DEFAULT_HARNESS_SERVICE = "go-cart-tests"
_DEFAULT_SCHEMA_DIR = "myWireFormat"
_DEFAULT_SCHEMA_NAME = "my_wire_format"
_DEFAULT_PRIMARY_BRANCH = "master"
_DEFAULT_BUILD_COMMAND = "godep go build"

_DEFAULT_GIT_TIMEOUT = 30.0
_DEFAULT_COMPILE_TIMEOUT = 120.0
_DEFAULT_BUILD_TIMEOUT = 600.0
_DEFAULT_TERMINATE_TIMEOUT = 5.0
_DEFAULT_KILL_TIMEOUT = 2.0

BRANCH_POLICIES = ("warn", "fail")
ABORT_POLICIES = ("keep", "teardown")
AMBIGUITY_POLICIES = ("error", "first")


def _default_source_root() -> Path:
    return get_env_path("HARNESS_SOURCE_ROOT", home_dir() / "go" / "src" / "github.com")


def _optional_path(key: str) -> Optional[Path]:
    if not get_env_str(key, ""):
        return None
    return get_env_path(key, Path())


# =============================================================================
# HARNESS CONFIGURATION CLASS
# =============================================================================


@dataclass
class HarnessConfig:
    """
    Paths, tool commands, timeouts and policies for one harness run.

    Values are read from the environment at instantiation time. Pass keyword
    arguments to override individual fields (tests do this heavily).
    """

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    harness_root: Path = field(default_factory=lambda: get_env_path("HARNESS_ROOT", Path.cwd()))
    """Directory the BDD suite runs from."""

    source_root: Path = field(default_factory=_default_source_root)
    """Root of the source tree; each service lives in ``source_root / name``."""

    support_dir: Optional[Path] = field(default_factory=lambda: _optional_path("HARNESS_SUPPORT_DIR"))
    """Directory holding ``<service>_env.sh`` templates."""

    log_dir: Optional[Path] = field(default_factory=lambda: _optional_path("HARNESS_LOG_DIR"))
    """Directory receiving ``<service>_cucumber.log`` files."""

    harness_service: str = field(
        default_factory=lambda: get_env_str("HARNESS_SERVICE", _DEFAULT_HARNESS_SERVICE)
    )
    """Service whose schema directory sits directly under ``harness_root``."""

    env_suffix: str = "_env.sh"
    log_suffix: str = "_cucumber.log"

    # -------------------------------------------------------------------------
    # Wire format
    # -------------------------------------------------------------------------

    schema_dir_name: str = field(
        default_factory=lambda: get_env_str("HARNESS_SCHEMA_DIR", _DEFAULT_SCHEMA_DIR)
    )
    schema_name: str = field(
        default_factory=lambda: get_env_str("HARNESS_SCHEMA_NAME", _DEFAULT_SCHEMA_NAME)
    )
    primary_language: str = field(
        default_factory=lambda: get_env_str("HARNESS_PRIMARY_LANGUAGE", "go")
    )
    secondary_language: str = field(
        default_factory=lambda: get_env_str("HARNESS_SECONDARY_LANGUAGE", "python")
    )

    # -------------------------------------------------------------------------
    # Tools
    # -------------------------------------------------------------------------

    build_command: Union[str, List[str]] = field(
        default_factory=lambda: get_env_str("HARNESS_BUILD_COMMAND", _DEFAULT_BUILD_COMMAND)
    )
    compiler: str = field(default_factory=lambda: get_env_str("HARNESS_COMPILER", "protoc"))
    git: str = field(default_factory=lambda: get_env_str("HARNESS_GIT", "git"))
    shell: str = "/bin/sh"

    # -------------------------------------------------------------------------
    # Policy
    # -------------------------------------------------------------------------

    primary_branch: str = field(
        default_factory=lambda: get_env_str("HARNESS_PRIMARY_BRANCH", _DEFAULT_PRIMARY_BRANCH)
    )
    branch_policy: str = field(
        default_factory=lambda: get_env_choice("HARNESS_BRANCH_POLICY", "warn", BRANCH_POLICIES)
    )
    """``warn`` logs an alert for off-branch checkouts, ``fail`` refuses to launch."""

    abort_policy: str = field(
        default_factory=lambda: get_env_choice("HARNESS_ABORT_POLICY", "keep", ABORT_POLICIES)
    )
    """On AbortRun, ``keep`` leaves launched services up, ``teardown`` stops them."""

    ambiguity_policy: str = field(
        default_factory=lambda: get_env_choice(
            "HARNESS_AMBIGUITY_POLICY", "error", AMBIGUITY_POLICIES
        )
    )
    """When a name prefix matches several processes: ``error`` or take the ``first``."""

    # -------------------------------------------------------------------------
    # Timeouts
    # -------------------------------------------------------------------------

    git_timeout: float = field(default_factory=lambda: get_env_float(
        "HARNESS_GIT_TIMEOUT", _DEFAULT_GIT_TIMEOUT, min_val=0.1
    ))
    compile_timeout: float = field(default_factory=lambda: get_env_float(
        "HARNESS_COMPILE_TIMEOUT", _DEFAULT_COMPILE_TIMEOUT, min_val=0.1
    ))
    build_timeout: float = field(default_factory=lambda: get_env_float(
        "HARNESS_BUILD_TIMEOUT", _DEFAULT_BUILD_TIMEOUT, min_val=0.1
    ))
    terminate_timeout: float = field(default_factory=lambda: get_env_float(
        "HARNESS_TERMINATE_TIMEOUT", _DEFAULT_TERMINATE_TIMEOUT, min_val=0.1
    ))
    """Grace period after SIGTERM before escalating to SIGKILL."""

    kill_timeout: float = field(default_factory=lambda: get_env_float(
        "HARNESS_KILL_TIMEOUT", _DEFAULT_KILL_TIMEOUT, min_val=0.1
    ))

    def __post_init__(self) -> None:
        self.harness_root = Path(self.harness_root).expanduser().resolve()
        self.source_root = self._anchor(self.source_root)
        if self.support_dir is None:
            self.support_dir = self.harness_root / "features" / "support"
        self.support_dir = self._anchor(self.support_dir)
        if self.log_dir is None:
            self.log_dir = self.support_dir / "logs"
        self.log_dir = self._anchor(self.log_dir)

        for name, allowed in (
            ("branch_policy", BRANCH_POLICIES),
            ("abort_policy", ABORT_POLICIES),
            ("ambiguity_policy", AMBIGUITY_POLICIES),
        ):
            if getattr(self, name) not in allowed:
                raise ValueError(f"{name} must be one of {allowed}, got {getattr(self, name)!r}")

    def _anchor(self, path: Path) -> Path:
        path = Path(path).expanduser()
        if not path.is_absolute():
            path = self.harness_root / path
        return path

    @property
    def build_argv(self) -> List[str]:
        """The build command split into argv form."""
        if isinstance(self.build_command, str):
            return shlex.split(self.build_command)
        return list(self.build_command)

    @property
    def schema_dir(self) -> Path:
        """The suite's own schema directory (``<harness_root>/myWireFormat``)."""
        return self.harness_root / self.schema_dir_name

    @property
    def schema_file_name(self) -> str:
        return f"{self.schema_name}.proto"

    @classmethod
    def from_env(
        cls,
        harness_root: Optional[Path] = None,
        env_file: Optional[Path] = None,
        **overrides,
    ) -> "HarnessConfig":
        """
        Load a ``.env`` file (if any) and build the configuration.

        Variables already present in the environment win over the file.

        Args:
            harness_root: Directory to anchor relative paths to. Defaults to
                ``HARNESS_ROOT`` or the current directory.
            env_file: Explicit dotenv file. Defaults to ``<root>/.env``.
            **overrides: Field values that take precedence over everything.
        """
        root = Path(harness_root) if harness_root else get_env_path("HARNESS_ROOT", Path.cwd())
        dotenv_path = Path(env_file) if env_file else root / ".env"
        if dotenv_path.exists():
            load_dotenv(dotenv_path, override=False)
            logger.debug(f"Loaded environment overrides from {dotenv_path}")

        if harness_root is not None:
            overrides.setdefault("harness_root", root)
        return cls(**overrides)


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

_config: Optional[HarnessConfig] = None


def get_config() -> HarnessConfig:
    """Return the shared configuration, building it from the environment on first use."""
    global _config
    if _config is None:
        _config = HarnessConfig.from_env()
    return _config


def reset_config() -> None:
    """Forget the shared configuration (tests and long-lived shells)."""
    global _config
    _config = None
