"""
Pytest configuration and shared fixtures for service harness tests.

This file contains:
- A throwaway harness layout (harness root, source tree, support and log dirs)
- A HarnessConfig built on that layout
- A FakeRunner preloaded with git, protoc and build answers
- make_service, which creates a checkout plus its env template
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from service_harness.config import HarnessConfig  # noqa: E402
from tests.helpers import (  # noqa: E402
    ENV_TEMPLATE,
    FakeRunner,
    build_script_effect,
    compile_go_effect,
)


@pytest.fixture(autouse=True)
def _isolate_harness_env(monkeypatch):
    """Keep HARNESS_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("HARNESS_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(scope="function")
def harness_root(tmp_path) -> Path:
    root = tmp_path / "suite" / "go-cart-tests"
    (root / "features" / "support" / "logs").mkdir(parents=True)
    return root


@pytest.fixture(scope="function")
def source_root(tmp_path) -> Path:
    root = tmp_path / "src"
    root.mkdir()
    return root


@pytest.fixture(scope="function")
def config(harness_root, source_root) -> HarnessConfig:
    return HarnessConfig(
        harness_root=harness_root,
        source_root=source_root,
        build_command="godep go build",
        primary_branch="master",
        branch_policy="warn",
        abort_policy="keep",
        ambiguity_policy="error",
        terminate_timeout=2.0,
        kill_timeout=2.0,
    )


@pytest.fixture(scope="function")
def fake_runner() -> FakeRunner:
    runner = FakeRunner()
    runner.on(["git", "rev-parse"], stdout="master\n")
    runner.on(["protoc", "--go_out=."], effect=compile_go_effect)
    runner.on(["godep", "go", "build"], effect=build_script_effect)
    return runner


@pytest.fixture(scope="function")
def make_service(config):
    """Create a checkout (and its env template) under the source root."""

    def _make(name: str, with_schema: bool = True, template: str = ENV_TEMPLATE) -> Path:
        service_dir = config.source_root / name
        service_dir.mkdir(parents=True, exist_ok=True)
        (config.support_dir / f"{name}_env.sh").write_text(template)
        if with_schema:
            schema_dir = service_dir / config.schema_dir_name
            schema_dir.mkdir(exist_ok=True)
            (schema_dir / config.schema_file_name).write_text('syntax = "proto3";\n')
        return service_dir

    return _make


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        if "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
