import logging
from pathlib import Path

from service_harness.core.models import ServiceHandle
from service_harness.core.process_registry import ProcessRegistry


def _handle(name, pid):
    return ServiceHandle(name=name, pid=pid, log_file=Path(f"/tmp/{name}_cucumber.log"))


def test_register_and_pop():
    registry = ProcessRegistry()
    registry.register(_handle("alpha", 100))
    registry.register(_handle("beta", 101))

    assert "alpha" in registry
    assert registry.names() == ["alpha", "beta"]
    assert registry.pop("alpha").pid == 100
    assert registry.pop("alpha") is None
    assert len(registry) == 1


def test_replacing_a_handle_warns(caplog):
    registry = ProcessRegistry()
    registry.register(_handle("alpha", 100))

    with caplog.at_level(logging.WARNING):
        registry.register(_handle("alpha", 200))

    assert registry.get("alpha").pid == 200
    assert "PID 100 -> 200" in caplog.text
