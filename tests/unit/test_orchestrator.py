import pytest

from service_harness.core.errors import AmbiguousProcessMatch, ProcessNotFound
from service_harness.core.models import Service, ServiceHandle, StepStatus, TerminationOutcome
from service_harness.core.orchestrator import ServiceOrchestrator


@pytest.fixture
def orchestrator(config, fake_runner, monkeypatch):
    orchestrator = ServiceOrchestrator(config, runner=fake_runner)

    def fake_start(service):
        return ServiceHandle(name=service.name, pid=4000 + len(orchestrator.registry), log_file=service.log_file)

    monkeypatch.setattr(orchestrator.launcher, "start", fake_start)
    return orchestrator


@pytest.mark.asyncio
async def test_set_up_processes_services_in_order(orchestrator, fake_runner, config, make_service):
    alpha_dir = make_service("alpha")
    beta_dir = make_service("beta")

    report = await orchestrator.set_up(["alpha", "beta"])

    assert report.ok
    assert [r.service for r in report.results] == ["alpha", "beta"]
    assert orchestrator.registry.names() == ["alpha", "beta"]
    assert [c.cwd for c in fake_runner.calls_to("godep")] == [alpha_dir, beta_dir]
    assert (alpha_dir / "alpha_env.sh").exists()
    assert (beta_dir / "beta_env.sh").exists()


@pytest.mark.asyncio
async def test_missing_checkout_aborts_remaining_set_up(orchestrator, fake_runner, config, make_service):
    make_service("alpha")
    make_service("gamma")

    report = await orchestrator.set_up(["alpha", "ghost", "gamma"])

    assert report.aborted
    assert report.aborted_by == "ghost"
    assert [r.service for r in report.results] == ["alpha", "ghost"]
    assert report.get("ghost").steps == {"provision": StepStatus.ABORTED}
    assert orchestrator.registry.names() == ["alpha"]
    assert report.rollback is None
    assert not (config.source_root / "gamma" / "gamma_env.sh").exists()


@pytest.mark.asyncio
async def test_abort_with_teardown_policy_stops_started_services(
    orchestrator, config, make_service, monkeypatch
):
    config.abort_policy = "teardown"
    make_service("alpha")
    stopped = []

    async def fake_terminate(name):
        orchestrator.registry.pop(name)
        stopped.append(name)
        return TerminationOutcome.TERMINATED

    monkeypatch.setattr(orchestrator.terminator, "terminate", fake_terminate)

    report = await orchestrator.set_up(["alpha", "ghost"])

    assert report.aborted
    assert stopped == ["alpha"]
    assert report.rollback is not None
    assert report.rollback.get("alpha").steps["terminate"] is StepStatus.OK
    assert not (config.source_root / "alpha" / "alpha").exists()


@pytest.mark.asyncio
async def test_one_failed_build_does_not_stop_the_next(orchestrator, fake_runner, make_service):
    alpha_dir = make_service("alpha")
    beta_dir = make_service("beta")
    original_run = fake_runner.run

    async def run(argv, cwd, timeout, env=None):
        result = await original_run(argv, cwd, timeout, env)
        if argv[0] == "godep" and cwd == alpha_dir:
            result.returncode = 1
            result.stderr = "undefined: cart.Item"
        return result

    fake_runner.run = run

    report = await orchestrator.set_up(["alpha", "beta"])

    assert not report.aborted
    assert report.failed == ["alpha"]
    assert report.get("alpha").steps["build"] is StepStatus.FAILED
    assert "start" not in report.get("alpha").steps
    assert report.get("beta").ok
    assert orchestrator.registry.names() == ["beta"]
    assert (beta_dir / "beta").exists()


@pytest.mark.asyncio
async def test_off_branch_warning_recorded(orchestrator, fake_runner, make_service):
    make_service("alpha")
    fake_runner.on(["git", "rev-parse"], stdout="develop\n")

    report = await orchestrator.set_up(["alpha"])

    assert report.ok
    assert any("develop" in warning for warning in report.get("alpha").warnings)


@pytest.mark.asyncio
async def test_tear_down_continues_after_termination_failure(
    orchestrator, config, make_service, monkeypatch
):
    for name in ("alpha", "beta"):
        make_service(name)
        service = Service.from_config(name, config)
        service.env_file.write_text("export X=1\n")
        service.binary.write_text("#!/bin/sh\n")

    async def fake_terminate(name):
        if name == "alpha":
            raise AmbiguousProcessMatch(name, [301, 302])
        return TerminationOutcome.TERMINATED

    monkeypatch.setattr(orchestrator.terminator, "terminate", fake_terminate)

    report = await orchestrator.tear_down(["alpha", "beta"])

    assert report.get("alpha").steps["terminate"] is StepStatus.FAILED
    assert report.get("alpha").steps["env_config"] is StepStatus.OK
    assert report.get("beta").ok
    for name in ("alpha", "beta"):
        service = Service.from_config(name, config)
        assert not service.env_file.exists()
        assert not service.binary.exists()


@pytest.mark.asyncio
async def test_tear_down_of_never_started_service_is_clean(orchestrator, make_service, monkeypatch):
    make_service("alpha")

    async def fake_terminate(name):
        return TerminationOutcome.NOT_FOUND

    monkeypatch.setattr(orchestrator.terminator, "terminate", fake_terminate)

    report = await orchestrator.tear_down(["alpha"])

    assert report.ok
    assert report.get("alpha").steps == {
        "terminate": StepStatus.SKIPPED,
        "env_config": StepStatus.SKIPPED,
        "binary": StepStatus.SKIPPED,
    }


def test_cleanup_logs_uses_configured_log_dir(orchestrator, config):
    (config.log_dir / "alpha_cucumber.log").write_text("old\n")
    (config.log_dir / "keep.txt").write_text("keep\n")

    removed = orchestrator.cleanup_logs()

    assert removed == [config.log_dir / "alpha_cucumber.log"]
    assert (config.log_dir / "keep.txt").exists()


@pytest.mark.asyncio
async def test_tear_down_treats_missing_process_as_skipped(
    orchestrator, config, make_service, monkeypatch
):
    make_service("alpha")
    service = Service.from_config("alpha", config)
    service.env_file.write_text("export X=1\n")

    async def fake_terminate(name):
        raise ProcessNotFound(name)

    monkeypatch.setattr(orchestrator.terminator, "terminate", fake_terminate)

    report = await orchestrator.tear_down(["alpha"])

    assert report.ok
    assert report.get("alpha").steps["terminate"] is StepStatus.SKIPPED
    assert report.get("alpha").steps["env_config"] is StepStatus.OK
    assert not service.env_file.exists()
