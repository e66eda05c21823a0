import os

import pytest

from service_harness.core.errors import AbortRun
from service_harness.core.models import (
    BindingLanguage,
    RunReport,
    SchemaArtifactPair,
    Service,
    ServiceResult,
    StepStatus,
)


def test_service_paths_follow_naming_convention(config):
    service = Service.from_config("alpha", config)

    assert service.source_dir == config.source_root / "alpha"
    assert service.env_template == config.support_dir / "alpha_env.sh"
    assert service.env_file == config.source_root / "alpha" / "alpha_env.sh"
    assert service.binary == config.source_root / "alpha" / "alpha"
    assert service.log_file == config.log_dir / "alpha_cucumber.log"
    assert not service.exists()


@pytest.mark.parametrize("name", ["", "..", "a/b"])
def test_service_rejects_unsafe_names(config, name):
    with pytest.raises(ValueError):
        Service.from_config(name, config)


def test_artifact_pair_requires_strictly_newer_output(tmp_path):
    schema = tmp_path / "my_wire_format.proto"
    generated = tmp_path / "my_wire_format.pb.go"
    schema.write_text("syntax = \"proto3\";\n")
    pair = SchemaArtifactPair(schema, generated)

    assert not pair.is_current()

    generated.write_text("package wire\n")
    stamp = schema.stat().st_mtime_ns
    os.utime(generated, ns=(stamp, stamp))
    assert not pair.is_current()

    os.utime(generated, ns=(stamp + 1, stamp + 1))
    assert pair.is_current()


def test_binding_language_file_names():
    assert BindingLanguage.GO.generated_name("my_wire_format") == "my_wire_format.pb.go"
    assert BindingLanguage.RUBY.generated_name("my_wire_format") == "my_wire_format.rb"
    assert BindingLanguage.PYTHON.generated_name("my_wire_format") == "my_wire_format_pb2.py"
    assert BindingLanguage.RUBY.out_flag == "--ruby_out=."
    assert BindingLanguage.parse("Go") is BindingLanguage.GO
    with pytest.raises(ValueError, match="Unsupported binding language"):
        BindingLanguage.parse("cobol")


def test_report_aggregates_failures_and_abort():
    report = RunReport("set_up")
    ok = report.add(ServiceResult("alpha"))
    ok.record("provision", StepStatus.OK)
    ok.record("branch", StepStatus.OK, "not on master")

    broken = report.add(ServiceResult("beta"))
    broken.record("build", StepStatus.FAILED, "exit 2")

    assert ok.ok and ok.warnings == ["branch: not on master"]
    assert report.failed == ["beta"]
    assert not report.ok
    report.raise_for_abort()

    gone = report.add(ServiceResult("gamma"))
    gone.record("provision", StepStatus.ABORTED, "source directory missing")
    report.aborted_by = "gamma"

    with pytest.raises(AbortRun) as excinfo:
        report.raise_for_abort()
    assert excinfo.value.service == "gamma"
    assert "source directory missing" in str(excinfo.value)
    assert "run aborted by gamma" in report.summary()
