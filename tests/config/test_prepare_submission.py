from pathlib import Path
import json
import textwrap

import pytest

from raysubmit.config.loader import prepare_submission
from raysubmit.config.models import SubmitOptions
from raysubmit.errors import ConfigError, InputValidationError

RAYJOB = textwrap.dedent("""
    apiVersion: ray.io/v1
    kind: RayJob
    metadata:
      name: rayjob-sample
    spec:
      submissionMode: {mode}
      rayClusterSpec:
        headGroupSpec:
          rayStartParams: {{}}
""")


def _rayjob(tmp_path: Path, mode="InteractiveMode", extra="") -> Path:
    f = tmp_path / "rayjob.yaml"
    f.write_text(RAYJOB.format(mode=mode) + extra)
    return f


def _opts(f: Path, **kw) -> SubmitOptions:
    return SubmitOptions(filename=str(f), entrypoint=kw.pop("entrypoint", "python my_script.py"), **kw)


def test_working_dir_is_required(tmp_path: Path):
    with pytest.raises(ConfigError) as ei:
        prepare_submission(_opts(_rayjob(tmp_path)))
    assert "working directory is required" in str(ei.value)


def test_valid_submission_is_normalised(tmp_path: Path):
    prepared = prepare_submission(_opts(_rayjob(tmp_path), working_dir="./src//app/../app/"))
    assert prepared.options.working_dir == "src/app"
    assert prepared.rayjob["kind"] == "RayJob"
    assert prepared.namespace == "default"


@pytest.mark.parametrize("mode", ["K8sJobMode", "HTTPMode", "SidecarMode", "null", "interactivemode"])
def test_unsupported_submission_modes_are_rejected(tmp_path: Path, mode):
    with pytest.raises(ConfigError) as ei:
        prepare_submission(_opts(_rayjob(tmp_path, mode=mode), working_dir="/work"))
    assert "Submission mode" in str(ei.value)


def test_missing_submission_mode_is_rejected(tmp_path: Path):
    f = tmp_path / "rayjob.yaml"
    f.write_text("kind: RayJob\nspec:\n  entrypoint: python x.py\n")
    with pytest.raises(ConfigError) as ei:
        prepare_submission(_opts(f, working_dir="/work"))
    assert "submissionMode" in str(ei.value)


def test_runtime_env_file_seeds_working_dir(tmp_path: Path):
    env = tmp_path / "runtime-env.yaml"
    env.write_text("working_dir: /from/runtime/env\npip: [emoji]\n")
    prepared = prepare_submission(_opts(_rayjob(tmp_path), runtime_env=str(env)))
    assert prepared.options.working_dir == "/from/runtime/env"
    assert prepared.options.runtime_env == str(env)


def test_explicit_working_dir_beats_runtime_env(tmp_path: Path):
    env = tmp_path / "runtime-env.yaml"
    env.write_text("working_dir: /from/runtime/env\n")
    prepared = prepare_submission(_opts(_rayjob(tmp_path), runtime_env=str(env), working_dir="/explicit"))
    assert prepared.options.working_dir == "/explicit"


def test_runtime_env_yaml_in_cr_becomes_json(tmp_path: Path):
    extra = textwrap.indent("runtimeEnvYAML: |\n  pip:\n    - requests==2.26.0\n  env_vars:\n    counter_name: test\n", "  ")
    prepared = prepare_submission(_opts(_rayjob(tmp_path, extra=extra), working_dir="/work"))
    assert json.loads(prepared.options.runtime_env_json) == {
        "pip": ["requests==2.26.0"],
        "env_vars": {"counter_name": "test"},
    }


def test_runtime_env_yaml_dates_stay_strings(tmp_path: Path):
    extra = textwrap.indent("runtimeEnvYAML: |\n  env_vars:\n    RELEASE: 2024-01-01\n", "  ")
    prepared = prepare_submission(_opts(_rayjob(tmp_path, extra=extra), working_dir="/work"))
    assert json.loads(prepared.options.runtime_env_json) == {"env_vars": {"RELEASE": "2024-01-01"}}


def test_runtime_env_yaml_mixed_keys_is_a_config_error(tmp_path: Path):
    extra = textwrap.indent("runtimeEnvYAML: |\n  env_vars:\n    1: one\n    b: two\n", "  ")
    with pytest.raises(ConfigError, match="Failed to convert runtime env to json"):
        prepare_submission(_opts(_rayjob(tmp_path, extra=extra), working_dir="/work"))


def test_runtime_env_json_flag_takes_precedence_over_cr(tmp_path: Path):
    extra = textwrap.indent("runtimeEnvYAML: |\n  pip: [emoji]\n", "  ")
    prepared = prepare_submission(
        _opts(_rayjob(tmp_path, extra=extra), working_dir="/work", runtime_env_json='{"pip":["x"]}')
    )
    assert prepared.options.runtime_env_json == '{"pip":["x"]}'


def test_missing_rayjob_file(tmp_path: Path):
    with pytest.raises(InputValidationError) as ei:
        prepare_submission(_opts(tmp_path / "nope.yaml", working_dir="/work"))
    assert "does not exist" in str(ei.value)


def test_rayjob_path_must_be_a_regular_file(tmp_path: Path):
    with pytest.raises(InputValidationError) as ei:
        prepare_submission(_opts(tmp_path, working_dir="/work"))
    assert "not a regular file" in str(ei.value)


def test_missing_runtime_env_file(tmp_path: Path):
    with pytest.raises(InputValidationError):
        prepare_submission(_opts(_rayjob(tmp_path), runtime_env=str(tmp_path / "missing.yaml")))


def test_undecodable_rayjob(tmp_path: Path):
    f = tmp_path / "rayjob.yaml"
    f.write_text("spec: [unclosed\n")
    with pytest.raises(InputValidationError):
        prepare_submission(_opts(f, working_dir="/work"))


def test_malformed_entrypoint_fails_validation(tmp_path: Path):
    with pytest.raises(ConfigError):
        prepare_submission(_opts(_rayjob(tmp_path), working_dir="/work", entrypoint="python -c 'print(1)"))
