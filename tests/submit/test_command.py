import pytest

from raysubmit.config.models import SubmitOptions
from raysubmit.errors import ConfigError
from raysubmit.submit.command import build_submit_command

ADDR = "http://localhost:8265"


def _opts(**kw):
    base = dict(filename="rayjob.yaml", working_dir="/work", entrypoint="python my_script.py")
    base.update(kw)
    return SubmitOptions(**base)


def test_minimal_command():
    argv = build_submit_command(_opts(), address=ADDR)
    assert argv == (
        "ray", "job", "submit", "--address", ADDR,
        "--working-dir", "/work",
        "--", "python", "my_script.py",
    )


def test_all_flags_in_fixed_order():
    opts = _opts(
        runtime_env="env.yaml",
        runtime_env_json='{"pip":["emoji"]}',
        submission_id="sub-1",
        entrypoint_num_cpus=1.5,
        entrypoint_num_gpus=1,
        entrypoint_memory=1024,
        entrypoint_resources='{"custom":1}',
        metadata_json='{"owner":"me"}',
        no_wait=True,
        headers='{"X-A":"b"}',
        verify="false",
        log_style="record",
        log_color="false",
    )
    argv = build_submit_command(opts, address=ADDR, executable="/opt/ray")
    assert list(argv) == [
        "/opt/ray", "job", "submit", "--address", ADDR,
        "--runtime-env", "env.yaml",
        "--runtime-env-json", '{"pip":["emoji"]}',
        "--submission-id", "sub-1",
        "--entrypoint-num-cpus", "1.500000",
        "--entrypoint-num-gpus", "1.000000",
        "--entrypoint-memory", "1024",
        "--entrypoint-resources", '{"custom":1}',
        "--metadata-json", '{"owner":"me"}',
        "--no-wait",
        "--headers", '{"X-A":"b"}',
        "--verify", "false",
        "--log-style", "record",
        "--log-color", "false",
        "--working-dir", "/work",
        "--", "python", "my_script.py",
    ]


def test_zero_reservations_are_omitted():
    argv = build_submit_command(_opts(entrypoint_num_cpus=0, entrypoint_memory=0), address=ADDR)
    assert "--entrypoint-num-cpus" not in argv
    assert "--entrypoint-memory" not in argv


def test_same_inputs_build_identical_commands():
    opts = _opts(submission_id="x", metadata_json="{}")
    assert build_submit_command(opts, address=ADDR) == build_submit_command(opts, address=ADDR)


def test_quoted_entrypoint_arguments_survive():
    argv = build_submit_command(_opts(entrypoint="python run.py --msg 'hello world' \"a b\""), address=ADDR)
    tail = list(argv[argv.index("--") + 1:])
    assert tail == ["python", "run.py", "--msg", "hello world", "a b"]


def test_malformed_quoting_is_a_config_error():
    with pytest.raises(ConfigError):
        build_submit_command(_opts(entrypoint="python run.py 'unterminated"), address=ADDR)


def test_working_dir_is_required():
    with pytest.raises(ConfigError):
        build_submit_command(_opts(working_dir=None), address=ADDR)
