# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/config/loader.py

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

from ..errors import ConfigError, InputValidationError
from ..submit.command import split_entrypoint
from .models import ACCEPTED_SUBMISSION_MODE, PreparedSubmission, SubmitOptions

log = logging.getLogger("raysubmit")


def _check_regular_file(path: str, label: str) -> Path:
    p = Path(path)
    if not p.exists():
        raise InputValidationError(f"{label} file does not exist: {path}")
    if not p.is_file():
        raise InputValidationError(f"{label} filename given is not a regular file: {path}")
    return p


def _load_yaml(path: Path, label: str) -> Any:
    try:
        return yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as exc:
        raise InputValidationError(f"Failed to decode {label} YAML {path}: {exc}") from exc


def load_rayjob(path: str | Path) -> Dict[str, Any]:
    """Decode a RayJob manifest into a plain mapping."""
    path = _check_regular_file(str(path), "Ray Job")
    data = _load_yaml(path, "RayJob")
    if not isinstance(data, dict):
        raise InputValidationError(f"RayJob manifest {path} is not a YAML mapping")
    if not isinstance(data.get("spec"), dict):
        raise InputValidationError(f"RayJob manifest {path} has no `spec` mapping")
    return data


def runtime_env_working_dir(path: str | Path) -> str:
    """Return `working_dir` from a runtime env YAML, or "" when it has none."""
    path = _check_regular_file(str(path), "Runtime Env")
    data = _load_yaml(path, "runtime env") or {}
    if not isinstance(data, dict):
        raise InputValidationError(f"Runtime env {path} is not a YAML mapping")
    working_dir = data.get("working_dir")
    if working_dir is None:
        return ""
    if not isinstance(working_dir, str):
        raise InputValidationError(f"Runtime env working_dir must be a string, got {working_dir!r}")
    return working_dir


def check_submission_mode(rayjob: Dict[str, Any]) -> None:
    spec = rayjob.get("spec") or {}
    if "submissionMode" not in spec:
        raise ConfigError("RayJob does not have `submissionMode` field set")
    mode = spec["submissionMode"]
    if mode is None:
        raise ConfigError(f"Submission mode must be set to '{ACCEPTED_SUBMISSION_MODE}'")
    if mode != ACCEPTED_SUBMISSION_MODE:
        raise ConfigError(
            f"Submission mode {mode!r} of the Ray Job is not supported, "
            f"use '{ACCEPTED_SUBMISSION_MODE}'"
        )


def runtime_env_yaml_to_json(text: str) -> str:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to convert runtime env to json: {exc}") from exc
    # dates and timestamps stay in their YAML text form
    try:
        return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Failed to convert runtime env to json: {exc}") from exc


def prepare_submission(options: SubmitOptions) -> PreparedSubmission:
    """
    Validate options against the files they point at.

    Nothing here touches the cluster:
      - the runtime env file (if any) must exist; its working_dir seeds
        --working-dir when that was not given
      - the RayJob file must decode and use InteractiveMode
      - spec.runtimeEnvYAML becomes --runtime-env-json unless the user
        passed either runtime env flag
      - a working directory must be known by the end
      - the entrypoint must tokenize with shell quoting rules
    """
    updates: Dict[str, Any] = {"filename": os.path.normpath(options.filename)}
    working_dir = options.working_dir or ""
    runtime_env_json = options.runtime_env_json

    if options.runtime_env:
        runtime_env = os.path.normpath(options.runtime_env)
        updates["runtime_env"] = runtime_env
        env_working_dir = runtime_env_working_dir(runtime_env)
        if env_working_dir and not working_dir:
            log.debug("working dir taken from runtime env: %s", env_working_dir)
            working_dir = env_working_dir

    rayjob = load_rayjob(updates["filename"])
    check_submission_mode(rayjob)

    runtime_env_yaml = rayjob["spec"].get("runtimeEnvYAML")
    if isinstance(runtime_env_yaml, str) and not options.runtime_env and not runtime_env_json:
        runtime_env_json = runtime_env_yaml_to_json(runtime_env_yaml)
        updates["runtime_env_json"] = runtime_env_json

    if not working_dir:
        raise ConfigError(
            "working directory is required, use --working-dir or set with runtime env"
        )
    # normalised only now so an unset value never turns into "."
    updates["working_dir"] = os.path.normpath(working_dir)

    split_entrypoint(options.entrypoint)

    return PreparedSubmission(options=options.model_copy(update=updates), rayjob=rayjob)
