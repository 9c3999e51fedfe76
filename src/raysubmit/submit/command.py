# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/submit/command.py
from __future__ import annotations

import shlex
from typing import Tuple

from ..config.models import SubmitOptions
from ..errors import ConfigError


def split_entrypoint(entrypoint: str) -> list[str]:
    try:
        return shlex.split(entrypoint)
    except ValueError as exc:
        raise ConfigError(f"Failed to parse entrypoint {entrypoint!r}: {exc}") from exc


def build_submit_command(
    options: SubmitOptions,
    *,
    address: str,
    executable: str = "ray",
) -> Tuple[str, ...]:
    """
    Build the `ray job submit` argv for a validated submission.

    Flags follow a fixed order and are only emitted when set; the working
    directory is mandatory and the entrypoint always comes last, after `--`.
    """
    argv = [executable, "job", "submit", "--address", address]

    if options.runtime_env:
        argv += ["--runtime-env", options.runtime_env]
    if options.runtime_env_json:
        argv += ["--runtime-env-json", options.runtime_env_json]
    if options.submission_id:
        argv += ["--submission-id", options.submission_id]
    if options.entrypoint_num_cpus > 0:
        argv += ["--entrypoint-num-cpus", f"{options.entrypoint_num_cpus:f}"]
    if options.entrypoint_num_gpus > 0:
        argv += ["--entrypoint-num-gpus", f"{options.entrypoint_num_gpus:f}"]
    if options.entrypoint_memory > 0:
        argv += ["--entrypoint-memory", f"{options.entrypoint_memory:d}"]
    if options.entrypoint_resources:
        argv += ["--entrypoint-resources", options.entrypoint_resources]
    if options.metadata_json:
        argv += ["--metadata-json", options.metadata_json]
    if options.no_wait:
        argv += ["--no-wait"]
    if options.headers:
        argv += ["--headers", options.headers]
    if options.verify:
        argv += ["--verify", options.verify]
    if options.log_style:
        argv += ["--log-style", options.log_style]
    if options.log_color:
        argv += ["--log-color", options.log_color]

    if not options.working_dir:
        raise ConfigError("working directory is required to build the submit command")
    argv += ["--working-dir", options.working_dir]

    argv.append("--")
    argv += split_entrypoint(options.entrypoint)
    return tuple(argv)
