# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/config/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..errors import ConfigError


@dataclass(frozen=True)
class SubmitSettings:
    dashboard_port: int = 8265
    poll_interval: float = 2.0
    cluster_ref_timeout: Optional[float] = 300.0
    cluster_timeout: float = 120.0
    tunnel_timeout: float = 60.0
    probe_timeout: float = 5.0
    job_id_timeout: Optional[float] = None
    ray_bin: str = "ray"
    kubectl_bin: str = "kubectl"

    @property
    def dashboard_address(self) -> str:
        return f"http://localhost:{self.dashboard_port}"


def _number(env: Mapping[str, str], key: str, default, cast=float):
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc


def load_submit_settings(env: Optional[Mapping[str, str]] = None) -> SubmitSettings:
    # defaults match the kubectl ray plugin; override via env
    env = os.environ if env is None else env
    return SubmitSettings(
        dashboard_port=_number(env, "RAYSUBMIT_DASHBOARD_PORT", 8265, int),
        poll_interval=_number(env, "RAYSUBMIT_POLL_INTERVAL", 2.0),
        cluster_ref_timeout=_number(env, "RAYSUBMIT_CLUSTER_REF_TIMEOUT", 300.0),
        cluster_timeout=_number(env, "RAYSUBMIT_CLUSTER_TIMEOUT", 120.0),
        tunnel_timeout=_number(env, "RAYSUBMIT_TUNNEL_TIMEOUT", 60.0),
        probe_timeout=_number(env, "RAYSUBMIT_PROBE_TIMEOUT", 5.0),
        job_id_timeout=_number(env, "RAYSUBMIT_JOB_ID_TIMEOUT", None),
        ray_bin=env.get("RAYSUBMIT_RAY_BIN") or "ray",
        kubectl_bin=env.get("RAYSUBMIT_KUBECTL_BIN") or "kubectl",
    )
