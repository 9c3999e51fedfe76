# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/config/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel

ACCEPTED_SUBMISSION_MODE = "InteractiveMode"
SUBMISSION_ID_ANNOTATION = "ray.io/ray-job-submission-id"


class SubmitOptions(BaseModel):
    """Everything `raysubmit job submit` accepts on the command line."""

    filename: str
    entrypoint: str = ""

    # passed through to `ray job submit`
    submission_id: Optional[str] = None
    runtime_env: Optional[str] = None         # path to a runtime env YAML
    runtime_env_json: Optional[str] = None
    working_dir: Optional[str] = None
    headers: Optional[str] = None
    verify: Optional[str] = None
    entrypoint_resources: Optional[str] = None
    metadata_json: Optional[str] = None
    log_style: Optional[str] = None           # auto | record | pretty
    log_color: Optional[str] = None           # auto | false | true
    entrypoint_num_cpus: float = 0
    entrypoint_num_gpus: float = 0
    entrypoint_memory: int = 0
    no_wait: bool = False

    # kube session
    namespace: str = "default"
    kube_context: Optional[str] = None
    kubeconfig: Optional[str] = None


@dataclass(frozen=True)
class PreparedSubmission:
    """Validated options together with the decoded RayJob manifest."""

    options: SubmitOptions
    rayjob: Dict[str, Any] = field(default_factory=dict)

    @property
    def namespace(self) -> str:
        return self.options.namespace
