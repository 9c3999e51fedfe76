# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str                 # ISO timestamp
    run_id: str             # correlates all events in a single submit invocation
    namespace: str          # namespace of the RayJob
    context: Optional[str]  # kube-context

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(namespace: str, context: Optional[str], run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "namespace": namespace,
        "context": context,
    }


# ---------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class SubmissionStateChanged(BaseEvent):
    state: str


# ---------------------------------------------------------------------
# RayJob lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RayJobCreated(BaseEvent):
    name: str

@dataclass(frozen=True)
class RayJobDeleted(BaseEvent):
    name: str

@dataclass(frozen=True)
class RayJobAnnotated(BaseEvent):
    name: str
    job_id: str


# ---------------------------------------------------------------------
# RayCluster lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ClusterResolved(BaseEvent):
    job: str
    cluster: str

@dataclass(frozen=True)
class ClusterNotReady(BaseEvent):
    cluster: str
    attempt: int
    reason: str

@dataclass(frozen=True)
class ClusterReady(BaseEvent):
    cluster: str

@dataclass(frozen=True)
class ClusterTimedOut(BaseEvent):
    cluster: str
    timeout_s: float


# ---------------------------------------------------------------------
# Tunnel lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class TunnelStarted(BaseEvent):
    service: str
    local_port: int
    remote_port: int

@dataclass(frozen=True)
class TunnelProbeFailed(BaseEvent):
    endpoint: str
    attempt: int
    error: str

@dataclass(frozen=True)
class TunnelReady(BaseEvent):
    endpoint: str

@dataclass(frozen=True)
class TunnelTimedOut(BaseEvent):
    endpoint: str
    timeout_s: float


# ---------------------------------------------------------------------
# ray job submit
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class SubmitCommandBuilt(BaseEvent):
    argv: List[str]

@dataclass(frozen=True)
class JobIdResolved(BaseEvent):
    job_id: str
    source: str       # "user" | "output"


# ---------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class SubmissionSucceeded(BaseEvent):
    name: str
    cluster: str
    job_id: str

@dataclass(frozen=True)
class SubmissionFailed(BaseEvent):
    state: str
    error: str
