# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/submit/orchestrator.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, TextIO

from ..config.models import SUBMISSION_ID_ANNOTATION, PreparedSubmission
from ..config.settings import SubmitSettings
from ..errors import (
    CleanupError,
    ClusterRefError,
    ClusterTimeoutError,
    JobIdNotFoundError,
    KubeApiError,
    PollTimeoutError,
    TunnelTimeoutError,
)
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    ClusterNotReady,
    ClusterReady,
    ClusterResolved,
    ClusterTimedOut,
    JobIdResolved,
    RayJobAnnotated,
    RayJobCreated,
    RayJobDeleted,
    SubmissionFailed,
    SubmissionStateChanged,
    SubmissionSucceeded,
    SubmitCommandBuilt,
    TunnelProbeFailed,
    TunnelReady,
    TunnelStarted,
    TunnelTimedOut,
)
from ..utils.poll import poll_until
from .command import build_submit_command
from .correlator import JobIdCorrelator
from .process import SubmitProcess

log = logging.getLogger("raysubmit")


class SubmissionState(str, Enum):
    CREATED = "Created"
    AWAITING_CLUSTER_REF = "AwaitingClusterRef"
    AWAITING_CLUSTER_READY = "AwaitingClusterReady"
    TUNNEL_STARTING = "TunnelStarting"
    TUNNEL_READY = "TunnelReady"
    SUBMITTING = "Submitting"
    AWAITING_JOB_ID = "AwaitingJobID"
    AWAITING_COMPLETION = "AwaitingCompletion"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class SubmissionResult:
    job_name: str
    cluster_name: str
    job_id: str
    returncode: int = 0


# ---------------------------------------------------------------------------
# RayJob / RayCluster status helpers
# ---------------------------------------------------------------------------

def cluster_ref_from_status(rayjob: Dict[str, Any]) -> str:
    status = rayjob.get("status")
    if not isinstance(status, dict):
        raise ClusterRefError("Unable to find ray cluster status")
    name = status.get("rayClusterName")
    if not isinstance(name, str):
        raise ClusterRefError("Unable to find ray cluster status")
    if not name:
        raise ClusterRefError("No cluster name available even after status of Ray Job is set")
    return name


def is_ray_cluster_ready(cluster: Dict[str, Any]) -> bool:
    """A RayCluster is ready when its Ready condition is True OR state == "ready"."""
    status = cluster.get("status") or {}
    ready = False

    conditions = status.get("conditions")
    if isinstance(conditions, list):
        ready = any(
            isinstance(c, dict) and c.get("type") == "Ready" and str(c.get("status")) == "True"
            for c in conditions
        )

    state = status.get("state")
    if isinstance(state, str):
        ready = ready or state == "ready"

    return ready


def cluster_state_reason(cluster: Dict[str, Any]) -> str:
    status = cluster.get("status") or {}
    state = status.get("state")
    if isinstance(state, str) and state:
        return f"cluster state is {state!r}"
    return "Cannot determine cluster state"


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class SubmissionOrchestrator:
    """
    Drives one submission from RayJob creation to `ray job submit` exit.

    Created -> AwaitingClusterRef -> AwaitingClusterReady -> TunnelStarting
    -> TunnelReady -> Submitting -> AwaitingJobID -> AwaitingCompletion -> Done,
    with Failed reachable from every state before Done.

    The tunnel handle is cancelled exactly once if it was started. The RayJob
    is deleted only when its cluster never became ready.
    """

    def __init__(
        self,
        api,
        tunnel,
        settings: Optional[SubmitSettings] = None,
        *,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
        kube_context: Optional[str] = None,
        process_factory: Callable[..., SubmitProcess] = SubmitProcess,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api = api
        self.tunnel = tunnel
        self.settings = settings or SubmitSettings()
        self.bus = bus or EventBus()
        self.run_id = run_id
        self.kube_context = kube_context
        self.process_factory = process_factory
        self.out = out
        self.err = err
        self.clock = clock
        self.sleep = sleep
        self.state: Optional[SubmissionState] = None
        self.namespace = "default"

    # ------------------------- internal helpers -------------------------

    def _emit(self, event_cls, **fields) -> None:
        ctx = new_ctx(namespace=self.namespace, context=self.kube_context, run_id=self.run_id)
        self.run_id = ctx["run_id"]
        self.bus.emit(event_cls(**fields, **ctx))

    def _transition(self, state: SubmissionState) -> None:
        log.debug("state %s -> %s", self.state.value if self.state else "-", state.value)
        self.state = state
        self._emit(SubmissionStateChanged, state=state.value)

    def _create(self, prepared: PreparedSubmission) -> Dict[str, Any]:
        job = self.api.create_rayjob(self.namespace, prepared.rayjob)
        name = (job.get("metadata") or {}).get("name")
        if not name:
            raise ClusterRefError(
                "RayJob was created without a name; cannot track its cluster"
            )
        log.info("Submitted RayJob %s.", name)
        self._emit(RayJobCreated, name=name)
        return job

    def _await_cluster_ref(self, job_name: str, created: Dict[str, Any]) -> str:
        self._transition(SubmissionState.AWAITING_CLUSTER_REF)
        job = created
        if job.get("status") is None:
            try:
                job = poll_until(
                    lambda: self.api.get_rayjob(self.namespace, job_name),
                    lambda j: j.get("status") is not None,
                    interval=self.settings.poll_interval,
                    timeout=self.settings.cluster_ref_timeout,
                    clock=self.clock,
                    sleep=self.sleep,
                    what=f"RayJob {job_name} status",
                )
            except PollTimeoutError as exc:
                raise ClusterRefError(
                    f"No cluster name available for RayJob {job_name}: status never populated ({exc})"
                ) from exc

        cluster = cluster_ref_from_status(job)
        self._emit(ClusterResolved, job=job_name, cluster=cluster)
        return cluster

    def _await_cluster_ready(self, job_name: str, cluster: str) -> None:
        self._transition(SubmissionState.AWAITING_CLUSTER_READY)
        log.info("Waiting for RayCluster")
        log.info("Checking Cluster Status for cluster %s...", cluster)
        last_reason = "Cannot determine cluster state"

        def on_error(attempt: int, exc: BaseException) -> None:
            nonlocal last_reason
            last_reason = str(exc)
            log.info("Cluster is not ready: %s", exc)
            self._emit(ClusterNotReady, cluster=cluster, attempt=attempt, reason=last_reason)

        def on_pending(attempt: int, rc: Dict[str, Any]) -> None:
            nonlocal last_reason
            last_reason = cluster_state_reason(rc)
            log.info("Cluster is not ready: %s", last_reason)
            self._emit(ClusterNotReady, cluster=cluster, attempt=attempt, reason=last_reason)

        try:
            poll_until(
                lambda: self.api.get_raycluster(self.namespace, cluster),
                is_ray_cluster_ready,
                interval=self.settings.poll_interval,
                timeout=self.settings.cluster_timeout,
                retry_on=(KubeApiError,),
                on_error=on_error,
                on_pending=on_pending,
                clock=self.clock,
                sleep=self.sleep,
                what=f"RayCluster {cluster}",
            )
        except PollTimeoutError as exc:
            self._emit(ClusterTimedOut, cluster=cluster, timeout_s=self.settings.cluster_timeout)
            log.info("Deleting RayJob...")
            try:
                self.api.delete_rayjob(self.namespace, job_name)
            except KubeApiError as del_exc:
                raise CleanupError(
                    f"Failed to clean up ray job {job_name} after time out: {del_exc}"
                ) from del_exc
            self._emit(RayJobDeleted, name=job_name)
            log.info("Cleaned Up RayJob: %s", job_name)
            raise ClusterTimeoutError(
                f"Timed out waiting for cluster {cluster}: {last_reason}"
            ) from exc

        self._emit(ClusterReady, cluster=cluster)

    def _await_tunnel(self, handle) -> str:
        endpoint = self.settings.dashboard_address
        log.info("Waiting for portforwarding...")

        def on_error(attempt: int, exc: BaseException) -> None:
            self._emit(TunnelProbeFailed, endpoint=endpoint, attempt=attempt, error=str(exc))

        try:
            self.tunnel.probe_ready(
                handle,
                endpoint,
                interval=self.settings.poll_interval,
                timeout=self.settings.tunnel_timeout,
                on_error=on_error,
            )
        except TunnelTimeoutError:
            self._emit(TunnelTimedOut, endpoint=endpoint, timeout_s=self.settings.tunnel_timeout)
            raise
        self._emit(TunnelReady, endpoint=endpoint)
        return endpoint

    def _await_job_id(self, correlator: JobIdCorrelator, process: SubmitProcess) -> str:
        self._transition(SubmissionState.AWAITING_JOB_ID)
        try:
            job_id = correlator.wait(timeout=self.settings.job_id_timeout, clock=self.clock)
        except JobIdNotFoundError:
            # a failed `ray job submit` explains more than a missing id
            if process.stdout_closed:
                process.wait()
            raise
        self._emit(JobIdResolved, job_id=job_id, source=correlator.source or "output")
        return job_id

    def _annotate(self, job_name: str, job_id: str) -> None:
        # re-read so annotations added since creation are not clobbered
        latest = self.api.get_rayjob(self.namespace, job_name)
        metadata = latest.setdefault("metadata", {})
        annotations = dict(metadata.get("annotations") or {})
        annotations[SUBMISSION_ID_ANNOTATION] = job_id
        metadata["annotations"] = annotations
        self.api.update_rayjob(self.namespace, latest)
        log.debug("annotated RayJob %s with %s=%s", job_name, SUBMISSION_ID_ANNOTATION, job_id)
        self._emit(RayJobAnnotated, name=job_name, job_id=job_id)

    # ------------------------- entrypoint -------------------------

    def run(self, prepared: PreparedSubmission) -> SubmissionResult:
        self.namespace = prepared.namespace
        self.state = None
        options = prepared.options
        handle = None
        process: Optional[SubmitProcess] = None

        try:
            self._transition(SubmissionState.CREATED)
            job = self._create(prepared)
            job_name = job["metadata"]["name"]

            cluster = self._await_cluster_ref(job_name, job)
            self._await_cluster_ready(job_name, cluster)

            self._transition(SubmissionState.TUNNEL_STARTING)
            service = self.api.get_head_service_name(self.namespace, cluster)
            port = self.settings.dashboard_port
            handle = self.tunnel.start(service, port, port)
            self._emit(TunnelStarted, service=service, local_port=port, remote_port=port)
            address = self._await_tunnel(handle)
            self._transition(SubmissionState.TUNNEL_READY)

            self._transition(SubmissionState.SUBMITTING)
            argv = build_submit_command(options, address=address, executable=self.settings.ray_bin)
            log.info("Ray command: %s", " ".join(argv))
            self._emit(SubmitCommandBuilt, argv=list(argv))

            correlator = JobIdCorrelator(options.submission_id)
            process = self.process_factory(
                argv,
                on_stdout_line=correlator.feed,
                on_stdout_closed=correlator.close,
                out=self.out,
                err=self.err,
            )
            process.start()

            job_id = self._await_job_id(correlator, process)
            self._annotate(job_name, job_id)

            self._transition(SubmissionState.AWAITING_COMPLETION)
            rc = process.wait()

            self._transition(SubmissionState.DONE)
            self._emit(SubmissionSucceeded, name=job_name, cluster=cluster, job_id=job_id)
            return SubmissionResult(job_name=job_name, cluster_name=cluster, job_id=job_id, returncode=rc)

        except BaseException as exc:
            failed_in = self.state.value if self.state else SubmissionState.CREATED.value
            self.state = SubmissionState.FAILED
            self._emit(SubmissionStateChanged, state=SubmissionState.FAILED.value)
            self._emit(SubmissionFailed, state=failed_in, error=str(exc))
            if process is not None:
                process.terminate()
            raise

        finally:
            if handle is not None:
                handle.cancel()
