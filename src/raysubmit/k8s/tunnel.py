# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/k8s/tunnel.py
from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections import deque
from typing import Callable, List, Optional

import requests

from ..errors import PollTimeoutError, TunnelError, TunnelTimeoutError
from ..utils.poll import poll_until

log = logging.getLogger("raysubmit")


class TunnelHandle:
    """
    A running `kubectl port-forward` plus the thread that watches it.

    cancel() is safe to call more than once; only the first call stops the
    process.
    """

    def __init__(self, process: subprocess.Popen, argv: List[str], grace_seconds: float = 5.0):
        self.process = process
        self.argv = argv
        self.grace_seconds = grace_seconds
        self.returncode: Optional[int] = None
        self._stderr_tail: deque[str] = deque(maxlen=20)
        self._cancelled = threading.Event()
        self._exited = threading.Event()
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._watch, name="port-forward", daemon=True)

    def _watch(self) -> None:
        if self.process.stderr is not None:
            for line in iter(self.process.stderr.readline, ""):
                line = line.rstrip()
                if line:
                    self._stderr_tail.append(line)
                    log.debug("[port-forward] %s", line)
        self.returncode = self.process.wait()
        self._exited.set()
        if not self._cancelled.is_set():
            log.error("port-forward exited unexpectedly (rc=%s)", self.returncode)

    def start_watching(self) -> None:
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def exited(self) -> bool:
        return self._exited.is_set()

    def raise_if_failed(self) -> None:
        """Raise TunnelError if the port-forward died without being cancelled."""
        if self._exited.is_set() and not self._cancelled.is_set():
            detail = "; ".join(self._stderr_tail) or "no output"
            raise TunnelError(
                f"port-forward exited before it was ready (rc={self.returncode}): {detail}"
            )

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()

        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=self.grace_seconds)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
        if self._thread.is_alive():
            self._thread.join(timeout=self.grace_seconds)
        log.debug("port-forward stopped")

    def __enter__(self) -> "TunnelHandle":
        return self

    def __exit__(self, *exc) -> None:
        self.cancel()


class PortForwardTunnel:
    """
    Runs `kubectl port-forward service/<svc> local:remote` in the background
    and probes the forwarded endpoint over HTTP.

    The requests session belongs to this instance, so separate tunnels (and
    tests) never share a client.
    """

    def __init__(
        self,
        *,
        namespace: str,
        kube_context: Optional[str] = None,
        kubeconfig: Optional[str] = None,
        kubectl: str = "kubectl",
        probe_timeout: float = 5.0,
        session: Optional[requests.Session] = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.namespace = namespace
        self.kube_context = kube_context
        self.kubeconfig = kubeconfig
        self.kubectl = kubectl
        self.probe_timeout = probe_timeout
        self.session = session or requests.Session()
        self._popen = popen
        self._clock = clock
        self._sleep = sleep

    def _base(self) -> list[str]:
        cmd = [self.kubectl]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        if self.kube_context:
            cmd += ["--context", self.kube_context]
        return cmd + ["-n", self.namespace]

    def start(self, service: str, local_port: int, remote_port: int) -> TunnelHandle:
        argv = self._base() + ["port-forward", f"service/{service}", f"{local_port}:{remote_port}"]
        log.info("Port forwarding service %s (%d:%d)", service, local_port, remote_port)
        try:
            proc = self._popen(
                argv,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=True,
            )
        except OSError as exc:
            raise TunnelError(f"failed to start port-forward {argv!r}: {exc}") from exc

        handle = TunnelHandle(proc, argv)
        handle.start_watching()
        return handle

    def probe_ready(
        self,
        handle: TunnelHandle,
        endpoint: str,
        *,
        interval: float,
        timeout: float,
        on_error: Callable[[int, BaseException], None] | None = None,
    ) -> None:
        """
        GET endpoint until it answers 2xx.

        Transport errors and non-2xx answers are retried until timeout.
        A port-forward that has already exited fails immediately.
        """

        def fetch() -> requests.Response:
            handle.raise_if_failed()
            return self.session.get(endpoint, timeout=self.probe_timeout)

        def ready(resp: requests.Response) -> bool:
            try:
                return 200 <= resp.status_code < 300
            finally:
                resp.close()

        def report_error(attempt: int, exc: BaseException) -> None:
            log.info("Error occurred when waiting for port forwarding: %s", exc)
            if on_error:
                on_error(attempt, exc)

        def report_pending(attempt: int, resp: requests.Response) -> None:
            log.info("Dashboard at %s answered %s, retrying", endpoint, resp.status_code)

        try:
            poll_until(
                fetch,
                ready,
                interval=interval,
                timeout=timeout,
                retry_on=(requests.RequestException,),
                on_error=report_error,
                on_pending=report_pending,
                clock=self._clock,
                sleep=self._sleep,
                what=f"port forwarding on {endpoint}",
            )
        except PollTimeoutError as exc:
            raise TunnelTimeoutError(f"Timed out waiting for port forwarding: {exc}") from exc
        log.info("Port forwarding started on %s", endpoint)
