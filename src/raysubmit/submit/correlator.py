# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/submit/correlator.py
from __future__ import annotations

import logging
import re
import threading
import time
from concurrent.futures import Future, TimeoutError as FutureTimeout
from typing import Callable, Optional

from ..errors import JobIdNotFoundError

log = logging.getLogger("raysubmit")

JOB_ID_MARKER = "raysubmit"
_JOB_ID_RE = re.compile(r"'([^']*raysubmit[^']*)'")


def extract_job_id(line: str) -> Optional[str]:
    """Return the first single-quoted token that contains the job id marker."""
    if not line or JOB_ID_MARKER not in line:
        return None
    match = _JOB_ID_RE.search(line)
    return match.group(1) if match else None


class JobIdCorrelator:
    """
    Hands the job id from the stdout reader thread to the submitting thread.

    The id lands in a single Future: a pre-supplied submission id resolves it
    up front, otherwise the first matching output line does. Later matches
    are ignored.
    """

    def __init__(self, submission_id: Optional[str] = None):
        self._future: Future[str] = Future()
        self._closed = threading.Event()
        self.source: Optional[str] = None
        if submission_id:
            self.source = "user"
            self._future.set_result(submission_id)

    def feed(self, line: str) -> None:
        if self._future.done():
            return
        job_id = extract_job_id(line)
        if job_id is None:
            return
        log.debug("job id %s found in output", job_id)
        self.source = "output"
        self._future.set_result(job_id)

    def close(self) -> None:
        """Called once the output stream has ended."""
        self._closed.set()

    def wait(
        self,
        *,
        timeout: Optional[float] = None,
        poll_interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> str:
        start = clock()
        while True:
            try:
                return self._future.result(timeout=poll_interval)
            except FutureTimeout:
                pass
            # feed() always runs before close() on the reader thread
            if self._closed.is_set():
                if self._future.done():
                    return self._future.result()
                raise JobIdNotFoundError(
                    "ray job submit output ended without a job id "
                    f"(no quoted '{JOB_ID_MARKER}' token seen)"
                )
            if timeout is not None and clock() - start > timeout:
                raise JobIdNotFoundError(f"no job id seen in ray job submit output after {timeout}s")
