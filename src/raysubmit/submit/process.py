# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/submit/process.py
from __future__ import annotations

import logging
import subprocess
import sys
import threading
from typing import Callable, Optional, Sequence, TextIO

from ..errors import SubmitProcessError

log = logging.getLogger("raysubmit")


class SubmitProcess:
    """
    Runs `ray job submit` with both pipes read line by line on their own
    threads for as long as the process lives.

    - stdout lines are echoed to `out` and handed to on_stdout_line
    - stderr lines are echoed to `err` only
    - on_stdout_closed fires once stdout reaches EOF
    """

    def __init__(
        self,
        argv: Sequence[str],
        *,
        on_stdout_line: Callable[[str], None] | None = None,
        on_stdout_closed: Callable[[], None] | None = None,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
    ):
        self.argv = list(argv)
        self.on_stdout_line = on_stdout_line
        self.on_stdout_closed = on_stdout_closed
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self._popen = popen
        self._proc: Optional[subprocess.Popen] = None
        self._readers: list[threading.Thread] = []
        self._stdout_done = threading.Event()

    # ------------------------- internal helpers -------------------------

    def _pump_stdout(self) -> None:
        try:
            for line in iter(self._proc.stdout.readline, ""):
                line = line.rstrip("\r\n")
                if not line:
                    continue
                print(line, file=self.out, flush=True)
                if self.on_stdout_line:
                    self.on_stdout_line(line)
        finally:
            self._stdout_done.set()
            if self.on_stdout_closed:
                self.on_stdout_closed()

    def _pump_stderr(self) -> None:
        for line in iter(self._proc.stderr.readline, ""):
            line = line.rstrip("\r\n")
            if line:
                print(line, file=self.err, flush=True)

    # ------------------------- lifecycle -------------------------

    def start(self) -> None:
        log.info("Running ray submit job command...")
        log.debug("$ %s", " ".join(self.argv))
        try:
            self._proc = self._popen(
                self.argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise SubmitProcessError(
                f"error occurred while running command {self.argv!r}: {exc}"
            ) from exc

        if self._proc.stdout is None or self._proc.stderr is None:
            raise SubmitProcessError("Error while setting up `ray job submit` stdout/stderr pipes")

        self._readers = [
            threading.Thread(target=self._pump_stdout, name="ray-submit-stdout", daemon=True),
            threading.Thread(target=self._pump_stderr, name="ray-submit-stderr", daemon=True),
        ]
        for t in self._readers:
            t.start()

    @property
    def stdout_closed(self) -> bool:
        return self._stdout_done.is_set()

    def poll(self) -> Optional[int]:
        if self._proc is None:
            return None
        return self._proc.poll()

    def wait(self) -> int:
        """Block until exit and both streams are drained; non-zero exit raises."""
        if self._proc is None:
            raise SubmitProcessError("ray job submit was never started")
        rc = self._proc.wait()
        for t in self._readers:
            t.join()
        if rc != 0:
            raise SubmitProcessError(
                f"Error occurred with ray job submit: exit status {rc}", returncode=rc
            )
        return rc

    def terminate(self, grace_seconds: float = 5.0) -> None:
        if self._proc is None or self._proc.poll() is not None:
            return
        log.debug("terminating ray job submit (pid=%s)", self._proc.pid)
        self._proc.terminate()
        try:
            self._proc.wait(timeout=grace_seconds)
        except subprocess.TimeoutExpired:
            self._proc.kill()
            self._proc.wait()
