# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/raysubmit/utils/poll.py
from __future__ import annotations

import time
from typing import Callable, Optional, TypeVar

from ..errors import PollTimeoutError

T = TypeVar("T")


def poll_until(
    fetch: Callable[[], T],
    predicate: Callable[[T], bool],
    *,
    interval: float,
    timeout: Optional[float] = None,
    retry_on: tuple[type[BaseException], ...] = (),
    on_error: Callable[[int, BaseException], None] | None = None,
    on_pending: Callable[[int, T], None] | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    what: str = "resource",
) -> T:
    """
    Sleep, fetch and test until predicate(value) holds.

    interval: seconds slept before every fetch
    timeout: give up once more than this many seconds have elapsed
             (None waits forever)
    retry_on: fetch exceptions that are reported to on_error and retried;
              anything else propagates on the first occurrence
    on_error: callback(attempt, exception)
    on_pending: callback(attempt, value) when the predicate is still false

    The elapsed time is only compared at the top of each iteration, so the
    deadline can be overrun by at most one interval plus one fetch.
    """
    start = clock()
    attempts = 0
    last_error: Optional[BaseException] = None

    while True:
        if timeout is not None and clock() - start > timeout:
            raise PollTimeoutError(what, timeout, attempts, last_error)

        sleep(interval)
        attempts += 1
        try:
            value = fetch()
        except retry_on as exc:
            last_error = exc
            if on_error:
                on_error(attempts, exc)
            continue

        if predicate(value):
            return value
        if on_pending:
            on_pending(attempts, value)
