import math

import pytest

from raysubmit.errors import PollTimeoutError
from raysubmit.utils.poll import poll_until


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class Counter:
    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if len(self.values) > 1:
            return self.values.pop(0)
        return self.values[0]


def test_returns_value_once_predicate_holds():
    clock = FakeClock()
    fetch = Counter(["pending", "pending", "ready"])
    value = poll_until(fetch, lambda v: v == "ready", interval=2, timeout=10, clock=clock, sleep=clock.sleep)
    assert value == "ready"
    assert fetch.calls == 3
    assert clock.sleeps == [2, 2, 2]


def test_sleeps_before_every_fetch():
    clock = FakeClock()
    seen = []

    def fetch():
        seen.append(clock.now)
        return True

    poll_until(fetch, bool, interval=3, timeout=None, clock=clock, sleep=clock.sleep)
    assert seen == [3]


def test_times_out_only_after_deadline_is_exceeded():
    clock = FakeClock()
    fetch = Counter(["pending"])
    with pytest.raises(PollTimeoutError) as ei:
        poll_until(fetch, lambda v: v == "ready", interval=2, timeout=10, clock=clock, sleep=clock.sleep, what="thing")
    # last check at t=10 is still within the deadline; t=12 is not
    assert clock.now == 12
    assert fetch.calls == 6
    assert ei.value.attempts == 6
    assert "thing" in str(ei.value)


@pytest.mark.parametrize(
    "interval,timeout,ready_on",
    [(2, 10, 1), (2, 10, 5), (3, 10, 4), (1, 5, 5), (0.5, 2, 3)],
)
def test_fetch_count_is_bounded_when_ready_before_deadline(interval, timeout, ready_on):
    clock = FakeClock()
    fetch = Counter(["no"] * (ready_on - 1) + ["yes"])
    poll_until(fetch, lambda v: v == "yes", interval=interval, timeout=timeout, clock=clock, sleep=clock.sleep)
    assert 1 <= fetch.calls <= math.ceil(timeout / interval) + 1
    assert fetch.calls == ready_on


def test_listed_errors_are_reported_and_retried():
    clock = FakeClock()
    errors = []
    outcomes = [ValueError("flap"), ValueError("flap again"), "ok"]

    def fetch():
        item = outcomes.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    value = poll_until(
        fetch,
        lambda v: v == "ok",
        interval=1,
        timeout=10,
        retry_on=(ValueError,),
        on_error=lambda attempt, exc: errors.append((attempt, str(exc))),
        clock=clock,
        sleep=clock.sleep,
    )
    assert value == "ok"
    assert errors == [(1, "flap"), (2, "flap again")]


def test_unlisted_errors_propagate_on_first_fetch():
    clock = FakeClock()
    calls = []

    def fetch():
        calls.append(1)
        raise KeyError("gone")

    with pytest.raises(KeyError):
        poll_until(fetch, bool, interval=1, timeout=10, retry_on=(ValueError,), clock=clock, sleep=clock.sleep)
    assert len(calls) == 1


def test_timeout_keeps_last_retried_error():
    clock = FakeClock()

    def fetch():
        raise ValueError("still broken")

    with pytest.raises(PollTimeoutError) as ei:
        poll_until(fetch, bool, interval=1, timeout=2, retry_on=(ValueError,), clock=clock, sleep=clock.sleep)
    assert isinstance(ei.value.last_error, ValueError)
    assert "still broken" in str(ei.value)


def test_on_pending_sees_each_unready_value():
    clock = FakeClock()
    pending = []
    poll_until(
        Counter([1, 2, 3]),
        lambda v: v == 3,
        interval=1,
        timeout=10,
        on_pending=lambda attempt, v: pending.append((attempt, v)),
        clock=clock,
        sleep=clock.sleep,
    )
    assert pending == [(1, 1), (2, 2)]
