"""
Clock and deadline helpers for bounded waits.

Everything in the login flow that waits (challenge polling, retry backoff)
goes through a Clock so tests can swap in a fake one and run instantly.
"""
import time
from typing import Callable, Optional


class Clock:
    """Wall clock. Subclass and override both methods to fake time."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class Deadline:
    """An explicit upper bound on a wait, measured on a Clock."""

    def __init__(self, timeout: float, clock: Optional[Clock] = None):
        self.clock = clock or Clock()
        self.timeout = timeout
        self.started = self.clock.monotonic()

    @property
    def elapsed(self) -> float:
        return self.clock.monotonic() - self.started

    @property
    def remaining(self) -> float:
        return max(0.0, self.timeout - self.elapsed)

    @property
    def expired(self) -> bool:
        return self.elapsed >= self.timeout


def poll_until(
    predicate: Callable[[], bool],
    timeout: float,
    interval: float = 1.0,
    clock: Optional[Clock] = None,
    on_tick: Optional[Callable[[float], None]] = None,
) -> bool:
    """
    Call predicate every `interval` seconds until it returns True or
    `timeout` seconds have passed. Returns whether the predicate succeeded.
    on_tick receives the elapsed seconds after each unsuccessful poll.
    """
    deadline = Deadline(timeout, clock)
    while True:
        if predicate():
            return True
        if deadline.expired:
            return False
        deadline.clock.sleep(min(interval, deadline.remaining))
        if on_tick:
            on_tick(deadline.elapsed)
