"""Session clocks.

The state machine never polls. Each phase asks the clock for exactly one
cancellable delayed callback, and reads the current time from the same
clock, so swapping the clock swaps real time for simulated time.

- SystemClock: wall-clock anchored to a monotonic timer, threading.Timer callbacks
- ManualClock: deterministic clock advanced explicitly (tests, simulations)
"""

import heapq
import itertools
import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol

from loguru import logger

from breath.utils.timezone import to_utc, utc_now

Callback = Callable[[], None]


class CancellationToken(Protocol):
    def cancel(self) -> None: ...


class SessionClock(Protocol):
    """Source of time and delayed callbacks for the state machine."""

    def now(self) -> datetime: ...

    def after(self, delay_seconds: float, callback: Callback) -> CancellationToken: ...


class _TimerToken:
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class SystemClock:
    """Real-time clock.

    now() advances with time.monotonic() from a UTC anchor taken at
    construction, so wall-clock adjustments cannot stretch or shrink phases.
    Callbacks run on daemon timer threads.
    """

    def __init__(self) -> None:
        self._anchor_wall = utc_now()
        self._anchor_monotonic = time.monotonic()

    def now(self) -> datetime:
        return self._anchor_wall + timedelta(seconds=time.monotonic() - self._anchor_monotonic)

    def after(self, delay_seconds: float, callback: Callback) -> CancellationToken:
        timer = threading.Timer(max(0.0, delay_seconds), self._run, args=(callback,))
        timer.daemon = True
        timer.start()
        return _TimerToken(timer)

    @staticmethod
    def _run(callback: Callback) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Clock callback raised")


class ManualToken:
    """Cancellation token for ManualClock callbacks."""

    def __init__(self) -> None:
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Deterministic clock that only moves when advanced.

    Callbacks due within an advance() run in due order, with now() set to
    each callback's due time while it runs. Callbacks scheduled by a callback
    run in the same advance if they fall due before its target.
    """

    DEFAULT_START = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None) -> None:
        self._now = to_utc(start) if start is not None else self.DEFAULT_START
        self._queue: list[tuple[datetime, int, ManualToken, Callback]] = []
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def after(self, delay_seconds: float, callback: Callback) -> CancellationToken:
        token = ManualToken()
        with self._lock:
            due = self._now + timedelta(seconds=max(0.0, delay_seconds))
            heapq.heappush(self._queue, (due, next(self._sequence), token, callback))
        return token

    @property
    def pending_count(self) -> int:
        with self._lock:
            return sum(1 for _, _, token, _ in self._queue if not token.cancelled)

    def next_due(self) -> datetime | None:
        """Due time of the earliest live callback, if any."""
        with self._lock:
            self._drop_cancelled()
            return self._queue[0][0] if self._queue else None

    def advance(self, seconds: float) -> None:
        """Move time forward, running every callback that falls due."""
        if seconds < 0:
            raise ValueError(f"Cannot move a clock backwards ({seconds}s)")
        with self._lock:
            target = self._now + timedelta(seconds=seconds)
        self._advance_to(target)

    def _advance_to(self, target: datetime) -> None:
        while True:
            with self._lock:
                self._drop_cancelled()
                if not self._queue or self._queue[0][0] > target:
                    self._now = max(self._now, target)
                    return
                due, _, token, callback = heapq.heappop(self._queue)
                self._now = max(self._now, due)
                token.fired = True
            callback()

    def run_until_idle(self, max_seconds: float = 24 * 3600) -> float:
        """Advance callback by callback until nothing is scheduled.

        Args:
            max_seconds: Safety horizon; stop advancing past this much time

        Returns:
            Seconds of simulated time that elapsed
        """
        with self._lock:
            start = self._now
        horizon = start + timedelta(seconds=max_seconds)

        while True:
            due = self.next_due()
            if due is None or due > horizon:
                break
            self._advance_to(due)

        return (self.now() - start).total_seconds()

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)
