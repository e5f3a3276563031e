"""Thread-safe counters that track rates of processed elements."""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class ElementCount:
    """A snapshot of one counter."""

    current: int = 0
    total: int = 0
    rps: float = 0.0
    last_rps: float = 0.0


def _div(value: float, seconds: float) -> float:
    if seconds == 0:
        if value == 0:
            return math.nan
        return math.copysign(math.inf, value)
    return value / seconds


class RpsCounter:
    """Counts elements and reports overall and recent rates per second."""

    def __init__(self, total: int = 0, clock: Callable[[], float] = time.monotonic) -> None:
        self.total = total
        self._clock = clock
        self._lock = threading.Lock()
        self._counter = 0
        self._last_add = 0
        self._start: float | None = None
        self._stop: float | None = None
        self._updated = False

    def add(self, n: int) -> None:
        with self._lock:
            self._counter += n
            self._last_add += n
            if n > 0:
                if self._start is None:
                    self._start = self._clock()
                self._updated = True

    def value(self) -> int:
        with self._lock:
            return self._counter

    def rps(self) -> float:
        """Elements per second between the first add and the last tick."""
        with self._lock:
            if self._start is None or self._stop is None:
                elapsed = 0.0
            else:
                elapsed = self._stop - self._start
            return _div(self._counter, elapsed)

    def last_rps(self) -> float:
        """Elements per second added since the last tick."""
        with self._lock:
            if self._stop is None:
                return 0.0
            return _div(self._last_add, self._clock() - self._stop)

    def progress(self) -> float:
        """Fraction of the estimated total; -1.0 without an estimate."""
        if self.total == 0:
            return -1.0
        return self.value() / self.total

    def count(self) -> ElementCount:
        return ElementCount(
            current=self.value(),
            total=self.total,
            rps=self.rps(),
            last_rps=self.last_rps(),
        )

    def tick(self) -> None:
        with self._lock:
            if self._updated:
                self._stop = self._clock()
                self._updated = False
            self._last_add = 0