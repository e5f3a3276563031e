"""Import statistics: element counters and a periodic progress reporter."""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field as dc_field
from datetime import timedelta

from imposm.stats.counter import ElementCount, RpsCounter

log = logging.getLogger(__name__)
progress_log = logging.getLogger(__name__ + ".progress")


@dataclass
class ElementCounts:
    """Snapshots of the coords, nodes, ways and relations counters."""

    coords: ElementCount = dc_field(default_factory=ElementCount)
    nodes: ElementCount = dc_field(default_factory=ElementCount)
    ways: ElementCount = dc_field(default_factory=ElementCount)
    relations: ElementCount = dc_field(default_factory=ElementCount)


def fmt_percent_or_val(progress: float, value: int) -> str:
    """Format progress as a percentage, or the raw value without an estimate."""
    if progress == -1.0:
        return str(value)
    return f"{progress * 100:4.1f}%"


def round_int(val: float, round_to: int) -> int:
    """Truncate val down to a multiple of round_to; 0 for non-finite values."""
    quotient = val / round_to
    if not math.isfinite(quotient):
        return 0
    return int(quotient) * round_to


def _format_duration(delta: timedelta) -> str:
    total = int(delta.total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


class Counter:
    """Rate counters for coords, nodes, ways and relations."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.start = clock()
        self.coords = RpsCounter(clock=clock)
        self.nodes = RpsCounter(clock=clock)
        self.ways = RpsCounter(clock=clock)
        self.relations = RpsCounter(clock=clock)

    @classmethod
    def with_estimate(cls, counts: ElementCounts) -> Counter:
        """A counter whose totals come from the counts of a previous run."""
        counter = cls()
        counter._set_totals(counts)
        return counter

    def _set_totals(self, counts: ElementCounts) -> None:
        self.coords.total = counts.coords.current
        self.nodes.total = counts.nodes.current
        self.ways.total = counts.ways.current
        self.relations.total = counts.relations.current

    def tick(self) -> None:
        self.coords.tick()
        self.nodes.tick()
        self.ways.tick()
        self.relations.tick()

    def current_count(self) -> ElementCounts:
        return ElementCounts(
            coords=self.coords.count(),
            nodes=self.nodes.count(),
            ways=self.ways.count(),
            relations=self.relations.count(),
        )

    def duration(self) -> timedelta:
        """Time since start, truncated to whole seconds."""
        return timedelta(seconds=int(self._clock() - self.start))

    def tick_line(self) -> str:
        """Progress line with overall and recent rates."""
        c, n, w, r = self.coords, self.nodes, self.ways, self.relations
        return (
            f"[{_format_duration(self.duration()):>6}] "
            f"C: {round_int(c.rps(), 1000):7d}/s {round_int(c.last_rps(), 1000):7d}/s "
            f"({fmt_percent_or_val(c.progress(), c.value())}) "
            f"N: {round_int(n.rps(), 100):7d}/s {round_int(n.last_rps(), 100):7d}/s "
            f"({fmt_percent_or_val(n.progress(), n.value())}) "
            f"W: {round_int(w.rps(), 100):7d}/s {round_int(w.last_rps(), 100):7d}/s "
            f"({fmt_percent_or_val(w.progress(), w.value())}) "
            f"R: {round_int(r.rps(), 10):6d}/s {round_int(r.last_rps(), 10):6d}/s "
            f"({fmt_percent_or_val(r.progress(), r.value())})"
        )

    def stats_line(self) -> str:
        """Summary line with overall rates."""
        c, n, w, r = self.coords, self.nodes, self.ways, self.relations
        return (
            f"[{_format_duration(self.duration()):>6}] "
            f"C: {round_int(c.rps(), 1000):7d}/s "
            f"({fmt_percent_or_val(c.progress(), c.value())}) "
            f"N: {round_int(n.rps(), 100):7d}/s "
            f"({fmt_percent_or_val(n.progress(), n.value())}) "
            f"W: {round_int(w.rps(), 100):7d}/s "
            f"({fmt_percent_or_val(w.progress(), w.value())}) "
            f"R: {round_int(r.rps(), 10):6d}/s "
            f"({fmt_percent_or_val(r.progress(), r.value())})"
        )

    def print_tick(self) -> str:
        """Log the progress line and return it."""
        line = self.tick_line()
        progress_log.info("%s", line)
        return line

    def print_stats(self) -> str:
        """Log the summary line and return it."""
        line = self.stats_line()
        log.info("%s", line)
        return line


class Statistics:
    """Collects counts and reports progress from a background thread until stopped."""

    def __init__(
        self,
        counts: ElementCounts | None = None,
        *,
        interval: float = 0.5,
        stats_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.counter = Counter(clock=clock)
        if counts is not None:
            self.counter._set_totals(counts)
        self._interval = interval
        self._stats_interval = stats_interval
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="stats", daemon=True)
        self._thread.start()

    def add_coords(self, n: int) -> None:
        self.counter.coords.add(n)

    def add_nodes(self, n: int) -> None:
        self.counter.nodes.add(n)

    def add_ways(self, n: int) -> None:
        self.counter.ways.add(n)

    def add_relations(self, n: int) -> None:
        self.counter.relations.add(n)

    def stop(self) -> ElementCounts:
        """Stop reporting, log the final statistics and return the counts."""
        if not self._done.is_set():
            self._done.set()
            self._thread.join()
        return self.counter.current_count()

    def __enter__(self) -> Statistics:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _loop(self) -> None:
        next_stats = time.monotonic() + self._stats_interval
        while not self._done.wait(self._interval):
            if time.monotonic() >= next_stats:
                self.counter.print_stats()
                next_stats += self._stats_interval
            self.counter.print_tick()
            self.counter.tick()
        self.counter.print_stats()