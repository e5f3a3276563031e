from __future__ import annotations

import math
import threading

import pytest

from imposm.stats.counter import ElementCount, RpsCounter


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_progress_without_total():
    counter = RpsCounter()
    counter.add(10)
    assert counter.progress() == -1.0


def test_progress_with_total():
    counter = RpsCounter(total=10)
    counter.add(5)
    assert counter.progress() == 0.5


def test_value_accumulates():
    counter = RpsCounter()
    counter.add(3)
    counter.add(4)
    assert counter.value() == 3 + 4


def test_rps_between_first_add_and_tick():
    clock = FakeClock(10.0)
    counter = RpsCounter(clock=clock)
    counter.add(5)
    clock.now = 12.0
    counter.tick()
    assert counter.rps() == pytest.approx(2.5)


def test_rps_is_nan_without_data_then_finite_after_add():
    clock = FakeClock(5.0)
    counter = RpsCounter(clock=clock)
    counter.tick()
    assert math.isnan(counter.rps())
    assert counter.value() == 0

    counter.add(4)
    clock.now = 7.0
    counter.tick()
    assert counter.rps() == pytest.approx(2.0)


def test_add_zero_does_not_start():
    clock = FakeClock(1.0)
    counter = RpsCounter(clock=clock)
    counter.add(0)
    clock.now = 5.0
    counter.tick()
    assert math.isnan(counter.rps())
    assert counter.value() == 0


def test_last_rps_resets_on_tick():
    clock = FakeClock(0.0)
    counter = RpsCounter(clock=clock)
    counter.add(7)
    clock.now = 2.0
    counter.tick()
    clock.now = 3.0
    assert counter.last_rps() == 0.0
    counter.add(4)
    assert counter.last_rps() == pytest.approx(4.0)


def test_last_rps_before_any_tick():
    counter = RpsCounter(clock=FakeClock())
    counter.add(100)
    assert counter.last_rps() == 0.0


def test_count_snapshot():
    clock = FakeClock(0.0)
    counter = RpsCounter(total=20, clock=clock)
    counter.add(8)
    clock.now = 4.0
    counter.tick()
    snapshot = counter.count()
    assert isinstance(snapshot, ElementCount)
    assert snapshot.current == 8
    assert snapshot.total == 20
    assert snapshot.rps == counter.rps()


def test_concurrent_adds():
    counter = RpsCounter()

    def worker():
        for _ in range(1000):
            counter.add(1)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert counter.value() == 8 * 1000