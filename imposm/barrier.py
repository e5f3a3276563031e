"""A one-shot barrier that runs a callback once all parties arrived."""

from __future__ import annotations

import threading
from collections.abc import Callable


class Barrier:
    """Synchronises several threads around a single callback.

    Once every registered party called :meth:`done_wait`, the callback runs
    exactly once; :meth:`done_wait` blocks until it has returned. After that,
    :meth:`done_wait` returns immediately.
    """

    def __init__(self, callback: Callable[[], object]) -> None:
        self._callback = callback
        self._cond = threading.Condition()
        self._pending = 0
        self._calling = False
        self._synced = False

    @property
    def synced(self) -> bool:
        with self._cond:
            return self._synced

    def add(self, delta: int) -> None:
        """Change the number of parties the barrier waits for."""
        with self._cond:
            if self._pending + delta < 0:
                raise ValueError("negative barrier counter")
            self._pending += delta

    def done_wait(self) -> None:
        """Arrive at the barrier and wait until the callback has returned."""
        with self._cond:
            if self._synced:
                return
            if self._pending == 0:
                raise ValueError("negative barrier counter")
            self._pending -= 1
            if self._pending > 0 or self._calling:
                self._cond.wait_for(lambda: self._synced)
                return
            self._calling = True
        try:
            self._callback()
        finally:
            with self._cond:
                self._synced = True
                self._cond.notify_all()