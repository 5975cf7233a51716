"""Thread-affinity dispatchers for script evaluation."""

from __future__ import annotations

import logging
import queue
import threading

from typing import Callable, Optional

_LOGGER = logging.getLogger(__name__)

_STOP = object()


def run_immediately(unit: Callable[[], None]) -> None:
    """Dispatcher that evaluates on the caller's thread."""

    unit()


class SingleThreadDispatcher:
    """Runs submitted units one at a time, in FIFO order, on one thread.

    Stands in for a host main/UI thread: ``submit`` returns without waiting
    and ``join`` blocks until every unit submitted so far has finished.
    """

    def __init__(self, name: str = "scriptplug-eval") -> None:
        self._name = name
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()
        self._closed = False

    def __call__(self, unit: Callable[[], None]) -> None:
        self.submit(unit)

    def submit(self, unit: Callable[[], None]) -> None:
        if self._closed:
            raise RuntimeError(f"Dispatcher {self._name} is shut down")
        self._ensure_started()
        self._queue.put(unit)

    @property
    def thread(self) -> Optional[threading.Thread]:
        return self._thread

    def join(self) -> None:
        """Block until all submitted units have completed."""

        self._queue.join()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        if self._closed:
            return
        self._closed = True
        if self._thread is None:
            return
        self._queue.put(_STOP)
        if wait:
            self._thread.join(timeout)

    def _ensure_started(self) -> None:
        with self._start_lock:
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._loop, name=self._name, daemon=True
                )
                self._thread.start()

    def _loop(self) -> None:
        while True:
            unit = self._queue.get()
            try:
                if unit is _STOP:
                    return
                unit()  # type: ignore[operator]
            except Exception:
                _LOGGER.exception("Unit dispatched to %s failed", self._name)
            finally:
                self._queue.task_done()


__all__ = ["SingleThreadDispatcher", "run_immediately"]
