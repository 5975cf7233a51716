"""Per-thread capture of ``sys.stdout``/``sys.stderr`` during evaluation."""

from __future__ import annotations

import sys
import threading

from contextlib import contextmanager
from typing import IO, Iterator, Optional


class ThreadRoutedStream:
    """Stream proxy that sends a thread's writes to its routed target.

    Threads without a route write to the wrapped ``fallback`` stream, so
    output from the host keeps reaching the real console while a script runs.
    """

    def __init__(self, fallback: Optional[IO[str]]) -> None:
        self.fallback = fallback
        self._local = threading.local()

    def route(self, target: Optional[IO[str]]) -> Optional[IO[str]]:
        """Route the calling thread to ``target``; return the previous route."""

        previous = getattr(self._local, "target", None)
        self._local.target = target
        return previous

    def _target(self) -> Optional[IO[str]]:
        target = getattr(self._local, "target", None)
        if target is None:
            return self.fallback
        return target

    def write(self, text: str) -> int:
        target = self._target()
        if target is None:
            return len(text)
        return target.write(text)

    def flush(self) -> None:
        target = self._target()
        if target is not None:
            target.flush()

    def __getattr__(self, name: str):
        return getattr(self._target(), name)


class _OutputRouter:
    """Installs the stream proxies while at least one capture is active."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active = 0
        self._stdout: Optional[ThreadRoutedStream] = None
        self._stderr: Optional[ThreadRoutedStream] = None

    def _acquire(self):
        with self._lock:
            if self._active == 0:
                self._stdout = ThreadRoutedStream(sys.stdout)
                self._stderr = ThreadRoutedStream(sys.stderr)
                sys.stdout = self._stdout
                sys.stderr = self._stderr
            self._active += 1
            return self._stdout, self._stderr

    def _release(self) -> None:
        with self._lock:
            self._active -= 1
            if self._active:
                return
            # Leave the streams alone if someone replaced them meanwhile.
            if sys.stdout is self._stdout:
                sys.stdout = self._stdout.fallback
            if sys.stderr is self._stderr:
                sys.stderr = self._stderr.fallback
            self._stdout = self._stderr = None

    @contextmanager
    def capture(self, buffer: IO[str]) -> Iterator[None]:
        stdout, stderr = self._acquire()
        previous_out = stdout.route(buffer)
        previous_err = stderr.route(buffer)
        try:
            yield
        finally:
            stdout.route(previous_out)
            stderr.route(previous_err)
            self._release()


_ROUTER = _OutputRouter()


def capture_output(buffer: IO[str]):
    """Send the calling thread's stdout/stderr writes into ``buffer``."""

    return _ROUTER.capture(buffer)


__all__ = ["ThreadRoutedStream", "capture_output"]
