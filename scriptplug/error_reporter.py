"""Process-wide sink for plugin loading and running errors."""

from __future__ import annotations

import logging
import threading
import time
import traceback

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

LOADING_ERRORS_TITLE = "Loading errors"
RUNNING_ERRORS_TITLE = "Running errors"

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ErrorRecord:
    plugin_id: str
    message: str
    exception: Optional[BaseException] = None
    ts: float = field(default_factory=time.time)

    def describe(self) -> str:
        text = f"{self.plugin_id}: {self.message}"
        if self.exception is not None:
            details = "".join(
                traceback.format_exception_only(
                    type(self.exception), self.exception
                )
            ).strip()
            text += f" ({details})"
        return text


class ErrorReporter:
    """Collects loading and running errors per plugin id.

    Loading errors cover everything that stops a plugin from reaching a
    runnable state (missing dependencies, interpreter creation, bindings).
    Running errors are reported after the entry script was evaluated and did
    not succeed. Safe to call from any thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._loading: Dict[str, List[ErrorRecord]] = defaultdict(list)
        self._running: Dict[str, List[ErrorRecord]] = defaultdict(list)

    def add_loading_error(
        self,
        plugin_id: str,
        message: str,
        exception: Optional[BaseException] = None,
    ) -> None:
        record = ErrorRecord(plugin_id, message, exception)
        with self._lock:
            self._loading[plugin_id].append(record)
        _LOGGER.warning(
            "Loading error in plugin '%s': %s",
            plugin_id,
            message,
            exc_info=exception,
        )

    def add_running_error(self, plugin_id: str, message: str) -> None:
        record = ErrorRecord(plugin_id, message)
        with self._lock:
            self._running[plugin_id].append(record)
        _LOGGER.warning("Running error in plugin '%s': %s", plugin_id, message)

    def loading_errors(self, plugin_id: str) -> List[ErrorRecord]:
        with self._lock:
            return list(self._loading.get(plugin_id, ()))

    def running_errors(self, plugin_id: str) -> List[ErrorRecord]:
        with self._lock:
            return list(self._running.get(plugin_id, ()))

    def plugin_ids(self) -> List[str]:
        with self._lock:
            ids = {pid for pid, items in self._loading.items() if items}
            ids.update(pid for pid, items in self._running.items() if items)
        return sorted(ids)

    def has_errors(self, plugin_id: Optional[str] = None) -> bool:
        if plugin_id is None:
            return bool(self.plugin_ids())
        return bool(
            self.loading_errors(plugin_id) or self.running_errors(plugin_id)
        )

    def clear(self, plugin_id: Optional[str] = None) -> None:
        with self._lock:
            if plugin_id is None:
                self._loading.clear()
                self._running.clear()
            else:
                self._loading.pop(plugin_id, None)
                self._running.pop(plugin_id, None)

    def report_all_errors(self, callback: Callable[[str, str], None]) -> None:
        """Drain both error lists, calling ``callback(title, text)`` per class."""

        with self._lock:
            loading = [r for items in self._loading.values() for r in items]
            running = [r for items in self._running.values() for r in items]
            self._loading.clear()
            self._running.clear()
        for title, records in (
            (LOADING_ERRORS_TITLE, loading),
            (RUNNING_ERRORS_TITLE, running),
        ):
            if records:
                records.sort(key=lambda record: record.ts)
                callback(title, "\n".join(r.describe() for r in records))


__all__ = [
    "ErrorRecord",
    "ErrorReporter",
    "LOADING_ERRORS_TITLE",
    "RUNNING_ERRORS_TITLE",
]
