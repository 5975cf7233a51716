"""Core dataclasses and callable aliases shared across the engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping

Bindings = Mapping[str, Any]

# Schedules a unit of work onto the evaluation thread without waiting for it.
ThreadDispatcher = Callable[[Callable[[], None]], None]


@dataclass(frozen=True)
class PluginDescriptor:
    """A plugin directory discovered under the plugins root."""

    plugin_id: str
    path: Path

    @classmethod
    def from_path(cls, path: str | Path) -> "PluginDescriptor":
        resolved = Path(path).resolve()
        return cls(plugin_id=resolved.name, path=resolved)


class DirectiveKind(str, Enum):
    DEPENDS_ON = "depends-on"
    ADD_TO_CLASSPATH = "add-to-classpath"


@dataclass(frozen=True)
class Directive:
    kind: DirectiveKind
    argument: str


class InterpreterResult(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class RunnerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    EVALUATING = "evaluating"


__all__ = [
    "Bindings",
    "Directive",
    "DirectiveKind",
    "InterpreterResult",
    "PluginDescriptor",
    "RunnerState",
    "ThreadDispatcher",
]
