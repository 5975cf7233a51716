"""Base interpreter interface shared by language runners."""

from __future__ import annotations

import io

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from scriptplug.runtime.classpath import Classpath, ParentLoader
from scriptplug.types import InterpreterResult


class Interpreter(ABC):
    """Long-lived execution engine reused across plugin runs.

    Output written while interpreting is buffered until ``reset_output``.
    Implementations are not expected to be re-entrant; callers serialize
    access.
    """

    language_name: str = "unknown"

    def __init__(
        self,
        classpath: Classpath,
        parent_loader: Optional[ParentLoader] = None,
    ) -> None:
        self._output = io.StringIO()
        self.classpath = classpath
        self.parent_loader = parent_loader

    @property
    def output(self) -> str:
        return self._output.getvalue()

    def reset_output(self) -> None:
        self._output.seek(0)
        self._output.truncate(0)

    def use_search_path(
        self, classpath: Classpath, parent_loader: Optional[ParentLoader]
    ) -> None:
        """Point the interpreter at a freshly resolved search path."""

        self.classpath = classpath
        self.parent_loader = parent_loader

    @abstractmethod
    def bind(self, name: str, value: Any) -> None:
        """Expose ``value`` to scripts under ``name``."""

    def bind_all(self, bindings: Mapping[str, Any]) -> None:
        for name, value in bindings.items():
            self.bind(name, value)

    @abstractmethod
    def interpret(self, source: str, filename: str) -> InterpreterResult:
        """Evaluate a complete script and report whether it succeeded."""


__all__ = ["Interpreter"]
