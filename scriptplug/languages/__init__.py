"""Language runner registry."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, MutableMapping, Type

from scriptplug.runtime.runner.script_runner import ScriptPluginRunner

from .base import Interpreter
from .python import PythonInterpreter, PythonPluginRunner

LANGUAGE_RUNNERS: Dict[str, Type[ScriptPluginRunner]] = {
    "python": PythonPluginRunner,
}


def register_language_runner(
    name: str, runner_cls: Type[ScriptPluginRunner]
) -> None:
    """Register or override a language runner at runtime."""

    LANGUAGE_RUNNERS[name.lower()] = runner_cls


def unregister_language_runner(name: str) -> None:
    """Remove a language runner that was previously registered."""

    LANGUAGE_RUNNERS.pop(name.lower(), None)


def create_runners(
    names: Iterable[str],
    error_reporter,
    environment: MutableMapping[str, str],
    *,
    options: Dict[str, Dict[str, Any]] | None = None,
    **common: Any,
) -> List[ScriptPluginRunner]:
    """Instantiate runners in ``names`` order.

    ``options`` maps a runner name to extra keyword arguments for it only.
    """

    options = options or {}
    runners: List[ScriptPluginRunner] = []
    for name in names:
        key = name.lower()
        try:
            runner_cls = LANGUAGE_RUNNERS[key]
        except KeyError as exc:
            known = ", ".join(sorted(LANGUAGE_RUNNERS))
            raise ValueError(
                f"Unknown language runner '{name}' (known: {known})"
            ) from exc
        kwargs = {**common, **options.get(key, {})}
        runners.append(runner_cls(error_reporter, environment, **kwargs))
    return runners


__all__ = [
    "Interpreter",
    "LANGUAGE_RUNNERS",
    "PythonInterpreter",
    "PythonPluginRunner",
    "create_runners",
    "register_language_runner",
    "unregister_language_runner",
]
