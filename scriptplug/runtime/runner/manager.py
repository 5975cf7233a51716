"""Selects a runner for each plugin and runs plugins by id."""

from __future__ import annotations

import logging

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from scriptplug.exceptions import PluginNotFoundError
from scriptplug.runtime.classpath import parse_directives
from scriptplug.runtime.dispatch import run_immediately
from scriptplug.runtime.paths import (
    discover_plugins,
    find_script_file,
    plugin_path_for,
    read_lines,
)
from scriptplug.types import Bindings, PluginDescriptor, ThreadDispatcher

from .base import PluginRunner
from .script_runner import ScriptPluginRunner

if TYPE_CHECKING:  # pragma: no cover
    from scriptplug.error_reporter import ErrorReporter

_LOGGER = logging.getLogger(__name__)


class RunnerManager:
    """Dispatches plugins to the first runner that accepts their directory."""

    def __init__(
        self,
        runners: Sequence[PluginRunner],
        *,
        plugins_root: str | Path,
        error_reporter: "ErrorReporter",
        dispatch: ThreadDispatcher = run_immediately,
    ) -> None:
        self.runners = list(runners)
        self.plugins_root = Path(plugins_root)
        self._error_reporter = error_reporter
        self._dispatch = dispatch

    def find_runner(self, plugin_path: str | Path) -> Optional[PluginRunner]:
        for runner in self.runners:
            if runner.can_run_plugin(plugin_path):
                return runner
        return None

    def list_plugins(self) -> List[PluginDescriptor]:
        return discover_plugins(self.plugins_root)

    def plugin_path(self, plugin_id: str) -> Path:
        path = plugin_path_for(self.plugins_root, plugin_id)
        if path is None:
            raise PluginNotFoundError(plugin_id)
        return path

    def describe(self, plugin: PluginDescriptor) -> Dict[str, Any]:
        """Summarize which runner handles a plugin and what it declares."""

        runner = self.find_runner(plugin.path)
        info: Dict[str, Any] = {
            "plugin_id": plugin.plugin_id,
            "path": str(plugin.path),
            "script": runner.script_name() if runner else None,
            "depends_on": [],
            "add_to_classpath": [],
        }
        if not isinstance(runner, ScriptPluginRunner):
            return info
        script_file = find_script_file(plugin.path, runner.script_name())
        if script_file is None:
            return info
        for directive in parse_directives(
            read_lines(script_file), runner.comment_prefix
        ):
            info[directive.kind.name.lower()].append(directive.argument)
        return info

    def run_plugin(
        self,
        plugin_id: str,
        bindings: Optional[Bindings] = None,
        *,
        startup: bool = False,
    ) -> bool:
        """Hand a plugin to its runner; ``False`` if nothing could run it."""

        try:
            plugin_path = self.plugin_path(plugin_id)
        except PluginNotFoundError as exc:
            self._error_reporter.add_loading_error(
                plugin_id, f"{exc} in {self.plugins_root}"
            )
            return False
        runner = self.find_runner(plugin_path)
        if runner is None:
            script_names = ", ".join(r.script_name() for r in self.runners)
            self._error_reporter.add_loading_error(
                plugin_id,
                f"Plugin '{plugin_id}' doesn't have any scripts. "
                f"Please add one of: {script_names}",
            )
            return False
        run_bindings: Dict[str, Any] = {
            "plugin_id": plugin_id,
            "plugin_path": str(plugin_path),
            "is_startup": startup,
        }
        run_bindings.update(bindings or {})
        _LOGGER.info("Running plugin '%s' from %s", plugin_id, plugin_path)
        runner.run_plugin(plugin_path, plugin_id, run_bindings, self._dispatch)
        return True

    def run_all(
        self,
        bindings: Optional[Bindings] = None,
        *,
        startup: bool = True,
    ) -> List[str]:
        """Run every discovered plugin that some runner accepts."""

        started: List[str] = []
        for plugin in self.list_plugins():
            if self.find_runner(plugin.path) is None:
                _LOGGER.debug("Skipping %s: no runner", plugin.plugin_id)
                continue
            if self.run_plugin(plugin.plugin_id, bindings, startup=startup):
                started.append(plugin.plugin_id)
        return started


__all__ = ["RunnerManager"]
