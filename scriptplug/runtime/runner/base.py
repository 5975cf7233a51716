"""Plugin runner interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from scriptplug.runtime.classpath import PLUGIN_PATH_VARIABLE
from scriptplug.types import Bindings, ThreadDispatcher


class PluginRunner(ABC):
    """Recognizes and executes the plugins of one scripting language."""

    DEPENDS_ON_PLUGIN_KEYWORD = "depends-on"
    ADD_TO_CLASSPATH_KEYWORD = "add-to-classpath"
    PLUGIN_PATH_VARIABLE = PLUGIN_PATH_VARIABLE

    def can_run_plugin(self, plugin_path: str | Path) -> bool:
        return (Path(plugin_path) / self.script_name()).is_file()

    @abstractmethod
    def run_plugin(
        self,
        plugin_path: str | Path,
        plugin_id: str,
        bindings: Bindings,
        dispatch: ThreadDispatcher,
    ) -> None:
        """Run the plugin, reporting failures instead of raising them."""

    @abstractmethod
    def script_name(self) -> str:
        """Entry-script filename this runner looks for."""


__all__ = ["PluginRunner"]
