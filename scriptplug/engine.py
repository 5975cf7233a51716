"""High-level façade wiring settings, runners and dispatch together."""

from __future__ import annotations

import logging

from pathlib import Path
from typing import Dict, List, Optional

from scriptplug.configuration import EngineSettings
from scriptplug.error_reporter import ErrorReporter
from scriptplug.installer import ExceptionListener, example_installer
from scriptplug.languages import create_runners
from scriptplug.runtime.dispatch import SingleThreadDispatcher, run_immediately
from scriptplug.runtime.runner.manager import RunnerManager
from scriptplug.types import Bindings, PluginDescriptor, ThreadDispatcher


class PluginEngine:
    """Owns the shared environment, runners, dispatcher and error reporter."""

    def __init__(
        self,
        settings: EngineSettings,
        *,
        error_reporter: Optional[ErrorReporter] = None,
        dispatch: Optional[ThreadDispatcher] = None,
    ) -> None:
        self.settings = settings
        self.error_reporter = error_reporter or ErrorReporter()
        self.environment: Dict[str, str] = settings.environment.build()
        self._logger = logging.getLogger(__name__)

        self._dispatcher: Optional[SingleThreadDispatcher] = None
        if dispatch is None:
            if settings.dispatcher == "thread":
                self._dispatcher = SingleThreadDispatcher()
                dispatch = self._dispatcher
            else:
                dispatch = run_immediately

        self.runners = create_runners(
            settings.runners,
            self.error_reporter,
            self.environment,
            options=settings.runner_options(),
            plugins_root=settings.plugins_root,
            host_lib_path=settings.host.lib_path,
            host_plugins_path=settings.host.plugins_path,
        )
        self.manager = RunnerManager(
            self.runners,
            plugins_root=settings.plugins_root,
            error_reporter=self.error_reporter,
            dispatch=dispatch,
        )
        self._logger.debug(
            "Engine ready: plugins_root=%s runners=%s",
            settings.plugins_root,
            ", ".join(settings.runners),
        )

    @property
    def plugins_root(self) -> Path:
        return self.settings.plugins_root

    def list_plugins(self) -> List[PluginDescriptor]:
        return self.manager.list_plugins()

    def run_plugin(
        self, plugin_id: str, bindings: Optional[Bindings] = None
    ) -> bool:
        return self.manager.run_plugin(plugin_id, bindings)

    def run_all(
        self, bindings: Optional[Bindings] = None, *, startup: bool = True
    ) -> List[str]:
        return self.manager.run_all(bindings, startup=startup)

    def install_example(
        self, name: str, on_exception: ExceptionListener
    ) -> Path:
        installer = example_installer(name, plugins_root=self.plugins_root)
        return installer.install_plugin(on_exception)

    def wait(self) -> None:
        """Block until every dispatched evaluation has finished."""

        if self._dispatcher is not None:
            self._dispatcher.join()

    def shutdown(self) -> None:
        if self._dispatcher is not None:
            self._dispatcher.shutdown(wait=True)

    def __enter__(self) -> "PluginEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.wait()
        self.shutdown()


__all__ = ["PluginEngine"]
