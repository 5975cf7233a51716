"""Language-independent lifecycle shared by interpreter-backed runners."""

from __future__ import annotations

import logging
import threading
import traceback

from abc import abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    MutableMapping,
    Optional,
)

from scriptplug.runtime.classpath import (
    Classpath,
    ParentLoader,
    assemble_classpath,
    create_parent_loader,
    find_classpath_additions,
    find_plugin_dependencies,
)
from scriptplug.runtime.paths import find_script_file, read_lines
from scriptplug.types import (
    Bindings,
    InterpreterResult,
    RunnerState,
    ThreadDispatcher,
)

from .base import PluginRunner

if TYPE_CHECKING:  # pragma: no cover
    from scriptplug.error_reporter import ErrorReporter
    from scriptplug.languages.base import Interpreter

InterpreterFactory = Callable[[Classpath, ParentLoader], "Interpreter"]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedRun:
    """Everything resolved on the caller thread for one evaluation."""

    plugin_id: str
    script_file: Path
    classpath: Classpath
    parent_loader: ParentLoader
    bindings: Dict[str, Any]


class ScriptPluginRunner(PluginRunner):
    """Owns one shared interpreter guarded by a single lock.

    Dependency resolution, interpreter creation and binding run on the
    caller's thread. Evaluation is handed to the injected dispatcher and
    re-acquires the same lock, so initialization and evaluations never
    interleave. A failed interpreter creation leaves the slot empty and the
    next run retries it.
    """

    language_name: str = "unknown"
    main_script: str = ""
    comment_prefix: str = "//"

    def __init__(
        self,
        error_reporter: "ErrorReporter",
        environment: MutableMapping[str, str],
        *,
        plugins_root: str | Path,
        host_lib_path: Optional[str | Path] = None,
        host_plugins_path: Optional[str | Path] = None,
        interpreter_factory: Optional[InterpreterFactory] = None,
    ) -> None:
        self._error_reporter = error_reporter
        self._environment = environment
        self.plugins_root = Path(plugins_root)
        self.host_lib_path = Path(host_lib_path) if host_lib_path else None
        self.host_plugins_path = (
            Path(host_plugins_path) if host_plugins_path else self.plugins_root
        )
        self._interpreter_factory = interpreter_factory
        self._interpreter: Optional["Interpreter"] = None
        self._state = RunnerState.UNINITIALIZED
        self._lock = threading.Lock()

    def script_name(self) -> str:
        return self.main_script

    @property
    def depends_on_keyword(self) -> str:
        return f"{self.comment_prefix} {self.DEPENDS_ON_PLUGIN_KEYWORD}"

    @property
    def add_to_classpath_keyword(self) -> str:
        return f"{self.comment_prefix} {self.ADD_TO_CLASSPATH_KEYWORD}"

    @property
    def state(self) -> RunnerState:
        return self._state

    @abstractmethod
    def compiler_path(self) -> Optional[Path]:
        """Location of the language compiler/interpreter machinery."""

    @abstractmethod
    def runtime_library_path(self) -> Optional[Path]:
        """Location of the language runtime library."""

    @abstractmethod
    def create_interpreter(
        self, classpath: Classpath, parent_loader: ParentLoader
    ) -> "Interpreter":
        """Construct a fresh interpreter; may raise."""

    def resource_root(self) -> Path:
        return Path(__file__).resolve().parents[3]

    def create_classpath(
        self, plugin_root: Path, additional_paths: List[str]
    ) -> Classpath:
        return assemble_classpath(
            compiler_path=self.compiler_path(),
            runtime_library_path=self.runtime_library_path(),
            resource_root=self.resource_root(),
            host_lib_path=self.host_lib_path,
            host_plugins_path=self.host_plugins_path,
            additional_paths=additional_paths,
            current_plugin=plugin_root,
        )

    def run_plugin(
        self,
        plugin_path: str | Path,
        plugin_id: str,
        bindings: Bindings,
        dispatch: ThreadDispatcher,
    ) -> None:
        plugin_root = Path(plugin_path)
        script_file = find_script_file(plugin_root, self.script_name())
        if script_file is None:
            self._error_reporter.add_loading_error(
                plugin_id,
                f"Couldn't find {self.script_name()} in {plugin_root}",
            )
            return

        with self._lock:
            prepared = self._prepare(
                plugin_root, plugin_id, script_file, dict(bindings)
            )
        if prepared is None:
            return
        _LOGGER.debug(
            "Dispatching %s plugin '%s' with classpath %s",
            self.language_name,
            plugin_id,
            prepared.classpath,
        )
        try:
            dispatch(lambda: self._evaluate(prepared))
        except Exception as exc:
            self._error_reporter.add_loading_error(
                plugin_id,
                f"Failed to dispatch {self.language_name} plugin",
                exc,
            )

    def _prepare(
        self,
        plugin_root: Path,
        plugin_id: str,
        script_file: Path,
        bindings: Dict[str, Any],
    ) -> Optional[PreparedRun]:
        try:
            self._environment[self.PLUGIN_PATH_VARIABLE] = str(plugin_root)

            lines = read_lines(script_file)
            dependent_plugins = find_plugin_dependencies(
                lines, self.depends_on_keyword
            )
            additional_paths = find_classpath_additions(
                lines,
                self.add_to_classpath_keyword,
                self._environment,
                on_error=lambda path: self._error_reporter.add_loading_error(
                    plugin_id, f"Couldn't find dependency '{path}'"
                ),
                plugin_root=plugin_root,
            )
            classpath = self.create_classpath(plugin_root, additional_paths)
            parent_loader = create_parent_loader(
                dependent_plugins,
                plugin_id,
                self._error_reporter,
                plugins_root=self.plugins_root,
            )
            interpreter = self._obtain_interpreter(classpath, parent_loader)

            interpreter.reset_output()
            interpreter.bind_all(bindings)
        except Exception as exc:
            self._error_reporter.add_loading_error(
                plugin_id, f"Failed to init {self.language_name} interpreter", exc
            )
            return None
        return PreparedRun(
            plugin_id=plugin_id,
            script_file=script_file,
            classpath=classpath,
            parent_loader=parent_loader,
            bindings=bindings,
        )

    def _obtain_interpreter(
        self, classpath: Classpath, parent_loader: ParentLoader
    ) -> "Interpreter":
        if self._interpreter is not None:
            self._interpreter.use_search_path(classpath, parent_loader)
            return self._interpreter
        self._state = RunnerState.INITIALIZING
        try:
            if self._interpreter_factory is not None:
                interpreter = self._interpreter_factory(classpath, parent_loader)
            else:
                interpreter = self.create_interpreter(classpath, parent_loader)
        except BaseException:
            self._state = RunnerState.UNINITIALIZED
            raise
        self._interpreter = interpreter
        self._state = RunnerState.READY
        _LOGGER.info("Initialized %s interpreter", self.language_name)
        return interpreter

    def _evaluate(self, run: PreparedRun) -> None:
        with self._lock:
            interpreter = self._interpreter
            if interpreter is None:
                self._error_reporter.add_loading_error(
                    run.plugin_id,
                    f"{self.language_name} interpreter is not initialized",
                )
                return
            self._state = RunnerState.EVALUATING
            try:
                source = run.script_file.read_text(encoding="utf-8")
                # Another run may have prepared in between; restore ours.
                interpreter.reset_output()
                interpreter.use_search_path(run.classpath, run.parent_loader)
                interpreter.bind_all(run.bindings)
                result = interpreter.interpret(source, str(run.script_file))
                if result is not InterpreterResult.SUCCESS:
                    self._error_reporter.add_running_error(
                        run.plugin_id, interpreter.output
                    )
            except (OSError, UnicodeDecodeError) as exc:
                self._error_reporter.add_loading_error(
                    run.plugin_id,
                    f"Error reading script file: {run.script_file}",
                    exc,
                )
            except ImportError as exc:
                self._error_reporter.add_loading_error(
                    run.plugin_id,
                    f"Error linking script file: {run.script_file}",
                    exc,
                )
            except Exception as exc:
                details = "".join(
                    traceback.format_exception(type(exc), exc, exc.__traceback__)
                )
                self._error_reporter.add_running_error(
                    run.plugin_id, interpreter.output + details
                )
            finally:
                self._state = RunnerState.READY


__all__ = ["InterpreterFactory", "PreparedRun", "ScriptPluginRunner"]
