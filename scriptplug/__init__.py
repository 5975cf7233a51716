"""scriptplug package entry point."""

from .engine import PluginEngine
from .error_reporter import ErrorRecord, ErrorReporter
from .exceptions import (
    BindingError,
    InterpreterInitError,
    PluginNotFoundError,
    ScriptPlugError,
)
from .languages import PythonInterpreter, PythonPluginRunner
from .runtime import (
    PluginRunner,
    RunnerManager,
    ScriptPluginRunner,
    SingleThreadDispatcher,
    run_immediately,
)
from .types import InterpreterResult, PluginDescriptor, RunnerState

__all__ = [
    "BindingError",
    "ErrorRecord",
    "ErrorReporter",
    "InterpreterInitError",
    "InterpreterResult",
    "PluginDescriptor",
    "PluginEngine",
    "PluginNotFoundError",
    "PluginRunner",
    "PythonInterpreter",
    "PythonPluginRunner",
    "RunnerManager",
    "RunnerState",
    "ScriptPlugError",
    "ScriptPluginRunner",
    "SingleThreadDispatcher",
    "run_immediately",
]
