"""Runtime runner exports."""

from .base import PluginRunner
from .manager import RunnerManager
from .script_runner import InterpreterFactory, PreparedRun, ScriptPluginRunner

__all__ = [
    "InterpreterFactory",
    "PluginRunner",
    "PreparedRun",
    "RunnerManager",
    "ScriptPluginRunner",
]
