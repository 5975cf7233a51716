"""Runtime helpers (classpath resolution, dispatch, runners)."""

from . import paths
from .classpath import (
    PLUGIN_PATH_VARIABLE,
    Classpath,
    ParentLoader,
    assemble_classpath,
    create_parent_loader,
    find_classpath_additions,
    find_plugin_dependencies,
    find_plugin_libraries,
    parse_directives,
)
from .dispatch import SingleThreadDispatcher, run_immediately
from .runner.base import PluginRunner
from .runner.manager import RunnerManager
from .runner.script_runner import ScriptPluginRunner

__all__ = [
    "Classpath",
    "PLUGIN_PATH_VARIABLE",
    "ParentLoader",
    "PluginRunner",
    "RunnerManager",
    "ScriptPluginRunner",
    "SingleThreadDispatcher",
    "assemble_classpath",
    "create_parent_loader",
    "find_classpath_additions",
    "find_plugin_dependencies",
    "find_plugin_libraries",
    "parse_directives",
    "paths",
    "run_immediately",
]
