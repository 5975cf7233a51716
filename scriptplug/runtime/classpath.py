"""Directive parsing, search-path assembly and cross-plugin loaders.

Plugins declare what they need in comment lines of their entry script::

    # depends-on shared_utils
    # add-to-classpath $PLUGIN_PATH/vendor

The whole script is scanned, so directives placed after code still count.
Only lines starting with the exact keyword (comment prefix included) followed
by whitespace and an argument are recognised.
"""

from __future__ import annotations

import logging
import os

from dataclasses import dataclass
from importlib.abc import MetaPathFinder
from importlib.machinery import ModuleSpec, PathFinder
from pathlib import Path
from string import Template
from typing import (
    TYPE_CHECKING,
    Callable,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from scriptplug.runtime.paths import plugin_path_for
from scriptplug.types import Directive, DirectiveKind

if TYPE_CHECKING:  # pragma: no cover
    from scriptplug.error_reporter import ErrorReporter

PLUGIN_PATH_VARIABLE = "PLUGIN_PATH"
LIBRARY_SUFFIXES = (".zip", ".whl", ".egg")

_LOGGER = logging.getLogger(__name__)


def _directive_arguments(lines: Iterable[str], keyword: str) -> Iterator[str]:
    for line in lines:
        if not line.startswith(keyword):
            continue
        rest = line[len(keyword) :]
        if not rest[:1].isspace():
            continue
        argument = rest.strip()
        if argument:
            yield argument


def parse_directives(
    lines: Iterable[str], comment_prefix: str
) -> List[Directive]:
    """Return every directive in ``lines`` in source order."""

    keywords = [
        (kind, f"{comment_prefix} {kind.value}") for kind in DirectiveKind
    ]
    directives: List[Directive] = []
    for line in lines:
        for kind, keyword in keywords:
            for argument in _directive_arguments([line], keyword):
                directives.append(Directive(kind=kind, argument=argument))
    return directives


def find_plugin_dependencies(lines: Iterable[str], keyword: str) -> Set[str]:
    return set(_directive_arguments(lines, keyword))


def inline_environment_variables(
    path: str, environment: Mapping[str, str]
) -> str:
    inlined = Template(path).safe_substitute(environment)
    if inlined != path:
        _LOGGER.info(
            "Classpath addition with inlined environment variables: %s",
            inlined,
        )
    return inlined


def find_classpath_additions(
    lines: Iterable[str],
    keyword: str,
    environment: Mapping[str, str],
    on_error: Callable[[str], None],
    *,
    plugin_root: Optional[str | Path] = None,
) -> List[str]:
    """Resolve ``add-to-classpath`` directives to existing paths.

    ``$VAR``/``${VAR}`` references are substituted from ``environment`` and
    relative paths are resolved against ``plugin_root`` (the current
    ``PLUGIN_PATH`` when omitted). A path that does not exist is passed to
    ``on_error`` in its raw form and left out of the result.
    """

    base = plugin_root
    if base is None:
        base = environment.get(PLUGIN_PATH_VARIABLE)
    additions: List[str] = []
    for raw_path in _directive_arguments(lines, keyword):
        path = Path(inline_environment_variables(raw_path, environment))
        path = path.expanduser()
        if not path.is_absolute() and base:
            path = Path(base) / path
        if not path.exists():
            on_error(raw_path)
            continue
        additions.append(str(path))
    return additions


@dataclass(frozen=True)
class Classpath:
    """Ordered search path; duplicates are kept, first match wins."""

    entries: Tuple[str, ...] = ()

    def __str__(self) -> str:
        return os.pathsep.join(self.entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def find_plugin_libraries(plugin_path: str | Path) -> List[Path]:
    """Return the archives a plugin contributes to other plugins."""

    path = Path(plugin_path)
    if path.is_file():
        return [path] if path.suffix in LIBRARY_SUFFIXES else []
    lib_dir = path / "lib"
    if not lib_dir.is_dir():
        return []
    return sorted(
        entry
        for entry in lib_dir.iterdir()
        if entry.is_file() and entry.suffix in LIBRARY_SUFFIXES
    )


def _same_path(left: Path, right: Optional[str | Path]) -> bool:
    if right is None:
        return False
    return left.resolve() == Path(right).resolve()


def assemble_classpath(
    *,
    compiler_path: Optional[str | Path],
    runtime_library_path: Optional[str | Path],
    resource_root: Optional[str | Path],
    host_lib_path: Optional[str | Path] = None,
    host_plugins_path: Optional[str | Path] = None,
    additional_paths: Sequence[str | Path] = (),
    current_plugin: Optional[str | Path] = None,
) -> Classpath:
    """Concatenate the interpreter search path in its fixed order.

    compiler lib, runtime lib, own resource root, every entry of the host lib
    directory, the libraries of every other installed plugin, then the
    user-declared additions.
    """

    entries: List[str] = [
        str(path)
        for path in (compiler_path, runtime_library_path, resource_root)
        if path is not None
    ]
    if host_lib_path is not None and Path(host_lib_path).is_dir():
        entries.extend(
            str(entry.absolute())
            for entry in sorted(Path(host_lib_path).iterdir())
        )
    if host_plugins_path is not None and Path(host_plugins_path).is_dir():
        for plugin in sorted(Path(host_plugins_path).iterdir()):
            if _same_path(plugin, current_plugin):
                continue
            entries.extend(
                str(lib.absolute()) for lib in find_plugin_libraries(plugin)
            )
    entries.extend(str(path) for path in additional_paths)
    return Classpath(tuple(entries))


class ParentLoader(MetaPathFinder):
    """Import finder exposing dependency libraries to a plugin.

    Lookups consult the parent chain first, then this loader's own entries.
    Returning ``None`` hands the import back to the host's regular import
    machinery, which acts as the ultimate parent.
    """

    def __init__(
        self,
        entries: Sequence[str | Path] = (),
        parent: Optional["ParentLoader"] = None,
    ) -> None:
        self.entries: Tuple[str, ...] = tuple(str(entry) for entry in entries)
        self.parent = parent

    @property
    def search_path(self) -> Tuple[str, ...]:
        inherited = self.parent.search_path if self.parent else ()
        return inherited + self.entries

    def find_spec(
        self,
        fullname: str,
        path: Optional[Sequence[str]] = None,
        target=None,
    ) -> Optional[ModuleSpec]:
        # Submodules are located through their package's __path__.
        if path is not None:
            return None
        search_path = list(self.search_path)
        if not search_path:
            return None
        return PathFinder.find_spec(fullname, search_path, target)

    def __repr__(self) -> str:
        return f"ParentLoader(entries={list(self.entries)!r})"


def create_parent_loader(
    dependent_plugin_ids: Iterable[str],
    plugin_id: str,
    error_reporter: "ErrorReporter",
    *,
    plugins_root: str | Path,
    parent: Optional[ParentLoader] = None,
) -> ParentLoader:
    """Build a loader over the libraries of every declared dependency.

    Unknown dependencies are reported as loading errors for ``plugin_id``;
    the loader is still built from the remaining ones.
    """

    entries: List[Path] = []
    for dependency in sorted(set(dependent_plugin_ids)):
        dependency_path = plugin_path_for(plugins_root, dependency)
        if dependency_path is None:
            error_reporter.add_loading_error(
                plugin_id, f"Couldn't find plugin dependency '{dependency}'"
            )
            continue
        entries.extend(find_plugin_libraries(dependency_path))
    return ParentLoader(entries, parent)


__all__ = [
    "Classpath",
    "LIBRARY_SUFFIXES",
    "PLUGIN_PATH_VARIABLE",
    "ParentLoader",
    "assemble_classpath",
    "create_parent_loader",
    "find_classpath_additions",
    "find_plugin_dependencies",
    "find_plugin_libraries",
    "inline_environment_variables",
    "parse_directives",
]
