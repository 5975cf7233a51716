"""Python language runner backed by a persistent exec namespace."""

from __future__ import annotations

import builtins
import codeop
import keyword
import sys
import sysconfig
import traceback

from importlib.abc import MetaPathFinder
from importlib.machinery import ModuleSpec, PathFinder, SourceFileLoader
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence, Set

from scriptplug.exceptions import BindingError, InterpreterInitError
from scriptplug.languages.base import Interpreter
from scriptplug.languages.capture import capture_output
from scriptplug.runtime.classpath import Classpath, ParentLoader
from scriptplug.runtime.runner.script_runner import ScriptPluginRunner
from scriptplug.types import InterpreterResult


class _SourceOnlyLoader(SourceFileLoader):
    """Compiles plugin sources on every import, bypassing ``__pycache__``."""

    def path_stats(self, path):
        # Without stats the bytecode cache is neither read nor written.
        raise OSError("bytecode cache disabled for plugin sources")


class _ClasspathFinder(MetaPathFinder):
    """Appended to ``sys.meta_path`` while a script runs.

    The host's own finders come first; then the dependency libraries of the
    parent loader; then the interpreter classpath. Every top-level module it
    resolves is remembered in ``resolved`` so the run can forget it again.
    """

    def __init__(
        self, classpath: Classpath, parent_loader: Optional[ParentLoader]
    ) -> None:
        self._classpath = list(classpath)
        self._parent_loader = parent_loader
        self.resolved: Set[str] = set()

    def search_entries(self) -> Iterable[str]:
        if self._parent_loader is not None:
            yield from self._parent_loader.search_path
        yield from self._classpath

    def find_spec(
        self,
        fullname: str,
        path: Optional[Sequence[str]] = None,
        target=None,
    ) -> Optional[ModuleSpec]:
        if path is not None:
            return None
        spec = None
        if self._parent_loader is not None:
            spec = self._parent_loader.find_spec(fullname, None, target)
        if spec is None and self._classpath:
            spec = PathFinder.find_spec(fullname, self._classpath, target)
        if spec is None:
            return None
        if isinstance(spec.loader, SourceFileLoader) and spec.origin:
            spec.loader = _SourceOnlyLoader(fullname, spec.origin)
        self.resolved.add(fullname)
        return spec


def _invalidate_entry_caches(entries: Iterable[str]) -> None:
    for entry in entries:
        finder = sys.path_importer_cache.get(entry)
        if finder is not None and hasattr(finder, "invalidate_caches"):
            finder.invalidate_caches()


def _forget_modules(names: Set[str]) -> None:
    """Drop modules (and their submodules) loaded from the run's search path."""

    if not names:
        return
    prefixes = tuple(f"{name}." for name in names)
    for module_name in list(sys.modules):
        if module_name in names or module_name.startswith(prefixes):
            sys.modules.pop(module_name, None)


class PythonInterpreter(Interpreter):
    """Runs whole scripts in one namespace that survives between runs.

    Modules a script imports from its classpath or dependency libraries are
    evicted from ``sys.modules`` after the run, so the next run resolves them
    again against its own, freshly assembled search path.
    """

    language_name = "python"

    def __init__(
        self,
        classpath: Classpath,
        parent_loader: Optional[ParentLoader] = None,
        *,
        prelude: Optional[str] = None,
    ) -> None:
        super().__init__(classpath, parent_loader)
        self._namespace: Dict[str, Any] = {
            "__name__": "__main__",
            "__builtins__": builtins,
        }
        if prelude:
            result = self.interpret(prelude, "<prelude>")
            if result is not InterpreterResult.SUCCESS:
                raise InterpreterInitError(
                    f"Interpreter prelude failed:\n{self.output}"
                )
            self.reset_output()

    @property
    def namespace(self) -> Dict[str, Any]:
        return self._namespace

    def bind(self, name: str, value: Any) -> None:
        if (
            not isinstance(name, str)
            or not name.isidentifier()
            or keyword.iskeyword(name)
        ):
            raise BindingError(f"Cannot bind {name!r}: not a valid identifier")
        self._namespace[name] = value

    def interpret(self, source: str, filename: str) -> InterpreterResult:
        try:
            code = compile(source, filename, "exec")
        except (SyntaxError, ValueError) as exc:
            self._output.write(
                "".join(traceback.format_exception_only(type(exc), exc))
            )
            return InterpreterResult.ERROR

        self._namespace["__file__"] = filename
        finder = _ClasspathFinder(self.classpath, self.parent_loader)
        _invalidate_entry_caches(finder.search_entries())
        sys.meta_path.append(finder)
        try:
            with capture_output(self._output):
                exec(code, self._namespace)
        except SystemExit as exc:
            if exc.code in (None, 0):
                return InterpreterResult.SUCCESS
            self._output.write(f"SystemExit: {exc.code}\n")
            return InterpreterResult.ERROR
        except Exception as exc:
            # Drop this frame so the traceback starts in the script.
            self._output.write(
                "".join(
                    traceback.format_exception(
                        type(exc), exc, exc.__traceback__.tb_next
                    )
                )
            )
            return InterpreterResult.ERROR
        finally:
            if finder in sys.meta_path:
                sys.meta_path.remove(finder)
            _forget_modules(finder.resolved)
        return InterpreterResult.SUCCESS


class PythonPluginRunner(ScriptPluginRunner):
    """Runs ``plugin.py`` entry scripts."""

    language_name = "python"
    main_script = "plugin.py"
    comment_prefix = "#"

    def __init__(
        self,
        error_reporter,
        environment,
        *,
        prelude: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(error_reporter, environment, **kwargs)
        self.prelude = prelude

    def compiler_path(self) -> Optional[Path]:
        return Path(codeop.__file__).resolve().parent

    def runtime_library_path(self) -> Optional[Path]:
        purelib = sysconfig.get_paths().get("purelib")
        return Path(purelib) if purelib else None

    def create_interpreter(
        self, classpath: Classpath, parent_loader: ParentLoader
    ) -> PythonInterpreter:
        return PythonInterpreter(classpath, parent_loader, prelude=self.prelude)


__all__ = ["PythonInterpreter", "PythonPluginRunner"]
