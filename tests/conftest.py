"""Expose the project root on sys.path and share plugin-tree fixtures."""

from __future__ import annotations

import sys
import textwrap
import zipfile

from pathlib import Path
from typing import Callable, Dict

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scriptplug.error_reporter import ErrorReporter  # noqa: E402


@pytest.fixture()
def error_reporter() -> ErrorReporter:
    return ErrorReporter()


@pytest.fixture()
def plugins_root(tmp_path: Path) -> Path:
    root = tmp_path / "plugins"
    root.mkdir()
    return root


@pytest.fixture()
def make_plugin(plugins_root: Path) -> Callable[[str, Dict[str, str]], Path]:
    """Create ``<plugins_root>/<plugin_id>`` populated with ``files``."""

    def _make(plugin_id: str, files: Dict[str, str]) -> Path:
        root = plugins_root / plugin_id
        root.mkdir(parents=True, exist_ok=True)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content), encoding="utf-8")
        return root

    return _make


@pytest.fixture()
def make_zip_library() -> Callable[[Path, Dict[str, str]], Path]:
    """Write a zip archive holding the given Python modules."""

    def _make(path: Path, modules: Dict[str, str]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as archive:
            for name, source in modules.items():
                archive.writestr(name, textwrap.dedent(source))
        return path

    return _make
