"""Filesystem helpers for locating plugins and their entry scripts."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from scriptplug.types import PluginDescriptor


def find_script_file(plugin_root: str | Path, script_name: str) -> Optional[Path]:
    """Return ``<plugin_root>/<script_name>`` if it is a regular file."""

    candidate = Path(plugin_root) / script_name
    if candidate.is_file():
        return candidate
    return None


def read_lines(path: Path) -> List[str]:
    return path.read_text(encoding="utf-8").splitlines()


def discover_plugins(plugins_root: str | Path) -> List[PluginDescriptor]:
    """List plugin directories directly under ``plugins_root`` by name."""

    root = Path(plugins_root)
    if not root.is_dir():
        return []
    return [
        PluginDescriptor.from_path(entry)
        for entry in sorted(root.iterdir(), key=lambda p: p.name)
        if entry.is_dir() and not entry.name.startswith(".")
    ]


def plugin_path_for(plugins_root: str | Path, plugin_id: str) -> Optional[Path]:
    path = Path(plugins_root) / plugin_id
    if path.is_dir():
        return path.resolve()
    return None


__all__ = [
    "discover_plugins",
    "find_script_file",
    "plugin_path_for",
    "read_lines",
]
