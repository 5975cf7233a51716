"""Installs bundled example plugins into the plugins root."""

from __future__ import annotations

import logging

from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

TEMPLATES_DIR = Path(__file__).parent / "templates"

EXAMPLE_PLUGINS: Dict[str, List[str]] = {
    "examples/hello_world": ["plugin.py"],
    "examples/classpath_demo": ["plugin.py", "src/greetings.py"],
}

ExceptionListener = Callable[[Exception, str], None]

_LOGGER = logging.getLogger(__name__)


def extract_plugin_id_from(plugin_path: str) -> str:
    segments = [segment for segment in plugin_path.split("/") if segment]
    return segments[-1]


class ExamplePluginInstaller:
    """Renders an example plugin's files under ``<plugins_root>/<plugin_id>``.

    Each file is a Jinja2 template found at
    ``<templates_dir>/<plugin_path>/<relative_file_path>`` and rendered with
    ``plugin_id`` in its context. A file that fails is reported through the
    listener and the remaining files are still installed.
    """

    def __init__(
        self,
        plugin_path: str,
        file_paths: Sequence[str],
        *,
        plugins_root: str | Path,
        templates_dir: Optional[Path] = None,
    ) -> None:
        self.plugin_path = plugin_path
        self.file_paths = list(file_paths)
        self.plugins_root = Path(plugins_root)
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )

    @property
    def plugin_id(self) -> str:
        return extract_plugin_id_from(self.plugin_path)

    def install_plugin(self, on_exception: ExceptionListener) -> Path:
        plugin_id = self.plugin_id
        target_root = self.plugins_root / plugin_id
        for relative_file_path in self.file_paths:
            try:
                template = self._env.get_template(
                    f"{self.plugin_path}/{relative_file_path}"
                )
                text = template.render(plugin_id=plugin_id)
                target = target_root / relative_file_path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(text, encoding="utf-8")
                _LOGGER.debug("Installed %s", target)
            except (OSError, TemplateError) as exc:
                on_exception(exc, self.plugin_path)
        return target_root


def example_installer(
    name: str, *, plugins_root: str | Path
) -> ExamplePluginInstaller:
    """Installer for one of the bundled ``EXAMPLE_PLUGINS`` by short name."""

    for plugin_path, files in EXAMPLE_PLUGINS.items():
        if extract_plugin_id_from(plugin_path) == name:
            return ExamplePluginInstaller(
                plugin_path, files, plugins_root=plugins_root
            )
    known = ", ".join(
        sorted(extract_plugin_id_from(path) for path in EXAMPLE_PLUGINS)
    )
    raise ValueError(f"Unknown example plugin '{name}' (known: {known})")


__all__ = [
    "EXAMPLE_PLUGINS",
    "ExamplePluginInstaller",
    "TEMPLATES_DIR",
    "example_installer",
    "extract_plugin_id_from",
]
