"""Typed helpers for parsing scriptplug configuration dictionaries."""

from __future__ import annotations

import os

from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / "configs" / "default_config.yaml"
DEFAULT_PLUGINS_ROOT = "~/.scriptplug/plugins"
DISPATCHER_KINDS = ("thread", "immediate")


def _ensure_path(
    value: Optional[str | Path],
    *,
    config_root: Path,
    default: Optional[Path] = None,
) -> Path:
    if value is None:
        if default is None:
            raise ValueError("Path value is required")
        return default
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (config_root / path).resolve()
    return path


def _optional_path(
    value: Optional[str | Path], *, config_root: Path
) -> Optional[Path]:
    if not value:
        return None
    return _ensure_path(value, config_root=config_root)


@dataclass(frozen=True)
class HostSettings:
    """Host-provided library locations added to every classpath."""

    lib_path: Optional[Path] = None
    plugins_path: Optional[Path] = None


@dataclass(frozen=True)
class EnvironmentSettings:
    inherit_os: bool = True
    variables: Dict[str, str] = field(default_factory=dict)

    def build(self) -> Dict[str, str]:
        """Return a fresh shared environment map for the runners."""

        environment: Dict[str, str] = dict(os.environ) if self.inherit_os else {}
        environment.update(self.variables)
        return environment


@dataclass(frozen=True)
class PythonRunnerSettings:
    prelude: Optional[str] = None
    prelude_file: Optional[Path] = None

    def load_prelude(self) -> Optional[str]:
        if self.prelude_file is not None:
            return self.prelude_file.read_text(encoding="utf-8")
        return self.prelude


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    log_file: Optional[Path] = None


@dataclass(frozen=True)
class EngineSettings:
    plugins_root: Path
    runners: Tuple[str, ...] = ("python",)
    dispatcher: str = "thread"
    environment: EnvironmentSettings = field(
        default_factory=EnvironmentSettings
    )
    host: HostSettings = field(default_factory=HostSettings)
    python: PythonRunnerSettings = field(default_factory=PythonRunnerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def runner_options(self) -> Dict[str, Dict[str, Any]]:
        return {"python": {"prelude": self.python.load_prelude()}}


def build_engine_settings(
    config: Mapping[str, Any], *, config_root: Path
) -> EngineSettings:
    engine_cfg = config.get("scriptplug") or {}

    plugins_root = _ensure_path(
        engine_cfg.get("plugins_root", DEFAULT_PLUGINS_ROOT),
        config_root=config_root,
    )

    runners_value = engine_cfg.get("runners") or ["python"]
    if isinstance(runners_value, str):
        runners_value = [runners_value]
    runners = tuple(str(name).lower() for name in runners_value)

    dispatcher = str(engine_cfg.get("dispatcher", "thread")).lower()
    if dispatcher not in DISPATCHER_KINDS:
        raise ValueError(
            f"Unknown dispatcher '{dispatcher}' "
            f"(expected one of {', '.join(DISPATCHER_KINDS)})"
        )

    env_cfg = engine_cfg.get("environment") or {}
    environment = EnvironmentSettings(
        inherit_os=bool(env_cfg.get("inherit_os", True)),
        variables={
            str(key): str(value)
            for key, value in (env_cfg.get("variables") or {}).items()
        },
    )

    host_cfg = engine_cfg.get("host") or {}
    host = HostSettings(
        lib_path=_optional_path(
            host_cfg.get("lib_path"), config_root=config_root
        ),
        plugins_path=_optional_path(
            host_cfg.get("plugins_path"), config_root=config_root
        ),
    )

    python_cfg = deepcopy(engine_cfg.get("python") or {})
    python = PythonRunnerSettings(
        prelude=python_cfg.get("prelude"),
        prelude_file=_optional_path(
            python_cfg.get("prelude_file"), config_root=config_root
        ),
    )

    logging_cfg = engine_cfg.get("logging") or {}
    logging_settings = LoggingSettings(
        level=str(logging_cfg.get("level", "INFO")).upper(),
        log_file=_optional_path(
            logging_cfg.get("log_file"), config_root=config_root
        ),
    )

    return EngineSettings(
        plugins_root=plugins_root,
        runners=runners,
        dispatcher=dispatcher,
        environment=environment,
        host=host,
        python=python,
        logging=logging_settings,
    )


def load_config(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(f"Config file '{config_path}' not found.")
    return yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}


def load_engine_settings(config_path: Optional[Path] = None) -> EngineSettings:
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    return build_engine_settings(
        load_config(path), config_root=path.resolve().parent
    )


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DISPATCHER_KINDS",
    "EngineSettings",
    "EnvironmentSettings",
    "HostSettings",
    "LoggingSettings",
    "PythonRunnerSettings",
    "build_engine_settings",
    "load_config",
    "load_engine_settings",
]
