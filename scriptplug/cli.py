"""CLI entrypoint for listing, installing and running script plugins."""

from __future__ import annotations

import argparse
import json
import sys

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from dotenv import load_dotenv

from scriptplug.configuration import (
    DEFAULT_CONFIG_PATH,
    DISPATCHER_KINDS,
    build_engine_settings,
    load_config,
)
from scriptplug.engine import PluginEngine
from scriptplug.installer import EXAMPLE_PLUGINS, extract_plugin_id_from
from scriptplug.logging import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run script plugins from a plugins directory."
    )
    parser.add_argument(
        "plugins",
        nargs="*",
        help="Ids (folder names) of the plugins to run.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help=(
            "Path to a YAML config. If omitted, uses the bundled "
            "configs/default_config.yaml."
        ),
    )
    parser.add_argument(
        "--plugins-root",
        type=str,
        help="Override the directory that holds plugin folders.",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Run every plugin, as on host startup.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List plugins with their entry script and directives.",
    )
    parser.add_argument(
        "--bind",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Extra binding for the plugin scripts (value parsed as YAML).",
    )
    parser.add_argument(
        "--install-example",
        action="append",
        default=[],
        metavar="NAME",
        help="Install a bundled example plugin into the plugins root.",
    )
    parser.add_argument(
        "--list-examples",
        action="store_true",
        help="List bundled example plugins and exit.",
    )
    parser.add_argument(
        "--dispatcher",
        choices=DISPATCHER_KINDS,
        help="Evaluate on a dedicated thread or on the calling thread.",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write logs to this rotating log file.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser


def _apply_cli_overrides(args: argparse.Namespace, config: dict) -> dict:
    engine_cfg = config.setdefault("scriptplug", {})
    if args.plugins_root:
        engine_cfg["plugins_root"] = str(Path(args.plugins_root).resolve())
    if args.dispatcher:
        engine_cfg["dispatcher"] = args.dispatcher
    logging_cfg = engine_cfg.setdefault("logging", {})
    if args.log_file:
        logging_cfg["log_file"] = str(Path(args.log_file).resolve())
    if args.verbose:
        logging_cfg["level"] = "DEBUG"
    return config


def _parse_bindings(
    raw_bindings: List[str], parser: argparse.ArgumentParser
) -> Dict[str, Any]:
    bindings: Dict[str, Any] = {}
    for item in raw_bindings:
        name, sep, value = item.partition("=")
        if not sep or not name:
            parser.error(f"--bind expects NAME=VALUE, got '{item}'")
        try:
            bindings[name] = yaml.safe_load(value)
        except yaml.YAMLError:
            bindings[name] = value
    return bindings


def _print_error_batch(title: str, text: str) -> None:
    print(f"=== {title} ===", file=sys.stderr)
    print(text, file=sys.stderr)


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    if args.list_examples:
        for plugin_path in EXAMPLE_PLUGINS:
            print(extract_plugin_id_from(plugin_path))
        return 0

    if not (args.plugins or args.all or args.list or args.install_example):
        parser.print_help(sys.stderr)
        return 2

    config_path = Path(args.config) if args.config else DEFAULT_CONFIG_PATH
    try:
        config_data = load_config(config_path)
    except FileNotFoundError as exc:
        parser.error(str(exc))
    config_data = _apply_cli_overrides(args, config_data)
    settings = build_engine_settings(
        config_data, config_root=config_path.resolve().parent
    )
    configure_logging(settings.logging.level, settings.logging.log_file)
    bindings = _parse_bindings(args.bind, parser)

    install_failures: List[str] = []

    def _on_install_error(exc: Exception, plugin_path: str) -> None:
        install_failures.append(plugin_path)
        print(f"Failed to install {plugin_path}: {exc}", file=sys.stderr)

    with PluginEngine(settings) as engine:
        for name in args.install_example:
            try:
                target = engine.install_example(name, _on_install_error)
            except ValueError as exc:
                parser.error(str(exc))
            print(f"Installed example '{name}' into {target}")

        if args.list:
            for plugin in engine.list_plugins():
                print(json.dumps(engine.manager.describe(plugin), indent=2))

        if args.all:
            engine.run_all(bindings)
        for plugin_id in args.plugins:
            engine.run_plugin(plugin_id, bindings)

    has_errors = engine.error_reporter.has_errors()
    engine.error_reporter.report_all_errors(_print_error_batch)
    if has_errors or install_failures:
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
