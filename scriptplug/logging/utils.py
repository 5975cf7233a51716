# Copyright (c) Meta Platforms, Inc. and affiliates.
# Modifications copyright (c) 2025 Logan Martel.
# Adapted from https://github.com/meta-pytorch/KernelAgent (Apache-2.0).

"""Logging helpers (console setup, rotating log files)."""

from __future__ import annotations

import logging

from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


def setup_file_logger(
    log_file: Path, name: str = "scriptplug", level: int = logging.INFO
) -> logging.Logger:
    """Configure a rotating file logger (idempotent per file)."""

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    marker = str(log_file)
    if not any(
        isinstance(handler, RotatingFileHandler)
        and getattr(handler, "_scriptplug_tag", None) == marker
        for handler in logger.handlers
    ):
        handler = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=3
        )
        handler.setLevel(level)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handler._scriptplug_tag = marker  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Console logging for CLI use, plus an optional rotating log file."""

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=numeric_level, format="%(levelname)s %(name)s: %(message)s"
        )
    if log_file is not None:
        setup_file_logger(log_file, level=numeric_level)
