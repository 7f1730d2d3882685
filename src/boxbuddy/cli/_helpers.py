"""Shared utilities for CLI entrypoints."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from boxbuddy.config.loader import Config, ConfigError, DEFAULT_CONFIG, load_config

LOCAL_CONFIG_PATH = "config/local.yaml"


def add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        dest="config",
        default=None,
        help=(
            "Path to YAML config file (default: "
            f"{LOCAL_CONFIG_PATH} if present, else built-in defaults)"
        ),
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging for troubleshooting",
    )


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")
    if verbose:
        return
    for name in ("urllib3", "requests"):
        logging.getLogger(name).setLevel(logging.WARNING)


def load_cli_config(config_path: Optional[str]) -> Config:
    if config_path:
        resolved: Optional[str] = config_path
    else:
        local = Path(LOCAL_CONFIG_PATH)
        resolved = str(local) if local.exists() else None
    if resolved is None:
        return DEFAULT_CONFIG
    try:
        return load_config(resolved)
    except ConfigError as exc:
        raise SystemExit(f"Config validation failed: {exc}") from exc
