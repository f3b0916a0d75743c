"""
t2fis.utils

Small shared helpers used across the t2fis codebase.

Design principles:
  - Keep this file minimal; no fuzzy/GA logic here.
  - Avoid circular imports (utils must not import fis/tuning/pipeline).

Current responsibilities:
  - Safe JSON read/write helpers
  - YAML config loading
  - Logging setup for the CLI (rich handler)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

import yaml
from rich.logging import RichHandler


def ensure_dir(path: str | Path) -> Path:
    """
    Ensure a directory exists and return it as a Path.
    """
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def read_json(path: str | Path) -> Dict[str, Any]:
    """
    Read a JSON file into a Python dict.
    """
    with Path(path).open("r", encoding="utf-8") as f:
        return json.load(f)


def write_json(
    obj: Dict[str, Any],
    path: str | Path,
    indent: int = 2,
    sort_keys: bool = True,
) -> None:
    """
    Write a Python dict to JSON with sane defaults.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(obj, f, indent=indent, sort_keys=sort_keys)


def load_yaml(path: str | Path) -> Dict[str, Any]:
    """
    Load a YAML configuration file. An empty file yields an empty dict.
    """
    with Path(path).open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at top level.")
    return data


def setup_logging(verbose: bool = False) -> None:
    """
    Route package logs through rich. INFO by default, DEBUG with verbose.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # third-party chatter stays at WARNING
    logging.getLogger("joblib").setLevel(logging.WARNING)
