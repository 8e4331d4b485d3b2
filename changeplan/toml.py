"""TOML reading utilities.

Loads the ``[tool.changeplan]`` table from a pyproject.toml file with
tomlkit.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions

from .config import Config
from .errors import ConfigError

TOOL_NAME = "changeplan"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Raises:
        ConfigError: If the file cannot be read or is not valid TOML.
    """
    try:
        return tomlkit.parse(path.read_text())
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc.strerror}") from exc
    except tomlkit.exceptions.ParseError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def get_tool_table(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Extract [tool.changeplan] as plain Python values, or {} if absent."""
    table = doc.get("tool", {}).get(TOOL_NAME)
    if table is None:
        return {}
    if not isinstance(table, dict):
        raise ConfigError(f"[tool.{TOOL_NAME}] must be a table")
    return table.unwrap()


def load_config(path: Path) -> Config:
    """Load a Config from pyproject.toml.

    A missing [tool.changeplan] table gives the default configuration.
    """
    return Config.from_mapping(get_tool_table(load_pyproject(path)))
