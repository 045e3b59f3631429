"""
Settings loader (``inventory_config.loader``).

Reads a YAML settings file with PyYAML and parses each section into the
frozen dataclasses of ``inventory_config.schema``.  Callers go through
``inventory_config.get_settings()``; this module is the parsing layer.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or wrongly-typed values  -> ``ValueError``.
"""

from __future__ import annotations

import os
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    DatabaseSettings,
    InventorySettings,
    RoleSettings,
    StockSettings,
)

DATABASE_URL_ENV = "INVENTORY_DATABASE_URL"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _known_keys(section: str, data: dict[str, Any], cls: type) -> dict[str, Any]:
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {', '.join(unknown)}")
    return data


def _require_int(section: str, key: str, value: Any, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValueError(f"{section}.{key} must be an integer >= {minimum}, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    data = _known_keys("database", data, DatabaseSettings)
    parsed = dict(data)
    for key in ("pool_size", "max_overflow", "pool_timeout", "pool_recycle",
                "lock_timeout_ms", "statement_timeout_ms", "connect_timeout_s"):
        if key in parsed:
            parsed[key] = _require_int("database", key, parsed[key])
    if "url" in parsed and not isinstance(parsed["url"], str):
        raise ValueError(f"database.url must be a string, got {parsed['url']!r}")
    return DatabaseSettings(**parsed)


def parse_stock(data: dict[str, Any]) -> StockSettings:
    data = _known_keys("stock", data, StockSettings)
    parsed = dict(data)
    if "default_min_stock_level" in parsed:
        parsed["default_min_stock_level"] = _require_int(
            "stock", "default_min_stock_level", parsed["default_min_stock_level"],
        )
    return StockSettings(**parsed)


def parse_roles(data: dict[str, Any]) -> RoleSettings:
    """Each key maps to a list of role names."""
    data = _known_keys("roles", data, RoleSettings)
    parsed = {}
    for key, value in data.items():
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not value:
            raise ValueError(f"roles.{key} must be a non-empty list of role names")
        parsed[key] = tuple(str(v) for v in value)
    return RoleSettings(**parsed)


def parse_log_level(value: Any) -> str:
    level = str(value).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {value!r}")
    return level


def parse_settings(data: dict[str, Any], environ: dict[str, str] | None = None) -> InventorySettings:
    """
    Build InventorySettings from a parsed YAML document.

    ``INVENTORY_DATABASE_URL`` in ``environ`` (default ``os.environ``)
    overrides ``database.url``.
    """
    environ = os.environ if environ is None else environ
    _known_keys("settings", data, InventorySettings)

    database = parse_database(data.get("database") or {})
    env_url = environ.get(DATABASE_URL_ENV)
    if env_url:
        database = replace(database, url=env_url)

    return InventorySettings(
        database=database,
        stock=parse_stock(data.get("stock") or {}),
        roles=parse_roles(data.get("roles") or {}),
        log_level=parse_log_level(data.get("log_level", "INFO")),
    )
