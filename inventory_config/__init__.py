"""
inventory_config -- single entrypoint for inventory kernel settings.

Responsibility:
    ``get_settings()`` is the only way to obtain settings at runtime.  It
    reads a YAML file (the packaged ``settings.yaml`` by default), applies
    the ``INVENTORY_DATABASE_URL`` override and returns a frozen
    ``InventorySettings``.

Architecture position:
    Configuration.  Sits above ``inventory_kernel``; the kernel never
    imports this package.  ``inventory_config.bridges`` converts settings
    into kernel inputs (engine, RolePolicy).

Failure modes:
    - ``FileNotFoundError``: the requested settings file does not exist.
    - ``yaml.YAMLError``: malformed YAML.
    - ``ValueError``: unknown keys or wrongly-typed values.
"""

from __future__ import annotations

import logging
from pathlib import Path

from inventory_config.loader import load_yaml_file, parse_settings
from inventory_config.schema import (
    DatabaseSettings,
    InventorySettings,
    RoleSettings,
    StockSettings,
)

_logger = logging.getLogger("inventory_kernel.config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


def get_settings(path: Path | str | None = None) -> InventorySettings:
    """Load, validate and return settings from ``path`` (default: packaged file)."""
    settings_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    settings = parse_settings(load_yaml_file(settings_path))
    _logger.info(
        "inventory_settings_loaded",
        extra={
            "path": str(settings_path),
            "dialect": settings.database.url.split(":", 1)[0],
            "log_level": settings.log_level,
        },
    )
    return settings


__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "DatabaseSettings",
    "InventorySettings",
    "RoleSettings",
    "StockSettings",
    "get_settings",
]
