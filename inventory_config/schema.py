"""
Inventory settings schema.

Frozen dataclasses the loader parses ``settings.yaml`` into.  Nothing in
here touches the kernel; ``inventory_config.bridges`` turns these values
into kernel inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection and pool settings handed to ``init_engine_from_url``."""

    url: str = "sqlite:///inventory.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_pre_ping: bool = True
    pool_timeout: int = 30
    pool_recycle: int = 1800
    lock_timeout_ms: int = 5000
    statement_timeout_ms: int = 30000
    connect_timeout_s: int = 10


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockSettings:
    """Defaults applied when registering materials."""

    default_min_stock_level: int = 10


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoleSettings:
    """Role names allowed per command family (plain strings, validated by the bridge)."""

    bom_editors: tuple[str, ...] = ("admin", "manager")
    bom_approvers: tuple[str, ...] = ("admin", "manager")
    bom_releasers: tuple[str, ...] = ("admin", "manager")
    material_editors: tuple[str, ...] = ("admin", "manager")
    stock_operators: tuple[str, ...] = ("admin", "manager", "operator")
    deleters: tuple[str, ...] = ("admin",)


@dataclass(frozen=True)
class InventorySettings:
    """Root settings object returned by ``get_settings()``."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    stock: StockSettings = field(default_factory=StockSettings)
    roles: RoleSettings = field(default_factory=RoleSettings)
    log_level: str = "INFO"
