"""
Settings -> kernel bridges.

Functions that turn ``InventorySettings`` into kernel inputs.  They live
here because the kernel never imports ``inventory_config``.

Usage:
    from inventory_config import get_settings
    from inventory_config.bridges import (
        build_material_create, build_role_policy, init_engine_from_settings,
    )

    settings = get_settings()
    engine = init_engine_from_settings(settings)
    roles = build_role_policy(settings)
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

from inventory_config.schema import InventorySettings
from inventory_kernel.db.engine import init_engine_from_url
from inventory_kernel.domain.dtos import MaterialCreate
from inventory_kernel.domain.roles import RolePolicy
from inventory_kernel.domain.values import ActorRole, parse_enum
from inventory_kernel.logging_config import configure_logging


def build_role_policy(settings: InventorySettings) -> RolePolicy:
    """
    Build a RolePolicy from the ``roles`` section.

    Raises:
        InvalidEnumValueError: a role name is not a known ActorRole.
    """
    roles = settings.roles

    def _resolve(field_name: str, names: tuple[str, ...]) -> frozenset[ActorRole]:
        return frozenset(parse_enum(ActorRole, name, f"roles.{field_name}") for name in names)

    return RolePolicy(
        bom_editors=_resolve("bom_editors", roles.bom_editors),
        bom_approvers=_resolve("bom_approvers", roles.bom_approvers),
        bom_releasers=_resolve("bom_releasers", roles.bom_releasers),
        material_editors=_resolve("material_editors", roles.material_editors),
        stock_operators=_resolve("stock_operators", roles.stock_operators),
        deleters=_resolve("deleters", roles.deleters),
    )


def init_engine_from_settings(settings: InventorySettings) -> Engine:
    """Initialize the kernel engine from the ``database`` section."""
    db = settings.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_pre_ping=db.pool_pre_ping,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        lock_timeout_ms=db.lock_timeout_ms,
        statement_timeout_ms=db.statement_timeout_ms,
        connect_timeout_s=db.connect_timeout_s,
    )


def build_material_create(settings: InventorySettings, **fields) -> MaterialCreate:
    """
    MaterialCreate with the configured default minimum stock level applied
    unless the caller supplies one.
    """
    fields.setdefault("min_stock_level", settings.stock.default_min_stock_level)
    return MaterialCreate(**fields)


def configure_logging_from_settings(settings: InventorySettings, **kwargs) -> None:
    """Configure kernel logging at the configured level."""
    configure_logging(level=logging.getLevelName(settings.log_level), **kwargs)
