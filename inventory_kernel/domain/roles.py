"""
Role-shape checks for kernel commands.

Authentication and user management live outside the kernel.  Each command
only asserts that the supplied actor's role is in the set allowed for that
action.  The sets are data (``RolePolicy``) so deployments can tighten them
from configuration without code changes.
"""

from __future__ import annotations

from dataclasses import dataclass

from inventory_kernel.domain.values import Actor, ActorRole
from inventory_kernel.exceptions import UnauthorizedActorError


@dataclass(frozen=True)
class RolePolicy:
    """Which roles may perform each family of kernel commands."""

    bom_editors: frozenset[ActorRole] = frozenset({ActorRole.ADMIN, ActorRole.MANAGER})
    bom_approvers: frozenset[ActorRole] = frozenset({ActorRole.ADMIN, ActorRole.MANAGER})
    bom_releasers: frozenset[ActorRole] = frozenset({ActorRole.ADMIN, ActorRole.MANAGER})
    material_editors: frozenset[ActorRole] = frozenset({ActorRole.ADMIN, ActorRole.MANAGER})
    stock_operators: frozenset[ActorRole] = frozenset(
        {ActorRole.ADMIN, ActorRole.MANAGER, ActorRole.OPERATOR}
    )
    deleters: frozenset[ActorRole] = frozenset({ActorRole.ADMIN})


DEFAULT_ROLE_POLICY = RolePolicy()


def require_role(actor: Actor, allowed: frozenset[ActorRole], action: str) -> None:
    """Raise UnauthorizedActorError unless ``actor.role`` is in ``allowed``."""
    if actor.role not in allowed:
        raise UnauthorizedActorError(
            actor_id=str(actor.id),
            role=actor.role.value,
            action=action,
            allowed_roles=(role.value for role in allowed),
        )
