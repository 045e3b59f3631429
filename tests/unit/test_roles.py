"""Role-shape checks."""

from uuid import uuid4

import pytest

from inventory_kernel.domain.roles import DEFAULT_ROLE_POLICY, RolePolicy, require_role
from inventory_kernel.domain.values import Actor, ActorRole
from inventory_kernel.exceptions import UnauthorizedActorError


class TestDefaultPolicy:

    @pytest.mark.parametrize("role", [ActorRole.ADMIN, ActorRole.MANAGER])
    def test_admin_and_manager_release(self, role):
        require_role(Actor(uuid4(), role), DEFAULT_ROLE_POLICY.bom_releasers, "release BOM")

    @pytest.mark.parametrize("role", [ActorRole.OPERATOR, ActorRole.VIEWER])
    def test_others_cannot_release(self, role):
        with pytest.raises(UnauthorizedActorError) as exc_info:
            require_role(Actor(uuid4(), role), DEFAULT_ROLE_POLICY.bom_releasers, "release BOM")
        err = exc_info.value
        assert err.role == role.value
        assert err.action == "release BOM"
        assert err.allowed_roles == ["admin", "manager"]

    def test_operator_moves_stock(self):
        require_role(
            Actor(uuid4(), ActorRole.OPERATOR), DEFAULT_ROLE_POLICY.stock_operators, "allocate",
        )

    def test_only_admin_deletes(self):
        assert DEFAULT_ROLE_POLICY.deleters == frozenset({ActorRole.ADMIN})


def test_custom_policy():
    policy = RolePolicy(bom_releasers=frozenset({ActorRole.ADMIN}))
    with pytest.raises(UnauthorizedActorError):
        require_role(Actor(uuid4(), ActorRole.MANAGER), policy.bom_releasers, "release BOM")
