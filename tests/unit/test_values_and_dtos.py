"""Enumerations, Actor, command DTO validation and money helpers."""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.db.types import line_total, round_money, to_money
from inventory_kernel.domain.dtos import (
    AllocationRequest,
    BOMLineSpec,
    MaterialUpdate,
    QuantityChange,
    Shortfall,
)
from inventory_kernel.domain.values import (
    Actor,
    ActorRole,
    MaterialCategory,
    QuantityOperation,
    UnitOfMeasure,
    parse_enum,
)
from inventory_kernel.exceptions import (
    InsufficientMaterialsError,
    InsufficientStockError,
    InvalidEnumValueError,
    InvalidQuantityError,
)


class TestParseEnum:

    def test_accepts_member_and_value(self):
        assert parse_enum(UnitOfMeasure, UnitOfMeasure.KG, "unit") is UnitOfMeasure.KG
        assert parse_enum(UnitOfMeasure, "kg", "unit") is UnitOfMeasure.KG
        assert parse_enum(MaterialCategory, "Tools & Equipment", "category") is (
            MaterialCategory.TOOLS_AND_EQUIPMENT
        )

    def test_unknown_value_lists_allowed(self):
        with pytest.raises(InvalidEnumValueError) as exc_info:
            parse_enum(UnitOfMeasure, "gallon", "unit")
        err = exc_info.value
        assert err.field == "unit"
        assert err.value == "gallon"
        assert "pcs" in err.allowed


class TestActor:

    def test_role_coerced_from_string(self):
        actor = Actor(id=uuid4(), role="manager")
        assert actor.role is ActorRole.MANAGER
        assert actor.has_role(ActorRole.ADMIN, ActorRole.MANAGER)

    def test_unknown_role_rejected(self):
        with pytest.raises(InvalidEnumValueError):
            Actor(id=uuid4(), role="superuser")


class TestCommandValidation:

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "3"])
    def test_allocation_request_quantity(self, quantity):
        with pytest.raises(InvalidQuantityError):
            AllocationRequest(material_id=uuid4(), quantity=quantity)

    def test_allocation_request_rejects_float_cost(self):
        with pytest.raises(InvalidQuantityError):
            AllocationRequest(material_id=uuid4(), quantity=1, cost=1.5)

    def test_bom_line_quantity(self):
        with pytest.raises(InvalidQuantityError):
            BOMLineSpec(material_id=uuid4(), quantity=0)

    def test_bom_line_negative_unit_cost(self):
        with pytest.raises(InvalidQuantityError):
            BOMLineSpec(material_id=uuid4(), quantity=1, unit_cost=Decimal("-1"))

    def test_material_update_changed_fields(self):
        update = MaterialUpdate(name="Bolt M8", unit_price=Decimal("0.20"))
        assert update.changed_fields() == {"name": "Bolt M8", "unit_price": Decimal("0.20")}
        assert MaterialUpdate().changed_fields() == {}

    def test_quantity_change_delta(self):
        change = QuantityChange(uuid4(), QuantityOperation.SUBTRACT, 100, 80)
        assert change.delta == -20


class TestShortfalls:

    def test_error_carries_every_shortfall(self):
        shortfalls = [
            Shortfall(uuid4(), "Steel Rod", "MAT-000001", required=30, available=25),
            Shortfall(uuid4(), "unknown", None, required=5, available=0, missing=True),
        ]
        err = InsufficientMaterialsError(shortfalls)
        assert err.code == "INSUFFICIENT_MATERIALS"
        assert len(err.shortfalls) == 2
        assert "Steel Rod (required: 30, available: 25)" in str(err)
        assert "not found" in str(err)

    def test_batch_error_is_an_insufficient_stock_error(self):
        steel_id = uuid4()
        err = InsufficientMaterialsError(
            [
                Shortfall(steel_id, "Steel Rod", "MAT-000001", required=6, available=4),
                Shortfall(uuid4(), "Bolts", "MAT-000002", required=3, available=1),
            ]
        )

        assert isinstance(err, InsufficientStockError)
        assert (err.material_id, err.material_name, err.required, err.available) == (
            str(steel_id), "Steel Rod", 6, 4,
        )

    def test_batch_error_needs_a_shortfall(self):
        with pytest.raises(ValueError):
            InsufficientMaterialsError([])

    def test_as_dict(self):
        material_id = uuid4()
        data = Shortfall(material_id, "Bolts", "MAT-000002", 10, 4).as_dict()
        assert data["material_id"] == str(material_id)
        assert data["required"] == 10
        assert data["missing"] is False


class TestMoney:

    def test_line_total_rounds_to_cents(self):
        assert line_total(3, Decimal("0.333")) == Decimal("1.00")
        assert line_total(20, Decimal("12.50")) == Decimal("250.00")

    def test_round_half_up(self):
        assert round_money(Decimal("0.125")) == Decimal("0.13")

    def test_to_money_rejects_float(self):
        with pytest.raises(TypeError):
            to_money(0.1)
        assert to_money("1.10") == Decimal("1.10")
