"""StockLedger: the compare-and-swap quantity mutator."""

import pytest

from inventory_kernel.domain.values import StockSource
from inventory_kernel.exceptions import (
    ConcurrentModificationError,
    InsufficientStockError,
    InvalidQuantityError,
    MaterialNotFoundError,
)
from inventory_kernel.selectors.material_selector import MaterialSelector
from inventory_kernel.selectors.stock_movement_selector import StockMovementSelector
from inventory_kernel.services.material_service import MaterialService
from inventory_kernel.services.stock_ledger import StockLedger


@pytest.fixture
def ledger(session, deterministic_clock):
    return StockLedger(session, deterministic_clock)


class TestAdjust:

    def test_decrement_returns_new_quantity(self, session, ledger, create_material, operator_actor):
        steel = create_material(session, "Steel Rod", quantity=100)

        assert ledger.adjust(steel.id, -20, operator_actor) == 80
        assert MaterialSelector(session).get(steel.id).quantity_available == 80

    def test_increment(self, session, ledger, create_material, operator_actor):
        steel = create_material(session, "Steel Rod", quantity=5)
        assert ledger.adjust(steel.id, 15, operator_actor) == 20

    def test_exact_drain_to_zero(self, session, ledger, create_material, operator_actor):
        steel = create_material(session, "Steel Rod", quantity=30)
        assert ledger.adjust(steel.id, -30, operator_actor) == 0

    def test_overdraw_rejected_and_nothing_applied(
        self, session, ledger, create_material, operator_actor,
    ):
        steel = create_material(session, "Steel Rod", quantity=25)

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.adjust(steel.id, -30, operator_actor)

        err = exc_info.value
        assert err.required == 30
        assert err.available == 25
        assert err.material_name == "Steel Rod"
        assert ledger.current_quantity(steel.id) == 25

    def test_rejected_adjustment_writes_no_movement(
        self, session, ledger, create_material, operator_actor,
    ):
        steel = create_material(session, "Steel Rod", quantity=25)

        with pytest.raises(InsufficientStockError):
            ledger.adjust(steel.id, -26, operator_actor)

        movements = StockMovementSelector(session).for_material(steel.id)
        assert [m.delta for m in movements] == [25]

    @pytest.mark.parametrize("delta", [0, True, 1.0, "5"])
    def test_invalid_delta(self, session, ledger, create_material, operator_actor, delta):
        steel = create_material(session, "Steel Rod", quantity=10)
        with pytest.raises(InvalidQuantityError):
            ledger.adjust(steel.id, delta, operator_actor)

    def test_missing_material(self, session, ledger, operator_actor):
        from uuid import uuid4

        with pytest.raises(MaterialNotFoundError):
            ledger.adjust(uuid4(), -1, operator_actor)

    def test_inactive_material(
        self, session, ledger, create_material, admin_actor, operator_actor, deterministic_clock,
    ):
        steel = create_material(session, "Steel Rod", quantity=10)
        MaterialService(session, deterministic_clock).deactivate(steel.id, admin_actor)

        with pytest.raises(MaterialNotFoundError):
            ledger.adjust(steel.id, 5, operator_actor)

    def test_bumps_row_version(self, session, ledger, create_material, operator_actor):
        steel = create_material(session, "Steel Rod", quantity=10)
        before = MaterialSelector(session).get(steel.id).row_version

        ledger.adjust(steel.id, -1, operator_actor)

        after = MaterialSelector(session).get(steel.id)
        assert after.row_version == before + 1
        assert after.last_updated is not None

    def test_records_movement(
        self, session, ledger, create_material, operator_actor, deterministic_clock,
    ):
        steel = create_material(session, "Steel Rod", quantity=100)
        deterministic_clock.advance(60)

        ledger.adjust(
            steel.id, -20, operator_actor,
            reason="cut for frame", source_type=StockSource.ALLOCATION,
        )

        movements = StockMovementSelector(session).for_material(steel.id)
        assert [(m.delta, m.quantity_after) for m in movements] == [(100, 100), (-20, 80)]
        last = movements[-1]
        assert last.reason == "cut for frame"
        assert last.source_type is StockSource.ALLOCATION
        assert last.actor_id == operator_actor.id

    def test_movements_sum_to_quantity(
        self, session, ledger, create_material, operator_actor, deterministic_clock,
    ):
        steel = create_material(session, "Steel Rod", quantity=50)
        for delta in (-10, 25, -7):
            deterministic_clock.advance(1)
            ledger.adjust(steel.id, delta, operator_actor)

        movements = StockMovementSelector(session).for_material(steel.id)
        assert sum(m.delta for m in movements) == ledger.current_quantity(steel.id) == 58

    def test_logs_adjustment(self, session, ledger, create_material, operator_actor, captured_logs):
        steel = create_material(session, "Steel Rod", quantity=10)
        ledger.adjust(steel.id, -4, operator_actor)

        records = [r for r in captured_logs() if r["message"] == "stock_adjusted"]
        assert records[-1]["delta"] == -4
        assert records[-1]["quantity_after"] == 6


class TestSetQuantity:

    def test_set_against_observed_quantity(self, session, ledger, create_material, operator_actor):
        steel = create_material(session, "Steel Rod", quantity=40)

        assert ledger.set_quantity(steel.id, 55, operator_actor, expected_quantity=40) == 55
        assert ledger.current_quantity(steel.id) == 55

    def test_stale_observation_rejected(self, session, ledger, create_material, operator_actor):
        steel = create_material(session, "Steel Rod", quantity=40)
        ledger.adjust(steel.id, -5, operator_actor)

        with pytest.raises(ConcurrentModificationError):
            ledger.set_quantity(steel.id, 100, operator_actor, expected_quantity=40)
        assert ledger.current_quantity(steel.id) == 35

    def test_same_value_is_noop(
        self, session, ledger, create_material, operator_actor, deterministic_clock,
    ):
        steel = create_material(session, "Steel Rod", quantity=40)

        assert ledger.set_quantity(steel.id, 40, operator_actor) == 40
        assert len(StockMovementSelector(session).for_material(steel.id)) == 1

    def test_negative_target_rejected(self, session, ledger, create_material, operator_actor):
        steel = create_material(session, "Steel Rod", quantity=40)
        with pytest.raises(InvalidQuantityError):
            ledger.set_quantity(steel.id, -1, operator_actor)

    def test_movement_delta_is_difference(
        self, session, ledger, create_material, operator_actor, deterministic_clock,
    ):
        steel = create_material(session, "Steel Rod", quantity=40)
        deterministic_clock.advance(1)
        ledger.set_quantity(steel.id, 12, operator_actor)

        movements = StockMovementSelector(session).for_material(steel.id)
        assert movements[-1].delta == -28
        assert movements[-1].quantity_after == 12
