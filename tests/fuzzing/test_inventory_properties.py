"""
Property-based checks of the stock and BOM invariants.

Boundaries fuzzed here:
- Ledger: arbitrary sequences of increments and decrements never drive a
  material below zero, and the movement stream always sums to the stored
  quantity.
- Alerts: severity and shortfall agree with the inclusive threshold.
- Versions: minor bumps keep the major, major bumps reset the minor.
- Cost shares: line percentages of a BOM stay within rounding of 100.
"""

from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from inventory_kernel.db.types import line_total
from inventory_kernel.domain.bom_lifecycle import (
    compute_total_cost,
    next_major_version,
    next_minor_version,
    parse_version,
)
from inventory_kernel.domain.stock_alerts import classify_severity, shortfall_to_minimum
from inventory_kernel.domain.values import AlertSeverity
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.selectors.bom_selector import cost_percentage
from inventory_kernel.selectors.material_selector import MaterialSelector
from inventory_kernel.selectors.stock_movement_selector import StockMovementSelector
from inventory_kernel.services.stock_ledger import StockLedger

deltas = st.integers(min_value=-50, max_value=50).filter(lambda d: d != 0)


class TestLedgerProperties:

    @given(opening=st.integers(min_value=0, max_value=100), steps=st.lists(deltas, max_size=15))
    @settings(
        max_examples=40,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    )
    def test_quantity_never_negative_and_movements_balance(
        self, session, create_material, operator_actor, deterministic_clock, opening, steps,
    ):
        material = create_material(session, "Fuzzed", quantity=opening, min_stock_level=0, max_stock_level=1000)
        ledger = StockLedger(session, deterministic_clock)

        expected = opening
        for delta in steps:
            if expected + delta < 0:
                with pytest.raises(InsufficientStockError):
                    ledger.adjust(material.id, delta, operator_actor)
            else:
                assert ledger.adjust(material.id, delta, operator_actor) == expected + delta
                expected += delta

        stored = MaterialSelector(session).get(material.id).quantity_available
        movements = StockMovementSelector(session).for_material(material.id)
        assert stored == expected
        assert stored >= 0
        assert sum(m.delta for m in movements) == stored


class TestAlertProperties:

    @given(
        quantity=st.integers(min_value=0, max_value=10_000),
        minimum=st.integers(min_value=0, max_value=10_000),
    )
    @settings(max_examples=300)
    def test_severity_consistent_with_threshold(self, quantity, minimum):
        severity = classify_severity(quantity, minimum)
        if quantity > minimum:
            assert severity is None
            assert shortfall_to_minimum(quantity, minimum) == 0
        else:
            assert severity in (AlertSeverity.WARNING, AlertSeverity.CRITICAL)
            assert shortfall_to_minimum(quantity, minimum) == minimum - quantity
        if quantity == 0:
            assert severity is AlertSeverity.CRITICAL


class TestVersionProperties:

    @given(major=st.integers(min_value=1, max_value=999), minor=st.integers(min_value=0, max_value=999))
    @settings(max_examples=200)
    def test_bumps(self, major, minor):
        version = f"{major}.{minor}"
        assert parse_version(next_minor_version(version)) == (major, minor + 1)
        assert parse_version(next_major_version(version)) == (major + 1, 0)


class TestCostShareProperties:

    @given(
        lines=st.lists(
            st.tuples(
                st.integers(min_value=1, max_value=500),
                st.decimals(min_value=Decimal("0.01"), max_value=Decimal("999.99"), places=2),
            ),
            min_size=1,
            max_size=20,
        )
    )
    @settings(max_examples=200)
    def test_percentages_sum_to_hundred(self, lines):
        totals = [line_total(quantity, unit_cost) for quantity, unit_cost in lines]
        bom_total = compute_total_cost(totals)

        shares = [cost_percentage(total, bom_total) for total in totals]

        assert all(Decimal("0") <= share <= Decimal("100") for share in shares)
        # Each share is rounded to 0.01, so the sum drifts by at most 0.005 per line
        assert abs(sum(shares) - Decimal("100")) <= Decimal("0.005") * len(shares)
