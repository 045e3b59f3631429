"""
Real multi-connection contention on shared stock.

Every worker gets its own session from ``session_factory`` and really
commits.  Threads are lined up on a Barrier so their transactions start
together.  Works on SQLite (writers serialized by BEGIN IMMEDIATE) and on
PostgreSQL (row locks taken with SELECT ... FOR UPDATE).
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier, Lock

import pytest

from inventory_kernel.domain.values import BOMStatus, StockSource
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.selectors.bom_selector import BOMSelector
from inventory_kernel.selectors.material_selector import MaterialSelector
from inventory_kernel.selectors.stock_movement_selector import StockMovementSelector
from inventory_kernel.services.allocation_service import AllocationService
from inventory_kernel.services.release_coordinator import ReleaseCoordinator
from inventory_kernel.services.stock_ledger import StockLedger

pytestmark = pytest.mark.slow_locks


def _run_concurrently(workers):
    """Run callables in parallel; return (successes, insufficient-stock rejections)."""
    barrier = Barrier(len(workers))
    lock = Lock()
    successes, failures = [], []

    def _wrap(work):
        barrier.wait(timeout=10)
        try:
            result = work()
        except InsufficientStockError as exc:
            with lock:
                failures.append(exc)
        else:
            with lock:
                successes.append(result)

    with ThreadPoolExecutor(max_workers=len(workers)) as pool:
        for future in [pool.submit(_wrap, work) for work in workers]:
            future.result()
    return successes, failures


class TestConcurrentAllocation:

    def test_two_allocations_one_winner(
        self, session_factory, create_material, create_project, operator_actor, deterministic_clock,
    ):
        setup = session_factory()
        steel = create_material(setup, "Steel Rod", quantity=10)
        projects = [create_project(setup, "Alpha"), create_project(setup, "Beta")]
        setup.commit()

        def allocate(project_id):
            def _work():
                s = session_factory()
                try:
                    result = AllocationService(s, deterministic_clock).allocate_to_project(
                        project_id, [(steel.id, 6)], operator_actor,
                    )
                    s.commit()
                    return result
                except Exception:
                    s.rollback()
                    raise
            return _work

        successes, failures = _run_concurrently([allocate(p.id) for p in projects])

        assert len(successes) == 1
        assert len(failures) == 1

        check = session_factory()
        assert MaterialSelector(check).get(steel.id).quantity_available == 4
        (movement,) = [
            m for m in StockMovementSelector(check).for_material(steel.id)
            if m.source_type is StockSource.ALLOCATION
        ]
        assert movement.delta == -6
        assert movement.source_id == successes[0].owner_id

    def test_many_single_unit_adjustments(
        self, session_factory, create_material, operator_actor, deterministic_clock,
    ):
        setup = session_factory()
        bolts = create_material(setup, "Bolts", quantity=5)
        setup.commit()

        def _work():
            s = session_factory()
            try:
                quantity = StockLedger(s, deterministic_clock).adjust(bolts.id, -1, operator_actor)
                s.commit()
                return quantity
            except Exception:
                s.rollback()
                raise

        successes, failures = _run_concurrently([_work] * 8)

        assert len(successes) == 5
        assert len(failures) == 3
        assert sorted(successes) == [0, 1, 2, 3, 4]

        check = session_factory()
        assert MaterialSelector(check).get(bolts.id).quantity_available == 0
        assert sum(m.delta for m in StockMovementSelector(check).for_material(bolts.id)) == 0


class TestConcurrentRelease:

    def test_releases_sharing_a_material(
        self, session_factory, create_material, create_bom, manager_actor, deterministic_clock,
    ):
        setup = session_factory()
        steel = create_material(setup, "Steel Rod", quantity=10)
        boms = [
            create_bom(setup, [(steel.id, 6)], approve=True),
            create_bom(setup, [(steel.id, 6)], approve=True),
        ]
        setup.commit()

        def release(bom_id):
            def _work():
                return ReleaseCoordinator(session_factory(), deterministic_clock).release(
                    bom_id, manager_actor,
                )
            return _work

        successes, failures = _run_concurrently([release(b.id) for b in boms])

        assert len(successes) == 1
        assert len(failures) == 1

        check = session_factory()
        assert MaterialSelector(check).get(steel.id).quantity_available == 4
        statuses = sorted(BOMSelector(check).get(b.id).status.value for b in boms)
        assert statuses == [BOMStatus.APPROVED.value, BOMStatus.RELEASED.value]
