"""
AllocationService -- stock consumption on behalf of projects and maintenance.

Responsibility:
    Draws material out of stock for a Project (allocation) or a
    MaintenanceRecord (usage), and appends the matching rows to the owner's
    sub-list.  Also records how much of a project allocation was actually
    used.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.
    Every quantity change goes through StockLedger.adjust().

Invariants enforced:
    - All or nothing.  Pass 1 validates every line against locked material
      rows and reports EVERY shortfall at once.  Pass 2 deducts inside a
      savepoint; if any deduction is rejected (a concurrent consumer got
      there first), the savepoint rolls back every line already applied.
    - Repeated lines for the same material are summed before validation,
      so [(M, 6), (M, 6)] against 10 units fails up front.
    - 0 <= quantity_used <= quantity_allocated on project allocations.

Failure modes:
    - InsufficientMaterialsError: pass 1 found shortfalls or missing
      materials.  Nothing was applied.
    - InsufficientStockError: pass 2 lost a race to a concurrent consumer.
      Nothing was applied.
    - ProjectNotFoundError / MaintenanceRecordNotFoundError /
      AllocationNotFoundError.
    - InvalidQuantityError: non-positive or non-integer quantity, empty batch.
    - UnauthorizedActorError.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.db.types import line_total
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import (
    AllocatedLine,
    AllocationRequest,
    AllocationResult,
    ProjectAllocationInfo,
    require_positive_int,
)
from inventory_kernel.domain.roles import RolePolicy, require_role
from inventory_kernel.domain.values import Actor, StockSource
from inventory_kernel.exceptions import (
    AllocationNotFoundError,
    InsufficientMaterialsError,
    InvalidQuantityError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.maintenance import MaintenanceMaterialUsage
from inventory_kernel.models.material import Material
from inventory_kernel.models.project import ProjectAllocation
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.demand_service import load_active_maintenance, load_active_project
from inventory_kernel.services.stock_ledger import StockLedger
from inventory_kernel.services.stock_validation import aggregate, find_shortfalls, lock_materials

logger = get_logger("services.allocation")

RequestLike = AllocationRequest | tuple


def normalize_requests(requests: Iterable[RequestLike]) -> list[AllocationRequest]:
    """Accept AllocationRequest objects or (material_id, quantity[, cost]) tuples."""
    normalized = [
        req if isinstance(req, AllocationRequest) else AllocationRequest(*req)
        for req in requests
    ]
    if not normalized:
        raise InvalidQuantityError("requests", [], "at least one line is required")
    return normalized


class AllocationService(BaseService[ProjectAllocation]):
    """
    Project allocation and maintenance usage.

    Non-goals:
        - No partial fulfilment or back orders.
        - No retries on a lost race; the caller retries the whole batch.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        roles: RolePolicy | None = None,
    ):
        super().__init__(session, clock, roles)
        self._ledger = StockLedger(session, self.clock, self.roles)

    def _validate(self, requests: list[AllocationRequest], context: dict) -> dict[UUID, Material]:
        required = aggregate((req.material_id, req.quantity) for req in requests)
        materials = lock_materials(self.session, required)
        shortfalls = find_shortfalls(required, materials)
        if shortfalls:
            logger.warning(
                "allocation_rejected_insufficient",
                extra={**context, "shortfalls": [s.as_dict() for s in shortfalls]},
            )
            raise InsufficientMaterialsError(shortfalls)
        return materials

    def _deduct(
        self,
        requests: list[AllocationRequest],
        actor: Actor,
        source_type: StockSource,
        source_id: UUID,
        reason: str,
    ) -> list[AllocatedLine]:
        lines = []
        for req in requests:
            new_quantity = self._ledger.adjust(
                req.material_id,
                -req.quantity,
                actor,
                reason=reason,
                source_type=source_type,
                source_id=source_id,
            )
            lines.append(AllocatedLine(req.material_id, req.quantity, new_quantity))
        return lines

    def allocate_to_project(
        self,
        project_id: UUID,
        requests: Iterable[RequestLike],
        actor: Actor,
    ) -> AllocationResult:
        """
        Allocate materials to a project.

        Returns:
            AllocationResult with the new quantity of every line and the ids
            of the appended ProjectAllocation rows.
        """
        require_role(actor, self.roles.stock_operators, "allocate materials")
        requests = normalize_requests(requests)
        context = {"project_id": str(project_id), "line_count": len(requests)}

        with LogContext.bind(actor_id=str(actor.id), operation="allocate_to_project",
                             source_id=str(project_id)):
            project = load_active_project(self.session, project_id, for_update=True)
            self._validate(requests, context)

            now = self.clock.now()
            with self.session.begin_nested():
                lines = self._deduct(
                    requests, actor, StockSource.ALLOCATION, project.id,
                    reason=f"allocated to project {project.project_code}",
                )
                records = [
                    ProjectAllocation(
                        material_id=req.material_id,
                        quantity_allocated=req.quantity,
                        quantity_used=0,
                        allocated_by_id=actor.id,
                        allocated_at=now,
                    )
                    for req in requests
                ]
                project.allocations.extend(records)
                project.updated_by_id = actor.id
                self.session.flush()

            logger.info(
                "materials_allocated",
                extra={**context, "units": sum(req.quantity for req in requests)},
            )

        return AllocationResult(
            owner_type=StockSource.ALLOCATION,
            owner_id=project.id,
            lines=tuple(lines),
            record_ids=tuple(record.id for record in records),
        )

    def record_maintenance_usage(
        self,
        maintenance_id: UUID,
        requests: Iterable[RequestLike],
        actor: Actor,
    ) -> AllocationResult:
        """
        Consume materials for a maintenance job.

        Line cost defaults to quantity * unit_price at the time of use.  The
        record's total_cost is recomputed as labor_cost plus all usage costs.
        """
        require_role(actor, self.roles.stock_operators, "record maintenance usage")
        requests = normalize_requests(requests)
        context = {"maintenance_id": str(maintenance_id), "line_count": len(requests)}

        with LogContext.bind(actor_id=str(actor.id), operation="record_maintenance_usage",
                             source_id=str(maintenance_id)):
            record = load_active_maintenance(self.session, maintenance_id, for_update=True)
            materials = self._validate(requests, context)

            now = self.clock.now()
            with self.session.begin_nested():
                lines = self._deduct(
                    requests, actor, StockSource.MAINTENANCE, record.id,
                    reason=f"used by maintenance {record.maintenance_code}",
                )
                usages = [
                    MaintenanceMaterialUsage(
                        material_id=req.material_id,
                        quantity=req.quantity,
                        cost=(
                            req.cost if req.cost is not None
                            else line_total(req.quantity, materials[req.material_id].unit_price)
                        ),
                        used_by_id=actor.id,
                        used_at=now,
                    )
                    for req in requests
                ]
                record.usages.extend(usages)
                record.total_cost = record.labor_cost + sum(
                    (usage.cost for usage in record.usages), Decimal("0")
                )
                record.updated_by_id = actor.id
                self.session.flush()

            logger.info(
                "maintenance_usage_recorded",
                extra={**context, "total_cost": record.total_cost},
            )

        return AllocationResult(
            owner_type=StockSource.MAINTENANCE,
            owner_id=record.id,
            lines=tuple(lines),
            record_ids=tuple(usage.id for usage in usages),
        )

    def record_project_usage(
        self,
        project_id: UUID,
        allocation_id: UUID,
        quantity_used: int,
        actor: Actor,
    ) -> ProjectAllocationInfo:
        """
        Mark part of an allocation as used.  No stock impact: the units left
        inventory when they were allocated.
        """
        require_role(actor, self.roles.stock_operators, "record project usage")
        require_positive_int("quantity_used", quantity_used)
        load_active_project(self.session, project_id)

        allocation = self.session.execute(
            select(ProjectAllocation)
            .where(
                ProjectAllocation.id == allocation_id,
                ProjectAllocation.project_id == project_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if allocation is None:
            raise AllocationNotFoundError(str(project_id), str(allocation_id))

        remaining = allocation.quantity_allocated - allocation.quantity_used
        if quantity_used > remaining:
            raise InvalidQuantityError(
                "quantity_used", quantity_used, f"exceeds remaining allocation of {remaining}",
            )

        allocation.quantity_used += quantity_used
        self.session.flush()

        logger.info(
            "project_usage_recorded",
            extra={
                "project_id": str(project_id),
                "allocation_id": str(allocation_id),
                "quantity_used": allocation.quantity_used,
                "quantity_allocated": allocation.quantity_allocated,
            },
        )
        return ProjectAllocationInfo.from_model(allocation)
