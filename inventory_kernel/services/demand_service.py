"""
DemandService -- minimal lifecycle for projects and maintenance records.

Projects and maintenance jobs are owned by other parts of the business; the
kernel only needs them to exist, to be active, and to own the sub-lists that
AllocationService appends to.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import MaintenanceInfo, ProjectInfo, require_non_negative_money
from inventory_kernel.domain.roles import RolePolicy, require_role
from inventory_kernel.domain.values import Actor
from inventory_kernel.exceptions import MaintenanceRecordNotFoundError, ProjectNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.maintenance import MaintenanceRecord
from inventory_kernel.models.project import Project
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.demand")


def load_active_project(session: Session, project_id: UUID, for_update: bool = False) -> Project:
    """Fetch an active project or raise ProjectNotFoundError."""
    stmt = select(Project).where(Project.id == project_id)
    if for_update:
        stmt = stmt.with_for_update()
    project = session.execute(stmt).scalar_one_or_none()
    if project is None or not project.is_active:
        raise ProjectNotFoundError(str(project_id))
    return project


def load_active_maintenance(
    session: Session, maintenance_id: UUID, for_update: bool = False,
) -> MaintenanceRecord:
    """Fetch an active maintenance record or raise MaintenanceRecordNotFoundError."""
    stmt = select(MaintenanceRecord).where(MaintenanceRecord.id == maintenance_id)
    if for_update:
        stmt = stmt.with_for_update()
    record = session.execute(stmt).scalar_one_or_none()
    if record is None or not record.is_active:
        raise MaintenanceRecordNotFoundError(str(maintenance_id))
    return record


class DemandService(BaseService[Project]):
    """Creates and retires the records that consume stock."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        roles: RolePolicy | None = None,
    ):
        super().__init__(session, clock, roles)
        self._sequences = SequenceService(session)

    def create_project(self, name: str, actor: Actor) -> ProjectInfo:
        require_role(actor, self.roles.bom_editors, "create project")
        project = Project(
            project_code=self._sequences.next_code(SequenceService.PROJECT),
            name=name,
            created_by_id=actor.id,
        )
        self.session.add(project)
        self.session.flush()
        logger.info(
            "project_created",
            extra={"project_id": str(project.id), "project_code": project.project_code},
        )
        return ProjectInfo.from_model(project)

    def deactivate_project(self, project_id: UUID, actor: Actor) -> ProjectInfo:
        require_role(actor, self.roles.deleters, "deactivate project")
        project = load_active_project(self.session, project_id)
        project.is_active = False
        project.updated_by_id = actor.id
        self.session.flush()
        logger.info("project_deactivated", extra={"project_id": str(project_id)})
        return ProjectInfo.from_model(project)

    def create_maintenance_record(
        self,
        machine_no: str,
        machine_name: str,
        actor: Actor,
        labor_cost: Decimal = Decimal("0"),
    ) -> MaintenanceInfo:
        require_role(actor, self.roles.stock_operators, "create maintenance record")
        labor_cost = require_non_negative_money("labor_cost", labor_cost)
        record = MaintenanceRecord(
            maintenance_code=self._sequences.next_code(SequenceService.MAINTENANCE),
            machine_no=machine_no,
            machine_name=machine_name,
            labor_cost=labor_cost,
            total_cost=labor_cost,
            created_by_id=actor.id,
        )
        self.session.add(record)
        self.session.flush()
        logger.info(
            "maintenance_record_created",
            extra={
                "maintenance_id": str(record.id),
                "maintenance_code": record.maintenance_code,
                "machine_no": machine_no,
            },
        )
        return MaintenanceInfo.from_model(record)

    def deactivate_maintenance_record(self, maintenance_id: UUID, actor: Actor) -> MaintenanceInfo:
        require_role(actor, self.roles.deleters, "deactivate maintenance record")
        record = load_active_maintenance(self.session, maintenance_id)
        record.is_active = False
        record.updated_by_id = actor.id
        self.session.flush()
        logger.info("maintenance_record_deactivated", extra={"maintenance_id": str(maintenance_id)})
        return MaintenanceInfo.from_model(record)
