"""
BOMService -- persistence for the Bill of Materials lifecycle.

Responsibility:
    Typed commands that create, edit, approve, retire and supersede BOMs.
    Every status decision is delegated to ``domain.bom_lifecycle``; this
    service loads rows, applies the decision, keeps derived fields
    (version, total_cost, revision history) consistent and flushes.

    Release is NOT here: it moves stock and lives in ReleaseCoordinator.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.

Invariants enforced:
    - total_cost == sum(line.total_cost) after every mutation.
    - Every effective line edit appends a BOMRevision naming the version
      being replaced and bumps the minor version.  Submitting identical
      lines is a no-op.
    - Released and obsolete BOMs reject edits and deletes.
    - Optimistic locking: commands accept expected_row_version, and the
      ORM's version_id_col catches writers that raced past the check.

Failure modes:
    - BOMNotFoundError, ProjectNotFoundError, MaterialNotFoundError.
    - EmptyBOMError, InvalidQuantityError, InvalidVersionError,
      InvalidEnumValueError.
    - InvalidStateTransitionError / BOMReleasedError.
    - ConcurrentModificationError.
    - UnauthorizedActorError.

Audit relevance:
    approved_by/approved_at and the revision rows record who changed what.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.db.types import line_total
from inventory_kernel.domain.bom_lifecycle import (
    FROZEN_STATUSES,
    INITIAL_VERSION,
    check_transition,
    compute_total_cost,
    next_major_version,
    next_minor_version,
    parse_version,
)
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import BOMInfo, BOMLineInfo, BOMLineSpec
from inventory_kernel.domain.roles import RolePolicy, require_role
from inventory_kernel.domain.values import Actor, BOMStatus, UnitOfMeasure, parse_enum
from inventory_kernel.exceptions import (
    BOMNotFoundError,
    EmptyBOMError,
    InvalidStateTransitionError,
    MaterialNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.bom import BillOfMaterials, BOMLine, BOMRevision
from inventory_kernel.models.material import Material
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.demand_service import load_active_project
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.bom")

DEFAULT_CHANGE_DESCRIPTION = "Materials updated"


def load_active_bom(session: Session, bom_id: UUID, for_update: bool = False) -> BillOfMaterials:
    """Fetch an active BOM (refreshed from the database) or raise BOMNotFoundError."""
    stmt = (
        select(BillOfMaterials)
        .where(BillOfMaterials.id == bom_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    bom = session.execute(stmt).scalar_one_or_none()
    if bom is None or not bom.is_active:
        raise BOMNotFoundError(str(bom_id))
    return bom


def _line_signature(line: BOMLine) -> tuple:
    return (
        line.material_id,
        line.quantity,
        line.unit,
        line.unit_cost,
        line.supplier,
        line.lead_time_days,
        line.notes,
        line.is_alternative,
        line.parent_material_id,
    )


class BOMService(BaseService[BillOfMaterials]):
    """
    BOM commands other than release.

    Non-goals:
        - Does NOT deduct stock (ReleaseCoordinator does).
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        roles: RolePolicy | None = None,
    ):
        super().__init__(session, clock, roles)
        self._sequences = SequenceService(session)

    # -------------------------------------------------------------------------
    # Line construction
    # -------------------------------------------------------------------------

    def _build_lines(self, specs: Iterable[BOMLineSpec]) -> list[BOMLine]:
        """
        Turn command lines into BOMLine rows, defaulting unit, unit cost and
        supplier from the referenced material.
        """
        specs = list(specs)
        if not specs:
            raise EmptyBOMError()

        wanted = {spec.material_id for spec in specs}
        wanted |= {spec.parent_material_id for spec in specs if spec.parent_material_id}
        materials = {
            material.id: material
            for material in self.session.execute(
                select(Material).where(Material.id.in_(wanted))
            ).scalars()
            if material.is_active
        }
        for material_id in wanted:
            if material_id not in materials:
                raise MaterialNotFoundError(str(material_id))

        lines = []
        for line_no, spec in enumerate(specs, start=1):
            material = materials[spec.material_id]
            unit_cost = spec.unit_cost if spec.unit_cost is not None else material.unit_price
            lines.append(
                BOMLine(
                    line_no=line_no,
                    material_id=material.id,
                    quantity=spec.quantity,
                    unit=(
                        parse_enum(UnitOfMeasure, spec.unit, "unit")
                        if spec.unit is not None else material.unit
                    ),
                    unit_cost=unit_cost,
                    total_cost=line_total(spec.quantity, unit_cost),
                    supplier=spec.supplier if spec.supplier is not None else material.supplier_name,
                    lead_time_days=spec.lead_time_days,
                    notes=spec.notes,
                    is_alternative=spec.is_alternative,
                    parent_material_id=spec.parent_material_id,
                )
            )
        return lines

    def _new_bom(
        self,
        project_id: UUID,
        lines: list[BOMLine],
        version: str,
        actor: Actor,
        notes: str | None,
    ) -> BillOfMaterials:
        bom = BillOfMaterials(
            bom_code=self._sequences.next_code(SequenceService.BOM),
            project_id=project_id,
            version=version,
            status=BOMStatus.DRAFT,
            total_cost=compute_total_cost(line.total_cost for line in lines),
            notes=notes,
            created_by_id=actor.id,
        )
        bom.lines.extend(lines)
        self.session.add(bom)
        return bom

    def _append_revision(
        self,
        bom: BillOfMaterials,
        description: str,
        actor: Actor,
        version: str | None = None,
    ) -> None:
        """Record a change.  ``version`` is the version being replaced."""
        bom.revisions.append(
            BOMRevision(
                revision_no=len(bom.revisions) + 1,
                version=version or bom.version,
                change_description=description,
                changed_by_id=actor.id,
                change_date=self.clock.now(),
            )
        )

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def create_bom(
        self,
        project_id: UUID,
        lines: Iterable[BOMLineSpec],
        actor: Actor,
        notes: str | None = None,
        version: str | None = None,
    ) -> BOMInfo:
        """
        Create a Draft BOM for a project.

        Args:
            version: Starting version, "1.0" when omitted.
        """
        require_role(actor, self.roles.bom_editors, "create BOM")
        version = version or INITIAL_VERSION
        parse_version(version)
        project = load_active_project(self.session, project_id)

        bom = self._new_bom(project.id, self._build_lines(lines), version, actor, notes)
        self.session.flush()

        logger.info(
            "bom_created",
            extra={
                "bom_id": str(bom.id),
                "bom_code": bom.bom_code,
                "project_id": str(project.id),
                "version": bom.version,
                "line_count": len(bom.lines),
                "total_cost": bom.total_cost,
            },
        )
        return BOMInfo.from_model(bom)

    def update_lines(
        self,
        bom_id: UUID,
        lines: Iterable[BOMLineSpec],
        actor: Actor,
        change_description: str = DEFAULT_CHANGE_DESCRIPTION,
        expected_row_version: int | None = None,
    ) -> BOMInfo:
        """
        Replace a BOM's lines.

        Records the outgoing version in the revision history, bumps the
        minor version and recomputes total_cost.  Identical lines change
        nothing.
        """
        require_role(actor, self.roles.bom_editors, "edit BOM")
        bom = load_active_bom(self.session, bom_id, for_update=True)
        check_transition(str(bom_id), bom.status, "edit_lines")
        self._check_row_version("BillOfMaterials", bom, expected_row_version)

        new_lines = self._build_lines(lines)
        if [_line_signature(line) for line in new_lines] == [
            _line_signature(line) for line in bom.lines
        ]:
            return BOMInfo.from_model(bom)

        previous_version = bom.version
        with self._flush_guard("BillOfMaterials", bom_id):
            self._append_revision(bom, change_description, actor)
            # Old rows must be gone before new ones reuse their line numbers
            bom.lines.clear()
            self.session.flush()
            bom.lines.extend(new_lines)
            bom.version = next_minor_version(bom.version)
            bom.total_cost = compute_total_cost(line.total_cost for line in new_lines)
            bom.updated_by_id = actor.id
            self.session.flush()

        logger.info(
            "bom_lines_updated",
            extra={
                "bom_id": str(bom_id),
                "previous_version": previous_version,
                "version": bom.version,
                "line_count": len(new_lines),
                "total_cost": bom.total_cost,
            },
        )
        return BOMInfo.from_model(bom)

    def update_notes(
        self,
        bom_id: UUID,
        notes: str | None,
        actor: Actor,
        expected_row_version: int | None = None,
    ) -> BOMInfo:
        require_role(actor, self.roles.bom_editors, "edit BOM")
        bom = load_active_bom(self.session, bom_id, for_update=True)
        check_transition(str(bom_id), bom.status, "edit_notes")
        self._check_row_version("BillOfMaterials", bom, expected_row_version)

        bom.notes = notes
        bom.updated_by_id = actor.id
        with self._flush_guard("BillOfMaterials", bom_id):
            self.session.flush()
        logger.info("bom_notes_updated", extra={"bom_id": str(bom_id)})
        return BOMInfo.from_model(bom)

    def approve(
        self,
        bom_id: UUID,
        actor: Actor,
        expected_row_version: int | None = None,
    ) -> BOMInfo:
        """Draft -> Approved.  Stamps approver and time."""
        require_role(actor, self.roles.bom_approvers, "approve BOM")
        with LogContext.bind(bom_id=str(bom_id), actor_id=str(actor.id), operation="approve"):
            bom = load_active_bom(self.session, bom_id, for_update=True)
            self._check_row_version("BillOfMaterials", bom, expected_row_version)
            bom.status = check_transition(str(bom_id), bom.status, "approve")

            bom.approved_by_id = actor.id
            bom.approved_at = self.clock.now()
            bom.updated_by_id = actor.id
            with self._flush_guard("BillOfMaterials", bom_id):
                self.session.flush()

            logger.info(
                "bom_approved",
                extra={"bom_code": bom.bom_code, "version": bom.version},
            )
        return BOMInfo.from_model(bom)

    def soft_delete(
        self,
        bom_id: UUID,
        actor: Actor,
        expected_row_version: int | None = None,
    ) -> BOMInfo:
        """Hide a Draft or Approved BOM.  Released BOMs cannot be deleted."""
        require_role(actor, self.roles.deleters, "delete BOM")
        bom = load_active_bom(self.session, bom_id, for_update=True)
        check_transition(str(bom_id), bom.status, "soft_delete")
        self._check_row_version("BillOfMaterials", bom, expected_row_version)

        bom.is_active = False
        bom.updated_by_id = actor.id
        with self._flush_guard("BillOfMaterials", bom_id):
            self.session.flush()
        logger.info("bom_soft_deleted", extra={"bom_id": str(bom_id), "bom_code": bom.bom_code})
        return BOMInfo.from_model(bom)

    def mark_obsolete(
        self,
        bom_id: UUID,
        actor: Actor,
        expected_row_version: int | None = None,
    ) -> BOMInfo:
        """Released -> Obsolete.  Stock already deducted stays deducted."""
        require_role(actor, self.roles.bom_approvers, "retire BOM")
        bom = load_active_bom(self.session, bom_id, for_update=True)
        self._check_row_version("BillOfMaterials", bom, expected_row_version)
        bom.status = check_transition(str(bom_id), bom.status, "obsolete")

        bom.updated_by_id = actor.id
        with self._flush_guard("BillOfMaterials", bom_id):
            self.session.flush()
        logger.info("bom_obsoleted", extra={"bom_id": str(bom_id), "bom_code": bom.bom_code})
        return BOMInfo.from_model(bom)

    def create_new_version(
        self,
        bom_id: UUID,
        actor: Actor,
        lines: Iterable[BOMLineSpec] | None = None,
        notes: str | None = None,
    ) -> BOMInfo:
        """
        Supersede a released (or obsolete) BOM with a new Draft.

        The new BOM belongs to the same project, gets the next major version
        and starts from the source's lines unless ``lines`` is given.  Unit
        costs are carried over as stored, not re-read from the materials.
        """
        require_role(actor, self.roles.bom_editors, "create BOM version")
        source = load_active_bom(self.session, bom_id, for_update=True)
        if source.status not in FROZEN_STATUSES:
            raise InvalidStateTransitionError(str(bom_id), source.status.value, "create new version")

        if lines is None:
            lines = [BOMLineInfo.from_model(line).as_spec() for line in source.lines]
        new_bom = self._new_bom(
            source.project_id,
            self._build_lines(lines),
            next_major_version(source.version),
            actor,
            notes if notes is not None else source.notes,
        )
        self.session.flush()
        self._append_revision(
            new_bom,
            f"Supersedes {source.bom_code} v{source.version}",
            actor,
            version=source.version,
        )

        source.superseded_by_id = new_bom.id
        source.updated_by_id = actor.id
        with self._flush_guard("BillOfMaterials", bom_id):
            self.session.flush()

        logger.info(
            "bom_version_created",
            extra={
                "source_bom_id": str(bom_id),
                "bom_id": str(new_bom.id),
                "bom_code": new_bom.bom_code,
                "version": new_bom.version,
            },
        )
        return BOMInfo.from_model(new_bom)
