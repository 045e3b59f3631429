"""
Batch stock validation shared by allocation, maintenance usage and release.

Responsibility:
    Sums a batch per material, locks the material rows and reports every
    line the current stock cannot satisfy.

Architecture position:
    Kernel > Services.  Reads and locks; never mutates quantities.

Invariants enforced:
    - Rows are locked in id order, so two batches over the same materials
      cannot deadlock.
    - Locked rows are refreshed from the database (populate_existing), so
      validation never trusts a stale identity map.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import Shortfall
from inventory_kernel.models.material import Material


def aggregate(lines: Iterable[tuple[UUID, int]]) -> dict[UUID, int]:
    """Sum quantities per material, keeping first-seen order."""
    totals: dict[UUID, int] = {}
    for material_id, quantity in lines:
        totals[material_id] = totals.get(material_id, 0) + quantity
    return totals


def lock_materials(session: Session, material_ids: Iterable[UUID]) -> dict[UUID, Material]:
    """
    Load and lock the given materials, refreshed from the database.

    Inactive materials are returned too; the caller decides how to report
    them.
    """
    ids = sorted(set(material_ids), key=str)
    rows = session.execute(
        select(Material)
        .where(Material.id.in_(ids))
        .order_by(Material.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars()
    return {material.id: material for material in rows}


def find_shortfalls(
    required: dict[UUID, int],
    materials: dict[UUID, Material],
) -> list[Shortfall]:
    """Every line that cannot be satisfied, missing materials included."""
    shortfalls = []
    for material_id, quantity in required.items():
        material = materials.get(material_id)
        if material is None or not material.is_active:
            shortfalls.append(
                Shortfall(
                    material_id=material_id,
                    material_name=str(material_id),
                    serial_number=None,
                    required=quantity,
                    available=0,
                    missing=True,
                )
            )
        elif material.quantity_available < quantity:
            shortfalls.append(
                Shortfall(
                    material_id=material.id,
                    material_name=material.name,
                    serial_number=material.serial_number,
                    required=quantity,
                    available=material.quantity_available,
                )
            )
    return shortfalls
