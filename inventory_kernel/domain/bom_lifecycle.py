"""
BOM Lifecycle -- Pure state machine, versioning and cost rules for BOMs.

Responsibility:
    Declares which status changes a Bill of Materials may undergo, which
    statuses accept line edits, how the dotted ``major.minor`` version
    advances, and how the BOM total is derived from its lines.  Persistence
    lives in ``services.bom_service``; this module only decides.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - Status moves forward only: draft -> approved -> released -> obsolete.
      There is no un-approve and no un-release.
    - Released and obsolete BOMs reject every line edit and soft delete.
    - Every line edit bumps the minor version; a new BOM generation bumps
      the major version and resets minor to 0.
    - total_cost == sum(line.total_cost), never set independently.

Failure modes:
    - NotApprovedError: release requested from draft.
    - AlreadyReleasedError: release requested from released or obsolete.
    - BOMReleasedError: edit or delete requested on a frozen BOM.
    - InvalidStateTransitionError: any other undeclared transition.
    - InvalidVersionError: version string is not ``<int>.<int>``.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Iterable

from inventory_kernel.domain.values import BOMStatus
from inventory_kernel.domain.workflow import Guard, Transition, Workflow
from inventory_kernel.exceptions import (
    AlreadyReleasedError,
    BOMReleasedError,
    InvalidStateTransitionError,
    InvalidVersionError,
    NotApprovedError,
)

INITIAL_VERSION = "1.0"

EDITABLE_STATUSES: frozenset[BOMStatus] = frozenset({
    BOMStatus.DRAFT,
    BOMStatus.APPROVED,
})

FROZEN_STATUSES: frozenset[BOMStatus] = frozenset({
    BOMStatus.RELEASED,
    BOMStatus.OBSOLETE,
})

# Actions that modify a BOM in place
EDIT_ACTIONS = frozenset({"edit_lines", "edit_notes", "soft_delete"})

_APPROVER_GUARD = Guard(
    name="approver_role",
    description="Actor holds an approving role",
)
_STOCK_GUARD = Guard(
    name="stock_available",
    description="Every line can be satisfied from available stock",
)

BOM_WORKFLOW = Workflow(
    name="bill_of_materials",
    description="Bill of Materials approval and release",
    initial_state=BOMStatus.DRAFT.value,
    states=tuple(status.value for status in BOMStatus),
    transitions=(
        Transition("draft", "approved", action="approve", guard=_APPROVER_GUARD),
        Transition("approved", "released", action="release", guard=_STOCK_GUARD, moves_stock=True),
        Transition("released", "obsolete", action="obsolete"),
        Transition("draft", "draft", action="edit_lines"),
        Transition("approved", "approved", action="edit_lines"),
        Transition("draft", "draft", action="edit_notes"),
        Transition("approved", "approved", action="edit_notes"),
        Transition("draft", "draft", action="soft_delete"),
        Transition("approved", "approved", action="soft_delete"),
    ),
    terminal_states=("obsolete",),
)


def check_release(bom_id: str, current: BOMStatus) -> BOMStatus:
    """
    Guard for the release event; returns the target status.

    Re-releasing is rejected rather than re-applied so stock is never
    deducted twice for the same BOM.
    """
    if current == BOMStatus.APPROVED:
        return BOMStatus.RELEASED
    if current == BOMStatus.DRAFT:
        raise NotApprovedError(bom_id, current.value)
    raise AlreadyReleasedError(bom_id, current.value)


def check_transition(bom_id: str, current: BOMStatus, action: str) -> BOMStatus:
    """
    Resolve ``action`` from ``current`` against the BOM workflow.

    Returns:
        The status the BOM will be in after the action.

    Raises:
        BOMReleasedError: line edit or soft delete on a frozen BOM.
        InvalidStateTransitionError: action not declared from ``current``.
    """
    if action == "release":
        return check_release(bom_id, current)

    transition = BOM_WORKFLOW.find(current.value, action)
    if transition is None:
        if current in FROZEN_STATUSES and action in EDIT_ACTIONS:
            raise BOMReleasedError(bom_id, action, current.value)
        raise InvalidStateTransitionError(bom_id, current.value, action)
    return BOMStatus(transition.to_state)


_VERSION_RE = re.compile(r"^(\d+)\.(\d+)$")


def parse_version(version: str) -> tuple[int, int]:
    """Split ``"major.minor"`` into integers."""
    match = _VERSION_RE.match(version or "")
    if match is None:
        raise InvalidVersionError(version)
    return int(match.group(1)), int(match.group(2))


def next_minor_version(version: str) -> str:
    """``"1.3"`` -> ``"1.4"``.  Used on every line edit."""
    major, minor = parse_version(version)
    return f"{major}.{minor + 1}"


def next_major_version(version: str) -> str:
    """``"1.3"`` -> ``"2.0"``.  Used when superseding a released BOM."""
    major, _ = parse_version(version)
    return f"{major + 1}.0"


def compute_total_cost(line_totals: Iterable[Decimal]) -> Decimal:
    """BOM total: the sum of its line totals (zero for no lines)."""
    return sum(line_totals, Decimal("0"))
