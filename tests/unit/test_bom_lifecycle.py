"""Pure BOM state machine, versioning and total cost rules."""

from decimal import Decimal

import pytest

from inventory_kernel.domain.bom_lifecycle import (
    BOM_WORKFLOW,
    EDITABLE_STATUSES,
    FROZEN_STATUSES,
    check_release,
    check_transition,
    compute_total_cost,
    next_major_version,
    next_minor_version,
    parse_version,
)
from inventory_kernel.domain.values import BOMStatus
from inventory_kernel.exceptions import (
    AlreadyReleasedError,
    BOMReleasedError,
    InvalidStateTransitionError,
    InvalidVersionError,
    NotApprovedError,
)


class TestTransitions:

    @pytest.mark.parametrize(
        "current, action, target",
        [
            (BOMStatus.DRAFT, "approve", BOMStatus.APPROVED),
            (BOMStatus.APPROVED, "release", BOMStatus.RELEASED),
            (BOMStatus.RELEASED, "obsolete", BOMStatus.OBSOLETE),
        ],
    )
    def test_forward_moves_allowed(self, current, action, target):
        assert check_transition("b1", current, action) == target

    @pytest.mark.parametrize(
        "current, action",
        [
            (BOMStatus.RELEASED, "approve"),
            (BOMStatus.OBSOLETE, "approve"),
            (BOMStatus.APPROVED, "obsolete"),
            (BOMStatus.OBSOLETE, "obsolete"),
        ],
    )
    def test_backward_and_skipping_moves_rejected(self, current, action):
        with pytest.raises(InvalidStateTransitionError):
            check_transition("b1", current, action)

    def test_approve_from_draft(self):
        assert check_transition("b1", BOMStatus.DRAFT, "approve") == BOMStatus.APPROVED

    def test_approve_twice_rejected(self):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            check_transition("b1", BOMStatus.APPROVED, "approve")
        assert exc_info.value.current_status == "approved"
        assert exc_info.value.requested == "approve"

    def test_obsolete_only_from_released(self):
        assert check_transition("b1", BOMStatus.RELEASED, "obsolete") == BOMStatus.OBSOLETE
        with pytest.raises(InvalidStateTransitionError):
            check_transition("b1", BOMStatus.DRAFT, "obsolete")

    @pytest.mark.parametrize("status", sorted(EDITABLE_STATUSES))
    @pytest.mark.parametrize("action", ["edit_lines", "edit_notes", "soft_delete"])
    def test_edits_keep_status_while_editable(self, status, action):
        assert check_transition("b1", status, action) == status

    @pytest.mark.parametrize("status", sorted(FROZEN_STATUSES))
    @pytest.mark.parametrize("action", ["edit_lines", "edit_notes", "soft_delete"])
    def test_edits_of_frozen_bom_rejected(self, status, action):
        with pytest.raises(BOMReleasedError) as exc_info:
            check_transition("b1", status, action)
        assert exc_info.value.code == "BOM_RELEASED"
        assert isinstance(exc_info.value, InvalidStateTransitionError)

    def test_unknown_action_rejected(self):
        with pytest.raises(InvalidStateTransitionError):
            check_transition("b1", BOMStatus.DRAFT, "archive")


class TestReleaseGuard:

    def test_approved_releases(self):
        assert check_release("b1", BOMStatus.APPROVED) == BOMStatus.RELEASED

    def test_draft_not_approved(self):
        with pytest.raises(NotApprovedError) as exc_info:
            check_release("b1", BOMStatus.DRAFT)
        assert exc_info.value.code == "BOM_NOT_APPROVED"

    @pytest.mark.parametrize("status", [BOMStatus.RELEASED, BOMStatus.OBSOLETE])
    def test_second_release_rejected(self, status):
        with pytest.raises(AlreadyReleasedError):
            check_release("b1", status)

    def test_release_routed_through_check_transition(self):
        with pytest.raises(NotApprovedError):
            check_transition("b1", BOMStatus.DRAFT, "release")


class TestWorkflowDeclaration:

    def test_only_release_moves_stock(self):
        moving = [t.action for t in BOM_WORKFLOW.transitions if t.moves_stock]
        assert moving == ["release"]

    def test_obsolete_is_terminal(self):
        assert BOM_WORKFLOW.actions_from("obsolete") == ()

    def test_every_status_is_a_state(self):
        assert set(BOM_WORKFLOW.states) == {status.value for status in BOMStatus}


class TestVersioning:

    def test_parse(self):
        assert parse_version("1.0") == (1, 0)
        assert parse_version("12.34") == (12, 34)

    @pytest.mark.parametrize("bad", ["", "1", "1.0.0", "v1.0", "a.b", "1.-1"])
    def test_invalid_versions(self, bad):
        with pytest.raises(InvalidVersionError):
            parse_version(bad)

    def test_minor_bump(self):
        assert next_minor_version("1.0") == "1.1"
        assert next_minor_version("1.9") == "1.10"

    def test_major_bump_resets_minor(self):
        assert next_major_version("1.7") == "2.0"


class TestTotalCost:

    def test_sum_of_lines(self):
        assert compute_total_cost([Decimal("10.00"), Decimal("2.50")]) == Decimal("12.50")

    def test_empty_is_zero(self):
        assert compute_total_cost([]) == Decimal("0")
