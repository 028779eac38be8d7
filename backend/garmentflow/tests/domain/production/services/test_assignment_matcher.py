"""
Tests for the AssignmentMatcher: ranking, suggestions, proposals, bulk
confirm, self-assignment and the concurrent-claim race.
"""

import asyncio
from uuid import uuid4

import pytest

from garmentflow.domain.production.entities import WorkItem
from garmentflow.domain.production.events import OperatorReleased
from garmentflow.domain.production.services import rank_operators, suggest_assignments
from garmentflow.domain.production.value_objects import (
    ApprovalState,
    AssignmentMethod,
    WorkItemStatus,
)
from garmentflow.domain.shared.exceptions import (
    AlreadyAssignedError,
    AssignmentConflictError,
    IncompatibleAssignmentError,
    InvalidTransitionError,
    NotAuthorizedError,
)
from garmentflow.tests.factories import (
    TEMPLATE_ID,
    RecordingHandler,
    make_item,
    make_operator,
    operator_actor,
    supervisor,
)


async def _cut_item(container, sup, lot_number="LOT-1"):
    created = await container.lot_service.create_lot(lot_number, TEMPLATE_ID, 30, sup)
    return next(i for i in created.work_items if i.operation_id == "cut")


async def _load(container, operator_id):
    return (await container.operator_repository.get_by_id(operator_id)).current_load


class TestRanking:
    """Test the pure ranking and suggestion functions."""

    def test_compatible_least_loaded_first(self):
        operators = [
            make_operator("busy", "cutting", current_load=2, max_load=3),
            make_operator("idle", "cutting", current_load=0, max_load=3),
            make_operator("sewer", "overlock"),
            make_operator("fast", "cutting", current_load=0, max_load=3, efficiency=1.5),
        ]

        ranking = rank_operators("cutting", operators)

        assert [r.operator_id for r in ranking] == ["fast", "idle", "busy", "sewer"]
        assert [r.compatible for r in ranking] == [True, True, True, False]

    def test_suggestions_respect_max_load(self):
        items = [make_item(sequence=n) for n in range(3)]
        operators = [make_operator("solo", "cutting", max_load=2)]

        pairs = suggest_assignments(items, operators)

        assert len(pairs) == 2
        assert {op.id for _, op in pairs} == {"solo"}

    def test_suggestions_skip_incompatible(self):
        pairs = suggest_assignments(
            [make_item()], [make_operator("sewer", "overlock"), make_operator("off", "cutting", active=False)]
        )

        assert pairs == []

    def test_suggestions_spread_load(self):
        items = [make_item(sequence=n) for n in range(2)]
        operators = [make_operator("a", "cutting"), make_operator("b", "cutting")]

        pairs = suggest_assignments(items, operators)

        assert sorted(op.id for _, op in pairs) == ["a", "b"]


@pytest.mark.asyncio
class TestAssign:
    """Test direct assignment."""

    async def test_assign_reserves_load(self, container, sup):
        cut = await _cut_item(container, sup)

        assigned = await container.assignment_matcher.assign(cut.id, "op-cut", sup)

        assert assigned.status == WorkItemStatus.ASSIGNED
        assert assigned.assigned_operator_id == "op-cut"
        assert assigned.version == cut.version + 1
        assert await _load(container, "op-cut") == 1
        active = await container.assignment_repository.get_active_for(cut.id)
        assert active.approval_state == ApprovalState.CONFIRMED
        assert active.method == AssignmentMethod.MANUAL

    async def test_concurrent_assign_has_one_winner(self, container):
        sup_a, sup_b = supervisor("sup-a"), supervisor("sup-b")
        cut = await _cut_item(container, sup_a)

        results = await asyncio.gather(
            container.assignment_matcher.assign(cut.id, "op-cut", sup_a),
            container.assignment_matcher.assign(cut.id, "op-multi", sup_b),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, WorkItem)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], AlreadyAssignedError)

        stored = await container.workflow_service.get_work_item(cut.id)
        winner_id = winners[0].assigned_operator_id
        loser_id = "op-multi" if winner_id == "op-cut" else "op-cut"
        assert stored.assigned_operator_id == winner_id
        assert stored.version == cut.version + 1
        assert await _load(container, winner_id) == 1
        assert await _load(container, loser_id) == 0
        history = await container.assignment_repository.get_for_work_item(cut.id)
        assert len(history) == 1

    async def test_assign_taken_item(self, container, sup):
        cut = await _cut_item(container, sup)
        await container.assignment_matcher.assign(cut.id, "op-cut", sup)

        with pytest.raises(AlreadyAssignedError) as exc_info:
            await container.assignment_matcher.assign(cut.id, "op-multi", sup)

        assert exc_info.value.details["assigned_operator_id"] == "op-cut"

    async def test_incompatible_operator(self, container, sup):
        cut = await _cut_item(container, sup)

        with pytest.raises(IncompatibleAssignmentError):
            await container.assignment_matcher.assign(cut.id, "op-sew", sup)

        assert await _load(container, "op-sew") == 0
        stored = await container.workflow_service.get_work_item(cut.id)
        assert stored.status == WorkItemStatus.READY

    async def test_inactive_operator(self, container, sup):
        cut = await _cut_item(container, sup)

        with pytest.raises(IncompatibleAssignmentError) as exc_info:
            await container.assignment_matcher.assign(cut.id, "op-off", sup)

        assert exc_info.value.details["reason"] == "operator is inactive"

    async def test_multi_skill_operator_takes_anything(self, container, sup):
        cut = await _cut_item(container, sup)

        assigned = await container.assignment_matcher.assign(cut.id, "op-multi", sup)

        assert assigned.assigned_operator_id == "op-multi"

    async def test_pending_item_cannot_be_assigned(self, container, sup):
        created = await container.lot_service.create_lot("LOT-1", TEMPLATE_ID, 30, sup)
        join = next(i for i in created.work_items if i.operation_id == "join")

        with pytest.raises(InvalidTransitionError):
            await container.assignment_matcher.assign(join.id, "op-sew", sup)

    async def test_operator_cannot_assign_others(self, container, sup, cutter):
        cut = await _cut_item(container, sup)

        with pytest.raises(NotAuthorizedError):
            await container.assignment_matcher.assign(cut.id, "op-multi", cutter)

    async def test_assigning_oneself_requests_approval(self, container, sup, cutter):
        cut = await _cut_item(container, sup)

        item = await container.assignment_matcher.assign(cut.id, "op-cut", cutter)

        assert item.status == WorkItemStatus.SELF_ASSIGNED


@pytest.mark.asyncio
class TestProposals:
    """Test propose, confirm, withdraw, suggest and bulk confirm."""

    async def test_propose_then_confirm(self, container, sup):
        cut = await _cut_item(container, sup)

        proposal = await container.assignment_matcher.propose(cut.id, "op-cut", sup)
        assert proposal.approval_state == ApprovalState.PROPOSED
        assert await _load(container, "op-cut") == 0

        item = await container.assignment_matcher.confirm(proposal.id, sup)

        assert item.status == WorkItemStatus.ASSIGNED
        assert await _load(container, "op-cut") == 1
        stored = await container.assignment_repository.get_by_id(proposal.id)
        assert stored.approval_state == ApprovalState.CONFIRMED

    async def test_second_proposal_conflicts(self, container, sup):
        cut = await _cut_item(container, sup)
        await container.assignment_matcher.propose(cut.id, "op-cut", sup)

        with pytest.raises(AssignmentConflictError):
            await container.assignment_matcher.propose(cut.id, "op-multi", sup)

    async def test_assign_over_open_proposal(self, container, sup):
        cut = await _cut_item(container, sup)
        proposal = await container.assignment_matcher.propose(cut.id, "op-cut", sup)

        with pytest.raises(AssignmentConflictError):
            await container.assignment_matcher.assign(cut.id, "op-multi", sup)

        item = await container.assignment_matcher.assign(cut.id, "op-cut", sup)
        assert item.assigned_operator_id == "op-cut"
        stored = await container.assignment_repository.get_by_id(proposal.id)
        assert stored.approval_state == ApprovalState.CONFIRMED

    async def test_withdraw(self, container, sup):
        cut = await _cut_item(container, sup)
        proposal = await container.assignment_matcher.propose(cut.id, "op-cut", sup)

        withdrawn = await container.assignment_matcher.withdraw(proposal.id, sup, "replanned")

        assert withdrawn.approval_state == ApprovalState.WITHDRAWN
        assert await container.assignment_repository.get_active_for(cut.id) is None
        with pytest.raises(InvalidTransitionError):
            await container.assignment_matcher.confirm(proposal.id, sup)

    async def test_suggest_records_proposals(self, container, sup):
        await _cut_item(container, sup, "LOT-1")
        await _cut_item(container, sup, "LOT-2")

        proposals = await container.assignment_matcher.suggest(sup)

        assert len(proposals) == 2
        assert all(p.method == AssignmentMethod.MATCHER for p in proposals)
        assert {p.operator_id for p in proposals} <= {"op-cut", "op-multi"}

        again = await container.assignment_matcher.suggest(sup)
        assert again == []

    async def test_bulk_confirm_reports_each_item(self, container, sup):
        first = await _cut_item(container, sup, "LOT-1")
        second = await _cut_item(container, sup, "LOT-2")
        p1 = await container.assignment_matcher.propose(first.id, "op-cut", sup)
        p2 = await container.assignment_matcher.propose(second.id, "op-multi", sup)
        # Blocking withdraws the open proposal, making p2 stale
        await container.workflow_service.block(second.id, "fabric hold", sup)
        missing = uuid4()

        result = await container.assignment_matcher.bulk_confirm([p1.id, p2.id, missing], sup)

        assert [o.success for o in result.outcomes] == [True, False, False]
        assert result.outcomes[0].work_item_id == first.id
        assert result.outcomes[1].error_type == "invalid_transition"
        assert result.outcomes[1].work_item_id == second.id
        assert result.outcomes[2].error_type == "not_found"
        assert len(result.committed) == 1
        assert len(result.failed) == 2

        stored = await container.workflow_service.get_work_item(first.id)
        assert stored.status == WorkItemStatus.ASSIGNED
        assignment = await container.assignment_repository.get_by_id(p1.id)
        assert assignment.method == AssignmentMethod.BULK


@pytest.mark.asyncio
class TestSelfAssignment:
    """Test the self-assignment approval protocol."""

    async def test_approve(self, container, sup, cutter):
        cut = await _cut_item(container, sup)

        claimed = await container.assignment_matcher.self_assign(cut.id, cutter)
        assert claimed.status == WorkItemStatus.SELF_ASSIGNED
        assert await _load(container, "op-cut") == 1

        queue = await container.approval_service.pending_approvals(sup)
        assert [i.id for i in queue] == [cut.id]

        approved = await container.approval_service.approve(cut.id, sup)

        assert approved.status == WorkItemStatus.ASSIGNED
        assert approved.approved_by == "sup-1"
        assert await _load(container, "op-cut") == 1
        active = await container.assignment_repository.get_active_for(cut.id)
        assert active.approval_state == ApprovalState.CONFIRMED
        assert active.method == AssignmentMethod.SELF
        assert await container.approval_service.pending_approvals(sup) == []

    async def test_reject(self, container, sup, cutter):
        cut = await _cut_item(container, sup)
        await container.assignment_matcher.self_assign(cut.id, cutter)

        rejected = await container.approval_service.reject(cut.id, sup, "needed elsewhere")

        assert rejected.status == WorkItemStatus.READY
        assert rejected.assigned_operator_id is None
        assert rejected.rejection_reason == "needed elsewhere"
        assert await _load(container, "op-cut") == 0
        history = await container.assignment_repository.get_for_work_item(cut.id)
        assert [a.approval_state for a in history] == [ApprovalState.REJECTED]

    async def test_reject_publishes_release(self, container, sup, cutter):
        recorder = RecordingHandler(OperatorReleased)
        container.event_dispatcher.register_handler(recorder)
        cut = await _cut_item(container, sup)
        await container.assignment_matcher.self_assign(cut.id, cutter)

        await container.approval_service.reject(cut.id, sup, "needed elsewhere")

        assert [(e.work_item_id, e.operator_id, e.reason) for e in recorder.events] == [
            (cut.id, "op-cut", "self_assignment_rejected")
        ]

    async def test_new_claim_clears_earlier_rejection(self, container, sup, cutter):
        cut = await _cut_item(container, sup)
        await container.assignment_matcher.self_assign(cut.id, cutter)
        await container.approval_service.reject(cut.id, sup, "needed elsewhere")

        await container.assignment_matcher.self_assign(cut.id, cutter)
        approved = await container.approval_service.approve(cut.id, sup)

        assert approved.status == WorkItemStatus.ASSIGNED
        assert approved.approved_by == sup.id
        assert approved.rejected_by is None
        assert approved.rejected_at is None
        assert approved.rejection_reason is None

    async def test_second_claim_conflicts(self, container, sup, cutter):
        cut = await _cut_item(container, sup)
        await container.assignment_matcher.self_assign(cut.id, cutter)

        with pytest.raises(AssignmentConflictError):
            await container.assignment_matcher.self_assign(cut.id, operator_actor("op-multi"))

        assert await _load(container, "op-multi") == 0

    async def test_claim_over_proposal_conflicts(self, container, sup, cutter):
        cut = await _cut_item(container, sup)
        await container.assignment_matcher.propose(cut.id, "op-multi", sup)

        with pytest.raises(AssignmentConflictError):
            await container.assignment_matcher.self_assign(cut.id, cutter)

    async def test_operator_cannot_approve(self, container, sup, cutter):
        cut = await _cut_item(container, sup)
        await container.assignment_matcher.self_assign(cut.id, cutter)

        with pytest.raises(NotAuthorizedError):
            await container.approval_service.approve(cut.id, operator_actor("op-multi"))

    async def test_approve_requires_claim(self, container, sup):
        cut = await _cut_item(container, sup)

        with pytest.raises(InvalidTransitionError):
            await container.approval_service.approve(cut.id, sup)

    async def test_incompatible_claim_keeps_load(self, container, sup, sewer):
        cut = await _cut_item(container, sup)

        with pytest.raises(IncompatibleAssignmentError):
            await container.assignment_matcher.self_assign(cut.id, sewer)

        assert await _load(container, "op-sew") == 0
