"""
Tests for WorkflowService: state transitions, dependency fan-out, operator
load bookkeeping and lot archiving, run against the in-memory repositories.
"""

import pytest

from garmentflow.domain.production.events import OperatorReleased
from garmentflow.domain.production.value_objects import (
    ApprovalState,
    LotStatus,
    Roll,
    WorkItemStatus,
)
from garmentflow.domain.shared.exceptions import (
    InvalidTransitionError,
    NotAuthorizedError,
)
from garmentflow.tests.factories import TEMPLATE_ID, RecordingHandler, operator_actor


async def _create_lot(container, sup, lot_number="LOT-1", pieces=30, **kwargs):
    created = await container.lot_service.create_lot(
        lot_number, TEMPLATE_ID, pieces, sup, **kwargs
    )
    return created.lot, {i.operation_id: i for i in created.work_items}


async def _run(container, sup, item_id, operator_id):
    """Assign, start and complete one item."""
    actor = operator_actor(operator_id)
    await container.assignment_matcher.assign(item_id, operator_id, sup)
    started = await container.workflow_service.start(item_id, actor)
    return await container.workflow_service.complete(item_id, actor, started.pieces)


async def _load(container, operator_id):
    return (await container.operator_repository.get_by_id(operator_id)).current_load


@pytest.mark.asyncio
class TestCutJoinHem:
    """Test the linear shirt flow end to end."""

    async def test_completing_cut_readies_join_only(self, container, sup):
        lot, items = await _create_lot(container, sup)
        assert items["cut"].status == WorkItemStatus.READY
        assert items["join"].status == WorkItemStatus.PENDING

        completed = await _run(container, sup, items["cut"].id, "op-cut")

        assert completed.status == WorkItemStatus.COMPLETED
        assert completed.completed_pieces == 30
        join = await container.workflow_service.get_work_item(items["join"].id)
        hem = await container.workflow_service.get_work_item(items["hem"].id)
        assert join.status == WorkItemStatus.READY
        assert hem.status == WorkItemStatus.PENDING
        assert await _load(container, "op-cut") == 0

    async def test_full_flow_archives_lot(self, container, sup):
        lot, items = await _create_lot(container, sup)

        await _run(container, sup, items["cut"].id, "op-cut")
        await _run(container, sup, items["join"].id, "op-sew")
        assert (await container.lot_service.get_lot(lot.id)).is_active

        await _run(container, sup, items["hem"].id, "op-sew")

        archived = await container.lot_service.get_lot(lot.id)
        assert archived.status == LotStatus.COMPLETED
        assert archived.archived_at is not None
        assert await _load(container, "op-sew") == 0

    async def test_fan_out_is_idempotent(self, container, sup):
        lot, items = await _create_lot(container, sup)
        await _run(container, sup, items["cut"].id, "op-cut")
        join_before = await container.workflow_service.get_work_item(items["join"].id)

        assert await container.workflow_service.fan_out(lot.id) == []
        assert await container.workflow_service.fan_out(lot.id) == []

        join_after = await container.workflow_service.get_work_item(items["join"].id)
        assert join_after.status == WorkItemStatus.READY
        assert join_after.version == join_before.version

    async def test_per_roll_fan_out_stays_within_roll(self, container, sup):
        rolls = [Roll(roll_number="R1", pieces=10), Roll(roll_number="R2", pieces=20)]
        created = await container.lot_service.create_lot(
            "LOT-R", TEMPLATE_ID, 30, sup, rolls=rolls, per_roll=True
        )
        items = {(i.sub_unit, i.operation_id): i for i in created.work_items}
        assert len(items) == 6

        await _run(container, sup, items[("R1", "cut")].id, "op-cut")

        join_r1 = await container.workflow_service.get_work_item(items[("R1", "join")].id)
        join_r2 = await container.workflow_service.get_work_item(items[("R2", "join")].id)
        assert join_r1.status == WorkItemStatus.READY
        assert join_r2.status == WorkItemStatus.PENDING


@pytest.mark.asyncio
class TestTransitions:
    """Test single-item transitions through the service."""

    async def test_only_assignee_or_supervisor_may_start(self, container, sup):
        _, items = await _create_lot(container, sup)
        await container.assignment_matcher.assign(items["cut"].id, "op-cut", sup)

        with pytest.raises(NotAuthorizedError):
            await container.workflow_service.start(items["cut"].id, operator_actor("op-sew"))

        started = await container.workflow_service.start(items["cut"].id, sup)
        assert started.status == WorkItemStatus.IN_PROGRESS

    async def test_progress_then_complete(self, container, sup, cutter):
        _, items = await _create_lot(container, sup)
        cut_id = items["cut"].id
        await container.assignment_matcher.assign(cut_id, "op-cut", sup)
        await container.workflow_service.start(cut_id, cutter)

        item = await container.workflow_service.record_progress(cut_id, 12, cutter)
        assert item.completed_pieces == 12
        item = await container.workflow_service.record_progress(cut_id, 18, cutter)

        completed = await container.workflow_service.complete(cut_id, cutter)
        assert completed.completed_pieces == 30
        assert completed.version > item.version

    async def test_block_in_progress_releases_operator(self, container, sup, cutter):
        _, items = await _create_lot(container, sup)
        cut_id = items["cut"].id
        await container.assignment_matcher.assign(cut_id, "op-cut", sup)
        await container.workflow_service.start(cut_id, cutter)
        await container.workflow_service.record_progress(cut_id, 5, cutter)
        assert await _load(container, "op-cut") == 1

        blocked = await container.workflow_service.block(cut_id, "fabric flaw", sup)

        assert blocked.status == WorkItemStatus.BLOCKED
        assert blocked.assigned_operator_id is None
        assert blocked.completed_pieces == 5
        assert await _load(container, "op-cut") == 0
        assert await container.assignment_repository.get_active_for(cut_id) is None

        unblocked = await container.workflow_service.unblock(cut_id, sup)
        assert unblocked.status == WorkItemStatus.READY

    async def test_operator_cannot_block(self, container, sup, cutter):
        _, items = await _create_lot(container, sup)

        with pytest.raises(NotAuthorizedError):
            await container.workflow_service.block(items["cut"].id, "x", cutter)

    async def test_release_returns_item_to_pool(self, container, sup, cutter):
        _, items = await _create_lot(container, sup)
        cut_id = items["cut"].id
        await container.assignment_matcher.assign(cut_id, "op-cut", sup)

        released = await container.workflow_service.release(cut_id, cutter, "shift over")

        assert released.status == WorkItemStatus.READY
        assert released.assigned_operator_id is None
        assert await _load(container, "op-cut") == 0
        history = await container.assignment_repository.get_for_work_item(cut_id)
        assert [a.approval_state for a in history] == [ApprovalState.RELEASED]

    async def test_release_requires_assigned(self, container, sup):
        _, items = await _create_lot(container, sup)

        with pytest.raises(InvalidTransitionError):
            await container.workflow_service.release(items["cut"].id, sup)

    async def test_hold_and_resume(self, container, sup):
        _, items = await _create_lot(container, sup)
        cut_id = items["cut"].id

        held = await container.workflow_service.hold(cut_id, "waiting for trims", sup)
        assert held.status == WorkItemStatus.ON_HOLD

        resumed = await container.workflow_service.resume(cut_id, sup)
        assert resumed.status == WorkItemStatus.READY

    async def test_rejected_item_keeps_lot_open(self, container, sup):
        lot, items = await _create_lot(container, sup)

        rejected = await container.workflow_service.reject(items["cut"].id, "wrong fabric", sup)

        assert rejected.status == WorkItemStatus.REJECTED
        assert not await container.workflow_service.archive_lot_if_complete(lot.id)
        join = await container.workflow_service.get_work_item(items["join"].id)
        assert join.status == WorkItemStatus.PENDING

    async def test_reject_in_progress_releases_load(self, container, sup, cutter):
        _, items = await _create_lot(container, sup)
        cut_id = items["cut"].id
        await container.assignment_matcher.assign(cut_id, "op-cut", sup)
        await container.workflow_service.start(cut_id, cutter)

        await container.workflow_service.reject(cut_id, "torn", sup)

        assert await _load(container, "op-cut") == 0

    async def test_detaching_operator_publishes_release(self, container, sup, cutter):
        recorder = RecordingHandler(OperatorReleased)
        container.event_dispatcher.register_handler(recorder)
        _, items = await _create_lot(container, sup)
        cut_id = items["cut"].id

        await container.assignment_matcher.assign(cut_id, "op-cut", sup)
        await container.workflow_service.release(cut_id, cutter, "shift over")
        await container.assignment_matcher.assign(cut_id, "op-cut", sup)
        await container.workflow_service.start(cut_id, cutter)
        await container.workflow_service.block(cut_id, "fabric flaw", sup)
        await container.workflow_service.unblock(cut_id, sup)
        await container.assignment_matcher.assign(cut_id, "op-cut", sup)
        await container.workflow_service.start(cut_id, cutter)
        await container.workflow_service.reject(cut_id, "torn", sup)

        assert [(e.work_item_id, e.operator_id, e.reason) for e in recorder.events] == [
            (cut_id, "op-cut", "shift over"),
            (cut_id, "op-cut", "blocked: fabric flaw"),
            (cut_id, "op-cut", "rejected: torn"),
        ]

    async def test_completing_publishes_no_release(self, container, sup):
        recorder = RecordingHandler(OperatorReleased)
        container.event_dispatcher.register_handler(recorder)
        _, items = await _create_lot(container, sup)

        await _run(container, sup, items["cut"].id, "op-cut")

        assert recorder.events == []
