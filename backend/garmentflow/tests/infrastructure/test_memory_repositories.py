"""Tests for the in-memory repositories."""

from uuid import uuid4

import pytest

from garmentflow.domain.production.entities import Assignment
from garmentflow.domain.production.value_objects import WorkItemFilter, WorkItemStatus
from garmentflow.domain.shared.exceptions import ConcurrencyError, NotFoundError
from garmentflow.infrastructure.persistence import (
    InMemoryAssignmentRepository,
    InMemoryWorkItemRepository,
)
from garmentflow.tests.factories import make_item


@pytest.fixture
def repository():
    return InMemoryWorkItemRepository()


@pytest.mark.asyncio
class TestInMemoryWorkItemRepository:
    """Test work item persistence and compare-and-swap."""

    async def test_save_bumps_version(self, repository):
        item = make_item()
        await repository.persist_work_items(item.lot_id, [item])

        item.hold("pause")
        saved = await repository.save(item, 0)

        assert saved.version == 1
        stored = await repository.get_by_id(item.id)
        assert stored.status == WorkItemStatus.ON_HOLD
        assert stored.version == 1

    async def test_stale_save_is_rejected(self, repository):
        item = make_item()
        await repository.persist_work_items(item.lot_id, [item])
        first = await repository.get_by_id(item.id)
        second = await repository.get_by_id(item.id)

        first.hold("pause")
        await repository.save(first, first.version)
        second.block("qa")

        with pytest.raises(ConcurrencyError) as exc_info:
            await repository.save(second, second.version)

        assert exc_info.value.details["expected_version"] == 0
        assert exc_info.value.details["actual_version"] == 1
        stored = await repository.get_by_id(item.id)
        assert stored.status == WorkItemStatus.ON_HOLD

    async def test_reads_are_isolated_copies(self, repository):
        item = make_item()
        await repository.persist_work_items(item.lot_id, [item])

        loaded = await repository.get_by_id(item.id)
        loaded.hold("not saved")

        assert (await repository.get_by_id(item.id)).status == WorkItemStatus.READY
        assert loaded.get_domain_events() != []
        assert (await repository.get_by_id(item.id)).get_domain_events() == []

    async def test_save_unknown_item(self, repository):
        with pytest.raises(NotFoundError):
            await repository.save(make_item(), 0)

    async def test_persist_twice_is_rejected(self, repository):
        item = make_item()
        await repository.persist_work_items(item.lot_id, [item])

        with pytest.raises(ConcurrencyError):
            await repository.persist_work_items(item.lot_id, [item])

    async def test_get_by_lot_hides_superseded(self, repository):
        lot_id = uuid4()
        live = make_item(lot_id=lot_id)
        retired = make_item(WorkItemStatus.SUPERSEDED, lot_id=lot_id)
        other_lot = make_item()
        await repository.persist_work_items(lot_id, [live, retired])
        await repository.persist_work_items(other_lot.lot_id, [other_lot])

        assert [i.id for i in await repository.get_by_lot(lot_id)] == [live.id]
        assert len(await repository.get_by_lot(lot_id, include_superseded=True)) == 2

    async def test_query_ready(self, repository):
        lot_id = uuid4()
        cutting = make_item(lot_id=lot_id)
        sewing = make_item(lot_id=lot_id, operation_id="join", machine_type="overlock")
        pending = make_item(WorkItemStatus.PENDING, lot_id=lot_id)
        await repository.persist_work_items(lot_id, [cutting, sewing, pending])

        everything = await repository.query_ready(WorkItemFilter(machine_type="all"))
        only_cutting = await repository.query_ready(WorkItemFilter(machine_type="cutting"))

        assert {i.id for i in everything} == {cutting.id, sewing.id}
        assert [i.id for i in only_cutting] == [cutting.id]


@pytest.mark.asyncio
class TestInMemoryAssignmentRepository:
    async def test_active_assignment(self):
        repository = InMemoryAssignmentRepository()
        work_item_id = uuid4()
        withdrawn = Assignment.propose(work_item_id, "op-cut", "sup-1")
        withdrawn.withdraw("sup-1")
        current = Assignment.propose(work_item_id, "op-multi", "sup-1")
        await repository.persist_assignment(withdrawn)
        await repository.persist_assignment(current)

        active = await repository.get_active_for(work_item_id)

        assert active.id == current.id
        assert len(await repository.get_for_work_item(work_item_id)) == 2
        assert await repository.get_active_for(uuid4()) is None
