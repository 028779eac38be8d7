"""
In-memory repository implementations.

Stand-ins for the external document store. Every read and write goes
through a deep copy so callers can never mutate stored state without a
save, and work items are written with a per-item compare-and-swap on their
version.
"""

import asyncio
import logging
from uuid import UUID

from garmentflow.domain.production.entities.assignment import Assignment
from garmentflow.domain.production.entities.lot import Lot
from garmentflow.domain.production.entities.operation_template import OperationDefinition
from garmentflow.domain.production.entities.operator import Operator
from garmentflow.domain.production.entities.work_item import WorkItem
from garmentflow.domain.production.repositories import (
    AssignmentRepository,
    LotRepository,
    OperatorRepository,
    TemplateRepository,
    WorkItemRepository,
)
from garmentflow.domain.production.value_objects.common import (
    OperatorFilter,
    WorkItemFilter,
)
from garmentflow.domain.production.value_objects.enums import WorkItemStatus
from garmentflow.domain.shared.exceptions import ConcurrencyError, NotFoundError

logger = logging.getLogger(__name__)


def _snapshot(item: WorkItem) -> WorkItem:
    copy = item.model_copy(deep=True)
    copy.clear_domain_events()
    return copy


def _order(item: WorkItem) -> tuple:
    return (item.sequence, item.sub_unit or "", item.created_at, str(item.id))


class InMemoryTemplateRepository(TemplateRepository):
    """In-memory implementation of TemplateRepository."""

    def __init__(self) -> None:
        self._templates: dict[str, list[OperationDefinition]] = {}

    async def load_template(self, template_id: str) -> list[OperationDefinition] | None:
        operations = self._templates.get(template_id)
        return list(operations) if operations is not None else None

    async def save_template(
        self, template_id: str, operations: list[OperationDefinition]
    ) -> None:
        self._templates[template_id] = list(operations)


class InMemoryWorkItemRepository(WorkItemRepository):
    """
    In-memory implementation of WorkItemRepository.

    Reads and writes yield to the event loop once, like a real store would,
    so concurrent coroutines interleave between read and compare-and-swap.
    """

    def __init__(self) -> None:
        self._items: dict[UUID, WorkItem] = {}

    async def persist_work_items(self, lot_id: UUID, items: list[WorkItem]) -> None:
        await asyncio.sleep(0)
        for item in items:
            if item.id in self._items:
                existing = self._items[item.id]
                raise ConcurrencyError("WorkItem", item.id, 0, existing.version)
            if item.lot_id != lot_id:
                raise ValueError(f"work item {item.id} belongs to lot {item.lot_id}")
        for item in items:
            self._items[item.id] = _snapshot(item)
        logger.debug(f"Persisted {len(items)} work items for lot {lot_id}")

    async def save(self, item: WorkItem, expected_version: int) -> WorkItem:
        await asyncio.sleep(0)
        current = self._items.get(item.id)
        if current is None:
            raise NotFoundError("WorkItem", item.id)
        if current.version != expected_version:
            logger.info(
                f"Version conflict on work item {item.id}: "
                f"expected {expected_version}, stored {current.version}"
            )
            raise ConcurrencyError("WorkItem", item.id, expected_version, current.version)

        stored = _snapshot(item)
        stored.version = expected_version + 1
        self._items[item.id] = stored
        return _snapshot(stored)

    async def get_by_id(self, work_item_id: UUID) -> WorkItem | None:
        await asyncio.sleep(0)
        item = self._items.get(work_item_id)
        return _snapshot(item) if item is not None else None

    async def get_by_lot(
        self, lot_id: UUID, include_superseded: bool = False
    ) -> list[WorkItem]:
        await asyncio.sleep(0)
        items = [
            i
            for i in self._items.values()
            if i.lot_id == lot_id and (include_superseded or i.is_live)
        ]
        return [_snapshot(i) for i in sorted(items, key=_order)]

    async def query_ready(self, item_filter: WorkItemFilter) -> list[WorkItem]:
        await asyncio.sleep(0)
        matches = []
        for item in self._items.values():
            if item.status not in item_filter.statuses:
                continue
            if item_filter.lot_id is not None and item.lot_id != item_filter.lot_id:
                continue
            if item_filter.machine_type is not None and item.machine_type != item_filter.machine_type:
                continue
            if item_filter.unassigned_only and item.assigned_operator_id is not None:
                continue
            matches.append(item)
        return [
            _snapshot(i) for i in sorted(matches, key=lambda i: (str(i.lot_id), *_order(i)))
        ]

    async def get_by_status(self, status: WorkItemStatus) -> list[WorkItem]:
        await asyncio.sleep(0)
        return [
            _snapshot(i)
            for i in sorted(self._items.values(), key=_order)
            if i.status == status
        ]


class InMemoryLotRepository(LotRepository):
    """In-memory implementation of LotRepository."""

    def __init__(self) -> None:
        self._lots: dict[UUID, Lot] = {}

    async def save(self, lot: Lot) -> Lot:
        stored = lot.model_copy(deep=True)
        stored.clear_domain_events()
        self._lots[lot.id] = stored
        return lot

    async def get_by_id(self, lot_id: UUID) -> Lot | None:
        lot = self._lots.get(lot_id)
        return lot.model_copy(deep=True) if lot is not None else None

    async def get_by_lot_number(self, lot_number: str) -> Lot | None:
        wanted = lot_number.strip().upper()
        for lot in self._lots.values():
            if lot.lot_number == wanted:
                return lot.model_copy(deep=True)
        return None

    async def get_all(self, include_archived: bool = True) -> list[Lot]:
        lots = sorted(self._lots.values(), key=lambda lot: (lot.created_at, lot.lot_number))
        return [
            lot.model_copy(deep=True)
            for lot in lots
            if include_archived or lot.is_active
        ]


class InMemoryOperatorRepository(OperatorRepository):
    """In-memory implementation of OperatorRepository."""

    def __init__(self, operators: list[Operator] | None = None) -> None:
        self._operators: dict[str, Operator] = {}
        for operator in operators or []:
            self._operators[operator.id] = operator.model_copy(deep=True)

    async def query_operators(self, operator_filter: OperatorFilter) -> list[Operator]:
        matches = []
        for operator in sorted(self._operators.values(), key=lambda op: op.id):
            if operator_filter.active is not None and operator.active != operator_filter.active:
                continue
            if operator_filter.machine_type is not None and not operator.can_operate(
                operator_filter.machine_type
            ):
                continue
            matches.append(operator.model_copy(deep=True))
        return matches

    async def get_by_id(self, operator_id: str) -> Operator | None:
        operator = self._operators.get(operator_id)
        return operator.model_copy(deep=True) if operator is not None else None

    async def save(self, operator: Operator) -> Operator:
        self._operators[operator.id] = operator.model_copy(deep=True)
        return operator


class InMemoryAssignmentRepository(AssignmentRepository):
    """In-memory implementation of AssignmentRepository."""

    def __init__(self) -> None:
        self._assignments: dict[UUID, Assignment] = {}

    async def persist_assignment(self, assignment: Assignment) -> Assignment:
        self._assignments[assignment.id] = assignment.model_copy(deep=True)
        return assignment

    async def get_by_id(self, assignment_id: UUID) -> Assignment | None:
        assignment = self._assignments.get(assignment_id)
        return assignment.model_copy(deep=True) if assignment is not None else None

    async def get_active_for(self, work_item_id: UUID) -> Assignment | None:
        active = [
            a
            for a in self._assignments.values()
            if a.work_item_id == work_item_id and a.is_active
        ]
        if len(active) > 1:
            logger.error(
                f"Work item {work_item_id} has {len(active)} active assignments"
            )
        if not active:
            return None
        latest = max(active, key=lambda a: a.assigned_at)
        return latest.model_copy(deep=True)

    async def get_for_work_item(self, work_item_id: UUID) -> list[Assignment]:
        history = [a for a in self._assignments.values() if a.work_item_id == work_item_id]
        return [a.model_copy(deep=True) for a in sorted(history, key=lambda a: a.assigned_at)]
