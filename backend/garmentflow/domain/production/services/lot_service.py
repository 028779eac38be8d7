"""
Lot Service

Creates lots from operation templates and inserts ad-hoc operations into
lots that are already on the floor.
"""

from uuid import UUID

from ....core.observability import get_logger
from ...shared.base import ValueObject
from ...shared.exceptions import (
    InvalidTemplateError,
    InvalidTransitionError,
    InvariantViolationError,
    NotFoundError,
)
from ...shared.validation import GraphValidators
from ..entities.lot import Lot
from ..entities.operation_template import OperationDefinition
from ..entities.work_item import WorkItem
from ..events import DomainEventDispatcher, OperationInserted
from ..repositories.lot_repository import LotRepository
from ..repositories.work_item_repository import WorkItemRepository
from ..value_objects.common import Actor, Roll, Style
from ..value_objects.enums import InsertionPoint, WorkItemStatus
from .base_service import WorkItemServiceBase
from .template_service import TemplateService
from .workflow_service import WorkflowService

logger = get_logger(__name__)


class LotWithItems(ValueObject):
    """A lot together with its work items."""

    lot: Lot
    work_items: list[WorkItem]


class LotService(WorkItemServiceBase):
    """Service for lot intake and live-lot changes."""

    def __init__(
        self,
        lot_repository: LotRepository,
        work_item_repository: WorkItemRepository,
        template_service: TemplateService,
        workflow_service: WorkflowService,
        event_dispatcher: DomainEventDispatcher,
    ) -> None:
        """
        Initialize the lot service.

        Args:
            lot_repository: Lot data access interface
            work_item_repository: Work item data access interface
            template_service: Template resolution and expansion
            workflow_service: Dependency fan-out after structural changes
            event_dispatcher: Dispatcher receiving events after each write
        """
        super().__init__(work_item_repository, event_dispatcher)
        self._lot_repository = lot_repository
        self._template_service = template_service
        self._workflow_service = workflow_service

    async def create_lot(
        self,
        lot_number: str,
        template_id: str,
        total_pieces: int,
        actor: Actor,
        rolls: list[Roll] | None = None,
        styles: list[Style] | None = None,
        per_roll: bool | None = None,
    ) -> LotWithItems:
        """
        Create a lot and expand its template into work items.

        Raises:
            NotFoundError: If the template doesn't exist
            InvalidTemplateError: If the template is malformed
            InvariantViolationError: If the lot number is taken or rolls don't
                add up to ``total_pieces``
        """
        actor.require_supervisory("create lots")
        lot = Lot.create(lot_number, template_id, total_pieces, rolls, styles)

        existing = await self._lot_repository.get_by_lot_number(lot.lot_number)
        if existing is not None:
            raise InvariantViolationError(
                "LOT_NUMBER_UNIQUE",
                f"lot number {lot.lot_number} already exists",
                {"lot_number": lot.lot_number, "lot_id": str(existing.id)},
            )

        template = await self._template_service.resolve(template_id)
        items = TemplateService.expand(template, lot, per_roll=per_roll)

        await self._lot_repository.save(lot)
        await self._work_item_repository.persist_work_items(lot.id, items)

        logger.info(
            "lot_created",
            lot_id=str(lot.id),
            lot_number=lot.lot_number,
            template_id=template_id,
            total_pieces=total_pieces,
            work_items=len(items),
        )
        return LotWithItems(lot=lot, work_items=items)

    async def get_lot(self, lot_id: UUID) -> Lot:
        """
        Load a lot.

        Raises:
            NotFoundError: If the lot doesn't exist
        """
        lot = await self._lot_repository.get_by_id(lot_id)
        if lot is None:
            raise NotFoundError("Lot", lot_id)
        return lot

    async def list_lots(self, include_archived: bool = True) -> list[Lot]:
        return await self._lot_repository.get_all(include_archived=include_archived)

    async def lot_work_items(
        self, lot_id: UUID, include_superseded: bool = False
    ) -> list[WorkItem]:
        await self.get_lot(lot_id)
        return await self._work_item_repository.get_by_lot(
            lot_id, include_superseded=include_superseded
        )

    async def insert_operation(
        self,
        lot_id: UUID,
        definition: OperationDefinition,
        insertion_point: InsertionPoint,
        actor: Actor,
        anchor_operation_id: str | None = None,
    ) -> list[WorkItem]:
        """
        Add an operation to a live lot.

        - ``parallel``: the new operation gets the anchor's dependencies.
        - ``after``: the new operation depends on the anchor, and the anchor's
          dependents also wait for it. Only allowed while all of them are
          still pending.
        - ``at_end``: the new operation depends on every final operation.

        One work item is created per sub-unit of the lot. Dependencies given on
        ``definition`` are replaced by the ones the insertion point implies.

        Returns:
            The new work items after fan-out

        Raises:
            NotFoundError: If the lot or anchor operation doesn't exist
            InvariantViolationError: If the lot is archived or the operation id is taken
            InvalidTransitionError: If an ``after`` insertion would change
                dependents that already left ``pending``
        """
        actor.require_supervisory("insert operations")
        lot = await self.get_lot(lot_id)
        if not lot.is_active:
            raise InvariantViolationError(
                "LOT_ACTIVE",
                f"lot {lot.lot_number} is archived",
                {"lot_id": str(lot.id), "status": lot.status.value},
            )

        items = await self._work_item_repository.get_by_lot(lot_id)
        graph: dict[str, set[str]] = {}
        for item in items:
            graph.setdefault(item.operation_id, set()).update(item.dependencies)

        if definition.id in graph:
            raise InvariantViolationError(
                "OPERATION_UNIQUE",
                f"operation {definition.id} already exists in lot {lot.lot_number}",
                {"lot_id": str(lot.id), "operation_id": definition.id},
            )

        dependents: list[WorkItem] = []
        if insertion_point == InsertionPoint.AT_END:
            depended_on = set().union(*graph.values()) if graph else set()
            dependencies = set(graph) - depended_on
        else:
            if anchor_operation_id is None or anchor_operation_id not in graph:
                raise NotFoundError("Operation", anchor_operation_id or "<missing anchor>")
            if insertion_point == InsertionPoint.PARALLEL:
                dependencies = set(graph[anchor_operation_id])
            else:
                dependencies = {anchor_operation_id}
                dependents = [i for i in items if anchor_operation_id in i.dependencies]
                for dependent in dependents:
                    if dependent.status != WorkItemStatus.PENDING:
                        raise InvalidTransitionError(
                            dependent.id,
                            dependent.status.value,
                            WorkItemStatus.PENDING.value,
                            f"cannot insert {definition.id} before started "
                            f"operation {dependent.operation_id}",
                        )

        new_graph = {op_id: set(deps) for op_id, deps in graph.items()}
        new_graph[definition.id] = set(dependencies)
        for dependent in dependents:
            new_graph[dependent.operation_id].add(definition.id)
        cycle = GraphValidators.find_cycle(new_graph)
        if cycle:
            raise InvalidTemplateError(
                lot.template_id, "dependency cycle " + " -> ".join(cycle), cycle
            )

        placed = definition.model_copy(update={"dependencies": frozenset(dependencies)})
        new_items = self._items_per_sub_unit(lot, items, placed)

        await self._work_item_repository.persist_work_items(lot.id, new_items)
        for dependent in dependents:
            version = dependent.version
            dependent.dependencies = dependent.dependencies | {definition.id}
            dependent.mark_updated()
            await self._commit(dependent, version)

        self._event_dispatcher.dispatch(
            OperationInserted(
                lot_id=lot.id,
                operation_id=definition.id,
                insertion_point=insertion_point.value,
                work_item_ids=[i.id for i in new_items],
            )
        )
        logger.info(
            "operation_inserted",
            lot_id=str(lot.id),
            operation_id=definition.id,
            insertion_point=insertion_point.value,
            dependencies=sorted(dependencies),
        )

        await self._workflow_service.fan_out(lot.id)
        return [await self.get_work_item(i.id) for i in new_items]

    @staticmethod
    def _items_per_sub_unit(
        lot: Lot, items: list[WorkItem], definition: OperationDefinition
    ) -> list[WorkItem]:
        style = lot.default_style
        roll_pieces = {roll.roll_number: roll.pieces for roll in lot.rolls}
        sub_units = sorted({i.sub_unit for i in items}, key=lambda s: s or "") or [None]

        new_items = []
        for sub_unit in sub_units:
            if sub_unit is None:
                pieces = lot.total_pieces
            else:
                pieces = roll_pieces.get(sub_unit) or lot.total_pieces
            sample = next((i for i in items if i.sub_unit == sub_unit), None)
            item = WorkItem.from_definition(
                lot.id,
                definition,
                pieces,
                sub_unit=sub_unit,
                article=sample.article if sample else (style.article if style else None),
                size=sample.size if sample else (style.size if style else None),
                color=sample.color if sample else (style.color if style else None),
            )
            new_items.append(item)
        return new_items
