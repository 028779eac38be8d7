"""Builders for test data."""

from uuid import UUID, uuid4

from garmentflow.domain.production.entities import (
    OperationDefinition,
    Operator,
    WorkItem,
)
from garmentflow.domain.production.events import DomainEvent, DomainEventHandler
from garmentflow.domain.production.value_objects import Actor, ActorRole, WorkItemStatus

TEMPLATE_ID = "cut-join-hem"


def make_definition(
    op_id: str,
    sequence: int,
    machine_type: str,
    dependencies: tuple[str, ...] = (),
    minutes_per_piece: float = 1.0,
) -> OperationDefinition:
    return OperationDefinition(
        id=op_id,
        sequence=sequence,
        name=op_id.title(),
        machine_type=machine_type,
        estimated_time_per_piece=minutes_per_piece,
        dependencies=dependencies,
    )


def cut_join_hem() -> list[OperationDefinition]:
    """Linear three-step shirt template."""
    return [
        make_definition("cut", 1, "cutting"),
        make_definition("join", 2, "overlock", ("cut",)),
        make_definition("hem", 3, "flatlock", ("join",)),
    ]


def make_item(
    status: WorkItemStatus = WorkItemStatus.READY,
    operation_id: str = "cut",
    sequence: int = 1,
    pieces: int = 10,
    lot_id: UUID | None = None,
    **overrides,
) -> WorkItem:
    fields = {
        "lot_id": lot_id or uuid4(),
        "operation_id": operation_id,
        "operation_name": operation_id.title(),
        "sequence": sequence,
        "pieces": pieces,
        "machine_type": "cutting",
        "estimated_time": 10.0,
        "status": status,
    }
    if status == WorkItemStatus.COMPLETED:
        fields["completed_pieces"] = pieces
    if status.holds_operator:
        fields["assigned_operator_id"] = "op-cut"
    fields.update(overrides)
    return WorkItem(**fields)


def make_operator(op_id: str, *capabilities: str, **overrides) -> Operator:
    return Operator(id=op_id, name=op_id, machine_capabilities=capabilities, **overrides)


def roster() -> list[Operator]:
    return [
        make_operator("op-cut", "cutting"),
        make_operator("op-sew", "overlock", "flatlock"),
        make_operator("op-multi", multi_skill=True, efficiency=1.2),
        make_operator("op-off", "cutting", active=False),
    ]


def supervisor(actor_id: str = "sup-1") -> Actor:
    return Actor(id=actor_id, role=ActorRole.SUPERVISOR)


def operator_actor(actor_id: str) -> Actor:
    return Actor(id=actor_id, role=ActorRole.OPERATOR)


class RecordingHandler(DomainEventHandler):
    """Keeps every dispatched event of the given types."""

    def __init__(self, *event_types: type[DomainEvent]) -> None:
        self.event_types = event_types
        self.events: list[DomainEvent] = []

    def can_handle(self, event: DomainEvent) -> bool:
        return isinstance(event, self.event_types)

    def handle(self, event: DomainEvent) -> None:
        self.events.append(event)
