"""
Domain Events

Events raised by work items, lots and assignments, plus the dispatcher that
routes them to registered handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from ....core.observability import get_logger
from ...shared.base import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: UUID = field(default_factory=uuid4, kw_only=True)
    occurred_at: datetime = field(default_factory=utcnow, kw_only=True)


@dataclass(frozen=True)
class WorkItemStatusChanged(DomainEvent):
    """Raised when a work item changes status."""

    work_item_id: UUID
    lot_id: UUID
    operation_id: str
    old_status: str
    new_status: str
    reason: str | None = None


@dataclass(frozen=True)
class OperatorAssigned(DomainEvent):
    """Raised when an operator is attached to a work item."""

    work_item_id: UUID
    operator_id: str
    assigned_by: str
    method: str


@dataclass(frozen=True)
class OperatorReleased(DomainEvent):
    """Raised when an operator is detached from a work item."""

    work_item_id: UUID
    operator_id: str
    reason: str


@dataclass(frozen=True)
class SelfAssignmentRequested(DomainEvent):
    """Raised when an operator claims work pending supervisor approval."""

    work_item_id: UUID
    operator_id: str


@dataclass(frozen=True)
class SelfAssignmentApproved(DomainEvent):
    """Raised when a supervisor approves a self-assignment."""

    work_item_id: UUID
    operator_id: str
    approved_by: str


@dataclass(frozen=True)
class SelfAssignmentRejected(DomainEvent):
    """Raised when a supervisor rejects a self-assignment."""

    work_item_id: UUID
    operator_id: str
    rejected_by: str
    reason: str | None = None


@dataclass(frozen=True)
class BundleSplit(DomainEvent):
    """Raised when a bundle is split into smaller bundles."""

    parent_id: UUID
    lot_id: UUID
    child_ids: list[UUID]
    piece_counts: list[int]


@dataclass(frozen=True)
class BundlesMerged(DomainEvent):
    """Raised when bundles are merged into one."""

    merged_id: UUID
    lot_id: UUID
    source_ids: list[UUID]
    pieces: int


@dataclass(frozen=True)
class OperationInserted(DomainEvent):
    """Raised when an ad-hoc operation is added to a live lot."""

    lot_id: UUID
    operation_id: str
    insertion_point: str
    work_item_ids: list[UUID]


@dataclass(frozen=True)
class LotCompleted(DomainEvent):
    """Raised when every live work item of a lot is completed."""

    lot_id: UUID
    lot_number: str
    completed_at: datetime


# Event Handler Interface
class DomainEventHandler:
    """Base interface for domain event handlers."""

    def can_handle(self, event: DomainEvent) -> bool:
        """Check if this handler can handle the given event."""
        raise NotImplementedError

    def handle(self, event: DomainEvent) -> None:
        """Handle the domain event."""
        raise NotImplementedError


class DomainEventDispatcher:
    """
    Dispatches domain events to registered handlers.

    Handlers run after the state change has been persisted; a failing handler
    is logged and skipped so it can never undo or block the change.
    """

    def __init__(self) -> None:
        self._handlers: list[DomainEventHandler] = []

    def register_handler(self, handler: DomainEventHandler) -> None:
        """Register an event handler."""
        if handler not in self._handlers:
            self._handlers.append(handler)

    def dispatch(self, event: DomainEvent) -> None:
        """Dispatch an event to all capable handlers."""
        for handler in self._handlers:
            if handler.can_handle(event):
                try:
                    handler.handle(event)
                except Exception:
                    logger.exception(
                        "event_handler_failed",
                        event_type=type(event).__name__,
                        event_id=str(event.event_id),
                        handler=type(handler).__name__,
                    )

    def dispatch_all(self, events: list[DomainEvent]) -> None:
        """Dispatch multiple events."""
        for event in events:
            self.dispatch(event)
