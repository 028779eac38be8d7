"""
Domain Events Module

Exports all domain events and event handling infrastructure.
"""

from .domain_events import (
    BundleSplit,
    BundlesMerged,
    DomainEvent,
    DomainEventDispatcher,
    DomainEventHandler,
    LotCompleted,
    OperationInserted,
    OperatorAssigned,
    OperatorReleased,
    SelfAssignmentApproved,
    SelfAssignmentRejected,
    SelfAssignmentRequested,
    WorkItemStatusChanged,
)
from .notifier import StatusChangeNotifier

__all__ = [
    # Base classes
    "DomainEvent",
    "DomainEventHandler",
    "DomainEventDispatcher",
    "StatusChangeNotifier",
    # Work item events
    "WorkItemStatusChanged",
    "OperatorAssigned",
    "OperatorReleased",
    # Approval events
    "SelfAssignmentRequested",
    "SelfAssignmentApproved",
    "SelfAssignmentRejected",
    # Bundle and lot events
    "BundleSplit",
    "BundlesMerged",
    "OperationInserted",
    "LotCompleted",
]
