"""Value objects for the production domain."""

from .common import Actor, OperatorFilter, Roll, Style, WorkItemFilter
from .enums import (
    WORK_ITEM_TRANSITIONS,
    ActorRole,
    ApprovalState,
    AssignmentMethod,
    InsertionPoint,
    LotStatus,
    WorkItemStatus,
)

__all__ = [
    # Common value objects
    "Actor",
    "OperatorFilter",
    "Roll",
    "Style",
    "WorkItemFilter",
    # Enums
    "ActorRole",
    "ApprovalState",
    "AssignmentMethod",
    "InsertionPoint",
    "LotStatus",
    "WorkItemStatus",
    "WORK_ITEM_TRANSITIONS",
]
