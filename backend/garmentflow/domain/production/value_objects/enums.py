"""Domain enums for production workflow."""

from enum import Enum


class WorkItemStatus(str, Enum):
    """Work item status enumeration."""

    PENDING = "pending"  # Waiting on dependency operations
    READY = "ready"  # Dependencies met, may be assigned
    SELF_ASSIGNED = "self_assigned"  # Claimed by an operator, awaiting approval
    ASSIGNED = "assigned"  # Confirmed assignment, not yet started
    IN_PROGRESS = "in_progress"  # Operator is working the pieces
    COMPLETED = "completed"  # All pieces done
    BLOCKED = "blocked"  # External hold (quality etc.)
    ON_HOLD = "on_hold"  # Supervisor pause
    REJECTED = "rejected"  # Terminal failure
    SUPERSEDED = "superseded"  # Retired by a bundle split or merge

    @property
    def is_terminal(self) -> bool:
        """Check if the status admits no further transitions."""
        return self in {
            WorkItemStatus.COMPLETED,
            WorkItemStatus.REJECTED,
            WorkItemStatus.SUPERSEDED,
        }

    @property
    def is_live(self) -> bool:
        """Superseded items no longer count towards a lot."""
        return self != WorkItemStatus.SUPERSEDED

    @property
    def holds_operator(self) -> bool:
        """Check if an operator is attached to the item in this status."""
        return self in {
            WorkItemStatus.SELF_ASSIGNED,
            WorkItemStatus.ASSIGNED,
            WorkItemStatus.IN_PROGRESS,
        }

    @property
    def is_held(self) -> bool:
        """Only unblock/resume leave these statuses."""
        return self in {WorkItemStatus.BLOCKED, WorkItemStatus.ON_HOLD}

    @property
    def is_unstarted(self) -> bool:
        """Statuses from which a bundle may still be split or merged."""
        return self in {
            WorkItemStatus.PENDING,
            WorkItemStatus.READY,
            WorkItemStatus.BLOCKED,
            WorkItemStatus.ON_HOLD,
        }

    def can_transition_to(self, target_status: "WorkItemStatus") -> bool:
        """Check if work item can transition from current status to target status."""
        return target_status in WORK_ITEM_TRANSITIONS.get(self, frozenset())


WORK_ITEM_TRANSITIONS: dict[WorkItemStatus, frozenset[WorkItemStatus]] = {
    WorkItemStatus.PENDING: frozenset({WorkItemStatus.READY}),
    WorkItemStatus.READY: frozenset(
        {
            WorkItemStatus.ASSIGNED,
            WorkItemStatus.SELF_ASSIGNED,
            WorkItemStatus.BLOCKED,
            WorkItemStatus.ON_HOLD,
            WorkItemStatus.REJECTED,
        }
    ),
    WorkItemStatus.SELF_ASSIGNED: frozenset(
        {WorkItemStatus.ASSIGNED, WorkItemStatus.READY}
    ),
    WorkItemStatus.ASSIGNED: frozenset(
        {WorkItemStatus.IN_PROGRESS, WorkItemStatus.READY}
    ),
    WorkItemStatus.IN_PROGRESS: frozenset(
        {
            WorkItemStatus.COMPLETED,
            WorkItemStatus.BLOCKED,
            WorkItemStatus.REJECTED,
        }
    ),
    WorkItemStatus.BLOCKED: frozenset({WorkItemStatus.READY, WorkItemStatus.ON_HOLD}),
    WorkItemStatus.ON_HOLD: frozenset({WorkItemStatus.READY, WorkItemStatus.BLOCKED}),
    WorkItemStatus.COMPLETED: frozenset(),  # Terminal state
    WorkItemStatus.REJECTED: frozenset(),  # Terminal state
    WorkItemStatus.SUPERSEDED: frozenset(),  # Terminal state
}


class LotStatus(str, Enum):
    """Lot status enumeration."""

    ACTIVE = "active"
    COMPLETED = "completed"  # Archived, kept for history

    def can_transition_to(self, target_status: "LotStatus") -> bool:
        """Check if lot can transition from current status to target status."""
        valid_transitions = {
            LotStatus.ACTIVE: {LotStatus.COMPLETED},
            LotStatus.COMPLETED: set(),  # Terminal state
        }
        return target_status in valid_transitions.get(self, set())


class AssignmentMethod(str, Enum):
    """How an assignment came about."""

    MANUAL = "manual"  # Supervisor drag-assign
    BULK = "bulk"  # Committed through bulk confirm
    SELF = "self"  # Operator claimed the work
    MATCHER = "matcher"  # Suggested by the matcher


class ApprovalState(str, Enum):
    """Assignment approval state."""

    PROPOSED = "proposed"  # Awaiting confirmation
    PENDING = "pending"  # Self-assignment awaiting supervisor approval
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"  # Proposal cancelled before confirmation
    RELEASED = "released"  # Operator handed the work back

    @property
    def is_outstanding(self) -> bool:
        """Check if the assignment is still open (non-terminal)."""
        return self in {
            ApprovalState.PROPOSED,
            ApprovalState.PENDING,
            ApprovalState.CONFIRMED,
        }


class ActorRole(str, Enum):
    """Coarse role supplied by the external auth collaborator."""

    OPERATOR = "operator"
    SUPERVISOR = "supervisor"
    MANAGEMENT = "management"

    @property
    def is_supervisory(self) -> bool:
        """Check if the role may approve, hold and reassign work."""
        return self in {ActorRole.SUPERVISOR, ActorRole.MANAGEMENT}


class InsertionPoint(str, Enum):
    """Where an ad-hoc operation is inserted into a live lot."""

    PARALLEL = "parallel"  # Same dependencies as the anchor operation
    AFTER = "after"  # Between the anchor and its dependents
    AT_END = "at_end"  # After every final operation
