"""
Domain Exceptions

Custom exceptions for workflow-engine errors with discriminated error types.
Every error is raised before any state is mutated and carries enough detail
(attempted vs. actual state) for callers to reconcile stale views.
"""

from enum import Enum
from typing import Any
from uuid import UUID

DetailValue = str | int | float | bool | None | list[str]


class ErrorType(str, Enum):
    """Error type enumeration for discriminated unions."""

    INVALID_TEMPLATE = "invalid_template"
    INVALID_TRANSITION = "invalid_transition"
    INCOMPATIBLE_ASSIGNMENT = "incompatible_assignment"
    ALREADY_ASSIGNED = "already_assigned"
    ASSIGNMENT_CONFLICT = "assignment_conflict"
    INVARIANT_VIOLATION = "invariant_violation"
    NOT_FOUND = "not_found"
    NOT_AUTHORIZED = "not_authorized"
    CONCURRENCY = "concurrency"


class DomainError(Exception):
    """Base class for all domain errors with type discrimination."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        details: dict[str, DetailValue] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidTemplateError(DomainError):
    """Raised when an operation template fails load-time validation."""

    def __init__(
        self,
        template_id: str,
        reason: str,
        operation_ids: list[str] | None = None,
    ) -> None:
        details: dict[str, DetailValue] = {
            "template_id": template_id,
            "reason": reason,
            "operation_ids": sorted(operation_ids or []),
        }
        super().__init__(
            f"Invalid template {template_id}: {reason}",
            ErrorType.INVALID_TEMPLATE,
            details,
        )
        self.template_id = template_id
        self.reason = reason
        self.operation_ids = operation_ids or []


class InvalidTransitionError(DomainError):
    """Raised when a work item status transition is not allowed."""

    def __init__(
        self,
        work_item_id: UUID,
        current_status: str,
        attempted_status: str,
        reason: str | None = None,
    ) -> None:
        details: dict[str, DetailValue] = {
            "work_item_id": str(work_item_id),
            "current_status": current_status,
            "attempted_status": attempted_status,
        }
        message = (
            f"Cannot change work item {work_item_id} "
            f"from {current_status} to {attempted_status}"
        )
        if reason:
            details["reason"] = reason
            message += f": {reason}"
        super().__init__(message, ErrorType.INVALID_TRANSITION, details)
        self.work_item_id = work_item_id
        self.current_status = current_status
        self.attempted_status = attempted_status


class IncompatibleAssignmentError(DomainError):
    """Raised when an operator cannot work on an item's machine type."""

    def __init__(
        self, work_item_id: UUID, operator_id: str, machine_type: str, reason: str
    ) -> None:
        details: dict[str, DetailValue] = {
            "work_item_id": str(work_item_id),
            "operator_id": operator_id,
            "machine_type": machine_type,
            "reason": reason,
        }
        super().__init__(
            f"Operator {operator_id} cannot take work item {work_item_id} "
            f"({machine_type}): {reason}",
            ErrorType.INCOMPATIBLE_ASSIGNMENT,
            details,
        )
        self.work_item_id = work_item_id
        self.operator_id = operator_id
        self.machine_type = machine_type


class AlreadyAssignedError(DomainError):
    """Raised when a work item was claimed by someone else first."""

    def __init__(
        self,
        work_item_id: UUID,
        current_status: str,
        assigned_operator_id: str | None = None,
    ) -> None:
        details: dict[str, DetailValue] = {
            "work_item_id": str(work_item_id),
            "current_status": current_status,
            "attempted_status": "assigned",
            "assigned_operator_id": assigned_operator_id,
        }
        super().__init__(
            f"Work item {work_item_id} is already assigned"
            + (f" to {assigned_operator_id}" if assigned_operator_id else ""),
            ErrorType.ALREADY_ASSIGNED,
            details,
        )
        self.work_item_id = work_item_id
        self.assigned_operator_id = assigned_operator_id


class AssignmentConflictError(DomainError):
    """Raised when another assignment is still outstanding for a work item."""

    def __init__(
        self, work_item_id: UUID, existing_assignment_id: UUID, existing_state: str
    ) -> None:
        details: dict[str, DetailValue] = {
            "work_item_id": str(work_item_id),
            "existing_assignment_id": str(existing_assignment_id),
            "existing_state": existing_state,
        }
        super().__init__(
            f"Work item {work_item_id} already has an outstanding "
            f"{existing_state} assignment {existing_assignment_id}",
            ErrorType.ASSIGNMENT_CONFLICT,
            details,
        )
        self.work_item_id = work_item_id
        self.existing_assignment_id = existing_assignment_id


class InvariantViolationError(DomainError):
    """Raised when piece-count conservation or another invariant would break."""

    def __init__(
        self, invariant: str, message: str, details: dict[str, DetailValue] | None = None
    ) -> None:
        invariant_details = details or {}
        invariant_details["invariant"] = invariant
        super().__init__(
            f"Invariant '{invariant}' violated: {message}",
            ErrorType.INVARIANT_VIOLATION,
            invariant_details,
        )
        self.invariant = invariant


class NotFoundError(DomainError):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: UUID | str) -> None:
        details: dict[str, DetailValue] = {
            "entity_type": entity_type,
            "entity_id": str(entity_id),
        }
        super().__init__(
            f"{entity_type} not found: {entity_id}", ErrorType.NOT_FOUND, details
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class NotAuthorizedError(DomainError):
    """Raised when the acting user's role does not permit an action."""

    def __init__(self, actor_id: str, role: str, action: str) -> None:
        details: dict[str, DetailValue] = {
            "actor_id": actor_id,
            "role": role,
            "action": action,
        }
        super().__init__(
            f"{role} {actor_id} is not allowed to {action}",
            ErrorType.NOT_AUTHORIZED,
            details,
        )
        self.actor_id = actor_id
        self.role = role
        self.action = action


class ConcurrencyError(DomainError):
    """Raised when concurrent modification conflicts occur."""

    def __init__(
        self, entity_type: str, entity_id: UUID, expected_version: int, actual_version: int
    ) -> None:
        details: dict[str, DetailValue] = {
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "expected_version": expected_version,
            "actual_version": actual_version,
        }
        super().__init__(
            f"Concurrent modification of {entity_type}: {entity_id}",
            ErrorType.CONCURRENCY,
            details,
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
