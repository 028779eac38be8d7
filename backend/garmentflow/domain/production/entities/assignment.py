"""Assignment entity linking an operator to a work item."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ...shared.base import Entity, utcnow
from ...shared.exceptions import InvalidTransitionError
from ..value_objects.enums import ApprovalState, AssignmentMethod

ASSIGNMENT_TRANSITIONS: dict[ApprovalState, frozenset[ApprovalState]] = {
    ApprovalState.PROPOSED: frozenset({ApprovalState.CONFIRMED, ApprovalState.WITHDRAWN}),
    ApprovalState.PENDING: frozenset({ApprovalState.CONFIRMED, ApprovalState.REJECTED}),
    ApprovalState.CONFIRMED: frozenset({ApprovalState.RELEASED}),
    ApprovalState.REJECTED: frozenset(),
    ApprovalState.WITHDRAWN: frozenset(),
    ApprovalState.RELEASED: frozenset(),
}


class Assignment(Entity):
    """
    Assignment record.

    At most one active assignment exists per work item. An assignment stops
    being active when its approval state becomes terminal or, for confirmed
    assignments, when the work it covers ends (``closed_at`` is stamped).
    """

    work_item_id: UUID
    operator_id: str = Field(min_length=1, max_length=64)
    assigned_by: str = Field(min_length=1, max_length=64)
    assigned_at: datetime = Field(default_factory=utcnow)
    method: AssignmentMethod = Field(default=AssignmentMethod.MANUAL)
    approval_state: ApprovalState = Field(default=ApprovalState.PROPOSED)

    decided_by: str | None = None
    decided_at: datetime | None = None
    closed_at: datetime | None = None
    reason: str | None = None

    def is_valid(self) -> bool:
        """Validate business rules."""
        if self.approval_state == ApprovalState.PENDING:
            return self.method == AssignmentMethod.SELF
        return True

    @property
    def is_active(self) -> bool:
        return self.closed_at is None and self.approval_state.is_outstanding

    @property
    def is_self_assignment(self) -> bool:
        return self.method == AssignmentMethod.SELF

    def confirm(self, confirmed_by: str, method: AssignmentMethod | None = None) -> None:
        """Commit a proposal or approve a pending self-assignment."""
        self._move_to(ApprovalState.CONFIRMED)
        if method is not None and not self.is_self_assignment:
            self.method = method
        self.decided_by = confirmed_by
        self.decided_at = utcnow()
        self.mark_updated()

    def reject(self, rejected_by: str, reason: str | None = None) -> None:
        """Reject a pending self-assignment."""
        self._move_to(ApprovalState.REJECTED)
        self.decided_by = rejected_by
        self.decided_at = utcnow()
        self._close(reason)

    def withdraw(self, withdrawn_by: str, reason: str | None = None) -> None:
        """Cancel a proposal before it is confirmed."""
        self._move_to(ApprovalState.WITHDRAWN)
        self.decided_by = withdrawn_by
        self.decided_at = utcnow()
        self._close(reason)

    def release(self, reason: str | None = None) -> None:
        """The operator handed confirmed work back before starting."""
        self._move_to(ApprovalState.RELEASED)
        self._close(reason)

    def close(self, reason: str) -> None:
        """The covered work ended (completed, blocked or rejected)."""
        if self.closed_at is None:
            self._close(reason)

    def _close(self, reason: str | None) -> None:
        self.closed_at = utcnow()
        self.reason = reason
        self.mark_updated()

    def _move_to(self, target: ApprovalState) -> None:
        if self.closed_at is not None or target not in ASSIGNMENT_TRANSITIONS[self.approval_state]:
            raise InvalidTransitionError(
                self.work_item_id,
                self.approval_state.value,
                target.value,
                f"assignment {self.id} cannot become {target.value}",
            )
        self.approval_state = target

    @staticmethod
    def propose(
        work_item_id: UUID,
        operator_id: str,
        proposed_by: str,
        method: AssignmentMethod = AssignmentMethod.MANUAL,
    ) -> "Assignment":
        """Factory for a proposal awaiting confirmation."""
        return Assignment(
            work_item_id=work_item_id,
            operator_id=operator_id,
            assigned_by=proposed_by,
            method=method,
            approval_state=ApprovalState.PROPOSED,
        )

    @staticmethod
    def self_request(work_item_id: UUID, operator_id: str) -> "Assignment":
        """Factory for a self-assignment awaiting supervisor approval."""
        return Assignment(
            work_item_id=work_item_id,
            operator_id=operator_id,
            assigned_by=operator_id,
            method=AssignmentMethod.SELF,
            approval_state=ApprovalState.PENDING,
        )
