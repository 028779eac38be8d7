"""Work item entity: one operation instance over some or all of a lot's pieces."""

from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from ...shared.base import AggregateRoot, utcnow
from ...shared.exceptions import (
    AlreadyAssignedError,
    InvalidTransitionError,
    InvariantViolationError,
)
from ...shared.validation import PieceCountValidators
from ..events import WorkItemStatusChanged
from ..value_objects.enums import WorkItemStatus
from .operation_template import OperationDefinition


class WorkItem(AggregateRoot):
    """
    Work item entity governed by the work-item state machine.

    Every status change goes through ``_change_status``, which consults the
    transition table on ``WorkItemStatus`` and raises ``InvalidTransitionError``
    before touching any field. ``version`` is bumped by the repository on each
    successful compare-and-swap save.
    """

    lot_id: UUID
    operation_id: str = Field(min_length=1, max_length=64)
    operation_name: str = Field(default="", max_length=120)
    sequence: int = Field(default=0, ge=0)
    dependencies: frozenset[str] = Field(default_factory=frozenset)
    sub_unit: str | None = None  # roll number under per-roll expansion

    # Garment metadata inherited by split/merge children
    article: str | None = None
    size: str | None = None
    color: str | None = None

    pieces: int = Field(gt=0)
    completed_pieces: int = Field(default=0, ge=0)
    status: WorkItemStatus = Field(default=WorkItemStatus.PENDING)

    machine_type: str = Field(min_length=1, max_length=64)
    estimated_time: float = Field(default=0.0, ge=0)  # minutes
    rate: float = Field(default=0.0, ge=0)

    # Assignment tracking
    assigned_operator_id: str | None = None
    assigned_by: str | None = None
    assigned_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None

    # Execution data
    started_at: datetime | None = None
    completed_at: datetime | None = None

    # Holds
    hold_reason: str | None = None
    held_from: WorkItemStatus | None = None

    # Bundle lineage
    parent_ids: list[UUID] = Field(default_factory=list)

    version: int = Field(default=0, ge=0)

    @field_validator("dependencies", mode="before")
    @classmethod
    def coerce_dependencies(cls, v):
        if v is None:
            return frozenset()
        return frozenset(v)

    @model_validator(mode="after")
    def completed_within_pieces(self) -> "WorkItem":
        if self.completed_pieces > self.pieces:
            raise ValueError(
                f"completed_pieces {self.completed_pieces} exceeds pieces {self.pieces}"
            )
        return self

    def is_valid(self) -> bool:
        """Validate business rules."""
        return 0 <= self.completed_pieces <= self.pieces and self.pieces > 0

    @property
    def is_ready(self) -> bool:
        return self.status == WorkItemStatus.READY

    @property
    def is_live(self) -> bool:
        return self.status.is_live

    @property
    def remaining_pieces(self) -> int:
        return self.pieces - self.completed_pieces

    # ------------------------------------------------------------------
    # Dependency readiness
    # ------------------------------------------------------------------

    def mark_ready(self, reason: str = "dependencies_completed") -> None:
        """Move a pending item to ready once its dependencies are complete."""
        self._change_status(WorkItemStatus.READY, reason)

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def ensure_assignable(self) -> None:
        """
        Check the item can take a new operator.

        Raises:
            AlreadyAssignedError: If an operator already holds the item
            InvalidTransitionError: If the item is not ready
        """
        if self.status.holds_operator:
            raise AlreadyAssignedError(
                self.id, self.status.value, self.assigned_operator_id
            )
        self._check_transition(WorkItemStatus.ASSIGNED)

    def assign(
        self, operator_id: str, assigned_by: str, at: datetime | None = None
    ) -> None:
        """Confirm an assignment: ``ready -> assigned``."""
        self.ensure_assignable()
        self._attach_operator(operator_id, assigned_by, at)
        self._change_status(WorkItemStatus.ASSIGNED, "operator_assigned")

    def self_assign(self, operator_id: str, at: datetime | None = None) -> None:
        """An operator claims the item for themself: ``ready -> self_assigned``."""
        if self.status.holds_operator:
            raise AlreadyAssignedError(
                self.id, self.status.value, self.assigned_operator_id
            )
        self._check_transition(WorkItemStatus.SELF_ASSIGNED)
        self._attach_operator(operator_id, operator_id, at)
        self._change_status(WorkItemStatus.SELF_ASSIGNED, "self_assignment_requested")

    def approve_self_assignment(self, supervisor_id: str, at: datetime | None = None) -> None:
        """Supervisor approval: ``self_assigned -> assigned``."""
        self._check_transition(WorkItemStatus.ASSIGNED, expected=WorkItemStatus.SELF_ASSIGNED)
        self.approved_by = supervisor_id
        self.approved_at = at or utcnow()
        self._change_status(WorkItemStatus.ASSIGNED, "self_assignment_approved")

    def reject_self_assignment(
        self, supervisor_id: str, reason: str | None = None, at: datetime | None = None
    ) -> str | None:
        """
        Supervisor rejection: ``self_assigned -> ready`` with the claim cleared.

        Returns:
            The operator whose claim was rejected
        """
        self._check_transition(WorkItemStatus.READY, expected=WorkItemStatus.SELF_ASSIGNED)
        operator_id = self.assigned_operator_id
        self._clear_assignment()
        self.rejected_by = supervisor_id
        self.rejected_at = at or utcnow()
        self.rejection_reason = reason
        self._change_status(WorkItemStatus.READY, "self_assignment_rejected")
        return operator_id

    def release(self, reason: str = "released") -> str | None:
        """
        Hand confirmed-but-unstarted work back: ``assigned -> ready``.

        Returns:
            The operator that was released
        """
        self._check_transition(WorkItemStatus.READY, expected=WorkItemStatus.ASSIGNED)
        operator_id = self.assigned_operator_id
        self._clear_assignment()
        self._change_status(WorkItemStatus.READY, reason)
        return operator_id

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def start(self, at: datetime | None = None) -> None:
        """Operator begins work: ``assigned -> in_progress``."""
        self._check_transition(WorkItemStatus.IN_PROGRESS)
        self.started_at = at or utcnow()
        self._change_status(WorkItemStatus.IN_PROGRESS, "work_started")

    def record_progress(self, pieces_done: int) -> None:
        """
        Add finished pieces to an in-progress item.

        Raises:
            InvalidTransitionError: If the item is not in progress
            InvariantViolationError: If the total would exceed ``pieces``
        """
        if self.status != WorkItemStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                self.id,
                self.status.value,
                WorkItemStatus.IN_PROGRESS.value,
                "progress can only be recorded on in-progress work",
            )
        if pieces_done <= 0:
            raise InvariantViolationError(
                "POSITIVE_PROGRESS",
                f"progress must be positive, got {pieces_done}",
                {"work_item_id": str(self.id), "pieces_done": pieces_done},
            )
        PieceCountValidators.validate_completed_pieces(
            self.id, self.completed_pieces + pieces_done, self.pieces
        )
        self.completed_pieces += pieces_done
        self.mark_updated()

    def complete(
        self, completed_pieces: int | None = None, at: datetime | None = None
    ) -> None:
        """
        Finish the item: ``in_progress -> completed``.

        Args:
            completed_pieces: Final piece count to record (defaults to current)
            at: Completion time (defaults to now)

        Raises:
            InvalidTransitionError: If the item is not in progress
            InvariantViolationError: If not every piece is done
        """
        self._check_transition(WorkItemStatus.COMPLETED)
        final_pieces = self.completed_pieces if completed_pieces is None else completed_pieces
        PieceCountValidators.validate_completed_pieces(self.id, final_pieces, self.pieces)
        if final_pieces != self.pieces:
            raise InvariantViolationError(
                "COMPLETE_ALL_PIECES",
                f"{final_pieces} of {self.pieces} pieces done",
                {
                    "work_item_id": str(self.id),
                    "completed_pieces": final_pieces,
                    "pieces": self.pieces,
                },
            )
        self.completed_pieces = final_pieces
        self.completed_at = at or utcnow()
        self._change_status(WorkItemStatus.COMPLETED, "work_completed")

    # ------------------------------------------------------------------
    # Holds and failure
    # ------------------------------------------------------------------

    def block(self, reason: str) -> str | None:
        """
        External hold: ``ready|in_progress -> blocked``.

        Blocking in-progress work detaches its operator; finished pieces are
        kept.

        Returns:
            The operator detached from the item, if any
        """
        self._check_transition(WorkItemStatus.BLOCKED)
        operator_id = None
        if self.status == WorkItemStatus.IN_PROGRESS:
            operator_id = self.assigned_operator_id
            self._clear_assignment()
        self.held_from = None
        self.hold_reason = reason
        self._change_status(WorkItemStatus.BLOCKED, reason)
        return operator_id

    def unblock(self) -> None:
        """Lift an external hold: ``blocked -> ready``."""
        self._check_transition(WorkItemStatus.READY, expected=WorkItemStatus.BLOCKED)
        self.hold_reason = None
        self._change_status(WorkItemStatus.READY, "unblocked")

    def hold(self, reason: str) -> None:
        """Supervisor pause: ``ready|blocked -> on_hold``."""
        self._check_transition(WorkItemStatus.ON_HOLD)
        self.held_from = self.status
        self.hold_reason = reason
        self._change_status(WorkItemStatus.ON_HOLD, reason)

    def resume(self) -> None:
        """Lift a supervisor pause, returning to the status it was held from."""
        target = self.held_from or WorkItemStatus.READY
        self._check_transition(target, expected=WorkItemStatus.ON_HOLD)
        self.held_from = None
        if target == WorkItemStatus.READY:
            self.hold_reason = None
        self._change_status(target, "resumed")

    def reject(self, reason: str, rejected_by: str, at: datetime | None = None) -> str | None:
        """
        Terminal failure: ``ready|in_progress -> rejected``.

        Returns:
            The operator that was working the item, if any
        """
        self._check_transition(WorkItemStatus.REJECTED)
        operator_id = self.assigned_operator_id if self.status.holds_operator else None
        self.rejected_by = rejected_by
        self.rejected_at = at or utcnow()
        self.rejection_reason = reason
        self._change_status(WorkItemStatus.REJECTED, reason)
        return operator_id

    def supersede(self, reason: str) -> None:
        """Retire a bundle replaced by a split or merge."""
        if not self.status.is_unstarted:
            raise InvalidTransitionError(
                self.id,
                self.status.value,
                WorkItemStatus.SUPERSEDED.value,
                "only unstarted bundles can be split or merged",
            )
        PieceCountValidators.validate_untouched(self.id, self.completed_pieces, reason)
        # Retirement sits outside the transition table
        self._record_status(WorkItemStatus.SUPERSEDED, reason)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_transition(
        self, target: WorkItemStatus, expected: WorkItemStatus | None = None
    ) -> None:
        if expected is not None and self.status != expected:
            raise InvalidTransitionError(
                self.id,
                self.status.value,
                target.value,
                f"requires status {expected.value}",
            )
        if not self.status.can_transition_to(target):
            raise InvalidTransitionError(self.id, self.status.value, target.value)

    def _attach_operator(
        self, operator_id: str, assigned_by: str, at: datetime | None
    ) -> None:
        """Record a new claim; decisions on earlier claims no longer apply."""
        self.assigned_operator_id = operator_id
        self.assigned_by = assigned_by
        self.assigned_at = at or utcnow()
        self.approved_by = None
        self.approved_at = None
        self.rejected_by = None
        self.rejected_at = None
        self.rejection_reason = None

    def _clear_assignment(self) -> None:
        self.assigned_operator_id = None
        self.assigned_by = None
        self.assigned_at = None

    def _change_status(self, new_status: WorkItemStatus, reason: str) -> None:
        """Internal method to change status and raise events."""
        self._check_transition(new_status)
        self._record_status(new_status, reason)

    def _record_status(self, new_status: WorkItemStatus, reason: str) -> None:
        old_status = self.status
        self.status = new_status
        self.mark_updated()
        self.add_domain_event(
            WorkItemStatusChanged(
                work_item_id=self.id,
                lot_id=self.lot_id,
                operation_id=self.operation_id,
                old_status=old_status.value,
                new_status=new_status.value,
                reason=reason,
            )
        )

    def derive_bundle(self, pieces: int, parent_ids: list[UUID]) -> "WorkItem":
        """
        New bundle of the same operation carrying this item's metadata.

        Used for split children and merge results. The bundle has no progress.
        A blocked or on-hold source passes its hold on, otherwise the bundle
        starts ``pending`` and the fan-out decides when it is ready.
        """
        per_piece = self.estimated_time / self.pieces
        held = self.status.is_held
        return WorkItem(
            lot_id=self.lot_id,
            operation_id=self.operation_id,
            operation_name=self.operation_name,
            sequence=self.sequence,
            dependencies=self.dependencies,
            sub_unit=self.sub_unit,
            article=self.article,
            size=self.size,
            color=self.color,
            pieces=pieces,
            machine_type=self.machine_type,
            estimated_time=per_piece * pieces,
            rate=self.rate,
            status=self.status if held else WorkItemStatus.PENDING,
            hold_reason=self.hold_reason if held else None,
            held_from=self.held_from if held else None,
            parent_ids=list(parent_ids),
        )

    @property
    def hold_state(self) -> tuple[WorkItemStatus | None, WorkItemStatus | None]:
        """Hold status and the status it was held from; ``(None, None)`` when not held."""
        if not self.status.is_held:
            return None, None
        return self.status, self.held_from

    @staticmethod
    def from_definition(
        lot_id: UUID,
        definition: OperationDefinition,
        pieces: int,
        sub_unit: str | None = None,
        article: str | None = None,
        size: str | None = None,
        color: str | None = None,
    ) -> "WorkItem":
        """
        Factory method instantiating one operation for a lot or roll.

        Items without dependencies start ``ready``; all others ``pending``.
        """
        item = WorkItem(
            lot_id=lot_id,
            operation_id=definition.id,
            operation_name=definition.name,
            sequence=definition.sequence,
            dependencies=definition.dependencies,
            sub_unit=sub_unit,
            article=article,
            size=size,
            color=color,
            pieces=pieces,
            machine_type=definition.machine_type,
            estimated_time=definition.estimated_minutes_for(pieces),
            rate=float(definition.rate),
            status=(
                WorkItemStatus.PENDING
                if definition.dependencies
                else WorkItemStatus.READY
            ),
        )
        item.validate_entity()
        return item
