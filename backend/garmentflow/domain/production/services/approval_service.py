"""
Approval Service

Supervisor side of the self-assignment protocol: approving or rejecting
claims and listing the claims awaiting review.
"""

from uuid import UUID

from ....core.observability import get_logger
from ...shared.exceptions import NotFoundError
from ..entities.assignment import Assignment
from ..entities.work_item import WorkItem
from ..events import (
    DomainEventDispatcher,
    OperatorReleased,
    SelfAssignmentApproved,
    SelfAssignmentRejected,
)
from ..repositories.assignment_repository import AssignmentRepository
from ..repositories.work_item_repository import WorkItemRepository
from ..value_objects.common import Actor
from ..value_objects.enums import ApprovalState, WorkItemStatus
from .base_service import WorkItemServiceBase
from .operator_load_ledger import OperatorLoadLedger

logger = get_logger(__name__)


class ApprovalService(WorkItemServiceBase):
    """Service for reviewing self-assignments."""

    def __init__(
        self,
        work_item_repository: WorkItemRepository,
        assignment_repository: AssignmentRepository,
        load_ledger: OperatorLoadLedger,
        event_dispatcher: DomainEventDispatcher,
    ) -> None:
        super().__init__(work_item_repository, event_dispatcher)
        self._assignment_repository = assignment_repository
        self._load_ledger = load_ledger

    async def pending_approvals(self, actor: Actor) -> list[WorkItem]:
        """Self-assigned items awaiting review, oldest request first."""
        actor.require_supervisory("review self-assignments")
        items = await self._work_item_repository.get_by_status(WorkItemStatus.SELF_ASSIGNED)
        return sorted(items, key=lambda i: (i.assigned_at or i.created_at, str(i.id)))

    async def approve(self, work_item_id: UUID, actor: Actor) -> WorkItem:
        """
        Approve a self-assignment: ``self_assigned -> assigned``.

        Raises:
            NotAuthorizedError: If the actor is not a supervisor or manager
            InvalidTransitionError: If the item is not self-assigned
        """
        actor.require_supervisory("approve self-assignments")
        item = await self.get_work_item(work_item_id)
        version = item.version
        item.approve_self_assignment(actor.id)
        assignment = await self._pending_assignment(item.id)
        saved = await self._commit(item, version)

        assignment.confirm(actor.id)
        await self._assignment_repository.persist_assignment(assignment)

        self._event_dispatcher.dispatch(
            SelfAssignmentApproved(
                work_item_id=saved.id,
                operator_id=assignment.operator_id,
                approved_by=actor.id,
            )
        )
        logger.info(
            "self_assignment_approved",
            work_item_id=str(saved.id),
            operator_id=assignment.operator_id,
            approved_by=actor.id,
        )
        return saved

    async def reject(
        self, work_item_id: UUID, actor: Actor, reason: str | None = None
    ) -> WorkItem:
        """
        Reject a self-assignment, returning the item to ``ready``.

        The claimed operator's load is released.

        Raises:
            NotAuthorizedError: If the actor is not a supervisor or manager
            InvalidTransitionError: If the item is not self-assigned
        """
        actor.require_supervisory("reject self-assignments")
        item = await self.get_work_item(work_item_id)
        version = item.version
        operator_id = item.reject_self_assignment(actor.id, reason)
        assignment = await self._pending_assignment(item.id)
        saved = await self._commit(item, version)

        assignment.reject(actor.id, reason)
        await self._assignment_repository.persist_assignment(assignment)

        if operator_id:
            await self._load_ledger.release(operator_id)
            self._event_dispatcher.dispatch(
                OperatorReleased(
                    work_item_id=saved.id,
                    operator_id=operator_id,
                    reason="self_assignment_rejected",
                )
            )

        self._event_dispatcher.dispatch(
            SelfAssignmentRejected(
                work_item_id=saved.id,
                operator_id=operator_id or assignment.operator_id,
                rejected_by=actor.id,
                reason=reason,
            )
        )
        logger.info(
            "self_assignment_rejected",
            work_item_id=str(saved.id),
            operator_id=operator_id,
            rejected_by=actor.id,
            reason=reason,
        )
        return saved

    async def _pending_assignment(self, work_item_id: UUID) -> Assignment:
        assignment = await self._assignment_repository.get_active_for(work_item_id)
        if assignment is None or assignment.approval_state != ApprovalState.PENDING:
            raise NotFoundError("Assignment", f"pending self-assignment for {work_item_id}")
        return assignment

