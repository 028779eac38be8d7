"""
Assignment Matcher

Matches ready work items to operators: compatibility checks, a load-based
ranking for UI ordering, proposal and confirmation of assignments, bulk
confirmation with per-item outcomes, and self-assignment requests.
"""

from uuid import UUID

from pydantic import Field

from ....core.observability import get_logger
from ...shared.base import ValueObject
from ...shared.exceptions import (
    AlreadyAssignedError,
    AssignmentConflictError,
    ConcurrencyError,
    DomainError,
    IncompatibleAssignmentError,
    InvalidTransitionError,
    NotFoundError,
)
from ..entities.assignment import Assignment
from ..entities.operator import Operator
from ..entities.work_item import WorkItem
from ..events import DomainEventDispatcher, OperatorAssigned, SelfAssignmentRequested
from ..repositories.assignment_repository import AssignmentRepository
from ..repositories.operator_repository import OperatorRepository
from ..repositories.work_item_repository import WorkItemRepository
from ..value_objects.common import Actor, OperatorFilter, WorkItemFilter
from ..value_objects.enums import ApprovalState, AssignmentMethod, WorkItemStatus
from .base_service import WorkItemServiceBase
from .operator_load_ledger import OperatorLoadLedger

logger = get_logger(__name__)


class OperatorRanking(ValueObject):
    """One operator's position in the ranking for a work item."""

    operator_id: str
    name: str
    compatible: bool
    current_load: int
    max_load: int
    load_ratio: float
    efficiency: float


class AssignmentOutcome(ValueObject):
    """Result of confirming one assignment in a bulk confirm."""

    assignment_id: UUID
    work_item_id: UUID | None = None
    success: bool
    error_type: str | None = None
    message: str | None = None
    details: dict = Field(default_factory=dict)


class BulkConfirmResult(ValueObject):
    """Per-item outcomes of a bulk confirm."""

    outcomes: list[AssignmentOutcome]

    @property
    def committed(self) -> list[AssignmentOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[AssignmentOutcome]:
        return [o for o in self.outcomes if not o.success]


class CompatibilityRules:
    """Operator/work item compatibility."""

    @staticmethod
    def is_compatible(item: WorkItem, operator: Operator) -> bool:
        return operator.is_compatible_with(item.machine_type)

    @staticmethod
    def check(item: WorkItem, operator: Operator) -> None:
        """
        Raise unless ``operator`` may take ``item``.

        Raises:
            IncompatibleAssignmentError: If the operator is inactive or lacks
                the item's machine type
        """
        if not operator.active:
            raise IncompatibleAssignmentError(
                item.id, operator.id, item.machine_type, "operator is inactive"
            )
        if not operator.can_operate(item.machine_type):
            raise IncompatibleAssignmentError(
                item.id,
                operator.id,
                item.machine_type,
                f"operator capabilities {sorted(operator.machine_capabilities)} "
                f"do not include {item.machine_type}",
            )


def rank_operators(machine_type: str, operators: list[Operator]) -> list[OperatorRanking]:
    """
    Order operators for a machine type.

    Compatible operators come first, then ascending load ratio, then higher
    efficiency, then id. The order is a hint for the UI, not a constraint.
    """
    ordered = sorted(
        operators,
        key=lambda op: (
            not op.is_compatible_with(machine_type),
            op.load_ratio,
            -op.efficiency,
            op.id,
        ),
    )
    return [
        OperatorRanking(
            operator_id=op.id,
            name=op.name,
            compatible=op.is_compatible_with(machine_type),
            current_load=op.current_load,
            max_load=op.max_load,
            load_ratio=op.load_ratio,
            efficiency=op.efficiency,
        )
        for op in ordered
    ]


def suggest_assignments(
    ready_items: list[WorkItem], operators: list[Operator]
) -> list[tuple[WorkItem, Operator]]:
    """
    Greedily pair ready items with operators.

    Items are taken in sequence order; each goes to the best-ranked
    compatible operator whose projected load is still below ``max_load``.
    Items with no such operator are left out.
    """
    projected = {op.id: op.current_load for op in operators}
    by_id = {op.id: op for op in operators}
    pairs: list[tuple[WorkItem, Operator]] = []

    for item in sorted(ready_items, key=lambda i: (i.sequence, str(i.lot_id), str(i.id))):
        candidates = [
            op
            for op in operators
            if op.is_compatible_with(item.machine_type) and projected[op.id] < op.max_load
        ]
        if not candidates:
            continue
        best = min(
            candidates,
            key=lambda op: (projected[op.id] / op.max_load, -op.efficiency, op.id),
        )
        projected[best.id] += 1
        pairs.append((item, by_id[best.id]))

    return pairs


class AssignmentMatcher(WorkItemServiceBase):
    """
    Service for assigning operators to ready work items.

    Assignment changes the work item through a compare-and-swap, so when two
    actors claim the same item at once exactly one write succeeds and the
    other fails with ``AlreadyAssignedError``. Operator load is reserved
    through the ledger before that write and released if it fails.
    """

    def __init__(
        self,
        work_item_repository: WorkItemRepository,
        operator_repository: OperatorRepository,
        assignment_repository: AssignmentRepository,
        load_ledger: OperatorLoadLedger,
        event_dispatcher: DomainEventDispatcher,
    ) -> None:
        """
        Initialize the assignment matcher.

        Args:
            work_item_repository: Work item data access interface
            operator_repository: Operator roster interface
            assignment_repository: Assignment data access interface
            load_ledger: Single writer of operator load
            event_dispatcher: Dispatcher receiving events after each write
        """
        super().__init__(work_item_repository, event_dispatcher)
        self._operator_repository = operator_repository
        self._assignment_repository = assignment_repository
        self._load_ledger = load_ledger

    # ------------------------------------------------------------------
    # Ranking and suggestions
    # ------------------------------------------------------------------

    async def rank_for(self, work_item_id: UUID) -> list[OperatorRanking]:
        """Rank the active roster for one work item."""
        item = await self.get_work_item(work_item_id)
        operators = await self._operator_repository.query_operators(OperatorFilter(active=True))
        return rank_operators(item.machine_type, operators)

    async def suggest(
        self, actor: Actor, item_filter: WorkItemFilter | None = None
    ) -> list[Assignment]:
        """
        Propose operators for unassigned ready items.

        Items that already have an outstanding assignment, or that another
        actor changed in the meantime, are skipped.

        Returns:
            The proposals recorded
        """
        actor.require_supervisory("suggest assignments")
        ready_items = await self._work_item_repository.query_ready(item_filter or WorkItemFilter())
        operators = await self._operator_repository.query_operators(OperatorFilter(active=True))

        proposals: list[Assignment] = []
        for item, operator in suggest_assignments(ready_items, operators):
            try:
                proposals.append(
                    await self.propose(item.id, operator.id, actor, AssignmentMethod.MATCHER)
                )
            except (AssignmentConflictError, AlreadyAssignedError, InvalidTransitionError) as e:
                logger.info(
                    "suggestion_skipped",
                    work_item_id=str(item.id),
                    operator_id=operator.id,
                    error_type=e.error_type.value,
                )
        logger.info("assignments_suggested", count=len(proposals))
        return proposals

    # ------------------------------------------------------------------
    # Proposal and confirmation
    # ------------------------------------------------------------------

    async def propose(
        self,
        work_item_id: UUID,
        operator_id: str,
        actor: Actor,
        method: AssignmentMethod = AssignmentMethod.MANUAL,
    ) -> Assignment:
        """
        Record a proposal to assign an operator to a ready item.

        The item's version is bumped with the proposal so concurrent
        proposals for the same item cannot both be recorded.

        Raises:
            AlreadyAssignedError: If the item already has an operator
            InvalidTransitionError: If the item is not ready
            IncompatibleAssignmentError: If the operator cannot take the item
            AssignmentConflictError: If another assignment is outstanding
        """
        actor.require_supervisory("propose assignments")
        item = await self.get_work_item(work_item_id)
        item.ensure_assignable()
        operator = await self._get_operator(operator_id)
        CompatibilityRules.check(item, operator)
        await self._ensure_no_active_assignment(item.id)

        version = item.version
        item.mark_updated()
        try:
            await self._commit(item, version)
        except ConcurrencyError:
            raise await self._lost_race(item.id)

        assignment = Assignment.propose(item.id, operator.id, actor.id, method)
        await self._assignment_repository.persist_assignment(assignment)
        logger.info(
            "assignment_proposed",
            work_item_id=str(item.id),
            operator_id=operator.id,
            assignment_id=str(assignment.id),
            method=method.value,
        )
        return assignment

    async def confirm(
        self,
        assignment_id: UUID,
        actor: Actor,
        method: AssignmentMethod | None = None,
    ) -> WorkItem:
        """
        Commit a proposal: ``ready -> assigned`` and one unit of operator load.

        Status and compatibility are re-checked against current state.

        Raises:
            NotFoundError: If the assignment, item or operator doesn't exist
            InvalidTransitionError: If the proposal is no longer open
            AlreadyAssignedError: If another actor assigned the item first
            IncompatibleAssignmentError: If the operator can no longer take it
        """
        actor.require_supervisory("confirm assignments")
        assignment = await self._assignment_repository.get_by_id(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        if not assignment.is_active or assignment.approval_state != ApprovalState.PROPOSED:
            raise InvalidTransitionError(
                assignment.work_item_id,
                assignment.approval_state.value,
                ApprovalState.CONFIRMED.value,
                f"assignment {assignment.id} is not an open proposal",
            )

        item = await self.get_work_item(assignment.work_item_id)
        item.ensure_assignable()
        operator = await self._get_operator(assignment.operator_id)
        CompatibilityRules.check(item, operator)

        method = method or assignment.method
        saved = await self._assign_operator(item, operator, actor, method)
        assignment.confirm(actor.id, method)
        await self._assignment_repository.persist_assignment(assignment)
        return saved

    async def assign(self, work_item_id: UUID, operator_id: str, actor: Actor) -> WorkItem:
        """
        Propose and confirm in one step (manual drag-assign).

        An operator assigning work to themself goes through ``self_assign``
        instead and needs supervisor approval.

        Raises:
            NotAuthorizedError: If a non-supervisor assigns work to someone else
            AlreadyAssignedError: If the item already has an operator
            AssignmentConflictError: If a proposal for another operator is open
            IncompatibleAssignmentError: If the operator cannot take the item
        """
        if operator_id == actor.id:
            return await self.self_assign(work_item_id, actor)

        actor.require_supervisory("assign work to other operators")
        item = await self.get_work_item(work_item_id)
        item.ensure_assignable()
        operator = await self._get_operator(operator_id)
        CompatibilityRules.check(item, operator)

        existing = await self._assignment_repository.get_active_for(item.id)
        if existing is not None:
            if (
                existing.approval_state == ApprovalState.PROPOSED
                and existing.operator_id == operator.id
            ):
                return await self.confirm(existing.id, actor, AssignmentMethod.MANUAL)
            raise AssignmentConflictError(
                item.id, existing.id, existing.approval_state.value
            )

        saved = await self._assign_operator(item, operator, actor, AssignmentMethod.MANUAL)
        assignment = Assignment.propose(item.id, operator.id, actor.id, AssignmentMethod.MANUAL)
        assignment.confirm(actor.id)
        await self._assignment_repository.persist_assignment(assignment)
        return saved

    async def bulk_confirm(self, assignment_ids: list[UUID], actor: Actor) -> BulkConfirmResult:
        """
        Confirm a batch of proposals independently.

        Each proposal is re-validated and committed on its own. A failure is
        reported in its outcome and never rolls back proposals committed
        before it.
        """
        actor.require_supervisory("confirm assignments")
        outcomes: list[AssignmentOutcome] = []

        for assignment_id in assignment_ids:
            try:
                item = await self.confirm(assignment_id, actor, AssignmentMethod.BULK)
            except DomainError as e:
                logger.warning(
                    "bulk_confirm_item_failed",
                    assignment_id=str(assignment_id),
                    error_type=e.error_type.value,
                    error=e.message,
                )
                work_item_id = e.details.get("work_item_id")
                outcomes.append(
                    AssignmentOutcome(
                        assignment_id=assignment_id,
                        work_item_id=UUID(str(work_item_id)) if work_item_id else None,
                        success=False,
                        error_type=e.error_type.value,
                        message=e.message,
                        details=e.details,
                    )
                )
            else:
                outcomes.append(
                    AssignmentOutcome(
                        assignment_id=assignment_id, work_item_id=item.id, success=True
                    )
                )

        result = BulkConfirmResult(outcomes=outcomes)
        logger.info(
            "bulk_confirm_finished",
            committed=len(result.committed),
            failed=len(result.failed),
        )
        return result

    async def withdraw(
        self, assignment_id: UUID, actor: Actor, reason: str | None = None
    ) -> Assignment:
        """
        Cancel an open proposal.

        Raises:
            NotFoundError: If the assignment doesn't exist
            InvalidTransitionError: If it is not an open proposal
        """
        actor.require_supervisory("withdraw proposals")
        assignment = await self._assignment_repository.get_by_id(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        assignment.withdraw(actor.id, reason)
        await self._assignment_repository.persist_assignment(assignment)
        logger.info("proposal_withdrawn", assignment_id=str(assignment_id))
        return assignment

    # ------------------------------------------------------------------
    # Self-assignment
    # ------------------------------------------------------------------

    async def self_assign(self, work_item_id: UUID, actor: Actor) -> WorkItem:
        """
        An operator claims a ready item: ``ready -> self_assigned``.

        The claim holds one unit of the operator's load until a supervisor
        approves or rejects it.

        Raises:
            AssignmentConflictError: If a proposal or self-assignment is outstanding
            AlreadyAssignedError: If the item already has an operator
            InvalidTransitionError: If the item is not ready
            IncompatibleAssignmentError: If the operator cannot take the item
        """
        item = await self.get_work_item(work_item_id)
        await self._ensure_no_active_assignment(item.id)
        item_version = item.version

        operator = await self._get_operator(actor.id)
        CompatibilityRules.check(item, operator)

        await self._load_ledger.reserve(operator.id)
        try:
            item.self_assign(operator.id)
            saved = await self._commit(item, item_version)
        except ConcurrencyError:
            await self._load_ledger.release(operator.id)
            raise await self._lost_race(item.id)
        except DomainError:
            await self._load_ledger.release(operator.id)
            raise

        assignment = Assignment.self_request(item.id, operator.id)
        await self._assignment_repository.persist_assignment(assignment)
        self._event_dispatcher.dispatch(
            SelfAssignmentRequested(work_item_id=item.id, operator_id=operator.id)
        )
        logger.info(
            "self_assignment_requested",
            work_item_id=str(item.id),
            operator_id=operator.id,
        )
        return saved

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _assign_operator(
        self,
        item: WorkItem,
        operator: Operator,
        actor: Actor,
        method: AssignmentMethod,
    ) -> WorkItem:
        version = item.version
        await self._load_ledger.reserve(operator.id)
        try:
            item.assign(operator.id, actor.id)
            saved = await self._commit(item, version)
        except ConcurrencyError:
            await self._load_ledger.release(operator.id)
            raise await self._lost_race(item.id)

        self._event_dispatcher.dispatch(
            OperatorAssigned(
                work_item_id=item.id,
                operator_id=operator.id,
                assigned_by=actor.id,
                method=method.value,
            )
        )
        logger.info(
            "operator_assigned",
            work_item_id=str(item.id),
            operator_id=operator.id,
            assigned_by=actor.id,
            method=method.value,
        )
        return saved

    async def _get_operator(self, operator_id: str) -> Operator:
        operator = await self._operator_repository.get_by_id(operator_id)
        if operator is None:
            raise NotFoundError("Operator", operator_id)
        return operator

    async def _ensure_no_active_assignment(self, work_item_id: UUID) -> None:
        existing = await self._assignment_repository.get_active_for(work_item_id)
        if existing is not None and existing.approval_state in (
            ApprovalState.PROPOSED,
            ApprovalState.PENDING,
        ):
            raise AssignmentConflictError(
                work_item_id, existing.id, existing.approval_state.value
            )

    async def _lost_race(self, work_item_id: UUID) -> DomainError:
        """Translate a failed compare-and-swap into the error the winner caused."""
        current = await self.get_work_item(work_item_id)
        logger.info(
            "assignment_race_lost",
            work_item_id=str(work_item_id),
            current_status=current.status.value,
        )
        if current.status.holds_operator:
            return AlreadyAssignedError(
                current.id, current.status.value, current.assigned_operator_id
            )
        existing = await self._assignment_repository.get_active_for(work_item_id)
        if existing is not None:
            return AssignmentConflictError(
                work_item_id, existing.id, existing.approval_state.value
            )
        if current.status != WorkItemStatus.READY:
            return InvalidTransitionError(
                current.id, current.status.value, WorkItemStatus.ASSIGNED.value
            )
        return AlreadyAssignedError(current.id, current.status.value)
