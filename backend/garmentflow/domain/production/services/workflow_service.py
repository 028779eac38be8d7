"""
Workflow Service

Drives work items through their state machine: start, progress, completion,
holds and rejection, plus the dependency fan-out that promotes pending items
once their upstream operations are done and archives finished lots.
"""

from uuid import UUID

from ....core.observability import get_logger
from ...shared.exceptions import ConcurrencyError, NotFoundError
from ..entities.work_item import WorkItem
from ..events import DomainEventDispatcher, OperatorReleased
from ..repositories.assignment_repository import AssignmentRepository
from ..repositories.lot_repository import LotRepository
from ..repositories.work_item_repository import WorkItemRepository
from ..value_objects.common import Actor
from ..value_objects.enums import ApprovalState, WorkItemStatus
from .base_service import WorkItemServiceBase
from .dependency_resolver import DependencyResolver
from .operator_load_ledger import OperatorLoadLedger

logger = get_logger(__name__)


class WorkflowService(WorkItemServiceBase):
    """
    Service for work item state transitions after assignment.

    Each operation reads the item, applies one transition and writes it back
    with a compare-and-swap. A stale read surfaces as ``ConcurrencyError``
    and leaves stored state untouched.
    """

    def __init__(
        self,
        work_item_repository: WorkItemRepository,
        lot_repository: LotRepository,
        assignment_repository: AssignmentRepository,
        load_ledger: OperatorLoadLedger,
        event_dispatcher: DomainEventDispatcher,
    ) -> None:
        """
        Initialize the workflow service.

        Args:
            work_item_repository: Work item data access interface
            lot_repository: Lot data access interface
            assignment_repository: Assignment data access interface
            load_ledger: Single writer of operator load
            event_dispatcher: Dispatcher receiving events after each write
        """
        super().__init__(work_item_repository, event_dispatcher)
        self._lot_repository = lot_repository
        self._assignment_repository = assignment_repository
        self._load_ledger = load_ledger

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def start(self, work_item_id: UUID, actor: Actor) -> WorkItem:
        """
        Begin work on an assigned item.

        Raises:
            NotFoundError: If the work item doesn't exist
            NotAuthorizedError: If the actor is neither the assignee nor a supervisor
            InvalidTransitionError: If the item is not assigned
        """
        item = await self.get_work_item(work_item_id)
        self._require_owner_or_supervisor(actor, item, "start work")
        version = item.version
        item.start()
        saved = await self._commit(item, version)
        logger.info(
            "work_started",
            work_item_id=str(work_item_id),
            operator_id=saved.assigned_operator_id,
        )
        return saved

    async def record_progress(
        self, work_item_id: UUID, pieces_done: int, actor: Actor
    ) -> WorkItem:
        """
        Record finished pieces on an in-progress item.

        Raises:
            InvariantViolationError: If progress would exceed the item's pieces
        """
        item = await self.get_work_item(work_item_id)
        self._require_owner_or_supervisor(actor, item, "record progress")
        version = item.version
        item.record_progress(pieces_done)
        return await self._commit(item, version)

    async def complete(
        self,
        work_item_id: UUID,
        actor: Actor,
        completed_pieces: int | None = None,
    ) -> WorkItem:
        """
        Complete an in-progress item.

        Frees the operator's load, closes the assignment, promotes dependents
        and archives the lot once every live item is completed.

        Args:
            work_item_id: Work item identifier
            actor: Acting user
            completed_pieces: Final piece count (defaults to recorded progress)

        Raises:
            InvalidTransitionError: If the item is not in progress
            InvariantViolationError: If not all pieces are done
        """
        item = await self.get_work_item(work_item_id)
        self._require_owner_or_supervisor(actor, item, "complete work")
        version = item.version
        operator_id = item.assigned_operator_id
        item.complete(completed_pieces)
        saved = await self._commit(item, version)

        await self._close_active_assignment(saved.id, actor, "work_completed")
        if operator_id:
            await self._release_load(operator_id, saved.id)

        logger.info(
            "work_completed",
            work_item_id=str(saved.id),
            lot_id=str(saved.lot_id),
            operation_id=saved.operation_id,
            pieces=saved.pieces,
        )

        await self.fan_out(saved.lot_id)
        await self.archive_lot_if_complete(saved.lot_id)
        return saved

    # ------------------------------------------------------------------
    # Holds and failure
    # ------------------------------------------------------------------

    async def block(self, work_item_id: UUID, reason: str, actor: Actor) -> WorkItem:
        """
        Put an external hold on a ready or in-progress item.

        Blocking in-progress work releases its operator; completed pieces
        are kept.
        """
        actor.require_supervisory("block work items")
        item = await self.get_work_item(work_item_id)
        version = item.version
        released_operator = item.block(reason)
        saved = await self._commit(item, version)

        await self._close_active_assignment(saved.id, actor, f"blocked: {reason}")
        if released_operator:
            await self._detach_operator(released_operator, saved.id, f"blocked: {reason}")

        logger.info("work_blocked", work_item_id=str(saved.id), reason=reason)
        return saved

    async def unblock(self, work_item_id: UUID, actor: Actor) -> WorkItem:
        """Return a blocked item to ready."""
        actor.require_supervisory("unblock work items")
        item = await self.get_work_item(work_item_id)
        version = item.version
        item.unblock()
        return await self._commit(item, version)

    async def hold(self, work_item_id: UUID, reason: str, actor: Actor) -> WorkItem:
        """Supervisor pause of a ready or blocked item."""
        actor.require_supervisory("put work on hold")
        item = await self.get_work_item(work_item_id)
        version = item.version
        item.hold(reason)
        saved = await self._commit(item, version)
        logger.info("work_held", work_item_id=str(saved.id), reason=reason)
        return saved

    async def resume(self, work_item_id: UUID, actor: Actor) -> WorkItem:
        """Lift a supervisor pause."""
        actor.require_supervisory("resume work")
        item = await self.get_work_item(work_item_id)
        version = item.version
        item.resume()
        return await self._commit(item, version)

    async def reject(self, work_item_id: UUID, reason: str, actor: Actor) -> WorkItem:
        """Terminally reject a ready or in-progress item."""
        actor.require_supervisory("reject work items")
        item = await self.get_work_item(work_item_id)
        version = item.version
        released_operator = item.reject(reason, actor.id)
        saved = await self._commit(item, version)

        await self._close_active_assignment(saved.id, actor, f"rejected: {reason}")
        if released_operator:
            await self._detach_operator(released_operator, saved.id, f"rejected: {reason}")

        logger.info("work_rejected", work_item_id=str(saved.id), reason=reason)
        return saved

    async def release(
        self, work_item_id: UUID, actor: Actor, reason: str = "released"
    ) -> WorkItem:
        """
        Hand an assigned, not yet started item back to the ready pool.

        Raises:
            NotAuthorizedError: If the actor is neither the assignee nor a supervisor
            InvalidTransitionError: If the item is not assigned
        """
        item = await self.get_work_item(work_item_id)
        self._require_owner_or_supervisor(actor, item, "release work")
        version = item.version
        operator_id = item.release(reason)
        saved = await self._commit(item, version)

        await self._close_active_assignment(saved.id, actor, reason, released=True)
        if operator_id:
            await self._detach_operator(operator_id, saved.id, reason)

        logger.info(
            "work_released",
            work_item_id=str(saved.id),
            operator_id=operator_id,
        )
        return saved

    # ------------------------------------------------------------------
    # Fan-out and lot completion
    # ------------------------------------------------------------------

    async def fan_out(self, lot_id: UUID) -> list[WorkItem]:
        """
        Promote every pending item of a lot whose dependencies are completed.

        A full re-scan; repeating it changes nothing. An item that another
        writer changed in the meantime is skipped.

        Returns:
            Items promoted to ready by this call
        """
        items = await self._work_item_repository.get_by_lot(lot_id)
        promoted: list[WorkItem] = []

        for item in DependencyResolver.find_ready_candidates(items):
            version = item.version
            item.mark_ready()
            try:
                promoted.append(await self._commit(item, version))
            except ConcurrencyError:
                logger.info(
                    "fan_out_skipped_stale_item",
                    work_item_id=str(item.id),
                    lot_id=str(lot_id),
                )

        if promoted:
            logger.info(
                "dependencies_released",
                lot_id=str(lot_id),
                work_item_ids=[str(i.id) for i in promoted],
            )
        return promoted

    async def archive_lot_if_complete(self, lot_id: UUID) -> bool:
        """
        Archive a lot when every live work item is completed.

        Returns:
            True if the lot was archived by this call
        """
        lot = await self._lot_repository.get_by_id(lot_id)
        if lot is None:
            raise NotFoundError("Lot", lot_id)
        if not lot.is_active:
            return False

        items = await self._work_item_repository.get_by_lot(lot_id)
        if not items or any(i.status != WorkItemStatus.COMPLETED for i in items):
            return False

        lot.archive()
        await self._lot_repository.save(lot)
        self._publish(lot)
        logger.info("lot_archived", lot_id=str(lot_id), lot_number=lot.lot_number)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _close_active_assignment(
        self, work_item_id: UUID, actor: Actor, reason: str, released: bool = False
    ) -> None:
        assignment = await self._assignment_repository.get_active_for(work_item_id)
        if assignment is None:
            return

        if assignment.approval_state == ApprovalState.PROPOSED:
            assignment.withdraw(actor.id, reason)
        elif released and assignment.approval_state == ApprovalState.CONFIRMED:
            assignment.release(reason)
        else:
            assignment.close(reason)
        await self._assignment_repository.persist_assignment(assignment)

    async def _release_load(self, operator_id: str, work_item_id: UUID) -> None:
        try:
            await self._load_ledger.release(operator_id)
        except NotFoundError:
            logger.warning(
                "operator_missing_on_release",
                operator_id=operator_id,
                work_item_id=str(work_item_id),
            )

    async def _detach_operator(self, operator_id: str, work_item_id: UUID, reason: str) -> None:
        await self._release_load(operator_id, work_item_id)
        self._event_dispatcher.dispatch(
            OperatorReleased(work_item_id=work_item_id, operator_id=operator_id, reason=reason)
        )
