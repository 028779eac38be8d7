"""
Bundle Service

Splits a bundle (work item) into smaller bundles and merges bundles of the
same operation back together. Piece counts are conserved in both
directions, and only bundles nobody has started on can be split or merged.
"""

from uuid import UUID

from pydantic import Field

from ....core.observability import get_logger
from ...shared.base import ValueObject
from ...shared.exceptions import ConcurrencyError, InvariantViolationError
from ...shared.validation import PieceCountValidators
from ..entities.work_item import WorkItem
from ..events import BundleSplit, BundlesMerged, DomainEventDispatcher
from ..repositories.assignment_repository import AssignmentRepository
from ..repositories.work_item_repository import WorkItemRepository
from ..value_objects.common import Actor
from ..value_objects.enums import ApprovalState
from .base_service import WorkItemServiceBase
from .workflow_service import WorkflowService

logger = get_logger(__name__)


class SplitResult(ValueObject):
    """Outcome of a split."""

    parent: WorkItem
    children: list[WorkItem]
    promoted_ids: list[UUID] = Field(default_factory=list)


class MergeResult(ValueObject):
    """Outcome of a merge."""

    merged: WorkItem
    sources: list[WorkItem]
    promoted_ids: list[UUID] = Field(default_factory=list)


class BundleService(WorkItemServiceBase):
    """
    Service for bundle split and merge.

    New bundles start ``pending``; the lot's dependency fan-out runs right
    after and promotes those whose upstream operations are already done.
    Bundles cut from a blocked or on-hold source keep that hold until it is
    lifted with unblock or resume.
    """

    def __init__(
        self,
        work_item_repository: WorkItemRepository,
        assignment_repository: AssignmentRepository,
        workflow_service: WorkflowService,
        event_dispatcher: DomainEventDispatcher,
    ) -> None:
        super().__init__(work_item_repository, event_dispatcher)
        self._assignment_repository = assignment_repository
        self._workflow_service = workflow_service

    async def split(
        self, work_item_id: UUID, piece_counts: list[int], actor: Actor
    ) -> SplitResult:
        """
        Split a bundle into bundles of the given sizes.

        Args:
            work_item_id: Bundle to split
            piece_counts: Pieces per new bundle; must sum to the bundle's pieces
            actor: Acting supervisor

        Returns:
            The retired parent, the new bundles as created, and the ids the
            follow-up fan-out promoted to ready

        Raises:
            InvariantViolationError: On a piece mismatch, fewer than two parts,
                a non-positive part, or a bundle that was already started
        """
        actor.require_supervisory("split bundles")
        parent = await self.get_work_item(work_item_id)
        self._ensure_unstarted(parent, "split")
        PieceCountValidators.validate_split(parent.id, parent.pieces, piece_counts)

        children = [parent.derive_bundle(count, [parent.id]) for count in piece_counts]

        version = parent.version
        parent.supersede("bundle_split")
        saved_parent = await self._commit(parent, version)
        await self._work_item_repository.persist_work_items(parent.lot_id, children)
        await self._withdraw_open_proposal(parent.id, actor, "bundle_split")

        self._event_dispatcher.dispatch(
            BundleSplit(
                parent_id=parent.id,
                lot_id=parent.lot_id,
                child_ids=[c.id for c in children],
                piece_counts=list(piece_counts),
            )
        )
        logger.info(
            "bundle_split",
            parent_id=str(parent.id),
            lot_id=str(parent.lot_id),
            piece_counts=piece_counts,
        )

        promoted = await self._workflow_service.fan_out(parent.lot_id)
        return SplitResult(
            parent=saved_parent,
            children=children,
            promoted_ids=[p.id for p in promoted],
        )

    async def merge(self, work_item_ids: list[UUID], actor: Actor) -> MergeResult:
        """
        Merge bundles of the same lot, operation and sub-unit into one.

        Either every source is retired and the merged bundle is stored, or
        nothing changes.

        Raises:
            InvariantViolationError: With fewer than two distinct bundles,
                bundles of different lots, operations or sub-units,
                bundles in different hold states, or any
                bundle that was already started
        """
        actor.require_supervisory("merge bundles")
        unique_ids = list(dict.fromkeys(work_item_ids))
        if len(unique_ids) < 2:
            raise InvariantViolationError(
                "MERGE_PART_COUNT",
                f"merge needs at least 2 distinct bundles, got {len(unique_ids)}",
                {"bundle_ids": [str(i) for i in unique_ids]},
            )

        sources = [await self.get_work_item(i) for i in unique_ids]
        first = sources[0]
        for bundle in sources:
            self._ensure_unstarted(bundle, "merge")
            if (bundle.lot_id, bundle.operation_id, bundle.sub_unit) != (
                first.lot_id,
                first.operation_id,
                first.sub_unit,
            ):
                raise InvariantViolationError(
                    "MERGE_SAME_OPERATION",
                    "merged bundles must share lot, operation and sub-unit",
                    {
                        "bundle_id": str(bundle.id),
                        "operation_id": bundle.operation_id,
                        "expected_operation_id": first.operation_id,
                    },
                )
            if bundle.hold_state != first.hold_state:
                raise InvariantViolationError(
                    "MERGE_SAME_HOLD",
                    "merged bundles must all be free or share the same hold",
                    {
                        "bundle_id": str(bundle.id),
                        "current_status": bundle.status.value,
                        "expected_status": first.status.value,
                    },
                )

        pieces = sum(b.pieces for b in sources)
        merged = first.derive_bundle(pieces, [b.id for b in sources])

        saved_sources = await self._retire_all(sources)
        await self._work_item_repository.persist_work_items(first.lot_id, [merged])
        for bundle in sources:
            self._publish(bundle)
            await self._withdraw_open_proposal(bundle.id, actor, "bundles_merged")

        self._event_dispatcher.dispatch(
            BundlesMerged(
                merged_id=merged.id,
                lot_id=first.lot_id,
                source_ids=[b.id for b in sources],
                pieces=pieces,
            )
        )
        logger.info(
            "bundles_merged",
            merged_id=str(merged.id),
            source_ids=[str(b.id) for b in sources],
            pieces=pieces,
        )

        promoted = await self._workflow_service.fan_out(first.lot_id)
        return MergeResult(
            merged=merged,
            sources=saved_sources,
            promoted_ids=[p.id for p in promoted],
        )

    async def _retire_all(self, sources: list[WorkItem]) -> list[WorkItem]:
        """Supersede every source, restoring the ones already written if one write fails."""
        originals = [b.model_copy(deep=True) for b in sources]
        saved: list[WorkItem] = []
        try:
            for bundle in sources:
                version = bundle.version
                bundle.supersede("bundles_merged")
                saved.append(await self._work_item_repository.save(bundle, version))
        except ConcurrencyError:
            for written, original in zip(saved, originals):
                original.clear_domain_events()
                await self._work_item_repository.save(original, written.version)
            logger.warning(
                "merge_aborted_on_concurrent_change",
                bundle_ids=[str(b.id) for b in sources],
            )
            raise
        return saved

    @staticmethod
    def _ensure_unstarted(bundle: WorkItem, action: str) -> None:
        if not bundle.status.is_unstarted:
            raise InvariantViolationError(
                "BUNDLE_NOT_STARTED",
                f"cannot {action} bundle {bundle.id} in status {bundle.status.value}",
                {"bundle_id": str(bundle.id), "current_status": bundle.status.value},
            )
        PieceCountValidators.validate_untouched(bundle.id, bundle.completed_pieces, action)

    async def _withdraw_open_proposal(
        self, work_item_id: UUID, actor: Actor, reason: str
    ) -> None:
        assignment = await self._assignment_repository.get_active_for(work_item_id)
        if assignment is not None and assignment.approval_state == ApprovalState.PROPOSED:
            assignment.withdraw(actor.id, reason)
            await self._assignment_repository.persist_assignment(assignment)
