"""
Progress Aggregator

Folds a lot's work items into lot-level progress: status counts, percentage
complete, the operation currently being worked, a coarse ETA, per-operation
step progress and the bottleneck operation.

Everything here is recomputed from a snapshot on each call. The result is a
read-time projection; callers may cache it for at most
``settings.PROGRESS_REFRESH_SECONDS``.
"""

import math
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from uuid import UUID

from pydantic import Field

from ....core.config import settings
from ...shared.base import ValueObject, utcnow
from ...shared.exceptions import NotFoundError
from ..entities.lot import Lot
from ..entities.work_item import WorkItem
from ..repositories.lot_repository import LotRepository
from ..repositories.work_item_repository import WorkItemRepository
from ..value_objects.enums import WorkItemStatus

IN_PROGRESS_STATUSES = frozenset(
    {WorkItemStatus.IN_PROGRESS, WorkItemStatus.ASSIGNED, WorkItemStatus.SELF_ASSIGNED}
)
PENDING_STATUSES = frozenset({WorkItemStatus.READY, WorkItemStatus.PENDING})
ETA_EXCLUDED_STATUSES = frozenset({WorkItemStatus.COMPLETED, WorkItemStatus.REJECTED})


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class OperationProgress(ValueObject):
    """Progress of one operation (step) across a lot's items."""

    operation_id: str
    operation_name: str
    sequence: int
    total: int
    completed: int
    in_progress: int
    pending: int
    waiting: int  # dependencies not yet met
    completion_rate: float

    @property
    def has_started(self) -> bool:
        """Some of this step's work has moved beyond pending."""
        return self.total - self.waiting > 0


class LotProgress(ValueObject):
    """Lot-level progress projection."""

    lot_id: UUID | None = None
    total: int
    completed: int
    in_progress: int
    pending: int
    progress_percentage: int
    current_operation: str | None
    estimated_completion: datetime
    remaining_minutes: float
    total_pieces: int
    completed_pieces: int
    piece_completion_rate: float
    status_counts: dict[str, int] = Field(default_factory=dict)
    steps: list[OperationProgress] = Field(default_factory=list)
    bottleneck: str | None = None
    refresh_seconds: int = Field(default_factory=lambda: settings.PROGRESS_REFRESH_SECONDS)


class WipSummary(ValueObject):
    """Work-in-progress summary across lots."""

    lot_count: int
    active_lots: int
    total_pieces: int
    completed_pieces: int
    completion_rate: float
    status_counts: dict[str, int] = Field(default_factory=dict)


def _operation_label(item: WorkItem) -> str:
    return item.operation_name or item.operation_id


def step_progress(items: list[WorkItem]) -> list[OperationProgress]:
    """Group live items by operation and count their states, ordered by sequence."""
    groups: dict[str, list[WorkItem]] = defaultdict(list)
    for item in items:
        if item.is_live:
            groups[item.operation_id].append(item)

    steps = []
    for operation_id, group in groups.items():
        total = len(group)
        completed = sum(1 for i in group if i.status == WorkItemStatus.COMPLETED)
        steps.append(
            OperationProgress(
                operation_id=operation_id,
                operation_name=_operation_label(group[0]),
                sequence=min(i.sequence for i in group),
                total=total,
                completed=completed,
                in_progress=sum(1 for i in group if i.status in IN_PROGRESS_STATUSES),
                pending=sum(1 for i in group if i.status in PENDING_STATUSES),
                waiting=sum(1 for i in group if i.status == WorkItemStatus.PENDING),
                completion_rate=completed / total,
            )
        )
    return sorted(steps, key=lambda s: (s.sequence, s.operation_id))


def find_bottleneck(steps: list[OperationProgress]) -> str | None:
    """
    Return the operation with the lowest completion rate.

    Only steps whose work has reached the floor (at least one item beyond
    pending) qualify. Ties go to the lowest sequence. ``None`` when nothing
    qualifies or every qualifying step is complete.
    """
    candidates = [s for s in steps if s.has_started and s.completion_rate < 1.0]
    if not candidates:
        return None
    worst = min(candidates, key=lambda s: (s.completion_rate, s.sequence, s.operation_id))
    return worst.operation_id


def aggregate_progress(
    items: list[WorkItem], now: datetime | None = None, lot_id: UUID | None = None
) -> LotProgress:
    """
    Compute lot progress from a snapshot of work items.

    Superseded bundles are ignored. ``pending`` counts both ``ready`` and
    ``pending`` items; ``in_progress`` counts ``in_progress`` and
    ``assigned`` items, claims awaiting approval included.

    Args:
        items: Work items of one lot
        now: Reference time for the ETA (defaults to now)
        lot_id: Lot the items belong to, echoed in the result

    Returns:
        LotProgress projection
    """
    now = now or utcnow()
    live = [i for i in items if i.is_live]

    total = len(live)
    completed = sum(1 for i in live if i.status == WorkItemStatus.COMPLETED)
    in_progress = sum(1 for i in live if i.status in IN_PROGRESS_STATUSES)
    pending = sum(1 for i in live if i.status in PENDING_STATUSES)
    percentage = round_half_up(100 * completed / total) if total else 0

    current = sorted(
        (i for i in live if i.status in IN_PROGRESS_STATUSES), key=lambda i: i.sequence
    )
    if not current:
        current = sorted(
            (i for i in live if i.status == WorkItemStatus.READY), key=lambda i: i.sequence
        )
    current_operation = _operation_label(current[0]) if current else None

    remaining_minutes = sum(
        i.estimated_time for i in live if i.status not in ETA_EXCLUDED_STATUSES
    )

    total_pieces = sum(i.pieces for i in live)
    completed_pieces = sum(i.completed_pieces for i in live)

    steps = step_progress(live)
    status_counts = Counter(i.status.value for i in live)

    return LotProgress(
        lot_id=lot_id,
        total=total,
        completed=completed,
        in_progress=in_progress,
        pending=pending,
        progress_percentage=percentage,
        current_operation=current_operation,
        estimated_completion=now + timedelta(minutes=remaining_minutes),
        remaining_minutes=remaining_minutes,
        total_pieces=total_pieces,
        completed_pieces=completed_pieces,
        piece_completion_rate=(completed_pieces / total_pieces) if total_pieces else 0.0,
        status_counts=dict(status_counts),
        steps=steps,
        bottleneck=find_bottleneck(steps),
    )


def summarize_wip(lots: list[tuple[Lot, list[WorkItem]]]) -> WipSummary:
    """Summarize work in progress across lots."""
    status_counts: Counter[str] = Counter()
    total_pieces = 0
    completed_pieces = 0
    active_lots = 0

    for lot, items in lots:
        if lot.is_active:
            active_lots += 1
        for item in items:
            if not item.is_live:
                continue
            status_counts[item.status.value] += 1
            total_pieces += item.pieces
            completed_pieces += item.completed_pieces

    return WipSummary(
        lot_count=len(lots),
        active_lots=active_lots,
        total_pieces=total_pieces,
        completed_pieces=completed_pieces,
        completion_rate=(completed_pieces / total_pieces) if total_pieces else 0.0,
        status_counts=dict(status_counts),
    )


class ProgressAggregator:
    """Loads snapshots from the repositories and aggregates them."""

    def __init__(
        self, work_item_repository: WorkItemRepository, lot_repository: LotRepository
    ) -> None:
        self._work_item_repository = work_item_repository
        self._lot_repository = lot_repository

    async def lot_progress(self, lot_id: UUID, now: datetime | None = None) -> LotProgress:
        """
        Progress of one lot.

        Raises:
            NotFoundError: If the lot doesn't exist
        """
        lot = await self._lot_repository.get_by_id(lot_id)
        if lot is None:
            raise NotFoundError("Lot", lot_id)
        items = await self._work_item_repository.get_by_lot(lot_id)
        return aggregate_progress(items, now=now, lot_id=lot_id)

    async def wip_summary(self, include_archived: bool = False) -> WipSummary:
        """Summary across lots, active only unless ``include_archived``."""
        lots = await self._lot_repository.get_all(include_archived=include_archived)
        snapshot = [
            (lot, await self._work_item_repository.get_by_lot(lot.id)) for lot in lots
        ]
        return summarize_wip(snapshot)
