"""
Dependency Resolver

Decides which pending work items of a lot have all their dependency
operations completed. The check is a full re-scan of the lot's items, so
running it any number of times over the same snapshot gives the same answer.
"""

from collections import defaultdict
from collections.abc import Iterable

from ..entities.work_item import WorkItem
from ..value_objects.enums import WorkItemStatus


class DependencyResolver:
    """Domain service evaluating operation dependencies within a lot."""

    @staticmethod
    def dependency_scope(
        items: Iterable[WorkItem],
    ) -> dict[tuple[str | None, str], list[WorkItem]]:
        """Group live items by ``(sub_unit, operation_id)``."""
        scope: dict[tuple[str | None, str], list[WorkItem]] = defaultdict(list)
        for item in items:
            if item.is_live:
                scope[(item.sub_unit, item.operation_id)].append(item)
        return scope

    @staticmethod
    def is_satisfied(
        item: WorkItem, scope: dict[tuple[str | None, str], list[WorkItem]]
    ) -> bool:
        """
        Check whether every dependency of ``item`` is completed.

        A dependency is satisfied when all live items of that operation in the
        same sub-unit are completed. When the sub-unit has no item for the
        operation, the operation's items across the whole lot are used.
        """
        for operation_id in item.dependencies:
            upstream = scope.get((item.sub_unit, operation_id))
            if not upstream:
                upstream = [
                    candidate
                    for (_, op_id), group in scope.items()
                    if op_id == operation_id
                    for candidate in group
                ]
            if not upstream:
                return False
            if any(dep.status != WorkItemStatus.COMPLETED for dep in upstream):
                return False
        return True

    @classmethod
    def find_ready_candidates(cls, items: list[WorkItem]) -> list[WorkItem]:
        """
        Return the pending items whose dependencies are all completed.

        Args:
            items: Snapshot of a lot's work items

        Returns:
            Items that should move ``pending -> ready``, ordered by sequence
        """
        scope = cls.dependency_scope(items)
        candidates = [
            item
            for item in items
            if item.status == WorkItemStatus.PENDING and cls.is_satisfied(item, scope)
        ]
        return sorted(candidates, key=lambda i: (i.sequence, i.sub_unit or "", str(i.id)))

    @staticmethod
    def dependents_of(operation_id: str, items: Iterable[WorkItem]) -> list[WorkItem]:
        """Live items that list ``operation_id`` as a dependency."""
        return [
            item for item in items if item.is_live and operation_id in item.dependencies
        ]
