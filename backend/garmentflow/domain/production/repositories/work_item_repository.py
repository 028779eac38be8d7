"""
Work Item Repository Interface

Defines the contract for work item persistence, including the per-item
compare-and-swap used for optimistic concurrency.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from ..entities.work_item import WorkItem
from ..value_objects.common import WorkItemFilter
from ..value_objects.enums import WorkItemStatus


class WorkItemRepository(ABC):
    """
    Abstract repository interface for WorkItem entities.

    Implementations must hand out copies: mutating a returned work item has
    no effect until it is written back through ``save``.
    """

    @abstractmethod
    async def persist_work_items(self, lot_id: UUID, items: list[WorkItem]) -> None:
        """
        Store newly created work items of a lot.

        Args:
            lot_id: Lot the items belong to
            items: New work items (version 0)

        Raises:
            ConcurrencyError: If an item with the same id already exists
        """
        pass

    @abstractmethod
    async def save(self, item: WorkItem, expected_version: int) -> WorkItem:
        """
        Compare-and-swap an existing work item.

        The write succeeds only if the stored version equals
        ``expected_version``; the stored copy then carries version
        ``expected_version + 1``.

        Args:
            item: Modified work item
            expected_version: Version the caller read

        Returns:
            The saved work item with its new version

        Raises:
            NotFoundError: If the item does not exist
            ConcurrencyError: If the stored version differs
        """
        pass

    @abstractmethod
    async def get_by_id(self, work_item_id: UUID) -> WorkItem | None:
        """
        Retrieve a work item by its ID.

        Args:
            work_item_id: Unique work item identifier

        Returns:
            WorkItem entity or None if not found
        """
        pass

    @abstractmethod
    async def get_by_lot(
        self, lot_id: UUID, include_superseded: bool = False
    ) -> list[WorkItem]:
        """
        Retrieve all work items of a lot ordered by sequence.

        Args:
            lot_id: Lot identifier
            include_superseded: Whether to include bundles retired by split/merge

        Returns:
            List of work items
        """
        pass

    @abstractmethod
    async def query_ready(self, item_filter: WorkItemFilter) -> list[WorkItem]:
        """
        Retrieve work items matching a filter, by default unassigned ready items.

        Args:
            item_filter: Lot, machine type and status filter

        Returns:
            Matching work items ordered by lot then sequence
        """
        pass

    @abstractmethod
    async def get_by_status(self, status: WorkItemStatus) -> list[WorkItem]:
        """
        Retrieve work items in a given status across all lots.

        Args:
            status: Work item status

        Returns:
            List of work items
        """
        pass
