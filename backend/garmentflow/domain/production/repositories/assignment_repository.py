"""
Assignment Repository Interface

Defines the contract for assignment records.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from ..entities.assignment import Assignment


class AssignmentRepository(ABC):
    """Abstract repository interface for Assignment entities."""

    @abstractmethod
    async def persist_assignment(self, assignment: Assignment) -> Assignment:
        """
        Insert or update an assignment record.

        Args:
            assignment: Assignment to persist

        Returns:
            Persisted assignment
        """
        pass

    @abstractmethod
    async def get_by_id(self, assignment_id: UUID) -> Assignment | None:
        """
        Retrieve an assignment by its ID.

        Args:
            assignment_id: Unique assignment identifier

        Returns:
            Assignment entity or None if not found
        """
        pass

    @abstractmethod
    async def get_active_for(self, work_item_id: UUID) -> Assignment | None:
        """
        Retrieve the active assignment of a work item.

        Args:
            work_item_id: Work item identifier

        Returns:
            The open proposal, pending self-assignment or confirmed
            assignment, or None
        """
        pass

    @abstractmethod
    async def get_for_work_item(self, work_item_id: UUID) -> list[Assignment]:
        """
        Retrieve the assignment history of a work item, oldest first.

        Args:
            work_item_id: Work item identifier

        Returns:
            List of assignments
        """
        pass
