"""
Operator Repository Interface

Defines the contract for reading the externally owned operator roster.
"""

from abc import ABC, abstractmethod

from ..entities.operator import Operator
from ..value_objects.common import OperatorFilter


class OperatorRepository(ABC):
    """
    Abstract repository interface for Operator entities.

    The roster belongs to an external collaborator; ``save`` is only used by
    the operator load ledger to write back ``current_load``.
    """

    @abstractmethod
    async def query_operators(self, operator_filter: OperatorFilter) -> list[Operator]:
        """
        Retrieve operators matching a filter.

        Args:
            operator_filter: Active flag and machine type filter

        Returns:
            List of operators ordered by id
        """
        pass

    @abstractmethod
    async def get_by_id(self, operator_id: str) -> Operator | None:
        """
        Retrieve an operator by its ID.

        Args:
            operator_id: Operator identifier

        Returns:
            Operator entity or None if not found
        """
        pass

    @abstractmethod
    async def save(self, operator: Operator) -> Operator:
        """
        Save an operator to the repository.

        Args:
            operator: Operator entity to save

        Returns:
            Saved operator entity
        """
        pass
