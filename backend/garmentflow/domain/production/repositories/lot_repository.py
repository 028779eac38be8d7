"""
Lot Repository Interface

Defines the contract for lot data access operations.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from ..entities.lot import Lot


class LotRepository(ABC):
    """Abstract repository interface for Lot entities."""

    @abstractmethod
    async def save(self, lot: Lot) -> Lot:
        """
        Save a lot to the repository.

        Args:
            lot: Lot entity to save

        Returns:
            Saved lot entity
        """
        pass

    @abstractmethod
    async def get_by_id(self, lot_id: UUID) -> Lot | None:
        """
        Retrieve a lot by its ID.

        Args:
            lot_id: Unique lot identifier

        Returns:
            Lot entity or None if not found
        """
        pass

    @abstractmethod
    async def get_by_lot_number(self, lot_number: str) -> Lot | None:
        """
        Retrieve a lot by its lot number.

        Args:
            lot_number: Lot number to search for

        Returns:
            Lot entity or None if not found
        """
        pass

    @abstractmethod
    async def get_all(self, include_archived: bool = True) -> list[Lot]:
        """
        Retrieve all lots.

        Args:
            include_archived: Whether to include completed lots

        Returns:
            List of lot entities
        """
        pass
