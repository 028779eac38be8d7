"""
Template Repository Interface

Defines the contract for loading operation templates.
"""

from abc import ABC, abstractmethod

from ..entities.operation_template import OperationDefinition


class TemplateRepository(ABC):
    """Abstract repository interface for operation templates."""

    @abstractmethod
    async def load_template(self, template_id: str) -> list[OperationDefinition] | None:
        """
        Load the raw operation definitions of a template.

        Definitions are returned as stored; validation happens in the
        template service.

        Args:
            template_id: Template identifier

        Returns:
            Operation definitions, or None if the template is unknown
        """
        pass

    @abstractmethod
    async def save_template(
        self, template_id: str, operations: list[OperationDefinition]
    ) -> None:
        """
        Store the operation definitions of a template.

        Args:
            template_id: Template identifier
            operations: Operation definitions to store
        """
        pass
