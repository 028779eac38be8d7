"""
Production Repository Interfaces

Ports implemented by the infrastructure layer.
"""

from .assignment_repository import AssignmentRepository
from .lot_repository import LotRepository
from .operator_repository import OperatorRepository
from .template_repository import TemplateRepository
from .work_item_repository import WorkItemRepository

__all__ = [
    "AssignmentRepository",
    "LotRepository",
    "OperatorRepository",
    "TemplateRepository",
    "WorkItemRepository",
]
