"""
Production Domain Entities

Exports the entities of the production workflow domain.
"""

from .assignment import Assignment
from .lot import Lot
from .operation_template import OperationDefinition, OperationTemplate
from .operator import Operator
from .work_item import WorkItem

__all__ = [
    "Assignment",
    "Lot",
    "OperationDefinition",
    "OperationTemplate",
    "Operator",
    "WorkItem",
]
