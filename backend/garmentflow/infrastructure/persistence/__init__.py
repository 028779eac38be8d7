"""
Persistence adapters.

In-memory implementations of the production repository interfaces.
"""

from .memory_repositories import (
    InMemoryAssignmentRepository,
    InMemoryLotRepository,
    InMemoryOperatorRepository,
    InMemoryTemplateRepository,
    InMemoryWorkItemRepository,
)

__all__ = [
    "InMemoryAssignmentRepository",
    "InMemoryLotRepository",
    "InMemoryOperatorRepository",
    "InMemoryTemplateRepository",
    "InMemoryWorkItemRepository",
]
