"""Operator entity: a machine operator on the production floor."""

from pydantic import Field, field_validator

from ....core.config import settings
from ...shared.base import Entity


class Operator(Entity):
    """
    Operator entity.

    Operators are owned by an external roster. The engine reads them for
    matching and only changes ``current_load``, which is written exclusively
    by the operator load ledger.
    """

    id: str = Field(min_length=1, max_length=64)
    name: str = Field(default="", max_length=100)
    machine_capabilities: frozenset[str] = Field(default_factory=frozenset)
    current_load: int = Field(default=0, ge=0)
    max_load: int = Field(default_factory=lambda: settings.DEFAULT_OPERATOR_MAX_LOAD, gt=0)
    efficiency: float = Field(default=1.0, ge=0)
    active: bool = Field(default=True)
    multi_skill: bool = Field(default=False)

    @field_validator("machine_capabilities", mode="before")
    @classmethod
    def coerce_capabilities(cls, v):
        if v is None:
            return frozenset()
        return frozenset(v)

    def is_valid(self) -> bool:
        """Validate business rules."""
        return bool(self.id) and self.max_load > 0

    @property
    def is_wildcard(self) -> bool:
        """Multi-skill operators match any machine type."""
        return self.multi_skill or settings.MULTI_SKILL_CAPABILITY in self.machine_capabilities

    @property
    def load_ratio(self) -> float:
        return self.current_load / self.max_load

    def can_operate(self, machine_type: str) -> bool:
        """Check machine-type compatibility, ignoring whether the operator is active."""
        return self.is_wildcard or machine_type in self.machine_capabilities

    def is_compatible_with(self, machine_type: str) -> bool:
        """Check if the operator may be assigned work on ``machine_type``."""
        return self.active and self.can_operate(machine_type)
