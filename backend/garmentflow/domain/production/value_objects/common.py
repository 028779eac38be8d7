"""Common value objects for the production domain."""

from uuid import UUID

from pydantic import Field, field_validator

from ...shared.base import ValueObject
from ...shared.exceptions import NotAuthorizedError
from .enums import ActorRole, WorkItemStatus


class Actor(ValueObject):
    """An already-authenticated identity with a coarse role."""

    id: str = Field(min_length=1, max_length=64)
    role: ActorRole

    @property
    def is_supervisory(self) -> bool:
        return self.role.is_supervisory

    def require_supervisory(self, action: str) -> None:
        """Raise unless the actor is a supervisor or manager."""
        if not self.is_supervisory:
            raise NotAuthorizedError(self.id, self.role.value, action)


class Roll(ValueObject):
    """A fabric roll cut into part of a lot."""

    roll_number: str = Field(min_length=1, max_length=32)
    color: str | None = None
    pieces: int = Field(gt=0)


class Style(ValueObject):
    """Article/size/color combination produced in a lot."""

    article: str = Field(min_length=1, max_length=64)
    size: str | None = None
    color: str | None = None


class WorkItemFilter(ValueObject):
    """Query filter for ready work items."""

    lot_id: UUID | None = None
    machine_type: str | None = None
    statuses: frozenset[WorkItemStatus] = frozenset({WorkItemStatus.READY})
    unassigned_only: bool = True

    @field_validator("machine_type")
    @classmethod
    def normalize_machine_type(cls, v: str | None) -> str | None:
        """The literal 'all' means no machine filter."""
        if v is None or v.strip().lower() == "all":
            return None
        return v.strip()


class OperatorFilter(ValueObject):
    """Query filter for the operator roster."""

    active: bool | None = True
    machine_type: str | None = None
