"""Lot entity: a batch of garment pieces moving through production."""

from datetime import datetime

from pydantic import Field, field_validator

from ...shared.base import AggregateRoot, utcnow
from ...shared.exceptions import InvariantViolationError
from ...shared.validation import PieceCountValidators
from ..events import LotCompleted
from ..value_objects.common import Roll, Style
from ..value_objects.enums import LotStatus


class Lot(AggregateRoot):
    """
    Lot (WIP entry) entity.

    A lot owns its work items through the work item repository; the lot
    record itself only carries intake data and its archive state.
    """

    lot_number: str = Field(min_length=1, max_length=50)
    template_id: str = Field(min_length=1, max_length=64)
    total_pieces: int = Field(gt=0)
    rolls: list[Roll] = Field(default_factory=list)
    styles: list[Style] = Field(default_factory=list)
    status: LotStatus = Field(default=LotStatus.ACTIVE)
    archived_at: datetime | None = None

    @field_validator("lot_number")
    @classmethod
    def normalize_lot_number(cls, v: str) -> str:
        return v.strip().upper()

    def is_valid(self) -> bool:
        """Validate business rules."""
        if self.rolls:
            return sum(roll.pieces for roll in self.rolls) == self.total_pieces
        return self.total_pieces > 0

    def validate_rolls(self) -> None:
        """Rolls, when given, must add up to the lot's total."""
        if self.rolls:
            PieceCountValidators.validate_roll_total(
                self.total_pieces, (roll.pieces for roll in self.rolls)
            )

    @property
    def is_active(self) -> bool:
        return self.status == LotStatus.ACTIVE

    @property
    def default_style(self) -> Style | None:
        return self.styles[0] if self.styles else None

    def archive(self, at: datetime | None = None) -> None:
        """
        Archive the lot once every live work item is completed.

        Raises:
            InvariantViolationError: If the lot is already archived
        """
        if not self.status.can_transition_to(LotStatus.COMPLETED):
            raise InvariantViolationError(
                "LOT_ACTIVE",
                f"lot {self.lot_number} is already archived",
                {"lot_id": str(self.id), "status": self.status.value},
            )
        self.status = LotStatus.COMPLETED
        self.archived_at = at or utcnow()
        self.mark_updated()

        self.add_domain_event(
            LotCompleted(
                lot_id=self.id,
                lot_number=self.lot_number,
                completed_at=self.archived_at,
            )
        )

    @staticmethod
    def create(
        lot_number: str,
        template_id: str,
        total_pieces: int,
        rolls: list[Roll] | None = None,
        styles: list[Style] | None = None,
    ) -> "Lot":
        """
        Factory method to create a new lot.

        Raises:
            InvariantViolationError: If roll pieces do not add up to the total
        """
        lot = Lot(
            lot_number=lot_number,
            template_id=template_id,
            total_pieces=total_pieces,
            rolls=rolls or [],
            styles=styles or [],
        )
        lot.validate_rolls()
        return lot
