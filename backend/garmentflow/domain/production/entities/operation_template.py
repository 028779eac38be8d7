"""Operation templates: dependency-graphed operation lists per garment type."""

from decimal import Decimal

from pydantic import Field, field_validator

from ...shared.base import ValueObject
from ...shared.exceptions import InvalidTemplateError
from ...shared.validation import GraphValidators


class OperationDefinition(ValueObject):
    """
    One production operation of a template.

    ``sequence`` is an ordering hint for display; readiness is driven only by
    ``dependencies``.
    """

    id: str = Field(min_length=1, max_length=64)
    sequence: int = Field(ge=0)
    name: str = Field(min_length=1, max_length=120)
    machine_type: str = Field(min_length=1, max_length=64)
    skill_level: int = Field(default=1, ge=1, le=5)
    estimated_time_per_piece: float = Field(default=0.0, ge=0)  # minutes
    rate: Decimal = Field(default=Decimal("0"), ge=0)
    dependencies: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("dependencies", mode="before")
    @classmethod
    def coerce_dependencies(cls, v):
        """Accept any iterable of operation ids."""
        if v is None:
            return frozenset()
        return frozenset(v)

    def estimated_minutes_for(self, pieces: int) -> float:
        """Estimated time to run this operation over ``pieces`` pieces."""
        return self.estimated_time_per_piece * pieces


class OperationTemplate(ValueObject):
    """A validated, ordered set of operation definitions."""

    id: str = Field(min_length=1, max_length=64)
    name: str | None = None
    garment_type: str | None = None
    operations: tuple[OperationDefinition, ...]

    @property
    def operation_ids(self) -> set[str]:
        return {op.id for op in self.operations}

    def get_operation(self, operation_id: str) -> OperationDefinition | None:
        for op in self.operations:
            if op.id == operation_id:
                return op
        return None

    def sink_operation_ids(self) -> set[str]:
        """Operations no other operation depends on."""
        depended_on = set()
        for op in self.operations:
            depended_on.update(op.dependencies)
        return self.operation_ids - depended_on

    @classmethod
    def build(
        cls,
        template_id: str,
        operations: list[OperationDefinition],
        name: str | None = None,
        garment_type: str | None = None,
    ) -> "OperationTemplate":
        """
        Validate operation definitions and build a template.

        Raises:
            InvalidTemplateError: On empty templates, duplicate ids, unknown or
                self dependencies, or dependency cycles
        """
        if not operations:
            raise InvalidTemplateError(template_id, "template has no operations")

        seen: set[str] = set()
        duplicates = set()
        for op in operations:
            if op.id in seen:
                duplicates.add(op.id)
            seen.add(op.id)
        if duplicates:
            raise InvalidTemplateError(
                template_id, "duplicate operation ids", list(duplicates)
            )

        self_dependent = [op.id for op in operations if op.id in op.dependencies]
        if self_dependent:
            raise InvalidTemplateError(
                template_id, "operations depend on themselves", self_dependent
            )

        graph = {op.id: op.dependencies for op in operations}
        unknown = GraphValidators.unknown_dependencies(graph)
        if unknown:
            raise InvalidTemplateError(
                template_id, "dependencies reference unknown operations", unknown
            )

        cycle = GraphValidators.find_cycle(graph)
        if cycle:
            raise InvalidTemplateError(
                template_id, "dependency cycle " + " -> ".join(cycle), cycle
            )

        ordered = sorted(operations, key=lambda op: (op.sequence, op.id))
        return cls(
            id=template_id,
            name=name,
            garment_type=garment_type,
            operations=tuple(ordered),
        )
