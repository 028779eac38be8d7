"""
Template Service

Resolves operation templates and expands them into a lot's work items.
"""

from ....core.config import settings
from ....core.observability import get_logger
from ...shared.exceptions import NotFoundError
from ..entities.lot import Lot
from ..entities.operation_template import OperationTemplate
from ..entities.work_item import WorkItem
from ..repositories.template_repository import TemplateRepository

logger = get_logger(__name__)


class TemplateService:
    """Service for loading, validating and expanding operation templates."""

    def __init__(self, template_repository: TemplateRepository) -> None:
        """
        Initialize the template service.

        Args:
            template_repository: Template data access interface
        """
        self._template_repository = template_repository

    async def resolve(self, template_id: str) -> OperationTemplate:
        """
        Load and validate a template.

        Args:
            template_id: Template identifier

        Returns:
            Validated template ordered by sequence

        Raises:
            NotFoundError: If the template doesn't exist
            InvalidTemplateError: If the dependency graph is malformed
        """
        operations = await self._template_repository.load_template(template_id)
        if operations is None:
            raise NotFoundError("OperationTemplate", template_id)

        template = OperationTemplate.build(template_id, operations)
        logger.info(
            "template_resolved",
            template_id=template_id,
            operation_count=len(template.operations),
        )
        return template

    async def register(self, template: OperationTemplate) -> OperationTemplate:
        """Validate and store a template's operations."""
        validated = OperationTemplate.build(
            template.id, list(template.operations), template.name, template.garment_type
        )
        await self._template_repository.save_template(
            validated.id, list(validated.operations)
        )
        return validated

    @staticmethod
    def expand(
        template: OperationTemplate, lot: Lot, per_roll: bool | None = None
    ) -> list[WorkItem]:
        """
        Expand a template into work items for a lot.

        One item is created per operation, or per operation and roll when
        per-roll granularity is enabled and the lot has rolls. Items with no
        dependencies start ``ready``; the rest start ``pending``.

        Args:
            template: Validated operation template
            lot: Lot to expand for
            per_roll: Override of ``settings.PER_ROLL_WORK_ITEMS``

        Returns:
            New, unsaved work items
        """
        if per_roll is None:
            per_roll = settings.PER_ROLL_WORK_ITEMS

        style = lot.default_style
        article = style.article if style else None
        size = style.size if style else None

        items: list[WorkItem] = []
        if per_roll and lot.rolls:
            for roll in lot.rolls:
                color = roll.color or (style.color if style else None)
                for definition in template.operations:
                    items.append(
                        WorkItem.from_definition(
                            lot.id,
                            definition,
                            roll.pieces,
                            sub_unit=roll.roll_number,
                            article=article,
                            size=size,
                            color=color,
                        )
                    )
        else:
            color = style.color if style else None
            for definition in template.operations:
                items.append(
                    WorkItem.from_definition(
                        lot.id,
                        definition,
                        lot.total_pieces,
                        article=article,
                        size=size,
                        color=color,
                    )
                )

        return items
