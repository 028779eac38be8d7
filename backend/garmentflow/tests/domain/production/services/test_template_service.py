"""Tests for template resolution and expansion."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from garmentflow.domain.production.entities import Lot, OperationTemplate
from garmentflow.domain.production.services import TemplateService
from garmentflow.domain.production.value_objects import Roll, Style, WorkItemStatus
from garmentflow.domain.shared.exceptions import NotFoundError
from garmentflow.tests.factories import TEMPLATE_ID, cut_join_hem

TEMPLATE = OperationTemplate.build(TEMPLATE_ID, cut_join_hem())


class TestExpand:
    """Test template expansion into work items."""

    def test_per_lot_expansion(self):
        lot = Lot.create(
            "LOT-1", TEMPLATE_ID, 30, styles=[Style(article="TS-01", size="L", color="navy")]
        )

        items = TemplateService.expand(TEMPLATE, lot, per_roll=False)

        assert [i.operation_id for i in items] == ["cut", "join", "hem"]
        assert [i.status for i in items] == [
            WorkItemStatus.READY,
            WorkItemStatus.PENDING,
            WorkItemStatus.PENDING,
        ]
        assert all(i.pieces == 30 for i in items)
        assert all(i.lot_id == lot.id for i in items)
        assert all(i.article == "TS-01" and i.color == "navy" for i in items)
        assert all(i.sub_unit is None for i in items)

    def test_per_roll_expansion(self):
        rolls = [
            Roll(roll_number="R1", color="red", pieces=12),
            Roll(roll_number="R2", pieces=18),
        ]
        lot = Lot.create(
            "LOT-2", TEMPLATE_ID, 30, rolls=rolls, styles=[Style(article="TS-01", color="blue")]
        )

        items = TemplateService.expand(TEMPLATE, lot, per_roll=True)

        assert len(items) == 6
        by_roll = {(i.sub_unit, i.operation_id): i for i in items}
        assert by_roll[("R1", "cut")].pieces == 12
        assert by_roll[("R1", "cut")].color == "red"
        assert by_roll[("R2", "hem")].pieces == 18
        assert by_roll[("R2", "hem")].color == "blue"

    def test_per_roll_without_rolls_falls_back_to_lot(self):
        lot = Lot.create("LOT-3", TEMPLATE_ID, 30)

        items = TemplateService.expand(TEMPLATE, lot, per_roll=True)

        assert len(items) == 3

    @given(st.lists(st.integers(min_value=1, max_value=500), min_size=1, max_size=6))
    def test_pieces_conserved_per_operation(self, roll_pieces):
        rolls = [Roll(roll_number=f"R{n}", pieces=p) for n, p in enumerate(roll_pieces)]
        lot = Lot.create("LOT-P", TEMPLATE_ID, sum(roll_pieces), rolls=rolls)

        items = TemplateService.expand(TEMPLATE, lot, per_roll=True)

        for operation in TEMPLATE.operations:
            pieces = sum(i.pieces for i in items if i.operation_id == operation.id)
            assert pieces == lot.total_pieces
        assert len({i.id for i in items}) == len(items)


class TestResolve:
    @pytest.mark.asyncio
    async def test_registered_template_resolves(self, container):
        template = await container.template_service.resolve(TEMPLATE_ID)

        assert [op.id for op in template.operations] == ["cut", "join", "hem"]

    @pytest.mark.asyncio
    async def test_unknown_template(self, container):
        with pytest.raises(NotFoundError):
            await container.template_service.resolve("trousers")
