"""
Lot API Routes

Lot intake from templates, lot progress, WIP summary and ad-hoc operation
insertion.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from garmentflow.api.deps import ActorDep, ContainerDep
from garmentflow.api.routes.work_items import WorkItemResponse
from garmentflow.domain.production.entities import OperationDefinition
from garmentflow.domain.production.services import LotProgress, WipSummary
from garmentflow.domain.production.value_objects import InsertionPoint, Roll, Style

router = APIRouter(prefix="/lots", tags=["lots"])


# Request/Response Models
class CreateLotRequest(BaseModel):
    """Request for creating a lot from a template."""

    lot_number: str = Field(min_length=1, max_length=50)
    template_id: str = Field(min_length=1, max_length=64)
    total_pieces: int = Field(gt=0)
    rolls: list[Roll] = Field(default_factory=list)
    styles: list[Style] = Field(default_factory=list)
    per_roll: bool | None = None


class LotResponse(BaseModel):
    """Lot as exposed to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lot_number: str
    template_id: str
    total_pieces: int
    rolls: list[Roll]
    styles: list[Style]
    status: str
    created_at: datetime
    archived_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, v: Any) -> str:
        return getattr(v, "value", v)


class LotDetailResponse(BaseModel):
    lot: LotResponse
    work_items: list[WorkItemResponse]


class InsertOperationRequest(BaseModel):
    """Request for adding an operation to a live lot."""

    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=120)
    sequence: int = Field(ge=0)
    machine_type: str = Field(min_length=1, max_length=64)
    skill_level: int = Field(default=1, ge=1, le=5)
    estimated_time_per_piece: float = Field(default=0.0, ge=0)
    rate: Decimal = Field(default=Decimal("0"), ge=0)
    insertion_point: InsertionPoint
    anchor_operation_id: str | None = None


# Lots
@router.post("", response_model=LotDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_lot(request: CreateLotRequest, actor: ActorDep, container: ContainerDep):
    """Create a lot and expand its operation template into work items."""
    created = await container.lot_service.create_lot(
        request.lot_number,
        request.template_id,
        request.total_pieces,
        actor,
        rolls=request.rolls,
        styles=request.styles,
        per_roll=request.per_roll,
    )
    return LotDetailResponse(
        lot=LotResponse.model_validate(created.lot),
        work_items=[WorkItemResponse.model_validate(i) for i in created.work_items],
    )


@router.get("", response_model=list[LotResponse])
async def list_lots(
    container: ContainerDep,
    include_archived: bool = Query(True, description="Include completed lots"),
):
    lots = await container.lot_service.list_lots(include_archived=include_archived)
    return [LotResponse.model_validate(lot) for lot in lots]


@router.get("/wip-summary", response_model=WipSummary)
async def get_wip_summary(
    container: ContainerDep,
    include_archived: bool = Query(False, description="Include completed lots"),
):
    """Pieces and work item status counts across lots."""
    return await container.progress_aggregator.wip_summary(include_archived=include_archived)


@router.get("/{lot_id}", response_model=LotResponse)
async def get_lot(lot_id: UUID, container: ContainerDep):
    lot = await container.lot_service.get_lot(lot_id)
    return LotResponse.model_validate(lot)


@router.get("/{lot_id}/work-items", response_model=list[WorkItemResponse])
async def list_lot_work_items(
    lot_id: UUID,
    container: ContainerDep,
    include_superseded: bool = Query(False, description="Include split/merged bundles"),
):
    items = await container.lot_service.lot_work_items(
        lot_id, include_superseded=include_superseded
    )
    return [WorkItemResponse.model_validate(i) for i in items]


@router.get("/{lot_id}/progress", response_model=LotProgress)
async def get_lot_progress(lot_id: UUID, container: ContainerDep):
    """
    Lot progress recomputed from current work item state.

    ``refresh_seconds`` is the longest a client may cache the result.
    """
    return await container.progress_aggregator.lot_progress(lot_id)


@router.post(
    "/{lot_id}/operations",
    response_model=list[WorkItemResponse],
    status_code=status.HTTP_201_CREATED,
)
async def insert_operation(
    lot_id: UUID, request: InsertOperationRequest, actor: ActorDep, container: ContainerDep
):
    definition = OperationDefinition(
        id=request.id,
        name=request.name,
        sequence=request.sequence,
        machine_type=request.machine_type,
        skill_level=request.skill_level,
        estimated_time_per_piece=request.estimated_time_per_piece,
        rate=request.rate,
    )
    items = await container.lot_service.insert_operation(
        lot_id,
        definition,
        request.insertion_point,
        actor,
        anchor_operation_id=request.anchor_operation_id,
    )
    return [WorkItemResponse.model_validate(i) for i in items]
