"""
Work Item API Routes

State transitions, bundle split/merge and operator ranking for single work
items.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator

from garmentflow.api.deps import ActorDep, ContainerDep
from garmentflow.domain.production.services import OperatorRanking
from garmentflow.domain.production.value_objects import WorkItemFilter

router = APIRouter(prefix="/work-items", tags=["work-items"])


# Request/Response Models
class WorkItemResponse(BaseModel):
    """Work item as exposed to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lot_id: UUID
    operation_id: str
    operation_name: str
    sequence: int
    dependencies: list[str]
    sub_unit: str | None = None
    article: str | None = None
    size: str | None = None
    color: str | None = None
    pieces: int
    completed_pieces: int
    status: str
    machine_type: str
    estimated_time: float
    assigned_operator_id: str | None = None
    assigned_by: str | None = None
    assigned_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    hold_reason: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    parent_ids: list[UUID] = Field(default_factory=list)
    version: int

    @field_validator("dependencies", mode="before")
    @classmethod
    def sort_dependencies(cls, v: Any) -> list[str]:
        return sorted(v)

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, v: Any) -> str:
        return getattr(v, "value", v)


class AssignmentResponse(BaseModel):
    """Assignment record as exposed to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_item_id: UUID
    operator_id: str
    assigned_by: str
    assigned_at: datetime
    method: str
    approval_state: str
    decided_by: str | None = None
    decided_at: datetime | None = None
    closed_at: datetime | None = None
    reason: str | None = None

    @field_validator("method", "approval_state", mode="before")
    @classmethod
    def enum_value(cls, v: Any) -> str:
        return getattr(v, "value", v)


class ReasonRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class OptionalReasonRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class ProgressRequest(BaseModel):
    pieces: int = Field(gt=0)


class CompleteRequest(BaseModel):
    completed_pieces: int | None = Field(default=None, ge=0)


class SplitRequest(BaseModel):
    piece_counts: list[int]


class MergeRequest(BaseModel):
    work_item_ids: list[UUID]


class SplitResponse(BaseModel):
    parent: WorkItemResponse
    children: list[WorkItemResponse]
    promoted_ids: list[UUID]


class MergeResponse(BaseModel):
    merged: WorkItemResponse
    sources: list[WorkItemResponse]
    promoted_ids: list[UUID]


# Queries
@router.get("/ready", response_model=list[WorkItemResponse])
async def list_ready_work_items(
    container: ContainerDep,
    lot_id: UUID | None = Query(None, description="Filter by lot"),
    machine_type: str | None = Query(None, description="Filter by machine type, 'all' for any"),
):
    """Unassigned ready work items, the input of the matcher."""
    items = await container.work_item_repository.query_ready(
        WorkItemFilter(lot_id=lot_id, machine_type=machine_type)
    )
    return [WorkItemResponse.model_validate(i) for i in items]


@router.get("/{work_item_id}", response_model=WorkItemResponse)
async def get_work_item(work_item_id: UUID, container: ContainerDep):
    item = await container.workflow_service.get_work_item(work_item_id)
    return WorkItemResponse.model_validate(item)


@router.get("/{work_item_id}/operators", response_model=list[OperatorRanking])
async def rank_operators_for_work_item(work_item_id: UUID, container: ContainerDep):
    """Active operators ordered for this item: compatible first, then least loaded."""
    return await container.assignment_matcher.rank_for(work_item_id)


@router.get("/{work_item_id}/assignments", response_model=list[AssignmentResponse])
async def get_assignment_history(work_item_id: UUID, container: ContainerDep):
    await container.workflow_service.get_work_item(work_item_id)
    history = await container.assignment_repository.get_for_work_item(work_item_id)
    return [AssignmentResponse.model_validate(a) for a in history]


# Transitions
@router.post("/{work_item_id}/start", response_model=WorkItemResponse)
async def start_work(work_item_id: UUID, actor: ActorDep, container: ContainerDep):
    item = await container.workflow_service.start(work_item_id, actor)
    return WorkItemResponse.model_validate(item)


@router.post("/{work_item_id}/progress", response_model=WorkItemResponse)
async def record_progress(
    work_item_id: UUID, request: ProgressRequest, actor: ActorDep, container: ContainerDep
):
    item = await container.workflow_service.record_progress(work_item_id, request.pieces, actor)
    return WorkItemResponse.model_validate(item)


@router.post("/{work_item_id}/complete", response_model=WorkItemResponse)
async def complete_work(
    work_item_id: UUID,
    actor: ActorDep,
    container: ContainerDep,
    request: CompleteRequest | None = None,
):
    completed_pieces = request.completed_pieces if request else None
    item = await container.workflow_service.complete(work_item_id, actor, completed_pieces)
    return WorkItemResponse.model_validate(item)


@router.post("/{work_item_id}/block", response_model=WorkItemResponse)
async def block_work(
    work_item_id: UUID, request: ReasonRequest, actor: ActorDep, container: ContainerDep
):
    item = await container.workflow_service.block(work_item_id, request.reason, actor)
    return WorkItemResponse.model_validate(item)


@router.post("/{work_item_id}/unblock", response_model=WorkItemResponse)
async def unblock_work(work_item_id: UUID, actor: ActorDep, container: ContainerDep):
    item = await container.workflow_service.unblock(work_item_id, actor)
    return WorkItemResponse.model_validate(item)


@router.post("/{work_item_id}/hold", response_model=WorkItemResponse)
async def hold_work(
    work_item_id: UUID, request: ReasonRequest, actor: ActorDep, container: ContainerDep
):
    item = await container.workflow_service.hold(work_item_id, request.reason, actor)
    return WorkItemResponse.model_validate(item)


@router.post("/{work_item_id}/resume", response_model=WorkItemResponse)
async def resume_work(work_item_id: UUID, actor: ActorDep, container: ContainerDep):
    item = await container.workflow_service.resume(work_item_id, actor)
    return WorkItemResponse.model_validate(item)


@router.post("/{work_item_id}/reject", response_model=WorkItemResponse)
async def reject_work(
    work_item_id: UUID, request: ReasonRequest, actor: ActorDep, container: ContainerDep
):
    item = await container.workflow_service.reject(work_item_id, request.reason, actor)
    return WorkItemResponse.model_validate(item)


@router.post("/{work_item_id}/release", response_model=WorkItemResponse)
async def release_work(
    work_item_id: UUID,
    actor: ActorDep,
    container: ContainerDep,
    request: OptionalReasonRequest | None = None,
):
    reason = (request.reason if request else None) or "released"
    item = await container.workflow_service.release(work_item_id, actor, reason)
    return WorkItemResponse.model_validate(item)


# Bundles
@router.post("/{work_item_id}/split", response_model=SplitResponse)
async def split_bundle(
    work_item_id: UUID, request: SplitRequest, actor: ActorDep, container: ContainerDep
):
    result = await container.bundle_service.split(work_item_id, request.piece_counts, actor)
    return SplitResponse(
        parent=WorkItemResponse.model_validate(result.parent),
        children=[WorkItemResponse.model_validate(c) for c in result.children],
        promoted_ids=result.promoted_ids,
    )


@router.post("/merge", response_model=MergeResponse)
async def merge_bundles(request: MergeRequest, actor: ActorDep, container: ContainerDep):
    result = await container.bundle_service.merge(request.work_item_ids, actor)
    return MergeResponse(
        merged=WorkItemResponse.model_validate(result.merged),
        sources=[WorkItemResponse.model_validate(s) for s in result.sources],
        promoted_ids=result.promoted_ids,
    )
