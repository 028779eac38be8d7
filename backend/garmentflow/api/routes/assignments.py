"""
Assignment API Routes

Manual and bulk assignment, proposals, self-assignment and the supervisor
approval queue.
"""

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, Field

from garmentflow.api.deps import ActorDep, ContainerDep
from garmentflow.api.routes.work_items import (
    AssignmentResponse,
    OptionalReasonRequest,
    WorkItemResponse,
)
from garmentflow.domain.production.services import BulkConfirmResult
from garmentflow.domain.production.value_objects import WorkItemFilter

router = APIRouter(prefix="/assignments", tags=["assignments"])


# Request Models
class AssignRequest(BaseModel):
    """Assign (or propose) an operator for a work item."""

    work_item_id: UUID
    operator_id: str = Field(min_length=1, max_length=64)


class SelfAssignRequest(BaseModel):
    work_item_id: UUID


class SuggestRequest(BaseModel):
    lot_id: UUID | None = None
    machine_type: str | None = None


class BulkConfirmRequest(BaseModel):
    assignment_ids: list[UUID]


# Direct assignment
@router.post("/assign", response_model=WorkItemResponse)
async def assign_work(request: AssignRequest, actor: ActorDep, container: ContainerDep):
    """
    Assign an operator to a ready work item.

    When the acting operator assigns the item to themself it becomes
    ``self_assigned`` and waits for supervisor approval.
    """
    item = await container.assignment_matcher.assign(
        request.work_item_id, request.operator_id, actor
    )
    return WorkItemResponse.model_validate(item)


@router.post("/self-assign", response_model=WorkItemResponse)
async def self_assign_work(
    request: SelfAssignRequest, actor: ActorDep, container: ContainerDep
):
    item = await container.assignment_matcher.self_assign(request.work_item_id, actor)
    return WorkItemResponse.model_validate(item)


# Proposals
@router.post("/proposals", response_model=AssignmentResponse)
async def propose_assignment(
    request: AssignRequest, actor: ActorDep, container: ContainerDep
):
    assignment = await container.assignment_matcher.propose(
        request.work_item_id, request.operator_id, actor
    )
    return AssignmentResponse.model_validate(assignment)


@router.post("/proposals/suggest", response_model=list[AssignmentResponse])
async def suggest_assignments(
    request: SuggestRequest, actor: ActorDep, container: ContainerDep
):
    """Record matcher proposals for unassigned ready items."""
    proposals = await container.assignment_matcher.suggest(
        actor, WorkItemFilter(lot_id=request.lot_id, machine_type=request.machine_type)
    )
    return [AssignmentResponse.model_validate(p) for p in proposals]


@router.post("/proposals/{assignment_id}/confirm", response_model=WorkItemResponse)
async def confirm_proposal(assignment_id: UUID, actor: ActorDep, container: ContainerDep):
    item = await container.assignment_matcher.confirm(assignment_id, actor)
    return WorkItemResponse.model_validate(item)


@router.post("/proposals/{assignment_id}/withdraw", response_model=AssignmentResponse)
async def withdraw_proposal(
    assignment_id: UUID,
    actor: ActorDep,
    container: ContainerDep,
    request: OptionalReasonRequest | None = None,
):
    assignment = await container.assignment_matcher.withdraw(
        assignment_id, actor, request.reason if request else None
    )
    return AssignmentResponse.model_validate(assignment)


@router.post("/bulk-confirm", response_model=BulkConfirmResult)
async def bulk_confirm(request: BulkConfirmRequest, actor: ActorDep, container: ContainerDep):
    """Confirm proposals one by one; each outcome is reported separately."""
    return await container.assignment_matcher.bulk_confirm(request.assignment_ids, actor)


# Approvals
@router.get("/approvals", response_model=list[WorkItemResponse])
async def list_pending_approvals(actor: ActorDep, container: ContainerDep):
    items = await container.approval_service.pending_approvals(actor)
    return [WorkItemResponse.model_validate(i) for i in items]


@router.post("/approvals/{work_item_id}/approve", response_model=WorkItemResponse)
async def approve_self_assignment(
    work_item_id: UUID, actor: ActorDep, container: ContainerDep
):
    item = await container.approval_service.approve(work_item_id, actor)
    return WorkItemResponse.model_validate(item)


@router.post("/approvals/{work_item_id}/reject", response_model=WorkItemResponse)
async def reject_self_assignment(
    work_item_id: UUID,
    actor: ActorDep,
    container: ContainerDep,
    request: OptionalReasonRequest | None = None,
):
    item = await container.approval_service.reject(
        work_item_id, actor, request.reason if request else None
    )
    return WorkItemResponse.model_validate(item)
