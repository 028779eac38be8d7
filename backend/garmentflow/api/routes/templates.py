"""
Template API Routes

Registration and lookup of operation templates.
"""

from decimal import Decimal

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from garmentflow.api.deps import ActorDep, ContainerDep
from garmentflow.domain.production.entities import OperationDefinition, OperationTemplate

router = APIRouter(prefix="/templates", tags=["templates"])


class OperationRequest(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    sequence: int = Field(ge=0)
    name: str = Field(min_length=1, max_length=120)
    machine_type: str = Field(min_length=1, max_length=64)
    skill_level: int = Field(default=1, ge=1, le=5)
    estimated_time_per_piece: float = Field(default=0.0, ge=0)
    rate: Decimal = Field(default=Decimal("0"), ge=0)
    dependencies: list[str] = Field(default_factory=list)


class CreateTemplateRequest(BaseModel):
    """Request for registering an operation template."""

    id: str = Field(min_length=1, max_length=64)
    name: str | None = None
    garment_type: str | None = None
    operations: list[OperationRequest]


@router.post("", response_model=OperationTemplate, status_code=status.HTTP_201_CREATED)
async def register_template(
    request: CreateTemplateRequest, actor: ActorDep, container: ContainerDep
):
    """Validate and store a template; malformed dependency graphs are rejected."""
    actor.require_supervisory("register templates")
    operations = [OperationDefinition(**op.model_dump()) for op in request.operations]
    template = OperationTemplate.build(
        request.id, operations, request.name, request.garment_type
    )
    return await container.template_service.register(template)


@router.get("/{template_id}", response_model=OperationTemplate)
async def get_template(template_id: str, container: ContainerDep):
    return await container.template_service.resolve(template_id)
