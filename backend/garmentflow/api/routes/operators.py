"""
Operator API Routes

Roster synchronisation from the external operator directory and roster
lookup.
"""

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from garmentflow.api.deps import ActorDep, ContainerDep
from garmentflow.core.config import settings
from garmentflow.domain.production.entities import Operator
from garmentflow.domain.production.value_objects import OperatorFilter
from garmentflow.domain.shared.exceptions import NotFoundError

router = APIRouter(prefix="/operators", tags=["operators"])


class OperatorUpsertRequest(BaseModel):
    """Roster data owned by the operator directory."""

    name: str = Field(default="", max_length=100)
    machine_capabilities: list[str] = Field(default_factory=list)
    max_load: int = Field(default_factory=lambda: settings.DEFAULT_OPERATOR_MAX_LOAD, gt=0)
    efficiency: float = Field(default=1.0, ge=0)
    active: bool = True
    multi_skill: bool = False


@router.put("/{operator_id}", response_model=Operator)
async def upsert_operator(
    operator_id: str,
    request: OperatorUpsertRequest,
    actor: ActorDep,
    container: ContainerDep,
):
    """Create or update an operator; the engine-owned ``current_load`` is preserved."""
    actor.require_supervisory("update the operator roster")
    existing = await container.operator_repository.get_by_id(operator_id)
    operator = Operator(
        id=operator_id,
        current_load=existing.current_load if existing else 0,
        **request.model_dump(),
    )
    return await container.operator_repository.save(operator)


@router.get("", response_model=list[Operator])
async def list_operators(
    container: ContainerDep,
    active: bool | None = Query(True, description="Filter by active flag"),
    machine_type: str | None = Query(None, description="Only operators able to run it"),
):
    return await container.operator_repository.query_operators(
        OperatorFilter(active=active, machine_type=machine_type)
    )


@router.get("/{operator_id}", response_model=Operator)
async def get_operator(operator_id: str, container: ContainerDep):
    operator = await container.operator_repository.get_by_id(operator_id)
    if operator is None:
        raise NotFoundError("Operator", operator_id)
    return operator
