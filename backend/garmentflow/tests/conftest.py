import pytest

from garmentflow.api.deps import ServiceContainer
from garmentflow.domain.production.entities import OperationTemplate
from garmentflow.domain.production.value_objects import Actor
from garmentflow.infrastructure.persistence import InMemoryOperatorRepository
from garmentflow.tests.factories import (
    TEMPLATE_ID,
    cut_join_hem,
    make_definition,
    operator_actor,
    roster,
    supervisor,
)


@pytest.fixture
async def container() -> ServiceContainer:
    """Fresh in-memory container with the shirt template and roster loaded."""
    services = ServiceContainer(operator_repository=InMemoryOperatorRepository(roster()))
    await services.template_service.register(
        OperationTemplate.build(TEMPLATE_ID, cut_join_hem(), "Shirt", "shirt")
    )
    await services.template_service.register(
        OperationTemplate.build("single", [make_definition("cut", 1, "cutting")])
    )
    return services


@pytest.fixture
def sup() -> Actor:
    return supervisor()


@pytest.fixture
def cutter() -> Actor:
    return operator_actor("op-cut")


@pytest.fixture
def sewer() -> Actor:
    return operator_actor("op-sew")
