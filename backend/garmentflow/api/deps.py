"""
API Dependencies

Wires repositories and services into a container held on the application,
and resolves the acting user from headers set by the upstream auth proxy.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from garmentflow.core.observability import get_logger, set_actor_id
from garmentflow.domain.production.events import (
    DomainEventDispatcher,
    StatusChangeNotifier,
)
from garmentflow.domain.production.repositories import (
    AssignmentRepository,
    LotRepository,
    OperatorRepository,
    TemplateRepository,
    WorkItemRepository,
)
from garmentflow.domain.production.services import (
    ApprovalService,
    AssignmentMatcher,
    BundleService,
    LotService,
    OperatorLoadLedger,
    ProgressAggregator,
    TemplateService,
    WorkflowService,
)
from garmentflow.domain.production.value_objects import Actor, ActorRole
from garmentflow.infrastructure.events import (
    LoggingStatusChangeNotifier,
    StatusChangeNotificationHandler,
)
from garmentflow.infrastructure.persistence import (
    InMemoryAssignmentRepository,
    InMemoryLotRepository,
    InMemoryOperatorRepository,
    InMemoryTemplateRepository,
    InMemoryWorkItemRepository,
)

logger = get_logger(__name__)


class ServiceContainer:
    """Repositories and services shared by all requests of one application."""

    def __init__(
        self,
        template_repository: TemplateRepository | None = None,
        lot_repository: LotRepository | None = None,
        work_item_repository: WorkItemRepository | None = None,
        operator_repository: OperatorRepository | None = None,
        assignment_repository: AssignmentRepository | None = None,
        notifier: StatusChangeNotifier | None = None,
    ) -> None:
        self.template_repository = template_repository or InMemoryTemplateRepository()
        self.lot_repository = lot_repository or InMemoryLotRepository()
        self.work_item_repository = work_item_repository or InMemoryWorkItemRepository()
        self.operator_repository = operator_repository or InMemoryOperatorRepository()
        self.assignment_repository = assignment_repository or InMemoryAssignmentRepository()

        self.event_dispatcher = DomainEventDispatcher()
        self.event_dispatcher.register_handler(
            StatusChangeNotificationHandler(notifier or LoggingStatusChangeNotifier())
        )

        self.load_ledger = OperatorLoadLedger(self.operator_repository)
        self.template_service = TemplateService(self.template_repository)
        self.workflow_service = WorkflowService(
            self.work_item_repository,
            self.lot_repository,
            self.assignment_repository,
            self.load_ledger,
            self.event_dispatcher,
        )
        self.lot_service = LotService(
            self.lot_repository,
            self.work_item_repository,
            self.template_service,
            self.workflow_service,
            self.event_dispatcher,
        )
        self.assignment_matcher = AssignmentMatcher(
            self.work_item_repository,
            self.operator_repository,
            self.assignment_repository,
            self.load_ledger,
            self.event_dispatcher,
        )
        self.approval_service = ApprovalService(
            self.work_item_repository,
            self.assignment_repository,
            self.load_ledger,
            self.event_dispatcher,
        )
        self.bundle_service = BundleService(
            self.work_item_repository,
            self.assignment_repository,
            self.workflow_service,
            self.event_dispatcher,
        )
        self.progress_aggregator = ProgressAggregator(
            self.work_item_repository, self.lot_repository
        )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_current_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Build the acting user from the auth proxy's identity headers."""
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing actor identity",
        )
    try:
        role = ActorRole(x_actor_role.strip().lower())
    except ValueError:
        logger.warning("unknown_actor_role", actor_id=x_actor_id, role=x_actor_role)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown actor role: {x_actor_role}",
        )

    set_actor_id(x_actor_id)
    return Actor(id=x_actor_id, role=role)


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]
ActorDep = Annotated[Actor, Depends(get_current_actor)]
