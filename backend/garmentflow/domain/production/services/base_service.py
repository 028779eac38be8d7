"""
Base service providing common work item functionality.

Every state-changing service reads a work item, mutates it through the
entity's transition methods and writes it back with a compare-and-swap on
the version it read. Domain events are dispatched only after the write
succeeded.
"""

from abc import ABC
from uuid import UUID

from ....core.observability import get_logger
from ...shared.base import AggregateRoot
from ...shared.exceptions import NotAuthorizedError, NotFoundError
from ..entities.work_item import WorkItem
from ..events import DomainEventDispatcher
from ..repositories.work_item_repository import WorkItemRepository
from ..value_objects.common import Actor

logger = get_logger(__name__)


class WorkItemServiceBase(ABC):
    """
    Base class for services that mutate work items.

    Provides lookup, optimistic write-back and event publication shared by
    the workflow, assignment, approval and bundle services.
    """

    def __init__(
        self,
        work_item_repository: WorkItemRepository,
        event_dispatcher: DomainEventDispatcher,
    ) -> None:
        """
        Initialize the service.

        Args:
            work_item_repository: Work item data access interface
            event_dispatcher: Dispatcher receiving events after each write
        """
        self._work_item_repository = work_item_repository
        self._event_dispatcher = event_dispatcher

    async def get_work_item(self, work_item_id: UUID) -> WorkItem:
        """
        Load a work item.

        Raises:
            NotFoundError: If the work item doesn't exist
        """
        item = await self._work_item_repository.get_by_id(work_item_id)
        if item is None:
            raise NotFoundError("WorkItem", work_item_id)
        return item

    async def _commit(self, item: WorkItem, expected_version: int) -> WorkItem:
        """Compare-and-swap the item, then publish its pending events."""
        saved = await self._work_item_repository.save(item, expected_version)
        self._publish(item)
        logger.debug(
            "work_item_saved",
            work_item_id=str(item.id),
            status=item.status.value,
            version=saved.version,
        )
        return saved

    def _publish(self, aggregate: AggregateRoot) -> None:
        self._event_dispatcher.dispatch_all(aggregate.pull_domain_events())

    @staticmethod
    def _require_owner_or_supervisor(actor: Actor, item: WorkItem, action: str) -> None:
        """Operators may only act on work assigned to them."""
        if actor.is_supervisory:
            return
        if item.assigned_operator_id != actor.id:
            raise NotAuthorizedError(actor.id, actor.role.value, action)
