"""
Status-change notification adapters.

Bridges ``WorkItemStatusChanged`` domain events to the external
``StatusChangeNotifier`` hook. Notification is fire-and-forget: a failing
notifier is logged and the transition that triggered it stands.
"""

import logging

from garmentflow.core.observability import get_logger
from garmentflow.domain.production.events import (
    DomainEvent,
    DomainEventHandler,
    StatusChangeNotifier,
    WorkItemStatusChanged,
)

logger = logging.getLogger(__name__)


class StatusChangeNotificationHandler(DomainEventHandler):
    """Forwards work item status changes to a notifier."""

    def __init__(self, notifier: StatusChangeNotifier) -> None:
        self._notifier = notifier

    def can_handle(self, event: DomainEvent) -> bool:
        return isinstance(event, WorkItemStatusChanged)

    def handle(self, event: DomainEvent) -> None:
        if not isinstance(event, WorkItemStatusChanged):
            return
        try:
            self._notifier.notify_status_change(
                event.work_item_id, event.old_status, event.new_status
            )
        except Exception as e:
            logger.error(
                f"Status change notification failed for work item {event.work_item_id} "
                f"({event.old_status} -> {event.new_status}): {str(e)}"
            )


class LoggingStatusChangeNotifier(StatusChangeNotifier):
    """Reports status changes as structured log records."""

    def __init__(self) -> None:
        self._logger = get_logger("garmentflow.status_changes")

    def notify_status_change(self, work_item_id, old_status: str, new_status: str) -> None:
        self._logger.info(
            "work_item_status_changed",
            work_item_id=str(work_item_id),
            old_status=old_status,
            new_status=new_status,
        )
