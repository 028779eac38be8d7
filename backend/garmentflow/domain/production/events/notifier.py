"""Outbound port for status-change observability."""

from abc import ABC, abstractmethod
from uuid import UUID


class StatusChangeNotifier(ABC):
    """
    Fire-and-forget hook for external reporting.

    Implementations may fail; the engine logs such failures and never lets
    them roll back the transition that triggered the notification.
    """

    @abstractmethod
    def notify_status_change(
        self, work_item_id: UUID, old_status: str, new_status: str
    ) -> None:
        pass
