"""
Event infrastructure.

Adapters connecting domain events to external collaborators.
"""

from .status_notifier import LoggingStatusChangeNotifier, StatusChangeNotificationHandler

__all__ = [
    "LoggingStatusChangeNotifier",
    "StatusChangeNotificationHandler",
]
