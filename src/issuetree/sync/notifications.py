"""
Notification sinks.

The sync core raises leveled notifications (success, error, warning,
info); how they reach a person is somebody else's concern. A sink only has
to accept them.
"""

import logging
from collections.abc import Callable
from typing import Protocol

from issuetree.models.base import NotificationLevel
from issuetree.models.results import Notification

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


class NotificationSink(Protocol):
    """Anything that accepts notifications."""

    def notify(self, notification: Notification) -> None: ...


class NotificationCollector:
    """Sink that keeps every notification it receives."""

    def __init__(self) -> None:
        self._notifications: list[Notification] = []

    @property
    def notifications(self) -> list[Notification]:
        """Get received notifications, oldest first."""
        return list(self._notifications)

    def notify(self, notification: Notification) -> None:
        self._notifications.append(notification)

    def by_level(self, level: NotificationLevel) -> list[Notification]:
        """Get received notifications of one level."""
        return [n for n in self._notifications if n.level == level]

    def clear(self) -> None:
        self._notifications.clear()


class LoggingNotificationSink:
    """Sink that writes notifications to the log."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def notify(self, notification: Notification) -> None:
        self._log.log(
            _LOG_LEVELS[notification.level],
            f"[{notification.level.value}] {notification.message}",
        )


class CallbackNotificationSink:
    """Sink forwarding notifications to a callable, e.g. a UI toast hook."""

    def __init__(self, callback: Callable[[Notification], None]) -> None:
        self._callback = callback

    def notify(self, notification: Notification) -> None:
        self._callback(notification)


class NotificationRecorder:
    """Accumulates the notifications of one workflow and forwards them.

    Each saga owns one recorder so its result can carry exactly the
    notifications it raised, while the session-wide sink still sees them
    as they happen.
    """

    def __init__(self, sink: NotificationSink | None = None) -> None:
        self._sink = sink
        self.notifications: list[Notification] = []

    def emit(self, level: NotificationLevel, message: str) -> Notification:
        """Create a notification, record it and forward it."""
        notification = Notification(level=level, message=message)
        self.add(notification)
        return notification

    def add(self, notification: Notification) -> None:
        """Record and forward an existing notification."""
        self.notifications.append(notification)
        if self._sink is not None:
            self._sink.notify(notification)

    def extend(self, notifications: list[Notification]) -> None:
        for notification in notifications:
            self.add(notification)

    def success(self, message: str) -> Notification:
        return self.emit(NotificationLevel.SUCCESS, message)

    def info(self, message: str) -> Notification:
        return self.emit(NotificationLevel.INFO, message)

    def warning(self, message: str) -> Notification:
        return self.emit(NotificationLevel.WARNING, message)

    def error(self, message: str) -> Notification:
        return self.emit(NotificationLevel.ERROR, message)
