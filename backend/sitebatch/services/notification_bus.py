"""Typed in-process publish/subscribe bus for notification-affecting changes."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, TypeVar
from uuid import UUID

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationMessage:
    """Base message; `user_ids` are the users whose badge counts changed."""

    user_ids: tuple[UUID, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ChecklistAssigned(NotificationMessage):
    checklist_id: UUID | None = None


@dataclass(frozen=True)
class ChecklistCompleted(NotificationMessage):
    checklist_id: UUID | None = None


@dataclass(frozen=True)
class ChecklistAlertRaised(NotificationMessage):
    checklist_id: UUID | None = None


@dataclass(frozen=True)
class ChecklistAlertResolved(NotificationMessage):
    alert_id: UUID | None = None


@dataclass(frozen=True)
class UserRequestCreated(NotificationMessage):
    request_id: UUID | None = None


@dataclass(frozen=True)
class UserRequestResolved(NotificationMessage):
    request_id: UUID | None = None


M = TypeVar("M", bound=NotificationMessage)
Handler = Callable[[NotificationMessage], None]


class NotificationBus:
    """Dispatches messages to handlers registered for their type (or a base type)."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, message_type: type[M], handler: Callable[[M], None]) -> Callable[[], None]:
        self._handlers[message_type].append(handler)  # type: ignore[arg-type]

        def _unsubscribe() -> None:
            handlers = self._handlers.get(message_type, [])
            if handler in handlers:
                handlers.remove(handler)  # type: ignore[arg-type]

        return _unsubscribe

    def publish(self, message: NotificationMessage) -> int:
        """Deliver to every matching handler; returns the number of handlers called."""
        delivered = 0
        for message_type in type(message).__mro__:
            for handler in list(self._handlers.get(message_type, [])):
                try:
                    handler(message)
                except Exception:
                    # Subscribers are UI refresh hooks; the committed change stands.
                    logger.exception("Notification handler failed for %s", type(message).__name__)
                delivered += 1
        return delivered

    def clear(self) -> None:
        self._handlers.clear()


notification_bus = NotificationBus()
