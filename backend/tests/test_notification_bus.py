from __future__ import annotations

import asyncio
from uuid import uuid4

from sitebatch.services.notification_bus import (
    ChecklistAssigned,
    ChecklistCompleted,
    NotificationBus,
    NotificationMessage,
    UserRequestCreated,
)
from sitebatch.services.notification_push import NotificationBroadcaster


def test_handlers_receive_only_their_message_type() -> None:
    bus = NotificationBus()
    assigned: list[object] = []
    completed: list[object] = []
    bus.subscribe(ChecklistAssigned, assigned.append)
    bus.subscribe(ChecklistCompleted, completed.append)

    message = ChecklistAssigned(user_ids=(uuid4(),), checklist_id=uuid4())
    delivered = bus.publish(message)

    assert delivered == 1
    assert assigned == [message]
    assert completed == []


def test_base_type_subscription_sees_every_message() -> None:
    bus = NotificationBus()
    seen: list[str] = []
    bus.subscribe(NotificationMessage, lambda message: seen.append(type(message).__name__))

    bus.publish(ChecklistAssigned())
    bus.publish(UserRequestCreated())

    assert seen == ["ChecklistAssigned", "UserRequestCreated"]


def test_unsubscribe_stops_delivery() -> None:
    bus = NotificationBus()
    seen: list[object] = []
    unsubscribe = bus.subscribe(ChecklistAssigned, seen.append)

    unsubscribe()
    bus.publish(ChecklistAssigned())

    assert seen == []


def test_failing_handler_does_not_block_others() -> None:
    bus = NotificationBus()
    seen: list[object] = []

    def _boom(_message) -> None:
        raise RuntimeError("handler failed")

    bus.subscribe(ChecklistAssigned, _boom)
    bus.subscribe(ChecklistAssigned, seen.append)

    assert bus.publish(ChecklistAssigned()) == 2
    assert len(seen) == 1


class _SocketStub:
    def __init__(self) -> None:
        self.accepted = False
        self.sent: list[dict] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, payload: dict) -> None:
        self.sent.append(payload)


def test_broadcaster_sends_only_to_connected_users() -> None:
    broadcaster = NotificationBroadcaster()
    socket = _SocketStub()

    async def _scenario() -> int:
        await broadcaster.connect(socket, "user-1")
        reached = await broadcaster.send_to_users(["user-1", "user-2"], {"type": "notifications_changed"})
        await broadcaster.disconnect(socket, "user-1")
        return reached

    reached = asyncio.run(_scenario())

    assert socket.accepted is True
    assert reached == 1
    assert socket.sent == [{"type": "notifications_changed"}]
    assert broadcaster.is_connected("user-1") is False


def test_push_changes_carries_each_users_counts() -> None:
    broadcaster = NotificationBroadcaster()
    first, second = _SocketStub(), _SocketStub()

    async def _scenario() -> int:
        broadcaster._load_counts = lambda user_id: {"total": 2 if user_id == "user-1" else 5}
        await broadcaster.connect(first, "user-1")
        await broadcaster.connect(second, "user-2")
        return await broadcaster.push_changes(["user-1", "user-2"], "ChecklistAssigned")

    reached = asyncio.run(_scenario())

    assert reached == 2
    assert first.sent == [{"type": "notifications_changed", "reason": "ChecklistAssigned", "counts": {"total": 2}}]
    assert second.sent[0]["counts"] == {"total": 5}
