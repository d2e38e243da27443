"""WebSocket fan-out of notification changes to connected users."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Iterable, Optional, Set

from fastapi import WebSocket

from .notification_bus import NotificationBus, NotificationMessage

logger = logging.getLogger(__name__)


class NotificationBroadcaster:
    """
    Tracks open notification sockets per user.

    Bus handlers run in the request worker thread, so pushes are scheduled onto
    the event loop captured by `attach`.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe = None
        self._load_counts: Optional[Callable[[str], dict]] = None

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.setdefault(user_id, set()).add(websocket)
        logger.info("[WS] notifications connected for %s (%d sockets)", user_id, self._count_connections())

    async def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        async with self._lock:
            sockets = self._connections.get(user_id)
            if sockets is not None:
                sockets.discard(websocket)
                if not sockets:
                    del self._connections[user_id]
        logger.info("[WS] notifications disconnected for %s", user_id)

    def _count_connections(self) -> int:
        return sum(len(sockets) for sockets in self._connections.values())

    def is_connected(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    async def send_to_users(self, user_ids: Iterable[str], payload: dict) -> int:
        """Send `payload` to every socket of the given users; returns sockets reached."""
        reached = 0
        for user_id in set(user_ids):
            for websocket in list(self._connections.get(user_id, ())):
                try:
                    await websocket.send_json(payload)
                    reached += 1
                except Exception as e:  # socket already gone
                    logger.warning("[WS] send to %s failed: %s", user_id, e)
                    await self.disconnect(websocket, user_id)
        return reached

    def attach(
        self,
        bus: NotificationBus,
        loop: asyncio.AbstractEventLoop,
        load_counts: Optional[Callable[[str], dict]] = None,
    ) -> None:
        """Forward bus messages to connected users, with their fresh badge counts when a loader is given."""
        self._loop = loop
        self._load_counts = load_counts
        self._unsubscribe = bus.subscribe(NotificationMessage, self._on_message)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._loop = None
        self._load_counts = None

    async def push_changes(self, user_ids: Iterable[str], reason: str) -> int:
        """Send each user a "notifications_changed" event carrying their own counts."""
        reached = 0
        for user_id in set(user_ids):
            payload = {"type": "notifications_changed", "reason": reason}
            if self._load_counts is not None:
                loop = asyncio.get_running_loop()
                # Count queries are blocking; keep them off the event loop.
                payload["counts"] = await loop.run_in_executor(None, self._load_counts, user_id)
            reached += await self.send_to_users([user_id], payload)
        return reached

    def _on_message(self, message: NotificationMessage) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        user_ids = [str(user_id) for user_id in message.user_ids if user_id]
        targets = [user_id for user_id in user_ids if self.is_connected(user_id)]
        if not targets:
            return
        future = asyncio.run_coroutine_threadsafe(self.push_changes(targets, type(message).__name__), self._loop)
        future.add_done_callback(_log_push_failure)


def _log_push_failure(future) -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.error("[WS] notification push failed: %s", future.exception())


notification_broadcaster = NotificationBroadcaster()
