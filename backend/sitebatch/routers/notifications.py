"""Notification badge counts (HTTP and WebSocket)."""
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from ..auth import get_current_user, get_websocket_user
from ..database import SessionLocal, get_db
from ..models import UserProfile
from ..schemas import NotificationCountsResponse
from ..services.notification_counts import count_notifications
from ..services.notification_push import notification_broadcaster

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notifications"])


@router.get("/notifications/counts", response_model=NotificationCountsResponse)
def get_notification_counts(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return NotificationCountsResponse(**count_notifications(db, current_user.id).as_dict())


@router.websocket("/ws/notifications")
async def notifications_websocket(websocket: WebSocket):
    """Pushes a "notifications_changed" event with fresh counts whenever they change."""
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4001)
        return

    db = SessionLocal()
    try:
        user = get_websocket_user(token, db)
    finally:
        db.close()
    if user is None:
        await websocket.close(code=4001)
        return

    user_id = str(user.id)
    await notification_broadcaster.connect(websocket, user_id)
    try:
        while True:
            data = await websocket.receive_json()
            if data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await notification_broadcaster.disconnect(websocket, user_id)
