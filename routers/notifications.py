# routers/notifications.py

from typing import List

from fastapi import APIRouter, Depends, Query

from dependencies.auth import get_current_user, CurrentUser
from core.lifecycle import LifecycleEngine, get_engine
from core.notifications import NotificationSink, ensure_owner
from models.notification import NotificationCount, NotificationRead

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"],
)


def get_sink(engine: LifecycleEngine = Depends(get_engine)) -> NotificationSink:
    return engine.sink


@router.get("", response_model=List[NotificationRead])
def list_notifications(
    unread_only: bool = Query(False),
    current_user: CurrentUser = Depends(get_current_user),
    sink: NotificationSink = Depends(get_sink),
):
    """Current user's notifications, newest first."""
    return sink.list_for_user(current_user.id, unread_only=unread_only)


@router.get("/unread-count", response_model=NotificationCount)
def unread_count(
    current_user: CurrentUser = Depends(get_current_user),
    sink: NotificationSink = Depends(get_sink),
):
    return NotificationCount(unread=sink.unread_count(current_user.id))


@router.post("/read-all")
def mark_all_read(
    current_user: CurrentUser = Depends(get_current_user),
    sink: NotificationSink = Depends(get_sink),
):
    return {"success": True, "updated": sink.mark_all_read(current_user.id)}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    sink: NotificationSink = Depends(get_sink),
):
    ensure_owner(sink.get(notification_id), current_user.id)
    sink.mark_read(notification_id)
    return {"success": True}
