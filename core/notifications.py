# core/notifications.py
import requests
from typing import Callable, List, Optional, Tuple

from core.config import settings
from core.errors import NotificationEmissionError, NotFoundError
from core.logging_config import logger
from core.store import NOTIFICATIONS, RequestStore
from core.utils import utcnow
from models.enums import NotificationKind, RequestKind
from models.notification import NotificationRead


# -----------------------------------------------------
# 📝 Message rendering (pure)
# -----------------------------------------------------
TITLES = {
    RequestKind.guest: "Guest Registration Update",
    RequestKind.sleepover: "Sleepover Request Update",
    RequestKind.maintenance: "Maintenance Request Update",
    RequestKind.complaint: "Complaint Update",
}


def render_notification(kind: RequestKind, status: str, record: dict) -> Tuple[str, str]:
    """
    Title and message for a request that just moved to `status`.
    Deterministic; `record` is the request document after the update.
    """
    status = str(status)
    kind = RequestKind(kind)

    if kind == RequestKind.guest:
        name = f"{record.get('first_name', '')} {record.get('last_name', '')}".strip()
        message = f"Guest registration for {name} has been {status}"
    elif kind == RequestKind.sleepover:
        name = f"{record.get('guest_name', '')} {record.get('guest_surname', '')}".strip()
        message = f"Your sleepover request for {name} has been {status}"
    elif kind == RequestKind.maintenance:
        message = f"Your maintenance request \"{record.get('title', '')}\" has been {status}"
    else:
        message = f"Your complaint \"{record.get('title', '')}\" has been {status}"

    return TITLES[kind], message


def render_submission(kind: RequestKind, record: dict) -> Tuple[str, str]:
    """Confirmation sent on submit (only when NOTIFY_ON_SUBMIT is on)."""
    title, message = render_notification(kind, record.get("status", "submitted"), record)
    return title.replace("Update", "Received"), message.replace("has been", "is")


# -----------------------------------------------------
# 📨 Send webhook (Discord, Slack, etc.)
# -----------------------------------------------------
def send_webhook_message(message: str):
    webhook_url = settings.NOTIFY_WEBHOOK_URL
    if not webhook_url:
        logger.debug("Webhook URL not configured - skipping.")
        return

    try:
        payload = {"content": message}
        response = requests.post(webhook_url, json=payload, timeout=10)
        logger.info(f"Webhook sent (status {response.status_code})")
    except Exception as e:
        logger.warning(f"Webhook failed: {e}")


# -----------------------------------------------------
# 🔔 Notification sink
# -----------------------------------------------------
class NotificationSink:
    """Persists user-facing notifications in the `notifications` collection."""

    def __init__(self, store: RequestStore):
        self.store = store

    def create(self, user_id: str, title: str, message: str, kind, defer: Optional[Callable] = None) -> NotificationRead:
        """
        Store the notification, then forward it to the webhook. `defer`
        (e.g. BackgroundTasks.add_task) moves the webhook call past the response.
        """
        now = utcnow()
        doc = {
            "user_id": user_id,
            "title": title,
            "message": message,
            "kind": NotificationKind(kind).value,
            "read": False,
            "created_at": now,
            "updated_at": now,
        }
        try:
            doc_id = self.store.create(NOTIFICATIONS, doc)
        except Exception as e:
            raise NotificationEmissionError(f"could not store notification: {e}") from e
        notification = NotificationRead(id=doc_id, **doc)

        text = f"[{title}] {message}"
        if defer is not None:
            defer(send_webhook_message, text)
        else:
            send_webhook_message(text)
        return notification

    def get(self, notification_id: str) -> NotificationRead:
        return NotificationRead(**self.store.get(NOTIFICATIONS, notification_id))

    def list_for_user(self, user_id: str, unread_only: bool = False) -> List[NotificationRead]:
        filters = [("user_id", "==", user_id)]
        if unread_only:
            filters.append(("read", "==", False))
        rows = self.store.query(NOTIFICATIONS, filters, order_by="created_at", descending=True)
        return [NotificationRead(**r) for r in rows]

    def unread_count(self, user_id: str) -> int:
        return len(self.list_for_user(user_id, unread_only=True))

    def mark_read(self, notification_id: str) -> None:
        self.store.update(NOTIFICATIONS, notification_id, {"read": True, "updated_at": utcnow()})

    def mark_all_read(self, user_id: str) -> int:
        unread = self.list_for_user(user_id, unread_only=True)
        now = utcnow()
        for n in unread:
            self.store.update(NOTIFICATIONS, n.id, {"read": True, "updated_at": now})
        return len(unread)

    # -------------------------------------------------
    # Best-effort emission (never raises)
    # -------------------------------------------------
    def emit(
        self, user_id: str, title: str, message: str, kind, defer: Optional[Callable] = None
    ) -> Optional[NotificationRead]:
        """
        Single attempt. A failure is logged and swallowed so it can never
        undo or fail the transition that triggered it.
        """
        try:
            return self.create(user_id, title, message, kind, defer=defer)
        except NotificationEmissionError as e:
            logger.warning(f"Notification for user {user_id} not delivered: {e}")
            return None


def ensure_owner(notification: NotificationRead, user_id: str):
    """Users may only touch their own notifications."""
    if notification.user_id != user_id:
        raise NotFoundError(f"notifications record {notification.id} not found")
