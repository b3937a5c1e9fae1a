# routers/announcements.py

from typing import List

from fastapi import APIRouter, Depends

from dependencies.auth import get_current_user, CurrentUser
from core.logging_config import logger
from core.permission_helpers import requires_permission
from core.store import ANNOUNCEMENTS, RequestStore, get_store
from core.utils import utcnow
from models.announcement import AnnouncementCreate, AnnouncementRead, AnnouncementUpdate
from models.enums import AnnouncementStatus

router = APIRouter(
    prefix="/announcements",
    tags=["Announcements"],
)


# -----------------------------------------------------
# GET /announcements - active, not yet expired
# -----------------------------------------------------
@router.get(
    "",
    response_model=List[AnnouncementRead],
    dependencies=[Depends(requires_permission("announcements:read"))],
)
def list_announcements(store: RequestStore = Depends(get_store)):
    now = utcnow()
    rows = store.query(
        ANNOUNCEMENTS,
        [("status", "==", AnnouncementStatus.active.value)],
        order_by="created_at",
        descending=True,
    )
    return [r for r in rows if r.get("expires_at") is None or r["expires_at"] > now]


# -----------------------------------------------------
# GET /announcements/all - admin view incl. inactive
# -----------------------------------------------------
@router.get(
    "/all",
    response_model=List[AnnouncementRead],
    dependencies=[Depends(requires_permission("announcements:write"))],
)
def list_all_announcements(store: RequestStore = Depends(get_store)):
    return store.query(ANNOUNCEMENTS, order_by="created_at", descending=True)


@router.post("", response_model=AnnouncementRead, status_code=201)
def create_announcement(
    payload: AnnouncementCreate,
    current_user: CurrentUser = Depends(requires_permission("announcements:write")),
    store: RequestStore = Depends(get_store),
):
    now = utcnow()
    doc = {
        **payload.model_dump(),
        "status": AnnouncementStatus.active.value,
        "created_by": current_user.id,
        "created_by_name": current_user.full_name,
        "created_at": now,
        "updated_at": now,
    }
    doc_id = store.create(ANNOUNCEMENTS, doc)

    logger.info(f"Announcement {doc_id} posted by {current_user.id}")
    return store.get(ANNOUNCEMENTS, doc_id)


@router.patch(
    "/{announcement_id}",
    response_model=AnnouncementRead,
    dependencies=[Depends(requires_permission("announcements:write"))],
)
def update_announcement(
    announcement_id: str,
    payload: AnnouncementUpdate,
    store: RequestStore = Depends(get_store),
):
    update_data = payload.model_dump(exclude_unset=True)
    update_data["updated_at"] = utcnow()

    store.update(ANNOUNCEMENTS, announcement_id, update_data)
    return store.get(ANNOUNCEMENTS, announcement_id)


# -----------------------------------------------------
# DELETE /announcements/{id} - soft delete (deactivate)
# -----------------------------------------------------
@router.delete(
    "/{announcement_id}",
    dependencies=[Depends(requires_permission("announcements:write"))],
)
def deactivate_announcement(
    announcement_id: str,
    store: RequestStore = Depends(get_store),
):
    store.update(
        ANNOUNCEMENTS,
        announcement_id,
        {"status": AnnouncementStatus.inactive.value, "updated_at": utcnow()},
    )
    logger.info(f"Announcement {announcement_id} deactivated")
    return {"success": True, "id": announcement_id}
