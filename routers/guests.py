# routers/guests.py

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query

from dependencies.auth import get_current_user, CurrentUser
from core.analytics import invalidate_dashboard
from core.lifecycle import LifecycleEngine, get_engine
from core.permission_helpers import requires_permission
from models.enums import Action, RequestKind
from models.requests import CheckoutPinUpdate, GuestVisit, TransitionBody

router = APIRouter(
    prefix="/guests",
    tags=["Guests"],
)


# -----------------------------------------------------
# POST /guests - student signs a day guest in
# -----------------------------------------------------
@router.post("", response_model=GuestVisit, status_code=201)
def register_guest(
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    guest = engine.submit(RequestKind.guest, current_user, payload, defer=background_tasks.add_task)
    invalidate_dashboard()
    return guest


# -----------------------------------------------------
# GET /guests - own guests (staff: all)
# -----------------------------------------------------
@router.get("", response_model=List[GuestVisit])
def list_guests(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.list_for_actor(RequestKind.guest, current_user, status=status)


@router.get(
    "/active",
    response_model=List[GuestVisit],
    dependencies=[Depends(requires_permission("requests:read_all"))],
)
def list_active_guests(engine: LifecycleEngine = Depends(get_engine)):
    """Guests currently on the premises, latest check-in first."""
    return engine.active(RequestKind.guest)


@router.get(
    "/checked-out",
    response_model=List[GuestVisit],
    dependencies=[Depends(requires_permission("requests:read_all"))],
)
def list_checked_out_guests(engine: LifecycleEngine = Depends(get_engine)):
    return engine.checked_out(RequestKind.guest)


# -----------------------------------------------------
# POST /guests/checkout-pin - admin rotates the shared PIN
# -----------------------------------------------------
@router.post("/checkout-pin")
def rotate_checkout_pin(
    payload: CheckoutPinUpdate,
    current_user: CurrentUser = Depends(requires_permission("codes:manage")),
    engine: LifecycleEngine = Depends(get_engine),
):
    engine.codebook.rotate_checkout_pin(payload.pin, rotated_by=current_user.id)
    return {"success": True}


@router.get("/{guest_id}", response_model=GuestVisit)
def get_guest(
    guest_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.get_for_actor(RequestKind.guest, guest_id, current_user)


@router.get("/{guest_id}/actions", response_model=List[Action])
def guest_actions(
    guest_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    guest = engine.get_for_actor(RequestKind.guest, guest_id, current_user)
    return engine.available_actions(guest, current_user)


# -----------------------------------------------------
# POST /guests/{id}/{action} - checkout (PIN) / decline
# -----------------------------------------------------
@router.post("/{guest_id}/{action}", response_model=GuestVisit)
def transition_guest(
    guest_id: str,
    action: str,
    background_tasks: BackgroundTasks,
    body: Optional[TransitionBody] = None,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    body = body or TransitionBody()
    guest = engine.transition(
        RequestKind.guest,
        guest_id,
        current_user,
        action,
        response_text=body.response,
        code=body.code,
        defer=background_tasks.add_task,
    )
    invalidate_dashboard()
    return guest
