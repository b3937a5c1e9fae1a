# routers/sleepovers.py

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query

from dependencies.auth import get_current_user, CurrentUser
from core.analytics import invalidate_dashboard
from core.lifecycle import LifecycleEngine, get_engine
from core.permission_helpers import requires_permission
from models.enums import Action, RequestKind
from models.requests import SleepoverRequest, TransitionBody

router = APIRouter(
    prefix="/sleepovers",
    tags=["Sleepovers"],
)


@router.post("", response_model=SleepoverRequest, status_code=201)
def request_sleepover(
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    """
    Ask for an overnight guest.

    The request stays **pending** until an admin approves it; approval
    issues the security code the guest shows when signing out.
    """
    sleepover = engine.submit(RequestKind.sleepover, current_user, payload, defer=background_tasks.add_task)
    invalidate_dashboard()
    return sleepover


@router.get("", response_model=List[SleepoverRequest])
def list_sleepovers(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.list_for_actor(RequestKind.sleepover, current_user, status=status)


@router.get(
    "/active",
    response_model=List[SleepoverRequest],
    dependencies=[Depends(requires_permission("requests:read_all"))],
)
def list_active_sleepovers(engine: LifecycleEngine = Depends(get_engine)):
    return engine.active(RequestKind.sleepover)


@router.get(
    "/checked-out",
    response_model=List[SleepoverRequest],
    dependencies=[Depends(requires_permission("requests:read_all"))],
)
def list_signed_out_sleepovers(engine: LifecycleEngine = Depends(get_engine)):
    return engine.checked_out(RequestKind.sleepover)


@router.get("/{request_id}", response_model=SleepoverRequest)
def get_sleepover(
    request_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.get_for_actor(RequestKind.sleepover, request_id, current_user)


@router.get("/{request_id}/actions", response_model=List[Action])
def sleepover_actions(
    request_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    sleepover = engine.get_for_actor(RequestKind.sleepover, request_id, current_user)
    return engine.available_actions(sleepover, current_user)


# -----------------------------------------------------
# POST /sleepovers/{id}/{action} - approve / reject / checkout
# -----------------------------------------------------
@router.post("/{request_id}/{action}", response_model=SleepoverRequest)
def transition_sleepover(
    request_id: str,
    action: str,
    background_tasks: BackgroundTasks,
    body: Optional[TransitionBody] = None,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    body = body or TransitionBody()
    sleepover = engine.transition(
        RequestKind.sleepover,
        request_id,
        current_user,
        action,
        response_text=body.response,
        code=body.code,
        defer=background_tasks.add_task,
    )
    invalidate_dashboard()
    return sleepover
