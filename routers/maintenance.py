# routers/maintenance.py

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query

from dependencies.auth import get_current_user, CurrentUser
from core.analytics import invalidate_dashboard
from core.lifecycle import LifecycleEngine, get_engine
from models.enums import Action, RequestKind
from models.requests import MaintenanceTicket, StaffAssignment, TransitionBody

router = APIRouter(
    prefix="/maintenance",
    tags=["Maintenance"],
)


@router.post("", response_model=MaintenanceTicket, status_code=201)
def report_maintenance(
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    ticket = engine.submit(RequestKind.maintenance, current_user, payload, defer=background_tasks.add_task)
    invalidate_dashboard()
    return ticket


@router.get("", response_model=List[MaintenanceTicket])
def list_maintenance(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.list_for_actor(RequestKind.maintenance, current_user, status=status)


@router.get("/{ticket_id}", response_model=MaintenanceTicket)
def get_maintenance(
    ticket_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.get_for_actor(RequestKind.maintenance, ticket_id, current_user)


@router.get("/{ticket_id}/actions", response_model=List[Action])
def maintenance_actions(
    ticket_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    ticket = engine.get_for_actor(RequestKind.maintenance, ticket_id, current_user)
    return engine.available_actions(ticket, current_user)


# -----------------------------------------------------
# POST /maintenance/{id}/assign - admin hands it to a staff member
# -----------------------------------------------------
@router.post("/{ticket_id}/assign", response_model=MaintenanceTicket)
def assign_maintenance(
    ticket_id: str,
    payload: StaffAssignment,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.assign(RequestKind.maintenance, ticket_id, current_user, payload.staff_id)


# -----------------------------------------------------
# POST /maintenance/{id}/{action} - start / complete / reject
# -----------------------------------------------------
@router.post("/{ticket_id}/{action}", response_model=MaintenanceTicket)
def transition_maintenance(
    ticket_id: str,
    action: str,
    background_tasks: BackgroundTasks,
    body: Optional[TransitionBody] = None,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    body = body or TransitionBody()
    ticket = engine.transition(
        RequestKind.maintenance,
        ticket_id,
        current_user,
        action,
        response_text=body.response,
        defer=background_tasks.add_task,
    )
    invalidate_dashboard()
    return ticket
