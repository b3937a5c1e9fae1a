# routers/complaints.py

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query

from dependencies.auth import get_current_user, CurrentUser
from core.analytics import invalidate_dashboard
from core.lifecycle import LifecycleEngine, get_engine
from models.enums import Action, RequestKind
from models.requests import Complaint, StaffAssignment, TransitionBody

router = APIRouter(
    prefix="/complaints",
    tags=["Complaints"],
)


@router.post("", response_model=Complaint, status_code=201)
def file_complaint(
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    complaint = engine.submit(RequestKind.complaint, current_user, payload, defer=background_tasks.add_task)
    invalidate_dashboard()
    return complaint


@router.get("", response_model=List[Complaint])
def list_complaints(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.list_for_actor(RequestKind.complaint, current_user, status=status)


@router.get("/{complaint_id}", response_model=Complaint)
def get_complaint(
    complaint_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.get_for_actor(RequestKind.complaint, complaint_id, current_user)


@router.get("/{complaint_id}/actions", response_model=List[Action])
def complaint_actions(
    complaint_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    complaint = engine.get_for_actor(RequestKind.complaint, complaint_id, current_user)
    return engine.available_actions(complaint, current_user)


# -----------------------------------------------------
# POST /complaints/{id}/assign - admin hands it to a staff member
# -----------------------------------------------------
@router.post("/{complaint_id}/assign", response_model=Complaint)
def assign_complaint(
    complaint_id: str,
    payload: StaffAssignment,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.assign(RequestKind.complaint, complaint_id, current_user, payload.staff_id)


@router.post("/{complaint_id}/{action}", response_model=Complaint)
def transition_complaint(
    complaint_id: str,
    action: str,
    background_tasks: BackgroundTasks,
    body: Optional[TransitionBody] = None,
    current_user: CurrentUser = Depends(get_current_user),
    engine: LifecycleEngine = Depends(get_engine),
):
    body = body or TransitionBody()
    complaint = engine.transition(
        RequestKind.complaint,
        complaint_id,
        current_user,
        action,
        response_text=body.response,
        defer=background_tasks.add_task,
    )
    invalidate_dashboard()
    return complaint
