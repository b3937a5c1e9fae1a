# routers/applications.py

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query

from dependencies.auth import get_current_user, CurrentUser
from core.analytics import invalidate_dashboard
from core.applications import ApplicationService, get_application_service
from core.errors import UnauthorizedError
from core.permission_helpers import has_permission, requires_permission
from models.application import ApplicationDecision, ApplicationMessage, ApplicationRead

router = APIRouter(
    prefix="/applications",
    tags=["Applications"],
)


# -----------------------------------------------------
# POST /applications - newbie applies for residence
# -----------------------------------------------------
@router.post("", response_model=ApplicationRead, status_code=201)
def submit_application(
    payload: Dict[str, Any] = Body(...),
    current_user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    application = service.submit(current_user, payload)
    invalidate_dashboard()
    return application


@router.get("/mine", response_model=List[ApplicationRead])
def my_applications(
    current_user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    return service.list(applicant_id=current_user.id)


@router.get(
    "",
    response_model=List[ApplicationRead],
    dependencies=[Depends(requires_permission("applications:read"))],
)
def list_applications(
    status: Optional[str] = Query(None, description="pending | accepted | denied"),
    service: ApplicationService = Depends(get_application_service),
):
    return service.list(status=status)


@router.get("/{application_id}", response_model=ApplicationRead)
def get_application(
    application_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    application = service.get(application_id)
    if application.applicant_id != current_user.id and not has_permission(current_user, "applications:read"):
        raise UnauthorizedError("You cannot view this application", reason="not_owner")
    return application


# -----------------------------------------------------
# POST /applications/{id}/decision - accept / deny
# -----------------------------------------------------
@router.post("/{application_id}/decision", response_model=ApplicationRead)
def decide_application(
    application_id: str,
    payload: ApplicationDecision,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    application = service.process(
        application_id,
        current_user,
        payload.decision,
        payload.message,
        room_number=payload.room_number,
        tenant_code=payload.tenant_code,
        defer=background_tasks.add_task,
    )
    invalidate_dashboard()
    return application


@router.post("/{application_id}/messages", response_model=ApplicationRead)
def add_application_message(
    application_id: str,
    payload: ApplicationMessage,
    current_user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
):
    return service.add_message(application_id, current_user, payload.message)
