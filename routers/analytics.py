# routers/analytics.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from core.analytics import MAX_WINDOW, aggregate, get_timezone, refresh, summarize_day
from core.permission_helpers import requires_permission
from core.store import RequestStore, get_store
from core.utils import utcnow
from models.analytics import AnalyticsBucket, DailyReport, DashboardSnapshot

router = APIRouter(
    prefix="/analytics",
    tags=["Analytics"],
    dependencies=[Depends(requires_permission("analytics:read"))],
)


# -----------------------------------------------------
# GET /analytics/series
# -----------------------------------------------------
@router.get("/series", response_model=List[AnalyticsBucket])
def request_series(
    unit: str = Query("days", description="days | weeks | months"),
    count: Optional[int] = Query(None, ge=0, le=MAX_WINDOW, description="Buckets before the current one"),
    store: RequestStore = Depends(get_store),
):
    return aggregate(store, unit, count)


# -----------------------------------------------------
# GET /analytics/daily
# Status breakdown for one local calendar day
# -----------------------------------------------------
@router.get("/daily", response_model=DailyReport)
def daily_report(
    day: Optional[date] = Query(None, description="YYYY-MM-DD, defaults to today"),
    store: RequestStore = Depends(get_store),
):
    if day is None:
        day = utcnow().astimezone(get_timezone()).date()
    return summarize_day(store, day)


# -----------------------------------------------------
# GET /analytics/dashboard
# Pull-based: the UI decides how often to call this
# -----------------------------------------------------
@router.get("/dashboard", response_model=DashboardSnapshot)
def dashboard(
    unit: str = Query("days"),
    force: bool = Query(False, description="Skip the cached snapshot"),
    store: RequestStore = Depends(get_store),
):
    return refresh(store, unit, force=force)
