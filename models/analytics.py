# models/analytics.py

import datetime as dt
from typing import Dict, List
from pydantic import BaseModel

from .enums import TimeUnit


class AnalyticsBucket(BaseModel):
    """One point of the dashboard chart."""
    date: dt.date       # first calendar day of the bucket
    label: str          # "Jun 01" / "Jun 2024"
    guests: int = 0
    sleepover: int = 0
    maintenance: int = 0
    complaints: int = 0


class StatusCounts(BaseModel):
    total: int = 0
    pending: int = 0
    resolved: int = 0
    denied: int = 0


class DailyReport(BaseModel):
    date: dt.date
    guests: StatusCounts
    sleepovers: StatusCounts
    maintenance: StatusCounts
    complaints: StatusCounts


class DashboardSnapshot(BaseModel):
    generated_at: dt.datetime
    unit: TimeUnit
    pending: Dict[str, int]
    active_guests: int
    active_sleepovers: int
    pending_applications: int
    series: List[AnalyticsBucket]
