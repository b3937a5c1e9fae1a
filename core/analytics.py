# core/analytics.py

"""
Dashboard aggregation.

`aggregate` turns the four request collections into a dense, chronological
count series for charting. Timestamps are moved to ANALYTICS_TIMEZONE before
bucketing so a request created at 23:30 local time lands on its local day.
The window is aligned to bucket boundaries: with `days` and count=14 the
series runs from midnight fourteen days ago up to now, both ends inclusive,
one bucket per calendar day and none skipped.
"""

from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import List, Optional

import pytz

from core.cache import cache_delete_prefix, cache_get, cache_set
from core.config import settings
from core.errors import ValidationError
from core.lifecycle import MACHINES
from core.logging_config import logger
from core.store import APPLICATIONS, COMPLAINTS, GUESTS, MAINTENANCE, SLEEPOVERS, RequestStore
from core.utils import parse_timestamp, utcnow
from models.analytics import AnalyticsBucket, DailyReport, DashboardSnapshot, StatusCounts
from models.enums import ApplicationStatus, RequestKind, TimeUnit


DEFAULT_WINDOWS = {
    TimeUnit.days: 14,
    TimeUnit.weeks: 6,
    TimeUnit.months: 6,
}

# largest window a caller may ask for
MAX_WINDOWS = {
    TimeUnit.days: 366,
    TimeUnit.weeks: 104,
    TimeUnit.months: 60,
}
MAX_WINDOW = max(MAX_WINDOWS.values())

# bucket field → collection
SERIES_COLLECTIONS = OrderedDict([
    ("guests", GUESTS),
    ("sleepover", SLEEPOVERS),
    ("maintenance", MAINTENANCE),
    ("complaints", COMPLAINTS),
])

DENIED_STATUSES = {"rejected", "declined"}

DASHBOARD_CACHE_PREFIX = "dashboard:"


# ============================================================
# Calendar helpers
# ============================================================
def get_timezone():
    return pytz.timezone(settings.ANALYTICS_TIMEZONE)


def bucket_start(day: date, unit: TimeUnit) -> date:
    if unit == TimeUnit.weeks:
        return day - timedelta(days=day.weekday())  # Monday
    if unit == TimeUnit.months:
        return day.replace(day=1)
    return day


def step(start: date, unit: TimeUnit, n: int = 1) -> date:
    if unit == TimeUnit.weeks:
        return start + timedelta(weeks=n)
    if unit == TimeUnit.months:
        years, month = divmod(start.month - 1 + n, 12)
        return date(start.year + years, month + 1, 1)
    return start + timedelta(days=n)


def bucket_label(start: date, unit: TimeUnit) -> str:
    if unit == TimeUnit.months:
        return start.strftime("%b %Y")
    return start.strftime("%b %d")


def parse_unit(unit) -> TimeUnit:
    try:
        return TimeUnit(unit)
    except ValueError:
        raise ValidationError(f"Unknown time unit '{unit}'", fields=["unit"])


def local_midnight(day: date, tz) -> datetime:
    """Start of `day` in `tz`, as aware UTC."""
    return tz.localize(datetime.combine(day, time.min)).astimezone(pytz.utc)


# ============================================================
# Time series
# ============================================================
def aggregate(
    store: RequestStore,
    unit=TimeUnit.days,
    count: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[AnalyticsBucket]:
    unit = parse_unit(unit)

    count = DEFAULT_WINDOWS[unit] if count is None else count
    if count < 0:
        raise ValidationError("Window size must not be negative", fields=["count"])
    if count > MAX_WINDOWS[unit]:
        raise ValidationError(
            f"Window size must be at most {MAX_WINDOWS[unit]} {unit.value}",
            fields=["count"],
        )

    tz = get_timezone()
    now = parse_timestamp(now) if now else utcnow()

    last = bucket_start(now.astimezone(tz).date(), unit)
    first = step(last, unit, -count)
    window_start = local_midnight(first, tz)

    buckets = OrderedDict()
    cursor = first
    while cursor <= last:
        buckets[cursor] = AnalyticsBucket(date=cursor, label=bucket_label(cursor, unit))
        cursor = step(cursor, unit)

    for field, collection in SERIES_COLLECTIONS.items():
        rows = store.query(
            collection,
            [("created_at", ">=", window_start), ("created_at", "<=", now)],
        )
        for row in rows:
            created = parse_timestamp(row.get("created_at"))
            if created is None or created < window_start or created > now:
                continue
            bucket = buckets.get(bucket_start(created.astimezone(tz).date(), unit))
            if bucket is not None:
                setattr(bucket, field, getattr(bucket, field) + 1)

    return list(buckets.values())


# ============================================================
# Daily status report
# ============================================================
def _count_statuses(rows: List[dict], kind: RequestKind) -> StatusCounts:
    spec = MACHINES[kind]
    counts = StatusCounts(total=len(rows))
    for row in rows:
        status = row.get("status")
        if status in DENIED_STATUSES:
            counts.denied += 1
        elif status in spec.terminal:
            counts.resolved += 1
        else:
            counts.pending += 1
    return counts


def summarize_day(store: RequestStore, day: date) -> DailyReport:
    """Status breakdown of everything created on `day` (local calendar)."""
    tz = get_timezone()
    start = local_midnight(day, tz)
    end = local_midnight(day + timedelta(days=1), tz)

    def created_that_day(collection):
        return store.query(collection, [("created_at", ">=", start), ("created_at", "<", end)])

    return DailyReport(
        date=day,
        guests=_count_statuses(created_that_day(GUESTS), RequestKind.guest),
        sleepovers=_count_statuses(created_that_day(SLEEPOVERS), RequestKind.sleepover),
        maintenance=_count_statuses(created_that_day(MAINTENANCE), RequestKind.maintenance),
        complaints=_count_statuses(created_that_day(COMPLAINTS), RequestKind.complaint),
    )


# ============================================================
# Dashboard snapshot (pull-based)
# ============================================================
def build_snapshot(store: RequestStore, unit=TimeUnit.days, now: Optional[datetime] = None) -> DashboardSnapshot:
    unit = parse_unit(unit)
    now = now or utcnow()

    pending = {}
    for kind in (RequestKind.sleepover, RequestKind.maintenance, RequestKind.complaint):
        spec = MACHINES[kind]
        pending[kind.value] = len(store.query(spec.collection, [("status", "==", spec.initial)]))

    return DashboardSnapshot(
        generated_at=now,
        unit=unit,
        pending=pending,
        active_guests=len(store.query(GUESTS, [("is_active", "==", True)])),
        active_sleepovers=len(store.query(SLEEPOVERS, [("is_active", "==", True)])),
        pending_applications=len(store.query(APPLICATIONS, [("status", "==", ApplicationStatus.pending.value)])),
        series=aggregate(store, unit, now=now),
    )


def refresh(store: RequestStore, unit=TimeUnit.days, force: bool = False) -> DashboardSnapshot:
    """
    Dashboard entry point. The UI calls this on its own schedule; the
    snapshot is reused for DASHBOARD_CACHE_TTL seconds unless `force`.
    """
    unit = parse_unit(unit)
    key = f"{DASHBOARD_CACHE_PREFIX}{unit.value}"

    if not force:
        cached = cache_get(key)
        if cached is not None:
            return cached

    snapshot = build_snapshot(store, unit)
    cache_set(key, snapshot, ttl_seconds=settings.DASHBOARD_CACHE_TTL)
    logger.debug(f"Dashboard snapshot rebuilt ({unit})")
    return snapshot


def invalidate_dashboard():
    cache_delete_prefix(DASHBOARD_CACHE_PREFIX)
