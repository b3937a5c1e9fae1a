# core/utils.py

from datetime import date, datetime, timezone


def sanitize(data: dict) -> dict:
    """
    Sanitize submitted form data:
    - Empty / whitespace-only strings → None
    - Strip string whitespace
    - Preserve booleans, None values and everything else as-is

    Numeric-looking strings are kept as strings (phone numbers, room numbers
    and PINs must survive with their leading zeros).
    """
    clean = {}

    for k, v in data.items():
        if isinstance(v, str):
            stripped = v.strip()
            clean[k] = stripped or None
            continue

        clean[k] = v

    return clean


def sanitize_json(obj):
    """Recursively walks any structure and makes it JSON safe."""
    if isinstance(obj, dict):
        return {k: sanitize_json(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple)):
        return [sanitize_json(v) for v in obj]

    if isinstance(obj, (datetime, date)):
        return obj.isoformat()

    return obj


# ============================================================
# Timestamp helpers
# ============================================================
def parse_timestamp(value):
    """Coerce a stored timestamp (datetime or ISO string) to aware UTC."""
    if not value:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    return None


def parse_date(value):
    """Coerce a stored calendar date (date, datetime or ISO string) to a date."""
    if not value:
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None

    return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
