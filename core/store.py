# core/store.py

"""
Request store - the persistence boundary.

Two backends implement the same small contract:

  * SupabaseStore - one PostgREST table per collection (production)
  * MemoryStore   - lock-protected dicts (local dev / tests)

Documents cross this boundary as plain dicts. On the way in, dates and
datetimes are serialised to ISO strings; on the way out, every known
timestamp field is normalised to an aware UTC datetime and every calendar
field to a date, so the engine never sees raw wire values.
"""

import copy
import operator
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from datetime import date, datetime
from uuid import uuid4

from core.config import settings
from core.errors import NotFoundError, PortalError, store_error
from core.logging_config import logger
from core.supabase_client import get_supabase_client
from core.utils import parse_date, parse_timestamp, sanitize_json


# ============================================================
# Collections
# ============================================================
GUESTS = "guests"
SLEEPOVERS = "sleepover_requests"
MAINTENANCE = "maintenance_requests"
COMPLAINTS = "complaints"
NOTIFICATIONS = "notifications"
APPLICATIONS = "applications"
ANNOUNCEMENTS = "announcements"
CHECKOUT = "checkout"

COLLECTIONS = [GUESTS, SLEEPOVERS, MAINTENANCE, COMPLAINTS, NOTIFICATIONS, APPLICATIONS, ANNOUNCEMENTS, CHECKOUT]

TIMESTAMP_FIELDS = {
    "created_at",
    "updated_at",
    "check_in_time",
    "check_out_time",
    "sign_out_time",
    "expires_at",
    "timestamp",
}

DATE_FIELDS = {"from_date", "start_date", "end_date", "preferred_date"}

Filter = Tuple[str, str, Any]

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda value, options: value in options,
}


# ============================================================
# Boundary normalisation
# ============================================================
def normalize_document(doc: dict) -> dict:
    """Convert stored values to canonical in-memory types."""
    clean = {}
    for key, value in doc.items():
        if key in TIMESTAMP_FIELDS:
            clean[key] = parse_timestamp(value)
        elif key in DATE_FIELDS:
            clean[key] = parse_date(value)
        elif isinstance(value, list):
            clean[key] = [normalize_document(v) if isinstance(v, dict) else v for v in value]
        else:
            clean[key] = value
    return clean


def _wire(value):
    """Serialise a filter / document value for the wire."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set)):
        return [_wire(v) for v in value]
    return value


def _plain(document: dict) -> dict:
    """Enums → values, dates → ISO strings, recursively."""
    def convert(obj):
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, dict):
            return {k: convert(v) for k, v in obj.items()}
        if isinstance(obj, (list, tuple)):
            return [convert(v) for v in obj]
        return obj

    return sanitize_json(convert(document))


# ============================================================
# Contract
# ============================================================
class RequestStore:
    """Document store used by the lifecycle engine and the routers."""

    def create(self, collection: str, document: dict) -> str:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> dict:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        raise NotImplementedError

    def update_if(self, collection: str, doc_id: str, expected: dict, fields: dict) -> bool:
        """
        Apply `fields` only if every `expected` field still holds.
        Returns False when the guard failed (or the document is gone).
        """
        raise NotImplementedError

    def query(
        self,
        collection: str,
        filters: Optional[Iterable[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[dict]:
        raise NotImplementedError

    def ping(self) -> dict:
        raise NotImplementedError


# ============================================================
# In-memory backend
# ============================================================
class MemoryStore(RequestStore):
    """
    Thread-safe in-process store.

    Documents are round-tripped through the same serialisation as the
    Supabase backend so both behave alike.
    """

    def __init__(self):
        self._data: Dict[str, Dict[str, dict]] = {}
        self._lock = Lock()

    def _collection(self, collection: str) -> Dict[str, dict]:
        return self._data.setdefault(collection, {})

    def create(self, collection: str, document: dict) -> str:
        doc = _plain(document)
        doc_id = doc.get("id") or str(uuid4())
        doc["id"] = doc_id
        with self._lock:
            self._collection(collection)[doc_id] = doc
        return doc_id

    def get(self, collection: str, doc_id: str) -> dict:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            if doc is None:
                raise NotFoundError(f"{collection} record {doc_id} not found")
            return normalize_document(copy.deepcopy(doc))

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            if doc is None:
                raise NotFoundError(f"{collection} record {doc_id} not found")
            doc.update(_plain(fields))

    def update_if(self, collection: str, doc_id: str, expected: dict, fields: dict) -> bool:
        guard = _plain(expected)
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            if doc is None:
                return False
            if any(doc.get(k) != v for k, v in guard.items()):
                return False
            doc.update(_plain(fields))
            return True

    def query(self, collection, filters=None, order_by=None, descending=False):
        with self._lock:
            docs = [normalize_document(copy.deepcopy(d)) for d in self._collection(collection).values()]

        for field, op, value in filters or []:
            compare = OPERATORS[op]
            value = _canonical(field, value)
            docs = [d for d in docs if _matches(d.get(field), compare, value)]

        if order_by:
            present = [d for d in docs if d.get(order_by) is not None]
            missing = [d for d in docs if d.get(order_by) is None]
            present.sort(key=lambda d: d[order_by], reverse=descending)
            docs = present + missing

        return docs

    def ping(self) -> dict:
        with self._lock:
            counts = {c: len(self._collection(c)) for c in COLLECTIONS}
        return {
            "service": "memory",
            "status": "ok",
            "tables": {c: {"status": "ok", "rows_found": n} for c, n in counts.items()},
        }

    def clear(self):
        with self._lock:
            self._data.clear()


def _canonical(field: str, value):
    """Bring a filter value to the same type the normalised document holds."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple, set)):
        return [_canonical(field, v) for v in value]
    if field in TIMESTAMP_FIELDS and not isinstance(value, bool):
        return parse_timestamp(value)
    if field in DATE_FIELDS:
        return parse_date(value)
    return value


def _matches(actual, compare, expected) -> bool:
    if actual is None and compare not in (operator.eq, operator.ne):
        return False
    try:
        return compare(actual, expected)
    except TypeError:
        return False


# ============================================================
# Supabase backend
# ============================================================
SUPABASE_FILTERS = {
    "==": "eq",
    "!=": "neq",
    "<": "lt",
    "<=": "lte",
    ">": "gt",
    ">=": "gte",
    "in": "in_",
}


class SupabaseStore(RequestStore):
    """
    One PostgREST table per collection.

    `update_if` issues a single UPDATE filtered on id *and* the guard
    columns, so the check-and-write is atomic per row.
    """

    def __init__(self, client_factory: Callable = get_supabase_client):
        self._client_factory = client_factory

    def _client(self):
        client = self._client_factory()
        if client is None:
            raise store_error(RuntimeError("Supabase client not configured"), "Connecting to storage")
        return client

    def create(self, collection: str, document: dict) -> str:
        doc = _plain(document)
        doc.setdefault("id", str(uuid4()))
        try:
            result = (
                self._client()
                .table(collection)
                .insert(doc, returning="representation")
                .execute()
            )
        except PortalError:
            raise
        except Exception as e:
            raise store_error(e, f"Failed to insert into {collection}") from e

        if result.data:
            return result.data[0].get("id", doc["id"])
        return doc["id"]

    def get(self, collection: str, doc_id: str) -> dict:
        try:
            result = (
                self._client()
                .table(collection)
                .select("*")
                .eq("id", doc_id)
                .limit(1)
                .execute()
            )
        except PortalError:
            raise
        except Exception as e:
            raise store_error(e, f"Failed to fetch from {collection}") from e

        if not result.data:
            raise NotFoundError(f"{collection} record {doc_id} not found")
        return normalize_document(result.data[0])

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        try:
            result = (
                self._client()
                .table(collection)
                .update(_plain(fields))
                .eq("id", doc_id)
                .execute()
            )
        except PortalError:
            raise
        except Exception as e:
            raise store_error(e, f"Failed to update {collection}") from e

        if not result.data:
            raise NotFoundError(f"{collection} record {doc_id} not found")

    def update_if(self, collection: str, doc_id: str, expected: dict, fields: dict) -> bool:
        try:
            query = self._client().table(collection).update(_plain(fields)).eq("id", doc_id)
            for key, val in expected.items():
                query = query.eq(key, _wire(val))
            result = query.execute()
        except PortalError:
            raise
        except Exception as e:
            raise store_error(e, f"Failed to update {collection}") from e

        return bool(result.data)

    def query(self, collection, filters=None, order_by=None, descending=False):
        try:
            query = self._client().table(collection).select("*")
            for field, op, value in filters or []:
                query = getattr(query, SUPABASE_FILTERS[op])(field, _wire(value))
            if order_by:
                query = query.order(order_by, desc=descending)
            result = query.execute()
        except PortalError:
            raise
        except Exception as e:
            raise store_error(e, f"Failed to query {collection}") from e

        return [normalize_document(row) for row in result.data or []]

    def ping(self) -> dict:
        """
        Simple connectivity check.
        Does NOT query auth tables.
        """
        client = self._client_factory()
        if client is None:
            return {"service": "Supabase", "status": "not_configured"}

        results = {}
        for t in COLLECTIONS:
            try:
                res = client.table(t).select("id").limit(1).execute()
                results[t] = {"status": "ok", "rows_found": len(res.data or [])}
            except Exception as err:
                logger.warning(f"Ping failed for {t}: {err}")
                results[t] = {"status": "error"}

        status = "ok" if all(r["status"] == "ok" for r in results.values()) else "degraded"
        return {"service": "Supabase", "status": status, "tables": results}


# ============================================================
# Process-wide store
# ============================================================
_store: Optional[RequestStore] = None


def build_store() -> RequestStore:
    if settings.STORE_BACKEND == "memory":
        logger.info("Using in-memory store")
        return MemoryStore()
    return SupabaseStore()


def get_store() -> RequestStore:
    global _store
    if _store is None:
        _store = build_store()
    return _store


def set_store(store: Optional[RequestStore]):
    global _store
    _store = store
