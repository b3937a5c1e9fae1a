# core/lifecycle.py

"""
Request lifecycle engine.

Every student request (day guest, sleepover, maintenance ticket, complaint)
moves through a small per-kind state machine. The engine owns:

  * payload validation on submit
  * the transition tables (who may do what from which status)
  * derived fields (active flag, check-in / sign-out stamps, security code)
  * the guarded write (status must still be what we loaded)
  * the notification side effect, best-effort, after the write

Typical flow of `transition`:

    load → edge lookup → role / ownership → code check
         → compute update → guarded write → notify → return
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from core.config import settings
from core.errors import InvalidTransitionError, UnauthorizedError, ValidationError
from core.logging_config import logger
from core.notifications import NotificationSink, render_notification, render_submission
from core.permissions import STAFF_ROLES, role_has_permission
from core.security_codes import CodeBook, codes_match, get_codebook
from core.store import COMPLAINTS, GUESTS, MAINTENANCE, SLEEPOVERS, RequestStore, get_store
from core.utils import parse_timestamp, sanitize, utcnow
from models.enums import (
    Action,
    ComplaintStatus,
    GuestStatus,
    MaintenanceStatus,
    RequestKind,
    SleepoverStatus,
)
from models.requests import CREATE_MODELS, request_adapter
from models.user import Actor


SUBMIT = "requests:submit"
REVIEW = "requests:review"
CHECKOUT = "requests:checkout"

# kinds a back-office admin can hand to a staff member
ASSIGNABLE = frozenset({RequestKind.maintenance, RequestKind.complaint})


# ============================================================
# Transition tables
# ============================================================
@dataclass(frozen=True)
class Edge:
    action: Action
    sources: FrozenSet[str]
    target: str
    permission: str
    requires_code: bool = False


@dataclass(frozen=True)
class KindSpec:
    kind: RequestKind
    collection: str
    initial: str
    edges: Tuple[Edge, ...]

    def edge_for(self, action: Action, status: str) -> Optional[Edge]:
        for edge in self.edges:
            if edge.action == action and status in edge.sources:
                return edge
        return None

    @property
    def statuses(self) -> FrozenSet[str]:
        found = {self.initial}
        for edge in self.edges:
            found |= edge.sources
            found.add(edge.target)
        return frozenset(found)

    @property
    def terminal(self) -> FrozenSet[str]:
        sources = set()
        for edge in self.edges:
            sources |= edge.sources
        return frozenset(self.statuses - sources)


def _edge(action, sources, target, permission, requires_code=False) -> Edge:
    return Edge(
        action=action,
        sources=frozenset(s.value for s in sources),
        target=target.value,
        permission=permission,
        requires_code=requires_code,
    )


MACHINES: Dict[RequestKind, KindSpec] = {
    RequestKind.guest: KindSpec(
        kind=RequestKind.guest,
        collection=GUESTS,
        initial=GuestStatus.active.value,
        edges=(
            _edge(Action.checkout, [GuestStatus.active], GuestStatus.checked_out, CHECKOUT, requires_code=True),
            _edge(Action.decline, [GuestStatus.active], GuestStatus.declined, REVIEW),
        ),
    ),
    RequestKind.sleepover: KindSpec(
        kind=RequestKind.sleepover,
        collection=SLEEPOVERS,
        initial=SleepoverStatus.pending.value,
        edges=(
            _edge(Action.approve, [SleepoverStatus.pending], SleepoverStatus.approved, REVIEW),
            _edge(Action.reject, [SleepoverStatus.pending], SleepoverStatus.rejected, REVIEW),
            _edge(Action.checkout, [SleepoverStatus.approved], SleepoverStatus.checked_out, CHECKOUT, requires_code=True),
        ),
    ),
    RequestKind.maintenance: KindSpec(
        kind=RequestKind.maintenance,
        collection=MAINTENANCE,
        initial=MaintenanceStatus.pending.value,
        edges=(
            _edge(Action.start, [MaintenanceStatus.pending], MaintenanceStatus.in_progress, REVIEW),
            _edge(Action.complete, [MaintenanceStatus.in_progress], MaintenanceStatus.completed, REVIEW),
            _edge(Action.reject, [MaintenanceStatus.pending, MaintenanceStatus.in_progress], MaintenanceStatus.rejected, REVIEW),
        ),
    ),
    RequestKind.complaint: KindSpec(
        kind=RequestKind.complaint,
        collection=COMPLAINTS,
        initial=ComplaintStatus.pending.value,
        edges=(
            _edge(Action.start, [ComplaintStatus.pending], ComplaintStatus.in_progress, REVIEW),
            _edge(Action.resolve, [ComplaintStatus.in_progress], ComplaintStatus.resolved, REVIEW),
            _edge(Action.reject, [ComplaintStatus.pending, ComplaintStatus.in_progress], ComplaintStatus.rejected, REVIEW),
        ),
    ),
}


def machine_for(kind) -> KindSpec:
    return MACHINES[RequestKind(kind)]


# ============================================================
# Payload validation
# ============================================================
def validate_payload(kind: RequestKind, payload) -> dict:
    """Validate a submission; returns the clean field dict or raises ValidationError."""
    kind = RequestKind(kind)
    return validate_model(CREATE_MODELS[kind], payload, f"{kind} request")


def validate_model(model, payload, label: str) -> dict:
    if hasattr(payload, "model_dump"):
        payload = payload.model_dump()
    if not isinstance(payload, dict):
        raise ValidationError(f"Invalid {label}: expected an object", fields=[])

    try:
        data = model.model_validate(sanitize(payload))
    except PydanticValidationError as e:
        problems = []
        fields = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err["loc"]) or "payload"
            if loc not in fields:
                fields.append(loc)
            problems.append(f"{loc}: {err['msg']}")
        raise ValidationError(f"Invalid {label}: " + "; ".join(problems), fields=fields)

    return data.model_dump(mode="python")


# ============================================================
# Derived fields
# ============================================================
def derived_fields(kind: RequestKind, target: str, now: datetime, codebook: CodeBook) -> dict:
    """Fields recomputed when a request enters `target`."""
    if kind == RequestKind.guest:
        # both guest exits are terminal
        return {"is_active": False, "check_out_time": now}

    if kind == RequestKind.sleepover:
        if target == SleepoverStatus.approved.value:
            return {
                "is_active": True,
                "security_code": codebook.issue_sleepover_code(),
                "check_in_time": now,
            }
        if target == SleepoverStatus.checked_out.value:
            return {"is_active": False, "sign_out_time": now}
        return {"is_active": False}

    return {"is_active": False}


# ============================================================
# Engine
# ============================================================
class LifecycleEngine:

    def __init__(
        self,
        store: RequestStore,
        sink: Optional[NotificationSink] = None,
        codebook: Optional[CodeBook] = None,
        clock: Callable[[], datetime] = utcnow,
        notify_on_submit: bool = False,
    ):
        self.store = store
        self.sink = sink or NotificationSink(store)
        self.codebook = codebook or get_codebook()
        self.clock = clock
        self.notify_on_submit = notify_on_submit

    # -------------------------------------------------
    # Submit
    # -------------------------------------------------
    def submit(self, kind, requester: Actor, payload, defer: Optional[Callable] = None):
        kind = RequestKind(kind)
        spec = MACHINES[kind]

        if not role_has_permission(str(requester.role), SUBMIT, requester.permissions):
            raise UnauthorizedError(
                f"Role '{requester.role}' cannot submit {kind} requests",
                reason="role",
            )

        fields = validate_payload(kind, payload)
        now = self.clock()

        doc = {
            **fields,
            "requester_id": requester.id,
            "kind": kind.value,
            "status": spec.initial,
            "created_at": now,
            "updated_at": now,
            "admin_response": None,
            "is_active": False,
        }

        if kind == RequestKind.guest:
            # a day guest is on the premises from the moment they sign in
            doc["is_active"] = True
            doc["check_in_time"] = now
            doc["check_out_time"] = None

        doc_id = self.store.create(spec.collection, doc)
        doc["id"] = doc_id

        logger.info(f"User {requester.id} submitted {kind} request {doc_id}")

        if self.notify_on_submit:
            title, message = render_submission(kind, doc)
            self.sink.emit(requester.id, title, message, kind.value, defer=defer)

        return request_adapter.validate_python(doc)

    # -------------------------------------------------
    # Transition
    # -------------------------------------------------
    def transition(
        self,
        kind,
        request_id: str,
        actor: Actor,
        action,
        response_text: Optional[str] = None,
        code: Optional[str] = None,
        defer: Optional[Callable] = None,
    ):
        spec = machine_for(kind)

        try:
            action = Action(action)
        except ValueError:
            raise InvalidTransitionError(f"Unknown action '{action}'", action=str(action))

        record = self.store.get(spec.collection, request_id)
        current = record["status"]

        edge = spec.edge_for(action, current)
        if edge is None:
            raise InvalidTransitionError(
                f"Cannot {action} a {spec.kind} request that is {current}",
                current_status=current,
                action=action.value,
            )

        self._authorize(spec, edge, actor, record)

        if edge.requires_code and not self._code_matches(spec.kind, record, code):
            logger.warning(f"Rejected {action} code for {spec.kind} request {request_id} by {actor.id}")
            raise UnauthorizedError("The security code does not match", reason="invalid_code")

        now = self._next_timestamp(record.get("updated_at"))
        update = {"status": edge.target, "updated_at": now}
        update.update(derived_fields(spec.kind, edge.target, now, self.codebook))

        title, message = render_notification(spec.kind, edge.target, {**record, **update})

        response_text = (response_text or "").strip()
        if response_text:
            update["admin_response"] = response_text
        elif not record.get("admin_response"):
            update["admin_response"] = message

        # guarded write: only applies if nobody moved the request meanwhile
        if not self.store.update_if(spec.collection, request_id, {"status": current}, update):
            latest = self.store.get(spec.collection, request_id)
            raise InvalidTransitionError(
                f"{spec.kind} request {request_id} changed to {latest['status']} before {action} was applied",
                current_status=latest["status"],
                action=action.value,
            )

        logger.info(
            f"{actor.role} {actor.id} moved {spec.kind} request {request_id} "
            f"from {current} to {edge.target}"
        )

        self.sink.emit(record["requester_id"], title, message, spec.kind.value, defer=defer)

        return request_adapter.validate_python({**record, **update})

    def _authorize(self, spec: KindSpec, edge: Edge, actor: Actor, record: dict):
        role = str(actor.role)
        if not role_has_permission(role, edge.permission, actor.permissions):
            raise UnauthorizedError(
                f"Role '{role}' cannot {edge.action} {spec.kind} requests",
                reason="role",
            )

        # students may only act on their own requests
        if role not in STAFF_ROLES and record.get("requester_id") != actor.id:
            raise UnauthorizedError(
                f"You can only {edge.action} your own {spec.kind} requests",
                reason="not_owner",
            )

    def _code_matches(self, kind: RequestKind, record: dict, code) -> bool:
        if kind == RequestKind.guest:
            return self.codebook.verify_checkout_pin(code)
        return codes_match(record.get("security_code"), code)

    # -------------------------------------------------
    # Staff assignment
    # -------------------------------------------------
    def assign(self, kind, request_id: str, actor: Actor, staff_id: str):
        """Hand an open ticket to a staff member. The status is left as it is."""
        spec = machine_for(kind)
        if spec.kind not in ASSIGNABLE:
            raise ValidationError(f"{spec.kind} requests are not assigned to staff", fields=["kind"])

        role = str(actor.role)
        if not role_has_permission(role, REVIEW, actor.permissions):
            raise UnauthorizedError(f"Role '{role}' cannot assign {spec.kind} requests", reason="role")

        staff_id = (staff_id or "").strip()
        if not staff_id:
            raise ValidationError("A staff member is required", fields=["staff_id"])

        record = self.store.get(spec.collection, request_id)
        current = record["status"]
        if current in spec.terminal:
            raise InvalidTransitionError(
                f"Cannot assign a {spec.kind} request that is {current}",
                current_status=current,
                action="assign",
            )

        update = {
            "assigned_staff_id": staff_id,
            "updated_at": self._next_timestamp(record.get("updated_at")),
        }
        if not self.store.update_if(spec.collection, request_id, {"status": current}, update):
            latest = self.store.get(spec.collection, request_id)
            raise InvalidTransitionError(
                f"{spec.kind} request {request_id} changed to {latest['status']} before it was assigned",
                current_status=latest["status"],
                action="assign",
            )

        logger.info(f"{role} {actor.id} assigned {spec.kind} request {request_id} to {staff_id}")
        return request_adapter.validate_python({**record, **update})

    def _next_timestamp(self, previous) -> datetime:
        """Now, but strictly after the previous update."""
        now = self.clock()
        previous = parse_timestamp(previous)
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        return now

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------
    def get(self, kind, request_id: str):
        spec = machine_for(kind)
        return request_adapter.validate_python(self.store.get(spec.collection, request_id))

    def get_for_actor(self, kind, request_id: str, actor: Actor):
        request = self.get(kind, request_id)
        if str(actor.role) not in STAFF_ROLES and request.requester_id != actor.id:
            raise UnauthorizedError(f"You can only view your own {request.kind} requests", reason="not_owner")
        return request

    def list_requests(
        self,
        kind,
        requester_id: Optional[str] = None,
        status: Optional[str] = None,
        active: Optional[bool] = None,
        order_by: str = "created_at",
    ) -> List:
        spec = machine_for(kind)

        filters = []
        if requester_id:
            filters.append(("requester_id", "==", requester_id))
        if status:
            if str(status) not in spec.statuses:
                raise ValidationError(f"Unknown {spec.kind} status '{status}'", fields=["status"])
            filters.append(("status", "==", str(status)))
        if active is not None:
            filters.append(("is_active", "==", active))

        rows = self.store.query(spec.collection, filters, order_by=order_by, descending=True)
        return [request_adapter.validate_python(r) for r in rows]

    def list_for_actor(self, kind, actor: Actor, status: Optional[str] = None) -> List:
        """Staff see everything; students see their own."""
        if str(actor.role) in STAFF_ROLES:
            return self.list_requests(kind, status=status)
        return self.list_requests(kind, requester_id=actor.id, status=status)

    def active(self, kind) -> List:
        """Guests / sleepovers currently on the premises, latest check-in first."""
        return self.list_requests(kind, active=True, order_by="check_in_time")

    def checked_out(self, kind) -> List:
        kind = RequestKind(kind)
        if kind == RequestKind.guest:
            return self.list_requests(kind, status=GuestStatus.checked_out.value, order_by="check_out_time")
        return self.list_requests(kind, status=SleepoverStatus.checked_out.value, order_by="sign_out_time")

    def available_actions(self, request, actor: Actor) -> List[Action]:
        """Actions `actor` could apply right now (codes aside)."""
        spec = machine_for(request.kind)
        role = str(actor.role)
        actions = []
        for edge in spec.edges:
            if request.status.value not in edge.sources:
                continue
            if not role_has_permission(role, edge.permission, actor.permissions):
                continue
            if role not in STAFF_ROLES and request.requester_id != actor.id:
                continue
            actions.append(edge.action)
        return actions


# ============================================================
# Process-wide engine
# ============================================================
_engine: Optional[LifecycleEngine] = None


def init_engine(store: Optional[RequestStore] = None) -> LifecycleEngine:
    global _engine
    store = store or get_store()
    _engine = LifecycleEngine(
        store=store,
        sink=NotificationSink(store),
        codebook=get_codebook(),
        notify_on_submit=settings.NOTIFY_ON_SUBMIT,
    )
    return _engine


def get_engine() -> LifecycleEngine:
    if _engine is None:
        return init_engine()
    return _engine
