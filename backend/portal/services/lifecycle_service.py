# Overview: Service-layer operations for the request lifecycle; encapsulates business logic and database work.

"""
Request Lifecycle State Machine

================================================================================
STATE MACHINE:
    pending -> approved -> dispatched
    pending -> rejected

    pending:    submitted by the employee, waiting for their manager
    approved:   manager signed off, waiting in the admin dispatch queue
    dispatched: TERMINAL, shipped by an admin
    rejected:   TERMINAL, declined by the manager with a reason

RULES:
1. Only the transitions in TRANSITIONS exist; anything else is InvalidTransition.
2. Each transition has exactly one actor role.
3. Managers act only on requests of their direct reports (employee.manager_id).
   A request outside that scope is reported as NotFoundError, the same answer
   the manager's pending list gives (it is simply not visible to them).
4. Re-applying a transition (e.g. approving an approved request) is
   InvalidTransition, never a silent no-op, so notifications and cost edits
   cannot happen twice.

CONCURRENCY:
There is no lock shared by the three roles. Every transition is a
compare-and-swap: UPDATE requests SET status = :to ... WHERE id = :id AND
status = :from. If another actor got there first the update matches no row
and the caller gets InvalidTransition (reload and retry).

Side effects (notifications) run only after the status write has committed
and can never undo it.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import InvalidTransition, NotFoundError, PermissionDeniedError, ValidationError
from ..extensions import db, notifications
from ..models import Profile, Request
from ..models.orders import (
    STATUS_APPROVED,
    STATUS_DISPATCHED,
    STATUS_PENDING,
    STATUS_REJECTED,
    VALID_STATUSES,
)
from ..models.people import ROLE_ADMIN, ROLE_MANAGER
from ..validation import clean_text
from .concurrency import atomic, compare_and_swap, run_with_retry
from .notification_service import KIND_DISPATCHED
from .request_service import get_request, items_payload
from portal.time_utils import utcnow


@dataclass(frozen=True)
class Transition:
    source: str
    target: str
    actor_role: str


TRANSITIONS = {
    (STATUS_PENDING, STATUS_APPROVED): Transition(STATUS_PENDING, STATUS_APPROVED, ROLE_MANAGER),
    (STATUS_PENDING, STATUS_REJECTED): Transition(STATUS_PENDING, STATUS_REJECTED, ROLE_MANAGER),
    (STATUS_APPROVED, STATUS_DISPATCHED): Transition(STATUS_APPROVED, STATUS_DISPATCHED, ROLE_ADMIN),
}


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(VALID_STATUSES)}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    """True iff the state machine has an edge from_status -> to_status."""
    validate_status(from_status)
    validate_status(to_status)
    return (from_status, to_status) in TRANSITIONS


def get_transition(from_status: str, to_status: str) -> Transition:
    if not can_transition(from_status, to_status):
        raise InvalidTransition(
            f"Cannot move request from '{from_status}' to '{to_status}'",
            current_status=from_status,
        )
    return TRANSITIONS[(from_status, to_status)]


def actor_role_for(to_status: str) -> str:
    """Role allowed to move a request into `to_status`."""
    validate_status(to_status)
    roles = {t.actor_role for t in TRANSITIONS.values() if t.target == to_status}
    if len(roles) != 1:
        raise InvalidTransition(f"No action moves a request to '{to_status}'")
    return roles.pop()


def _require_actor(actor: Profile | None, role: str) -> Profile:
    if actor is None:
        raise PermissionDeniedError("Authentication required")
    if actor.role != role:
        raise PermissionDeniedError(f"Only a {role} may perform this action")
    return actor


def _load_for_manager(request_id: int, manager: Profile) -> Request:
    req = get_request(request_id)
    employee = req.employee
    if employee is None or employee.manager_id != manager.id:
        # Outside the manager's scope: indistinguishable from a missing request
        raise NotFoundError(f"Request {request_id} not found")
    return req


def _apply(req: Request, to_status: str, actor: Profile, values: dict) -> Request:
    """
    Compare-and-swap req.status from its loaded value to `to_status`.

    The expected prior status is the one the state machine validated, so a
    concurrent transition by another actor makes the WHERE clause miss.
    """
    from_status = req.status
    transition = get_transition(from_status, to_status)
    _require_actor(actor, transition.actor_role)
    request_id = req.id

    def _op():
        with atomic(f"move request {request_id} to {to_status}"):
            swapped = compare_and_swap(
                Request,
                row_id=request_id,
                expected={"status": transition.source},
                values={"status": transition.target, **values},
            )
            if not swapped:
                current = db.session.query(Request.status).filter_by(id=request_id).scalar()
                current_app.logger.info(
                    "Lost transition race on request %s: expected %s, found %s",
                    request_id, transition.source, current,
                )
                raise InvalidTransition(
                    f"Request {request_id} is no longer '{transition.source}' (now '{current}'). "
                    "Reload and try again.",
                    current_status=current,
                )

    run_with_retry(_op)
    return get_request(request_id)


def approve_request(request_id: int, *, manager: Profile) -> Request:
    """
    pending -> approved (manager of the request's employee).

    Records approver and approval time.

    Raises:
        PermissionDeniedError: actor is not a manager
        NotFoundError: request missing or not owned by one of the manager's reports
        InvalidTransition: request is not pending (including already approved)
    """
    _require_actor(manager, actor_role_for(STATUS_APPROVED))
    req = _load_for_manager(request_id, manager)
    return _apply(req, STATUS_APPROVED, manager, {
        "approved_by": manager.id,
        "approved_at": utcnow(),
    })


def reject_request(request_id: int, *, manager: Profile, reason: str) -> Request:
    """
    pending -> rejected (manager of the request's employee).

    A non-blank reason is required and stored on the request.
    """
    _require_actor(manager, actor_role_for(STATUS_REJECTED))
    reason_clean = clean_text(reason)
    if reason_clean is None:
        raise ValidationError("A reason is required to reject a request")

    req = _load_for_manager(request_id, manager)
    return _apply(req, STATUS_REJECTED, manager, {
        "rejected_by": manager.id,
        "rejected_at": utcnow(),
        "rejection_reason": reason_clean,
    })


def dispatch_request(request_id: int, *, admin: Profile) -> Request:
    """
    approved -> dispatched (admin).

    Records dispatcher and dispatch time, then notifies the employee.
    Stock balances are not touched.
    """
    _require_actor(admin, actor_role_for(STATUS_DISPATCHED))
    req = get_request(request_id)
    req = _apply(req, STATUS_DISPATCHED, admin, {
        "dispatched_by": admin.id,
        "dispatched_at": utcnow(),
    })

    notifications.emit_safely(KIND_DISPATCHED, lambda: dispatched_message(req))
    return req


def dispatched_message(req: Request) -> tuple[str | None, dict]:
    """(employee email, payload) for a dispatched request."""
    employee = req.employee
    recipient = employee.email if employee is not None else None
    payload = {
        "employeeName": employee.display_name if employee is not None else "Employee",
        "items": items_payload(req),
    }
    return recipient, payload
