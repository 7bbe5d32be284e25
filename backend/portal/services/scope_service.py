# Overview: Role-scoped read views over requests and items.

"""
Access Scoping

Read-only, one function per scope:
- employee_requests:  own requests, newest first
- manager_pending:    pending requests of direct reports, oldest first
- dispatch_queue:     approved requests, oldest approval first (FIFO dispatch
                      fairness); approval time falls back to creation time
- catalog:            all items, optional category filter (case-insensitive)
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Item, Profile, Request
from ..models.orders import STATUS_APPROVED, STATUS_PENDING


def employee_requests(employee_id: int, *, limit: int = 200) -> list[Request]:
    return (
        Request.query.filter_by(employee_id=employee_id)
        .order_by(Request.created_at.desc(), Request.id.desc())
        .limit(limit)
        .all()
    )


def report_ids(manager_id: int) -> list[int]:
    rows = db.session.query(Profile.id).filter(Profile.manager_id == manager_id).all()
    return [r[0] for r in rows]


def manager_pending(manager_id: int) -> list[Request]:
    employee_ids = report_ids(manager_id)
    if not employee_ids:
        return []
    return (
        Request.query.filter(
            Request.status == STATUS_PENDING,
            Request.employee_id.in_(employee_ids),
        )
        .order_by(Request.created_at.asc(), Request.id.asc())
        .all()
    )


def dispatch_queue() -> list[Request]:
    return (
        Request.query.filter(Request.status == STATUS_APPROVED)
        .order_by(
            func.coalesce(Request.approved_at, Request.created_at).asc(),
            Request.id.asc(),
        )
        .all()
    )


def catalog(category: str | None = None) -> list[Item]:
    q = Item.query
    if category and category.strip() and category.strip().lower() != "all":
        q = q.filter(func.lower(Item.category) == category.strip().lower())
    return q.order_by(Item.category.asc(), Item.name.asc(), Item.id.asc()).all()
