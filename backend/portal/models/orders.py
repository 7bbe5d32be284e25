from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from portal.time_utils import to_utc_z, utcnow


STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_DISPATCHED = "dispatched"
STATUS_REJECTED = "rejected"
VALID_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_DISPATCHED, STATUS_REJECTED)

MIN_LINE_QUANTITY = 1
MAX_LINE_QUANTITY = 10


def _money(value) -> float:
    return float(value if value is not None else Decimal("0"))


class Request(db.Model):
    """
    One employee's submitted order.

    status is contended between manager and admin actions; it is only changed
    by lifecycle_service through compare-and-swap updates keyed on the expected
    prior status.

    total_cost is the sum of line costs snapshotted at submission. Ancillary
    costs live in RequestCost and are added for display only.
    """
    __tablename__ = "requests"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'dispatched', 'rejected')",
            name="ck_requests_status",
        ),
        db.Index("ix_requests_employee_created", "employee_id", "created_at"),
        db.Index("ix_requests_status_approved", "status", "approved_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("profiles.id"), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING)
    notes = db.Column(db.Text, nullable=True)
    total_cost = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    approved_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    rejected_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    dispatched_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)

    employee = db.relationship("Profile", foreign_keys=[employee_id])
    items = db.relationship(
        "RequestItem",
        backref="request",
        lazy=True,
        order_by="RequestItem.id",
    )
    cost = db.relationship("RequestCost", uselist=False, backref="request", lazy=True)

    def __repr__(self) -> str:
        return f"<Request id={self.id} employee_id={self.employee_id} status={self.status!r}>"

    def to_dict(self, *, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "employee_id": self.employee_id,
            "status": self.status,
            "notes": self.notes,
            "total_cost": _money(self.total_cost),
            "created_at": to_utc_z(self.created_at),
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "rejected_by": self.rejected_by,
            "rejected_at": to_utc_z(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "dispatched_by": self.dispatched_by,
            "dispatched_at": to_utc_z(self.dispatched_at),
        }
        if include_items:
            data["items"] = [line.to_dict() for line in self.items]
        return data


class RequestItem(db.Model):
    """
    Line item of a Request.

    unit_cost is the catalog price captured at submission and is never
    rewritten, so historical order cost survives later catalog price changes.
    """
    __tablename__ = "request_items"
    __table_args__ = (
        db.CheckConstraint("quantity BETWEEN 1 AND 10", name="ck_request_items_quantity_range"),
        db.Index("ix_request_items_request_id", "request_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey("requests.id"), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    size = db.Column(db.String(32), nullable=True)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))

    item = db.relationship("Item")

    @property
    def line_cost(self) -> Decimal:
        return (self.unit_cost or Decimal("0")) * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "item_id": self.item_id,
            "name": self.item.name if self.item is not None else "Item",
            "quantity": self.quantity,
            "size": self.size,
            "unit_cost": _money(self.unit_cost),
            "line_cost": _money(self.line_cost),
        }


class RequestCost(db.Model):
    """Ancillary embroidery / shipping costs, at most one row per request."""
    __tablename__ = "request_costs"
    __table_args__ = (
        db.CheckConstraint("embroidery_cost >= 0", name="ck_request_costs_embroidery_non_negative"),
        db.CheckConstraint("shipping_cost >= 0", name="ck_request_costs_shipping_non_negative"),
    )

    request_id = db.Column(db.Integer, db.ForeignKey("requests.id"), primary_key=True)
    embroidery_cost = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    shipping_cost = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "embroidery_cost": _money(self.embroidery_cost),
            "shipping_cost": _money(self.shipping_cost),
            "updated_at": to_utc_z(self.updated_at),
        }
