# Overview: Service-layer operations for asset requests; encapsulates business logic and database work.

"""
Request Aggregate

One employee's cart-to-order lifecycle: line items, snapshotted unit costs,
total cost, ancillary (embroidery / shipping) costs.

SUBMISSION:
- cart must be non-empty, every line quantity in [1, 10]
- Uniform lines need a size; when none is chosen the default size
  (middle of UNIFORM_SIZES, "M") is assigned. Other categories carry no size.
- each line snapshots the item's CURRENT catalog unit_cost (NULL -> 0);
  total_cost = SUM(unit_cost * quantity) at submission time
- the Request row and all its RequestItems are written in ONE transaction;
  a failure leaves neither behind
- after commit, the employee's manager (if any) gets a manager_alert;
  notification problems are logged and never fail the submission

COSTS:
- RequestCost is an upsert keyed by request_id, editable at any status
- display_total = items cost (from RequestItem snapshots, not the live catalog)
  + embroidery + shipping; total_cost itself is never rewritten
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..errors import NotFoundError, ValidationError
from ..extensions import db, notifications
from ..models import Item, Profile, Request, RequestCost, RequestItem
from ..models.catalog import CATEGORY_UNIFORM
from ..models.orders import MAX_LINE_QUANTITY, MIN_LINE_QUANTITY, STATUS_PENDING
from ..validation import clean_text, optional_money, require_int
from .concurrency import atomic, run_with_retry
from .notification_service import KIND_MANAGER_ALERT
from portal.time_utils import utcnow


UNIFORM_SIZES = ("XS", "S", "M", "L", "XL", "2XL")
DEFAULT_UNIFORM_SIZE = UNIFORM_SIZES[(len(UNIFORM_SIZES) - 1) // 2]

ZERO = Decimal("0")


@dataclass(frozen=True)
class LineItem:
    item_id: int
    quantity: int
    size: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        if not isinstance(data, dict):
            raise ValidationError("Each line item must be an object")
        if data.get("item_id") is None:
            raise ValidationError("item_id is required on every line item")
        return cls(
            item_id=require_int(data.get("item_id"), "item_id"),
            quantity=require_int(data.get("quantity", 1), "quantity"),
            size=clean_text(data.get("size")),
        )


def is_uniform(item: Item) -> bool:
    return (item.category or "").lower() == CATEGORY_UNIFORM.lower()


def resolve_line_size(item: Item, size: str | None) -> str | None:
    """Uniform lines always get a size; everything else gets None."""
    if not is_uniform(item):
        return None
    if size is None:
        return DEFAULT_UNIFORM_SIZE
    for candidate in UNIFORM_SIZES:
        if candidate.lower() == size.lower():
            return candidate
    raise ValidationError(
        f"Invalid size '{size}' for {item.name}. Must be one of: {', '.join(UNIFORM_SIZES)}"
    )


def _validate_quantity(quantity: int) -> None:
    if quantity < MIN_LINE_QUANTITY or quantity > MAX_LINE_QUANTITY:
        raise ValidationError(
            f"Quantity must be between {MIN_LINE_QUANTITY} and {MAX_LINE_QUANTITY}"
        )


def get_request(request_id: int) -> Request:
    req = db.session.get(Request, request_id)
    if req is None:
        raise NotFoundError(f"Request {request_id} not found")
    return req


def submit_request(employee_id: int, line_items, notes: str | None = None) -> Request:
    """
    Create a pending Request with its line items.

    Args:
        employee_id: submitting profile
        line_items: iterable of LineItem or {"item_id", "quantity", "size"} dicts
        notes: free text (blank -> NULL)

    Raises:
        ValidationError: empty cart, bad quantity, bad size
        NotFoundError: employee or an item does not exist
        StorageError: the write failed (nothing persisted)
    """
    lines = [
        line if isinstance(line, LineItem) else LineItem.from_dict(line)
        for line in (line_items or [])
    ]
    if not lines:
        raise ValidationError("Add at least one item to your cart.")

    employee = db.session.get(Profile, employee_id)
    if employee is None:
        raise NotFoundError(f"Profile {employee_id} not found")

    for line in lines:
        _validate_quantity(line.quantity)

    item_ids = {line.item_id for line in lines}
    items = {item.id: item for item in Item.query.filter(Item.id.in_(item_ids)).all()}
    missing = sorted(item_ids - set(items))
    if missing:
        raise NotFoundError(f"Item {missing[0]} not found")

    # Snapshot prices now; later catalog edits must not move this order's cost
    priced = []
    for line in lines:
        item = items[line.item_id]
        unit_cost = item.unit_cost if item.unit_cost is not None else ZERO
        priced.append((item, line.quantity, resolve_line_size(item, line.size), unit_cost))

    total = sum((unit_cost * qty for _, qty, _, unit_cost in priced), ZERO)

    def _op():
        with atomic("submit request"):
            req = Request(
                employee_id=employee.id,
                status=STATUS_PENDING,
                notes=clean_text(notes),
                total_cost=total,
                created_at=utcnow(),
            )
            db.session.add(req)
            db.session.flush()

            for item, qty, size, unit_cost in priced:
                db.session.add(RequestItem(
                    request_id=req.id,
                    item_id=item.id,
                    quantity=qty,
                    size=size,
                    unit_cost=unit_cost,
                ))
        return req

    req = run_with_retry(_op)

    notifications.emit_safely(KIND_MANAGER_ALERT, lambda: manager_alert_message(req))
    return req


def items_payload(req: Request) -> list[dict]:
    return [
        {
            "name": line.item.name if line.item is not None else "Item",
            "quantity": line.quantity,
            "size": line.size,
        }
        for line in req.items
    ]


def manager_alert_message(req: Request) -> tuple[str | None, dict]:
    """(manager email, payload) for a freshly submitted request."""
    employee = req.employee
    manager = employee.manager if employee is not None else None
    recipient = manager.email if manager is not None else None
    payload = {
        "employeeName": employee.display_name if employee is not None else "Employee",
        "items": items_payload(req),
    }
    return recipient, payload


def annotate_costs(request_id: int, embroidery_cost=None, shipping_cost=None) -> RequestCost:
    """
    Upsert the ancillary costs of a request (any status).

    A field that is not provided keeps its stored value, or 0 when the row is new.
    Concurrent edits are last-write-wins.
    """
    embroidery = optional_money(embroidery_cost, "embroidery_cost")
    shipping = optional_money(shipping_cost, "shipping_cost")

    def _op():
        with atomic("save request costs"):
            get_request(request_id)
            cost = db.session.get(RequestCost, request_id)
            if cost is None:
                cost = RequestCost(request_id=request_id, embroidery_cost=ZERO, shipping_cost=ZERO)
                db.session.add(cost)
            if embroidery is not None:
                cost.embroidery_cost = embroidery
            if shipping is not None:
                cost.shipping_cost = shipping
            cost.updated_at = utcnow()
        return cost

    return run_with_retry(_op)


def items_cost(req: Request) -> Decimal:
    return sum((line.line_cost for line in req.items), ZERO)


def ancillary_costs(req: Request) -> tuple[Decimal, Decimal]:
    cost = req.cost
    if cost is None:
        return ZERO, ZERO
    return (cost.embroidery_cost or ZERO), (cost.shipping_cost or ZERO)


def display_total(req: Request) -> Decimal:
    embroidery, shipping = ancillary_costs(req)
    return items_cost(req) + embroidery + shipping


def cost_breakdown(req: Request) -> dict:
    embroidery, shipping = ancillary_costs(req)
    items_total = items_cost(req)
    return {
        "items_cost": float(items_total),
        "embroidery_cost": float(embroidery),
        "shipping_cost": float(shipping),
        "display_total": float(items_total + embroidery + shipping),
    }


def request_view(req: Request, *, include_costs: bool = False) -> dict:
    """Serialized request with line items and the owning employee's details."""
    data = req.to_dict(include_items=True)
    employee = req.employee
    data["employee"] = {
        "id": req.employee_id,
        "name": employee.display_name if employee is not None else "Employee",
        "branch": employee.branch if employee is not None else None,
        "cost_centre": employee.cost_centre if employee is not None else None,
    }
    if include_costs:
        data["costs"] = cost_breakdown(req)
    return data

