# Overview: Service-layer operations for the inventory ledger; encapsulates business logic and database work.

"""
Inventory Ledger

The ledger is the Item catalog plus its append-only StockReceipt history.

INVARIANTS:
- Item.stock_balance == initial balance (always 0 on creation) + SUM(receipt quantities).
- A receipt row and its balance increment commit together or not at all.
- The balance increment is a compare-and-swap on the balance read in the same
  transaction; a lost race is retried (run_with_retry), never applied twice.
- Dispatching a request does NOT decrement stock. This is observed behaviour
  of the portal and is deliberately preserved (see DESIGN.md).

LOW STOCK:
    balance and threshold both set AND balance <= threshold
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import NotFoundError, StorageError, ValidationError
from ..extensions import db, notifications
from ..models import Item, Profile, StockReceipt
from ..models.catalog import VALID_CATEGORIES
from ..models.people import ROLE_ADMIN
from ..validation import (
    clean_text,
    parse_lenient_int,
    parse_lenient_money,
    require_choice,
    require_date,
    require_int,
)
from .concurrency import ConcurrentUpdateError, atomic, compare_and_swap, run_with_retry
from .notification_service import KIND_LOW_STOCK


def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def create_item(fields: dict) -> Item:
    """
    Create a catalog item.

    - name is required (non-blank)
    - category must be one of VALID_CATEGORIES (case-insensitive, default Uniform)
    - unit_cost / low_stock_threshold are parsed leniently: anything that is
      not a usable number becomes NULL ("unset") rather than an error
    - stock_balance always starts at 0; stock only arrives through receipts
    """
    fields = fields or {}

    name = clean_text(fields.get("name"))
    if name is None:
        raise ValidationError("Item name is required.")

    category = fields.get("category") or VALID_CATEGORIES[0]
    category = require_choice(category, "category", VALID_CATEGORIES)

    item = Item(
        name=name,
        category=category,
        size=clean_text(fields.get("size")),
        supplier=clean_text(fields.get("supplier")),
        unit_cost=parse_lenient_money(fields.get("unit_cost")),
        low_stock_threshold=parse_lenient_int(fields.get("low_stock_threshold")),
        stock_balance=0,
    )

    def _op():
        with atomic("create item"):
            db.session.add(item)
        return item

    return run_with_retry(_op)


def receive_stock(
    item_id: int,
    quantity,
    received_date,
    *,
    received_by: int | None = None,
) -> StockReceipt:
    """
    Record a stock receipt and increment the item's balance as one unit.

    Raises:
        ValidationError: quantity not a positive integer, date missing/invalid
        NotFoundError: item does not exist
        StorageError: write failed or the balance kept changing underneath us
    """
    qty = require_int(quantity, "quantity")
    if qty <= 0:
        raise ValidationError("Quantity received must be a positive number.")
    received_on = require_date(received_date, "received_date")

    def _op():
        with atomic("receive stock"):
            item = get_item(item_id)
            expected_balance = item.stock_balance or 0

            receipt = StockReceipt(
                item_id=item.id,
                quantity=qty,
                received_date=received_on,
                received_by=received_by,
            )
            db.session.add(receipt)
            db.session.flush()

            swapped = compare_and_swap(
                Item,
                row_id=item.id,
                expected={"stock_balance": expected_balance},
                values={"stock_balance": expected_balance + qty},
            )
            if not swapped:
                raise ConcurrentUpdateError(f"Stock balance of item {item_id} changed concurrently")
        return receipt

    try:
        return run_with_retry(_op)
    except ConcurrentUpdateError as exc:
        raise StorageError(f"Could not receive stock for item {item_id}: balance kept changing") from exc


def list_receipts(item_id: int, *, limit: int = 200) -> list[StockReceipt]:
    get_item(item_id)
    return (
        StockReceipt.query.filter_by(item_id=item_id)
        .order_by(StockReceipt.received_date.desc(), StockReceipt.id.desc())
        .limit(limit)
        .all()
    )


def is_low_stock(item) -> bool:
    balance = getattr(item, "stock_balance", None)
    threshold = getattr(item, "low_stock_threshold", None)
    if balance is None or threshold is None:
        return False
    return balance <= threshold


def total_value(items) -> Decimal:
    """SUM(stock_balance * unit_cost); NULL cost or balance counts as 0."""
    total = Decimal("0")
    for item in items:
        balance = item.stock_balance or 0
        unit_cost = item.unit_cost if item.unit_cost is not None else Decimal("0")
        total += unit_cost * balance
    return total


def list_low_stock_items() -> list[Item]:
    return (
        Item.query.filter(
            Item.low_stock_threshold.isnot(None),
            Item.stock_balance <= Item.low_stock_threshold,
        )
        .order_by(Item.name.asc(), Item.id.asc())
        .all()
    )


def stock_summary() -> dict:
    """Dashboard figures over the full catalog."""
    items = Item.query.all()
    return {
        "total_items": len(items),
        "low_stock_count": sum(1 for item in items if is_low_stock(item)),
        "total_value": float(total_value(items)),
    }


def _low_stock_recipients() -> list[str]:
    configured = current_app.config.get("LOW_STOCK_RECIPIENTS") or ""
    recipients = [email.strip() for email in configured.split(",") if email.strip()]
    if recipients:
        return recipients

    rows = (
        db.session.query(Profile.email)
        .filter(Profile.role == ROLE_ADMIN)
        .order_by(Profile.id.asc())
        .all()
    )
    return [r[0] for r in rows if r[0]]


def low_stock_payload(items) -> dict:
    return {
        "items": [
            {
                "name": item.name,
                "stock_balance": item.stock_balance,
                "low_stock_threshold": item.low_stock_threshold,
            }
            for item in items
        ]
    }


def send_low_stock_digest() -> list[Item]:
    """
    Emit one low-stock digest per admin recipient.

    Nothing is sent when no item is low. Delivery failures are logged by the
    dispatcher and do not affect the returned list.
    """
    items = list_low_stock_items()
    if not items:
        return items

    payload = low_stock_payload(items)
    for recipient in _low_stock_recipients():
        notifications.emit(KIND_LOW_STOCK, recipient, payload)
    return items
