from __future__ import annotations

from ..extensions import db
from portal.time_utils import to_utc_z


CATEGORY_UNIFORM = "Uniform"
CATEGORY_LAPTOP = "Laptop"
CATEGORY_PHONE = "Phone"
CATEGORY_ACCESSORY = "Accessory"
VALID_CATEGORIES = (CATEGORY_UNIFORM, CATEGORY_LAPTOP, CATEGORY_PHONE, CATEGORY_ACCESSORY)


def _decimal_to_json(value):
    return None if value is None else float(value)


class Item(db.Model):
    """
    Catalog record with its stock balance.

    stock_balance is contended: it is only ever changed by
    inventory_service.receive_stock() through a conditional update, never by
    ad-hoc field writes. Dispatching a request does not consume stock.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("stock_balance >= 0", name="ck_items_stock_balance_non_negative"),
        db.CheckConstraint("unit_cost IS NULL OR unit_cost >= 0", name="ck_items_unit_cost_non_negative"),
        db.Index("ix_items_category_name", "category", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False, default=CATEGORY_UNIFORM)
    size = db.Column(db.String(32), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)

    stock_balance = db.Column(db.Integer, nullable=False, default=0)

    # NULL means "unset"; treated as 0 in every cost computation
    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)

    # NULL means "no threshold"
    low_stock_threshold = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} balance={self.stock_balance}>"

    def to_dict(self) -> dict:
        from ..services.inventory_service import is_low_stock

        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "size": self.size,
            "supplier": self.supplier,
            "stock_balance": self.stock_balance,
            "unit_cost": _decimal_to_json(self.unit_cost),
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": is_low_stock(self),
            "created_at": to_utc_z(self.created_at),
        }


class StockReceipt(db.Model):
    """
    Append-only log of stock received for an item.

    Every row is written in the same transaction as the matching increment of
    Item.stock_balance, so balance == initial + SUM(quantity) at all times.
    """
    __tablename__ = "stock_receipts"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_receipts_quantity_positive"),
        db.Index("ix_stock_receipts_item_received", "item_id", "received_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    received_date = db.Column(db.Date, nullable=False)
    received_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", backref=db.backref("receipts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "received_date": self.received_date.isoformat() if self.received_date else None,
            "received_by": self.received_by,
            "created_at": to_utc_z(self.created_at),
        }
