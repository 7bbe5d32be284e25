# backend/portal/routes/stock.py
"""
Admin stock routes.

- GET  /api/stock/items                  - Catalog (optional ?category=)
- POST /api/stock/items                  - Add an item (balance starts at 0)
- POST /api/stock/items/<id>/receive     - Record received stock
- GET  /api/stock/items/<id>/receipts    - Receipt history, newest first
- GET  /api/stock/summary                - Item count, low-stock count, total value
- POST /api/stock/low-stock/notify       - Email the low-stock digest to admins

Numeric item fields are parsed leniently: unparseable values are stored as
unset instead of being rejected.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import NotFoundError, StorageError, ValidationError
from ..models.people import ROLE_ADMIN
from ..services import inventory_service, scope_service
from ..decorators import require_auth, require_role


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")

ITEM_FIELDS = {"name", "category", "size", "supplier", "unit_cost", "low_stock_threshold"}


@stock_bp.get("/items")
@require_auth
@require_role(ROLE_ADMIN)
def list_items_route():
    items = scope_service.catalog(request.args.get("category"))
    return jsonify({"items": [item.to_dict() for item in items]}), 200


@stock_bp.post("/items")
@require_auth
@require_role(ROLE_ADMIN)
def create_item_route():
    payload = request.get_json(silent=True) or {}
    unknown = set(payload) - ITEM_FIELDS
    if unknown:
        return jsonify({"error": f"Field not allowed: {', '.join(sorted(unknown))}"}), 400

    try:
        item = inventory_service.create_item(payload)
        return jsonify({"item": item.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError:
        current_app.logger.exception("Failed to persist item")
        return jsonify({"error": "Failed to add item. Please try again."}), 500
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/items/<int:item_id>/receive")
@require_auth
@require_role(ROLE_ADMIN)
def receive_stock_route(item_id: int):
    """
    Request body:
        {"quantity": 50, "received_date": "2024-01-01"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        receipt = inventory_service.receive_stock(
            item_id,
            payload.get("quantity"),
            payload.get("received_date"),
            received_by=g.current_profile.id,
        )
        item = inventory_service.get_item(item_id)
        return jsonify({"receipt": receipt.to_dict(), "item": item.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError:
        current_app.logger.exception("Failed to persist stock receipt")
        return jsonify({"error": "Failed to receive stock. Please try again."}), 500
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/items/<int:item_id>/receipts")
@require_auth
@require_role(ROLE_ADMIN)
def list_receipts_route(item_id: int):
    try:
        receipts = inventory_service.list_receipts(item_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"receipts": [r.to_dict() for r in receipts]}), 200


@stock_bp.get("/summary")
@require_auth
@require_role(ROLE_ADMIN)
def stock_summary_route():
    return jsonify(inventory_service.stock_summary()), 200


@stock_bp.post("/low-stock/notify")
@require_auth
@require_role(ROLE_ADMIN)
def notify_low_stock_route():
    items = inventory_service.send_low_stock_digest()
    return jsonify({
        "items": [item.to_dict() for item in items],
        "count": len(items),
    }), 200
