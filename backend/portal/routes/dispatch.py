# backend/portal/routes/dispatch.py
"""
Admin dispatch routes.

- GET  /api/dispatch                 - Approved requests, oldest approval first
- PUT  /api/dispatch/<id>/costs      - Upsert embroidery / shipping costs
- POST /api/dispatch/<id>/dispatch   - approved -> dispatched

SECURITY:
- admin role only
- dispatched_by is taken from the authenticated profile
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import InvalidTransition, NotFoundError, PermissionDeniedError, StorageError, ValidationError
from ..models.people import ROLE_ADMIN
from ..services import lifecycle_service, request_service, scope_service
from ..decorators import require_auth, require_role


dispatch_bp = Blueprint("dispatch", __name__, url_prefix="/api/dispatch")


@dispatch_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def dispatch_queue_route():
    rows = scope_service.dispatch_queue()
    return jsonify({
        "requests": [request_service.request_view(r, include_costs=True) for r in rows],
        "count": len(rows),
    }), 200


@dispatch_bp.put("/<int:request_id>/costs")
@require_auth
@require_role(ROLE_ADMIN)
def update_costs_route(request_id: int):
    """
    Request body (both optional):
        {"embroidery_cost": 12.5, "shipping_cost": 8}
    """
    payload = request.get_json(silent=True) or {}

    try:
        request_service.annotate_costs(
            request_id,
            embroidery_cost=payload.get("embroidery_cost"),
            shipping_cost=payload.get("shipping_cost"),
        )
        req = request_service.get_request(request_id)
        return jsonify({"costs": request_service.cost_breakdown(req)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError:
        current_app.logger.exception("Failed to persist request costs")
        return jsonify({"error": "Failed to save costs. Please try again."}), 500
    except Exception:
        current_app.logger.exception("Failed to save request costs")
        return jsonify({"error": "Internal server error"}), 500


@dispatch_bp.post("/<int:request_id>/dispatch")
@require_auth
@require_role(ROLE_ADMIN)
def dispatch_request_route(request_id: int):
    """
    Mark an approved request as dispatched.

    Error responses:
        404: Request not found
        409: Request is not approved (pending, rejected or already dispatched)
    """
    try:
        req = lifecycle_service.dispatch_request(request_id, admin=g.current_profile)
        return jsonify({
            "request": request_service.request_view(req, include_costs=True),
            "message": f"Request {request_id} dispatched",
        }), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidTransition as e:
        return jsonify({"error": str(e), "current_status": e.current_status}), 409
    except PermissionDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except StorageError:
        current_app.logger.exception("Failed to persist dispatch")
        return jsonify({"error": "Failed to mark as dispatched. Please try again."}), 500
    except Exception:
        current_app.logger.exception("Failed to dispatch request")
        return jsonify({"error": "Internal server error"}), 500
