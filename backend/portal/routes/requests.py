# backend/portal/routes/requests.py
"""
Employee request routes.

- GET  /api/catalog          - Browse items (optional ?category=Uniform)
- POST /api/requests         - Submit a cart as a new pending request
- GET  /api/requests/mine    - Own order history, newest first

SECURITY:
- All routes require authentication
- The owning employee is always the authenticated profile, never the body
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import NotFoundError, StorageError, ValidationError
from ..services import request_service, scope_service
from ..decorators import require_auth


requests_bp = Blueprint("requests", __name__, url_prefix="/api")


@requests_bp.get("/catalog")
@require_auth
def catalog_route():
    items = scope_service.catalog(request.args.get("category"))
    return jsonify({
        "items": [item.to_dict() for item in items],
        "sizes": list(request_service.UNIFORM_SIZES),
        "default_size": request_service.DEFAULT_UNIFORM_SIZE,
    }), 200


@requests_bp.post("/requests")
@require_auth
def submit_request_route():
    """
    Submit a request.

    Request body:
        {
            "items": [{"item_id": 1, "quantity": 2, "size": "M"}, ...],
            "notes": "optional"
        }

    Error responses:
        400: Empty cart, bad quantity or size
        404: Unknown item
    """
    payload = request.get_json(silent=True) or {}
    lines = payload.get("items")
    if lines is not None and not isinstance(lines, list):
        return jsonify({"error": "items must be a list"}), 400

    try:
        req = request_service.submit_request(
            g.current_profile.id,
            lines or [],
            payload.get("notes"),
        )
        return jsonify({
            "request": request_service.request_view(req),
            "message": "Request submitted! Your manager will be notified.",
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError:
        current_app.logger.exception("Failed to persist request")
        return jsonify({"error": "Failed to submit request. Please try again."}), 500
    except Exception:
        current_app.logger.exception("Failed to submit request")
        return jsonify({"error": "Internal server error"}), 500


@requests_bp.get("/requests/mine")
@require_auth
def my_requests_route():
    limit = request.args.get("limit", 200, type=int)
    rows = scope_service.employee_requests(g.current_profile.id, limit=min(max(limit, 1), 500))
    return jsonify({
        "requests": [request_service.request_view(r) for r in rows],
    }), 200
