# backend/portal/routes/approvals.py
"""
Manager approval routes.

- GET  /api/approvals                  - Pending requests of direct reports
- POST /api/approvals/<id>/approve     - pending -> approved
- POST /api/approvals/<id>/reject      - pending -> rejected (reason required)

SECURITY:
- manager role only
- Requests of employees who do not report to the caller answer 404, the same
  as requests that do not exist
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import InvalidTransition, NotFoundError, PermissionDeniedError, StorageError, ValidationError
from ..models.people import ROLE_MANAGER
from ..services import lifecycle_service, request_service, scope_service
from ..decorators import require_auth, require_role


approvals_bp = Blueprint("approvals", __name__, url_prefix="/api/approvals")


@approvals_bp.get("")
@require_auth
@require_role(ROLE_MANAGER)
def list_approvals_route():
    rows = scope_service.manager_pending(g.current_profile.id)
    return jsonify({
        "requests": [request_service.request_view(r) for r in rows],
        "count": len(rows),
    }), 200


@approvals_bp.post("/<int:request_id>/approve")
@require_auth
@require_role(ROLE_MANAGER)
def approve_request_route(request_id: int):
    """
    Approve a pending request.

    Error responses:
        404: Request not found (or not one of the caller's reports)
        409: Request is no longer pending (reload and retry)
    """
    try:
        req = lifecycle_service.approve_request(request_id, manager=g.current_profile)
        return jsonify({
            "request": request_service.request_view(req),
            "message": f"Request {request_id} approved",
        }), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidTransition as e:
        return jsonify({"error": str(e), "current_status": e.current_status}), 409
    except PermissionDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except StorageError:
        current_app.logger.exception("Failed to persist approval")
        return jsonify({"error": "Failed to approve request. Please try again."}), 500
    except Exception:
        current_app.logger.exception("Failed to approve request")
        return jsonify({"error": "Internal server error"}), 500


@approvals_bp.post("/<int:request_id>/reject")
@require_auth
@require_role(ROLE_MANAGER)
def reject_request_route(request_id: int):
    """
    Reject a pending request.

    Request body:
        {"reason": "Budget freeze until Q3"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        req = lifecycle_service.reject_request(
            request_id,
            manager=g.current_profile,
            reason=payload.get("reason"),
        )
        return jsonify({
            "request": request_service.request_view(req),
            "message": f"Request {request_id} rejected",
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidTransition as e:
        return jsonify({"error": str(e), "current_status": e.current_status}), 409
    except PermissionDeniedError as e:
        return jsonify({"error": str(e)}), 403
    except StorageError:
        current_app.logger.exception("Failed to persist rejection")
        return jsonify({"error": "Failed to reject request. Please try again."}), 500
    except Exception:
        current_app.logger.exception("Failed to reject request")
        return jsonify({"error": "Internal server error"}), 500
