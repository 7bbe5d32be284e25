# backend/portal/routes/users.py
"""
Admin staff management routes.

- GET   /api/users         - All profiles plus the list of managers
- POST  /api/users         - Add a staff member
- PATCH /api/users/<id>    - Change role, manager, branch or cost centre
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import NotFoundError, StorageError, ValidationError
from ..models.people import ROLE_ADMIN
from ..services import profile_service
from ..decorators import require_auth, require_role


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    return jsonify({
        "users": [p.to_dict() for p in profile_service.list_profiles()],
        "managers": [p.to_dict() for p in profile_service.list_managers()],
    }), 200


@users_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    payload = request.get_json(silent=True) or {}

    try:
        profile = profile_service.create_profile(
            full_name=payload.get("full_name"),
            email=payload.get("email"),
            role=payload.get("role"),
            branch=payload.get("branch"),
            cost_centre=payload.get("cost_centre"),
            manager_id=payload.get("manager_id"),
        )
        return jsonify({"user": profile.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError:
        current_app.logger.exception("Failed to persist profile")
        return jsonify({"error": "Failed to add staff member."}), 500
    except Exception:
        current_app.logger.exception("Failed to create profile")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.patch("/<int:profile_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(profile_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        profile = profile_service.update_profile(profile_id, payload)
        return jsonify({"user": profile.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except StorageError:
        current_app.logger.exception("Failed to persist profile changes")
        return jsonify({"error": "Failed to save changes. Please try again."}), 500
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500
