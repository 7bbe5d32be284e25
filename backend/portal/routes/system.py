# backend/portal/routes/system.py
from flask import Blueprint, jsonify, g, current_app
from sqlalchemy import text

from ..extensions import db
from ..services import profile_service
from ..decorators import require_auth


system_bp = Blueprint("system", __name__, url_prefix="/api")


@system_bp.get("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        current_app.logger.exception("Database health check failed")
        return jsonify({"status": "error", "database": "unavailable"}), 503
    return jsonify({"status": "ok", "database": "ok"}), 200


@system_bp.get("/me")
@require_auth
def me():
    """Signed-in profile and the page their role lands on."""
    profile = g.current_profile
    return jsonify({
        "user": profile.to_dict(),
        "home": profile_service.home_path(profile.role),
    }), 200
