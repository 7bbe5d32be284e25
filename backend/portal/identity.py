# Overview: Identity provider adapter; resolves the signed-in user from the upstream auth header.

"""
Authentication itself happens upstream (SSO / auth proxy). The proxy forwards
the signed-in user's email in the header named by IDENTITY_HEADER; this module
turns that into a portal Profile.
"""

from __future__ import annotations

from flask import current_app, request

from .models import Profile
from .services.profile_service import find_by_email


def current_email() -> str | None:
    header = current_app.config.get("IDENTITY_HEADER", "X-Authenticated-Email")
    value = request.headers.get(header, "").strip()
    return value or None


def current_profile() -> Profile | None:
    return find_by_email(current_email())


def current_user() -> dict | None:
    """{"id", "email"} of the signed-in user, or None."""
    profile = current_profile()
    if profile is None:
        return None
    return {"id": profile.id, "email": profile.email}
