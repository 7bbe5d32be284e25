# Overview: Service-layer operations for staff profiles; encapsulates business logic and database work.

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Profile
from ..models.people import ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER, VALID_ROLES
from ..validation import clean_text, require_choice, require_int, require_text
from .concurrency import atomic, run_with_retry


HOME_PATHS = {
    ROLE_EMPLOYEE: "/employee/request",
    ROLE_MANAGER: "/manager/approvals",
    ROLE_ADMIN: "/admin/stock",
}

# Fields an admin may change on an existing profile
EDITABLE_FIELDS = {"role", "manager_id", "branch", "cost_centre"}

_UNSET = object()


def home_path(role: str | None) -> str:
    """Landing page for a role; unknown roles go back to the sign-in page."""
    return HOME_PATHS.get(role or "", "/")


def get_profile(profile_id: int) -> Profile:
    profile = db.session.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError(f"Profile {profile_id} not found")
    return profile


def find_by_email(email: str | None) -> Profile | None:
    cleaned = clean_text(email)
    if cleaned is None:
        return None
    return Profile.query.filter(db.func.lower(Profile.email) == cleaned.lower()).first()


def list_profiles() -> list[Profile]:
    return Profile.query.order_by(Profile.full_name.asc(), Profile.id.asc()).all()


def list_managers() -> list[Profile]:
    return (
        Profile.query.filter_by(role=ROLE_MANAGER)
        .order_by(Profile.full_name.asc(), Profile.id.asc())
        .all()
    )


def _resolve_manager_id(value, *, profile_id: int | None = None) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    manager_id = require_int(value, "manager_id")

    if profile_id is not None and manager_id == profile_id:
        raise ValidationError("A profile cannot be its own manager")

    manager = db.session.get(Profile, manager_id)
    if manager is None:
        raise NotFoundError(f"Manager profile {manager_id} not found")
    if manager.role != ROLE_MANAGER:
        raise ValidationError(f"Profile {manager_id} is not a manager")
    return manager_id


def create_profile(
    *,
    full_name,
    email,
    role=ROLE_EMPLOYEE,
    branch=None,
    cost_centre=None,
    manager_id=None,
) -> Profile:
    """
    Add a staff member.

    Raises:
        ValidationError: name/email missing, bad role, duplicate email, bad manager
        NotFoundError: manager_id does not reference a profile
    """
    name = require_text(full_name, "full_name")
    email_clean = require_text(email, "email")
    if "@" not in email_clean:
        raise ValidationError("email must be a valid email address")
    if find_by_email(email_clean) is not None:
        raise ValidationError(f"A profile with email {email_clean} already exists")

    profile = Profile(
        full_name=name,
        email=email_clean,
        role=require_choice(role or ROLE_EMPLOYEE, "role", VALID_ROLES),
        branch=clean_text(branch),
        cost_centre=clean_text(cost_centre),
        manager_id=_resolve_manager_id(manager_id),
    )

    def _op():
        with atomic("create profile"):
            db.session.add(profile)
        return profile

    return run_with_retry(_op)


def update_profile(profile_id: int, changes: dict) -> Profile:
    """
    Patch role / manager / branch / cost centre.

    Only keys present in `changes` are touched; blank text clears the field.
    Demoting a manager does not detach their reports, matching how a deleted
    manager only orphans them.
    """
    changes = changes or {}
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    profile = get_profile(profile_id)

    role = _UNSET
    manager_id = _UNSET
    if "role" in changes:
        role = require_choice(changes["role"], "role", VALID_ROLES)
    if "manager_id" in changes:
        manager_id = _resolve_manager_id(changes["manager_id"], profile_id=profile.id)

    def _op():
        with atomic("update profile"):
            if role is not _UNSET:
                profile.role = role
            if manager_id is not _UNSET:
                profile.manager_id = manager_id
            for field in ("branch", "cost_centre"):
                if field in changes:
                    setattr(profile, field, clean_text(changes[field]))
        return profile

    return run_with_retry(_op)
