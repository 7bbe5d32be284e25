from __future__ import annotations

from ..extensions import db
from portal.time_utils import to_utc_z


ROLE_EMPLOYEE = "employee"
ROLE_MANAGER = "manager"
ROLE_ADMIN = "admin"
VALID_ROLES = (ROLE_EMPLOYEE, ROLE_MANAGER, ROLE_ADMIN)


class Profile(db.Model):
    """
    A portal user: employee, manager or admin.

    manager_id is a weak self-reference to the employee's manager. It is not
    ownership: deleting a manager nulls the reference on their reports
    (ondelete=SET NULL) instead of deleting them.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        db.CheckConstraint(
            "role IN ('employee', 'manager', 'admin')",
            name="ck_profiles_role",
        ),
        db.Index("ix_profiles_manager_id", "manager_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_EMPLOYEE)

    branch = db.Column(db.String(120), nullable=True)
    cost_centre = db.Column(db.String(120), nullable=True)

    manager_id = db.Column(
        db.Integer,
        db.ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    manager = db.relationship(
        "Profile",
        remote_side=[id],
        backref=db.backref("reports", lazy=True),
    )

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or "Employee"

    def __repr__(self) -> str:
        return f"<Profile id={self.id} email={self.email!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "branch": self.branch,
            "cost_centre": self.cost_centre,
            "manager_id": self.manager_id,
            "created_at": to_utc_z(self.created_at),
        }
