"""
User model and the system role hierarchy.

Role ordering is an explicit rank table, never enum declaration order:

    member (0) < qa (1) < manager (2) < admin (3) < super_admin (4)

Members and QA users report to a manager (``manager_id``); that one-hop
pointer drives indirect project visibility in the authorization service.
"""

from datetime import datetime, timezone
from enum import Enum

from worktrack.models import db
from worktrack.models.soft_delete import SoftDeleteMixin


class SystemRole(str, Enum):
    MEMBER = "member"
    QA = "qa"
    MANAGER = "manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


SYSTEM_ROLE_RANK = {
    SystemRole.MEMBER: 0,
    SystemRole.QA: 1,
    SystemRole.MANAGER: 2,
    SystemRole.ADMIN: 3,
    SystemRole.SUPER_ADMIN: 4,
}

# Roles that must be attached to a manager at creation time.
ROLES_REQUIRING_MANAGER = frozenset({SystemRole.MEMBER, SystemRole.QA})


def system_role_rank(role) -> int:
    """Return the rank of *role* (a SystemRole or its string value)."""
    try:
        return SYSTEM_ROLE_RANK[SystemRole(role)]
    except ValueError:
        raise ValueError(f"Unknown system role: {role!r}") from None


def is_valid_system_role(role) -> bool:
    return role in {r.value for r in SystemRole}


class User(SoftDeleteMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=True
    )  # NULL only before registration completes
    email = db.Column(db.String(200), nullable=False)
    password_hash = db.Column(db.String(256))
    first_name = db.Column(db.String(100), nullable=False, default="")
    last_name = db.Column(db.String(100), nullable=False, default="")
    phone = db.Column(db.String(50))
    system_role = db.Column(db.String(20), nullable=False, default=SystemRole.MEMBER.value)
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    # SHA-256 of the current refresh token; NULL after logout
    refresh_token_hash = db.Column(db.String(64))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Same email may exist in different companies
    __table_args__ = (
        db.UniqueConstraint("company_id", "email", name="uq_user_company_email"),
        db.Index("ix_users_company_id", "company_id"),
        db.Index("ix_users_manager_id", "manager_id"),
    )

    company = db.relationship("Company", back_populates="users")
    manager = db.relationship("User", remote_side=[id], foreign_keys=[manager_id])
    memberships = db.relationship(
        "ProjectMember", back_populates="user", lazy="dynamic",
        foreign_keys="ProjectMember.user_id",
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def rank(self) -> int:
        return system_role_rank(self.system_role)

    def has_role_at_least(self, role) -> bool:
        return self.rank >= system_role_rank(role)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "phone": self.phone,
            "system_role": self.system_role,
            "company_id": self.company_id,
            "company_name": self.company.name if self.company else None,
            "manager_id": self.manager_id,
            "manager_name": self.manager.full_name if self.manager else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.system_role})>"
