"""
Project and ProjectMember models.

A project belongs to one company and owns its statuses, work items,
sprints, boards and file tickets. ``key`` is the short upper-case token
used in work item display keys (``ACM-12``).

Project roles are ranked explicitly:

    viewer (0) < member (1) < manager (2) < admin (3)
"""

from datetime import datetime, timezone
from enum import Enum

from worktrack.models import db
from worktrack.models.soft_delete import SoftDeleteMixin
from worktrack.models.user import SystemRole, system_role_rank


class ProjectRole(str, Enum):
    VIEWER = "viewer"
    MEMBER = "member"
    MANAGER = "manager"
    ADMIN = "admin"


PROJECT_ROLE_RANK = {
    ProjectRole.VIEWER: 0,
    ProjectRole.MEMBER: 1,
    ProjectRole.MANAGER: 2,
    ProjectRole.ADMIN: 3,
}


def project_role_rank(role) -> int:
    """Return the rank of *role* (a ProjectRole or its string value)."""
    try:
        return PROJECT_ROLE_RANK[ProjectRole(role)]
    except ValueError:
        raise ValueError(f"Unknown project role: {role!r}") from None


def is_valid_project_role(role) -> bool:
    return role in {r.value for r in ProjectRole}


class Project(SoftDeleteMixin, db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    # Unique per company among non-deleted projects; enforced in project_service.
    key = db.Column(db.String(10), nullable=False)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_projects_company_key", "company_id", "key"),
    )

    company = db.relationship("Company", back_populates="projects")
    members = db.relationship("ProjectMember", back_populates="project", lazy="dynamic")

    def active_members(self):
        return self.members.filter(ProjectMember.deleted_at.is_(None)).all()

    def managers(self):
        """Active members whose system role is manager or above."""
        floor = system_role_rank(SystemRole.MANAGER)
        return [m.user for m in self.active_members() if m.user and m.user.rank >= floor]

    def to_dict(self, include_members=False):
        d = {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "description": self.description,
            "key": self.key,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        members = self.active_members()
        d["members_count"] = len(members)
        d["managers"] = [
            {"id": u.id, "full_name": u.full_name, "system_role": u.system_role}
            for u in self.managers()
        ]
        if include_members:
            d["members"] = [m.to_dict() for m in members]
        return d

    def __repr__(self):
        return f"<Project {self.id}: {self.key}>"


class ProjectMember(SoftDeleteMixin, db.Model):
    __tablename__ = "project_members"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role = db.Column(db.String(20), nullable=False, default=ProjectRole.MEMBER.value)
    joined_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    # Soft-deleted rows are reactivated instead of duplicated
    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_member"),
        db.Index("ix_project_members_user", "user_id"),
    )

    project = db.relationship("Project", back_populates="members")
    user = db.relationship("User", back_populates="memberships", foreign_keys=[user_id])

    @property
    def rank(self) -> int:
        return project_role_rank(self.role)

    @property
    def is_manager_class(self) -> bool:
        """True for project managers/admins and for manager-or-above users."""
        if self.rank >= project_role_rank(ProjectRole.MANAGER):
            return True
        return bool(self.user) and self.user.rank >= system_role_rank(SystemRole.MANAGER)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "role": self.role,
            "user_name": self.user.full_name if self.user else None,
            "email": self.user.email if self.user else None,
            "system_role": self.user.system_role if self.user else None,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }

    def __repr__(self):
        return f"<ProjectMember p={self.project_id} u={self.user_id} {self.role}>"
