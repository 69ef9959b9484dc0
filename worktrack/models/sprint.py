"""
Sprint model.

Lifecycle is strictly forward: planning -> active -> completed.
"""

from datetime import datetime, timezone
from enum import Enum

from worktrack.models import db
from worktrack.models.soft_delete import SoftDeleteMixin


class SprintStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"


SPRINT_TRANSITIONS = {
    SprintStatus.PLANNING: [SprintStatus.ACTIVE],
    SprintStatus.ACTIVE: [SprintStatus.COMPLETED],
    SprintStatus.COMPLETED: [],
}


def validate_sprint_transition(old_status, new_status):
    """Return True if a sprint may move from *old_status* to *new_status*."""
    return SprintStatus(new_status) in SPRINT_TRANSITIONS.get(SprintStatus(old_status), [])


class Sprint(SoftDeleteMixin, db.Model):
    __tablename__ = "sprints"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(200), nullable=False)
    goal = db.Column(db.Text)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(
        db.String(20), nullable=False, default=SprintStatus.PLANNING.value,
        comment="planning | active | completed",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project = db.relationship("Project")
    work_items = db.relationship("WorkItem", back_populates="sprint", lazy="dynamic")

    def active_work_items(self):
        from worktrack.models.work_item import WorkItem
        return self.work_items.filter(WorkItem.deleted_at.is_(None)).all()

    def to_dict(self):
        items = self.active_work_items()
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "goal": self.goal,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "status": self.status,
            "work_items_count": len(items),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Sprint {self.id}: {self.name} [{self.status}]>"
