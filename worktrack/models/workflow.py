"""
Workflow status model.

Each project owns an ordered set of statuses. Four core statuses are
seeded once at project creation; they can be reordered and recolored but
never renamed or deleted. Custom statuses are never core.
"""

from datetime import datetime, timezone
from enum import Enum

from worktrack.models import db
from worktrack.models.soft_delete import SoftDeleteMixin

DEFAULT_STATUS_COLOR = "#6B7280"


class CoreStatusType(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    BLOCKED = "blocked"


# Seeded for every new project, in board order.
CORE_STATUSES = [
    {"name": "To Do", "color": "#6B7280", "core_type": CoreStatusType.NEW, "order": 1},
    {"name": "In Progress", "color": "#3B82F6", "core_type": CoreStatusType.IN_PROGRESS, "order": 2},
    {"name": "Review", "color": "#8B5CF6", "core_type": CoreStatusType.REVIEW, "order": 3},
    {"name": "Done", "color": "#10B981", "core_type": CoreStatusType.DONE, "order": 4},
]


class WorkflowStatus(SoftDeleteMixin, db.Model):
    __tablename__ = "workflow_statuses"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    # Unique per project among non-deleted statuses; enforced in the service.
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    order = db.Column("sort_order", db.Integer, nullable=False, default=0)
    color = db.Column(db.String(7), nullable=False, default=DEFAULT_STATUS_COLOR)
    is_core = db.Column(db.Boolean, nullable=False, default=False)
    core_type = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_workflow_statuses_project_name", "project_id", "name"),
    )

    project = db.relationship("Project")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "order": self.order,
            "color": self.color,
            "is_core": self.is_core,
            "core_type": self.core_type,
        }

    def __repr__(self):
        return f"<WorkflowStatus {self.id}: {self.name} #{self.order}>"
