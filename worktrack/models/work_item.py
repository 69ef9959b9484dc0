"""
Work item model and the parent/child type hierarchy.

Hierarchy (parent -> legal child types):

    epic     -> feature, story
    feature  -> story, task, bug
    story    -> task, bug, subtask
    task     -> subtask
    bug      -> subtask
    subtask  -> (leaf)

The same table is applied on creation and on re-parenting.

Sprint/backlog: an item is either in a sprint (``sprint_id`` set,
``is_in_backlog`` False) or in the backlog (``sprint_id`` NULL,
``is_in_backlog`` True). Every write path goes through
``assign_sprint`` / ``move_to_backlog`` to keep the pair consistent.
"""

from datetime import datetime, timezone
from enum import Enum

from worktrack.models import db
from worktrack.models.soft_delete import SoftDeleteMixin


class WorkItemType(str, Enum):
    EPIC = "epic"
    FEATURE = "feature"
    STORY = "story"
    TASK = "task"
    BUG = "bug"
    SUBTASK = "subtask"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


ALLOWED_CHILDREN = {
    WorkItemType.EPIC: [WorkItemType.FEATURE, WorkItemType.STORY],
    WorkItemType.FEATURE: [WorkItemType.STORY, WorkItemType.TASK, WorkItemType.BUG],
    WorkItemType.STORY: [WorkItemType.TASK, WorkItemType.BUG, WorkItemType.SUBTASK],
    WorkItemType.TASK: [WorkItemType.SUBTASK],
    WorkItemType.BUG: [WorkItemType.SUBTASK],
    WorkItemType.SUBTASK: [],
}


def validate_parent_child(parent_type, child_type):
    """Return True if *child_type* may be placed under *parent_type*."""
    return WorkItemType(child_type) in ALLOWED_CHILDREN.get(WorkItemType(parent_type), [])


class WorkItem(SoftDeleteMixin, db.Model):
    __tablename__ = "work_items"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    item_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    item_type = db.Column("type", db.String(20), nullable=False, default=WorkItemType.TASK.value)
    priority = db.Column(db.String(20), nullable=False, default=Priority.MEDIUM.value)
    due_date = db.Column(db.Date)
    estimated_hours = db.Column(db.Numeric(8, 2))
    actual_hours = db.Column(db.Numeric(8, 2))
    status_id = db.Column(
        db.Integer, db.ForeignKey("workflow_statuses.id"), nullable=False
    )
    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    sprint_id = db.Column(db.Integer, db.ForeignKey("sprints.id", ondelete="SET NULL"))
    is_in_backlog = db.Column(db.Boolean, nullable=False, default=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("work_items.id", ondelete="SET NULL"))
    queue_order = db.Column(db.Integer)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # item_number is max+1 per project; the constraint turns a race into a retry
    __table_args__ = (
        db.UniqueConstraint("project_id", "item_number", name="uq_work_item_project_number"),
        db.Index("ix_work_items_project_sprint", "project_id", "sprint_id"),
        db.Index("ix_work_items_status", "status_id"),
        db.Index("ix_work_items_parent", "parent_id"),
    )

    project = db.relationship("Project")
    status = db.relationship("WorkflowStatus")
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    sprint = db.relationship("Sprint", back_populates="work_items")
    parent = db.relationship("WorkItem", remote_side=[id])

    def assign_sprint(self, sprint_id):
        """Move into *sprint_id*, or back to the backlog when it is None."""
        if sprint_id is None:
            self.move_to_backlog()
            return
        self.sprint_id = sprint_id
        self.is_in_backlog = False

    def move_to_backlog(self):
        self.sprint_id = None
        self.is_in_backlog = True

    @property
    def display_key(self):
        key = self.project.key if self.project else "?"
        return f"{key}-{self.item_number}"

    def active_children(self):
        return (
            WorkItem.query_active()
            .filter_by(parent_id=self.id)
            .order_by(WorkItem.item_number)
            .all()
        )

    def to_dict(self):
        parent = self.parent
        return {
            "id": self.id,
            "project_id": self.project_id,
            "item_number": self.item_number,
            "key": self.display_key,
            "title": self.title,
            "description": self.description,
            "type": self.item_type,
            "priority": self.priority,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "estimated_hours": float(self.estimated_hours) if self.estimated_hours is not None else None,
            "actual_hours": float(self.actual_hours) if self.actual_hours is not None else None,
            "status_id": self.status_id,
            "status_name": self.status.name if self.status else None,
            "status_color": self.status.color if self.status else None,
            "assigned_to_id": self.assigned_to_id,
            "assigned_to_name": self.assigned_to.full_name if self.assigned_to else None,
            "sprint_id": self.sprint_id,
            "sprint_name": self.sprint.name if self.sprint else None,
            "is_in_backlog": self.is_in_backlog,
            "queue_order": self.queue_order,
            "created_by_id": self.created_by_id,
            "created_by_name": self.created_by.full_name if self.created_by else None,
            "parent_id": self.parent_id,
            "parent_key": parent.display_key if parent else None,
            "children_count": WorkItem.query_active().filter_by(parent_id=self.id).count(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<WorkItem {self.id}: {self.item_type} #{self.item_number}>"
