"""
Activity log: immutable, append-only audit trail.

One row per mutating action. ``old_value`` / ``new_value`` carry the
before/after text for field-level changes (status names, roles, ...).
Rows are only ever inserted; there is no update or delete path.
"""

from datetime import datetime, timezone

from worktrack.models import db

# Actions written by the services. Free-form strings are accepted, this is
# the vocabulary the UI filters on.
ACTIVITY_ACTIONS = {
    "Created",
    "Updated",
    "Deleted",
    "StatusChanged",
    "Commented",
    "MemberAdded",
    "MemberUpdated",
    "MemberRemoved",
    "Started",
    "Completed",
    "Transferred",
    "Received",
    "Reordered",
    "SuperAdminTransferred",
}


class ActivityLog(db.Model):
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("idx_activity_entity", "entity_type", "entity_id"),
        db.Index("idx_activity_project", "project_id"),
        db.Index("idx_activity_user", "user_id"),
        db.Index("idx_activity_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action = db.Column(db.String(60), nullable=False)
    entity_type = db.Column(
        db.String(40), nullable=False,
        comment="Company | User | Project | WorkItem | Sprint | FileTicket | ...",
    )
    entity_id = db.Column(db.Integer, nullable=False)
    old_value = db.Column(db.Text)
    new_value = db.Column(db.Text)
    description = db.Column(db.Text)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    work_item_id = db.Column(db.Integer, db.ForeignKey("work_items.id", ondelete="SET NULL"), nullable=True)
    file_ticket_id = db.Column(db.Integer, db.ForeignKey("file_tickets.id", ondelete="SET NULL"), nullable=True)
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User")
    project = db.relationship("Project")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.full_name if self.user else None,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "description": self.description,
            "project_id": self.project_id,
            "project_key": self.project.key if self.project else None,
            "work_item_id": self.work_item_id,
            "file_ticket_id": self.file_ticket_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<ActivityLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"
