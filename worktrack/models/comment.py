"""Work item comments."""

from datetime import datetime, timezone

from worktrack.models import db
from worktrack.models.soft_delete import SoftDeleteMixin


class Comment(SoftDeleteMixin, db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    work_item_id = db.Column(
        db.Integer, db.ForeignKey("work_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    work_item = db.relationship("WorkItem")
    author = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "work_item_id": self.work_item_id,
            "author_id": self.author_id,
            "author_name": self.author.full_name if self.author else None,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
