"""
Soft delete for tenant data.

Deleted rows keep their id and foreign keys so audit entries, custody
ledgers and sequence numbers still resolve. Reads go through
``query_active()``; ``get_scoped`` applies the same filter.
"""

from datetime import datetime, timezone

from worktrack.models import db


class SoftDeleteMixin:
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)
    # Plain integer: user rows are soft-deleted too, so no FK is needed.
    deleted_by_id = db.Column(db.Integer, nullable=True)

    def soft_delete(self, by_user_id=None):
        self.deleted_at = datetime.now(timezone.utc)
        self.deleted_by_id = by_user_id

    def restore(self):
        """Bring back a deleted row; re-adding a removed project member uses this."""
        self.deleted_at = None
        self.deleted_by_id = None

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def query_active(cls):
        return cls.query.filter(cls.deleted_at.is_(None))
