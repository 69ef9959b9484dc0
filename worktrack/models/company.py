"""
Company model: the tenancy boundary.

Every user (after registration) and every project belongs to exactly one
company. Nothing crosses company lines.
"""

from datetime import datetime, timezone

from worktrack.models import db
from worktrack.models.soft_delete import SoftDeleteMixin


class Company(SoftDeleteMixin, db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    # Unique among non-deleted rows; enforced in company_service.
    name = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.Text)
    logo = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    users = db.relationship("User", back_populates="company", lazy="dynamic")
    projects = db.relationship("Project", back_populates="company", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "logo": self.logo,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Company {self.id}: {self.name}>"
