"""
Board and BoardColumn models.

Each project has one default board (``is_default``, no owner) created with
the project, plus any number of personal boards. A personal board copies
the default board's columns when it is created; afterwards the two evolve
independently.
"""

from datetime import datetime, timezone

from worktrack.models import db
from worktrack.models.soft_delete import SoftDeleteMixin

DEFAULT_BOARD_NAME = "Main Board"


class Board(SoftDeleteMixin, db.Model):
    __tablename__ = "boards"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = db.Column(db.String(100), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    project = db.relationship("Project")
    owner = db.relationship("User")
    columns = db.relationship(
        "BoardColumn", back_populates="board",
        order_by="BoardColumn.order", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "owner_id": self.owner_id,
            "is_default": self.is_default,
            "columns": [c.to_dict() for c in self.columns],
        }

    def __repr__(self):
        return f"<Board {self.id}: {self.name}>"


class BoardColumn(db.Model):
    __tablename__ = "board_columns"

    id = db.Column(db.Integer, primary_key=True)
    board_id = db.Column(
        db.Integer, db.ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status_id = db.Column(
        db.Integer, db.ForeignKey("workflow_statuses.id", ondelete="CASCADE"), nullable=False
    )
    order = db.Column("sort_order", db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint("board_id", "status_id", name="uq_board_column_status"),
    )

    board = db.relationship("Board", back_populates="columns")
    status = db.relationship("WorkflowStatus")

    def to_dict(self):
        return {
            "id": self.id,
            "board_id": self.board_id,
            "status_id": self.status_id,
            "status_name": self.status.name if self.status else None,
            "status_color": self.status.color if self.status else None,
            "order": self.order,
        }
