"""
File ticket models: custody tracking for physical or digital documents.

FileTicket lifecycle:
    created -> in_transit -> received -> processing -> approved | rejected -> completed
    lost is reachable from every non-terminal state.

FileTicketTransfer is an append-only ledger. A row is never changed after
insert except to stamp ``received_at`` when the recipient acknowledges it.
"""

from datetime import datetime, timezone
from enum import Enum

from worktrack.models import db
from worktrack.models.soft_delete import SoftDeleteMixin

TICKET_NUMBER_PREFIX = "FT"


class FileTicketType(str, Enum):
    PHYSICAL = "physical"
    DIGITAL = "digital"


class FileTicketStatus(str, Enum):
    CREATED = "created"
    IN_TRANSIT = "in_transit"
    RECEIVED = "received"
    PROCESSING = "processing"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    LOST = "lost"


FILE_TICKET_TRANSITIONS = {
    FileTicketStatus.CREATED: [
        FileTicketStatus.IN_TRANSIT, FileTicketStatus.PROCESSING, FileTicketStatus.LOST,
    ],
    FileTicketStatus.IN_TRANSIT: [FileTicketStatus.RECEIVED, FileTicketStatus.LOST],
    FileTicketStatus.RECEIVED: [
        FileTicketStatus.PROCESSING, FileTicketStatus.IN_TRANSIT, FileTicketStatus.LOST,
    ],
    FileTicketStatus.PROCESSING: [
        FileTicketStatus.APPROVED, FileTicketStatus.REJECTED,
        FileTicketStatus.IN_TRANSIT, FileTicketStatus.LOST,
    ],
    FileTicketStatus.APPROVED: [
        FileTicketStatus.COMPLETED, FileTicketStatus.IN_TRANSIT, FileTicketStatus.LOST,
    ],
    FileTicketStatus.REJECTED: [
        FileTicketStatus.COMPLETED, FileTicketStatus.IN_TRANSIT, FileTicketStatus.LOST,
    ],
    FileTicketStatus.COMPLETED: [],
    FileTicketStatus.LOST: [],
}

TERMINAL_STATUSES = frozenset({FileTicketStatus.COMPLETED, FileTicketStatus.LOST})


def validate_file_ticket_transition(old_status, new_status):
    """Return True if a file ticket may move from *old_status* to *new_status*."""
    return FileTicketStatus(new_status) in FILE_TICKET_TRANSITIONS.get(FileTicketStatus(old_status), [])


def is_terminal(status):
    return FileTicketStatus(status) in TERMINAL_STATUSES


class FileTicket(SoftDeleteMixin, db.Model):
    __tablename__ = "file_tickets"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ticket_number = db.Column(db.String(20), nullable=False, unique=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    ticket_type = db.Column("type", db.String(20), nullable=False, default=FileTicketType.PHYSICAL.value)
    status = db.Column(db.String(20), nullable=False, default=FileTicketStatus.CREATED.value)
    due_date = db.Column(db.Date)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    current_holder_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project = db.relationship("Project")
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    current_holder = db.relationship("User", foreign_keys=[current_holder_id])
    transfers = db.relationship(
        "FileTicketTransfer", back_populates="file_ticket",
        lazy="dynamic", order_by="FileTicketTransfer.id",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "ticket_number": self.ticket_number,
            "title": self.title,
            "description": self.description,
            "type": self.ticket_type,
            "status": self.status,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "created_by_id": self.created_by_id,
            "created_by_name": self.created_by.full_name if self.created_by else None,
            "current_holder_id": self.current_holder_id,
            "current_holder_name": self.current_holder.full_name if self.current_holder else None,
            "transfers_count": self.transfers.count(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<FileTicket {self.id}: {self.ticket_number} [{self.status}]>"


class FileTicketTransfer(db.Model):
    __tablename__ = "file_ticket_transfers"

    id = db.Column(db.Integer, primary_key=True)
    file_ticket_id = db.Column(
        db.Integer, db.ForeignKey("file_tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    to_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    transferred_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text)

    __table_args__ = (
        db.Index("ix_file_ticket_transfers_open", "file_ticket_id", "to_user_id", "received_at"),
    )

    file_ticket = db.relationship("FileTicket", back_populates="transfers")
    from_user = db.relationship("User", foreign_keys=[from_user_id])
    to_user = db.relationship("User", foreign_keys=[to_user_id])

    @property
    def is_open(self):
        return self.received_at is None

    def to_dict(self):
        return {
            "id": self.id,
            "file_ticket_id": self.file_ticket_id,
            "from_user_id": self.from_user_id,
            "from_user_name": self.from_user.full_name if self.from_user else None,
            "to_user_id": self.to_user_id,
            "to_user_name": self.to_user.full_name if self.to_user else None,
            "transferred_at": self.transferred_at.isoformat() if self.transferred_at else None,
            "received_at": self.received_at.isoformat() if self.received_at else None,
            "notes": self.notes,
        }
