"""
File ticket custody chain.

A file ticket tracks who physically (or digitally) holds a document.
Custody moves by transfer: the ledger gets a row from the current holder to
the target, the target becomes the holder, and the ticket goes in_transit.
The new holder acknowledges with receive, which stamps ``received_at`` on
the open transfer row and marks the ticket received.

Status changes outside transfer/receive follow FILE_TICKET_TRANSITIONS;
completed and lost are terminal.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func

from worktrack.core.exceptions import ValidationError
from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.file_ticket import (
    TICKET_NUMBER_PREFIX,
    FileTicket,
    FileTicketStatus,
    FileTicketTransfer,
    FileTicketType,
    is_terminal,
    validate_file_ticket_transition,
)
from worktrack.models.project import Project
from worktrack.models.user import User
from worktrack.services.activity_log_service import log_activity
from worktrack.services.authorization_service import Action, authorize, require
from worktrack.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from worktrack.services.helpers.sequences import insert_with_sequence
from worktrack.services.identity import get_actor
from worktrack.utils.helpers import clean_str, parse_date, parse_int

logger = logging.getLogger(__name__)

_TICKET_TYPES = {t.value for t in FileTicketType}
_TICKET_STATUSES = {s.value for s in FileTicketStatus}


def generate_ticket_number(year: int | None = None) -> str:
    """Next ``FT-{year}-{seq:04d}``; seq restarts at 1 every year."""
    year = year or datetime.now(timezone.utc).year
    prefix = f"{TICKET_NUMBER_PREFIX}-{year}-"
    # longest first so FT-2026-10000 sorts above FT-2026-9999
    latest = (
        db.session.query(FileTicket.ticket_number)
        .filter(FileTicket.ticket_number.like(f"{prefix}%"))
        .order_by(func.length(FileTicket.ticket_number).desc(), FileTicket.ticket_number.desc())
        .first()
    )
    seq = 1
    if latest is not None:
        try:
            seq = int(latest[0][len(prefix):]) + 1
        except ValueError:
            logger.warning("Unparseable ticket number %s", latest[0])
    return f"{prefix}{seq:04d}"


def _parse_type(value, default=FileTicketType.PHYSICAL.value) -> str:
    ticket_type = clean_str(value).lower() or default
    if ticket_type not in _TICKET_TYPES:
        raise ValidationError(f"Invalid file ticket type: {ticket_type}")
    return ticket_type


def _load_project(actor, project_id):
    return get_scoped(Project, project_id, company_id=actor.company_id)


def _load_ticket(actor, project_id, ticket_id, action=Action.VIEW_FILE_TICKET):
    project = _load_project(actor, project_id)
    ticket = get_scoped(FileTicket, ticket_id, project_id=project.id, resource="File ticket")
    require(authorize(actor, action, ticket), ticket)
    return ticket


def _open_transfer_to(ticket, user_id):
    return (
        FileTicketTransfer.query
        .filter(
            FileTicketTransfer.file_ticket_id == ticket.id,
            FileTicketTransfer.to_user_id == user_id,
            FileTicketTransfer.received_at.is_(None),
        )
        .order_by(FileTicketTransfer.id.desc())
        .first()
    )


# ── Queries ──────────────────────────────────────────────────────────────


@service_operation("file_ticket.list")
def list_file_tickets(actor_id, project_id, *, current_holder_id=None, status=None):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    require(authorize(actor, Action.VIEW_PROJECT, project), project)

    query = FileTicket.query_active().filter(FileTicket.project_id == project.id)
    if current_holder_id is not None:
        query = query.filter(FileTicket.current_holder_id == current_holder_id)
    if status:
        query = query.filter(FileTicket.status == status)
    tickets = query.order_by(FileTicket.created_at.desc(), FileTicket.id.desc()).all()
    return ServiceResult.success([t.to_dict() for t in tickets])


@service_operation("file_ticket.get")
def get_file_ticket(actor_id, project_id, ticket_id):
    actor = get_actor(actor_id)
    ticket = _load_ticket(actor, project_id, ticket_id)
    return ServiceResult.success(ticket.to_dict())


@service_operation("file_ticket.list_transfers")
def list_transfers(actor_id, project_id, ticket_id):
    actor = get_actor(actor_id)
    ticket = _load_ticket(actor, project_id, ticket_id)
    return ServiceResult.success([t.to_dict() for t in ticket.transfers.all()])


# ── Mutations ────────────────────────────────────────────────────────────


@service_operation("file_ticket.create")
def create_file_ticket(actor_id, project_id, data: dict):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    require(authorize(actor, Action.CREATE_FILE_TICKET, project), project)

    title = clean_str(data.get("title"))
    if not title:
        return ServiceResult.bad_request("Title is required")

    ticket = FileTicket(
        project_id=project.id,
        title=title,
        description=data.get("description"),
        ticket_type=_parse_type(data.get("type")),
        status=FileTicketStatus.CREATED.value,
        due_date=parse_date(data.get("due_date")),
        created_by_id=actor.id,
        current_holder_id=actor.id,
    )

    def _assign(obj):
        obj.ticket_number = generate_ticket_number()

    insert_with_sequence(ticket, _assign, label="File ticket")

    log_activity(
        user_id=actor.id, action="Created", entity_type="FileTicket", entity_id=ticket.id,
        description=f"Created file ticket {ticket.ticket_number}: {ticket.title}",
        project_id=project.id, file_ticket_id=ticket.id,
    )
    db.session.commit()
    logger.info("File ticket %s created by user %s", ticket.ticket_number, actor.id)
    return ServiceResult.created(ticket.to_dict())


@service_operation("file_ticket.update")
def update_file_ticket(actor_id, project_id, ticket_id, data: dict):
    actor = get_actor(actor_id)
    ticket = _load_ticket(actor, project_id, ticket_id, Action.UPDATE_FILE_TICKET)

    if "title" in data:
        title = clean_str(data.get("title"))
        if not title:
            return ServiceResult.bad_request("Title cannot be empty")
        ticket.title = title
    if "description" in data:
        ticket.description = data.get("description")
    if "due_date" in data:
        ticket.due_date = parse_date(data.get("due_date"))
    if "type" in data:
        ticket.ticket_type = _parse_type(data.get("type"))

    if "status" in data:
        new_status = clean_str(data.get("status")).lower()
        if new_status not in _TICKET_STATUSES:
            return ServiceResult.bad_request(f"Invalid file ticket status: {new_status}")
        if new_status != ticket.status:
            if not validate_file_ticket_transition(ticket.status, new_status):
                return ServiceResult.bad_request(
                    f"Cannot change file ticket status from {ticket.status} to {new_status}"
                )
            old_status = ticket.status
            ticket.status = new_status
            log_activity(
                user_id=actor.id, action="StatusChanged", entity_type="FileTicket", entity_id=ticket.id,
                description=f"Changed status of {ticket.ticket_number}",
                old_value=old_status, new_value=new_status,
                project_id=ticket.project_id, file_ticket_id=ticket.id,
            )

    log_activity(
        user_id=actor.id, action="Updated", entity_type="FileTicket", entity_id=ticket.id,
        description=f"Updated file ticket {ticket.ticket_number}",
        project_id=ticket.project_id, file_ticket_id=ticket.id,
    )
    db.session.commit()
    return ServiceResult.success(ticket.to_dict())


@service_operation("file_ticket.transfer")
def transfer_file_ticket(actor_id, project_id, ticket_id, to_user_id, notes=None):
    """Hand the ticket to *to_user_id*; the caller must be able to see it."""
    actor = get_actor(actor_id)
    ticket = _load_ticket(actor, project_id, ticket_id)

    if is_terminal(ticket.status):
        return ServiceResult.bad_request(f"Cannot transfer a {ticket.status} file ticket")

    target = get_scoped_or_none(User, parse_int(to_user_id), company_id=ticket.project.company_id)
    if target is None:
        return ServiceResult.bad_request("Target user not found or not in same company")

    from_user_id = ticket.current_holder_id or actor.id
    transfer = FileTicketTransfer(
        file_ticket_id=ticket.id,
        from_user_id=from_user_id,
        to_user_id=target.id,
        notes=clean_str(notes) or None,
    )
    db.session.add(transfer)

    old_status = ticket.status
    ticket.current_holder_id = target.id
    ticket.status = FileTicketStatus.IN_TRANSIT.value
    db.session.flush()

    log_activity(
        user_id=actor.id, action="Transferred", entity_type="FileTicket", entity_id=ticket.id,
        description=f"Transferred {ticket.ticket_number} to {target.full_name}",
        old_value=old_status, new_value=ticket.status,
        project_id=ticket.project_id, file_ticket_id=ticket.id,
    )
    db.session.commit()
    logger.info("File ticket %s transferred %s -> %s", ticket.ticket_number, from_user_id, target.id)
    return ServiceResult.success(ticket.to_dict())


@service_operation("file_ticket.receive")
def receive_file_ticket(actor_id, project_id, ticket_id):
    """Acknowledge receipt. Works without an open transfer row as well."""
    actor = get_actor(actor_id)
    ticket = _load_ticket(actor, project_id, ticket_id)

    if ticket.current_holder_id != actor.id:
        return ServiceResult.forbidden("Only the current holder can receive this ticket")
    if is_terminal(ticket.status):
        return ServiceResult.bad_request(f"Cannot receive a {ticket.status} file ticket")

    transfer = _open_transfer_to(ticket, actor.id)
    if transfer is not None:
        transfer.received_at = datetime.now(timezone.utc)

    old_status = ticket.status
    ticket.status = FileTicketStatus.RECEIVED.value

    log_activity(
        user_id=actor.id, action="Received", entity_type="FileTicket", entity_id=ticket.id,
        description=f"Received {ticket.ticket_number}",
        old_value=old_status, new_value=ticket.status,
        project_id=ticket.project_id, file_ticket_id=ticket.id,
    )
    db.session.commit()
    return ServiceResult.success(ticket.to_dict())


@service_operation("file_ticket.delete")
def delete_file_ticket(actor_id, project_id, ticket_id):
    actor = get_actor(actor_id)
    ticket = _load_ticket(actor, project_id, ticket_id, Action.DELETE_FILE_TICKET)

    ticket.soft_delete(by_user_id=actor.id)
    log_activity(
        user_id=actor.id, action="Deleted", entity_type="FileTicket", entity_id=ticket.id,
        description=f"Deleted file ticket {ticket.ticket_number}",
        project_id=ticket.project_id, file_ticket_id=ticket.id,
    )
    db.session.commit()
    return ServiceResult.success({"deleted": True, "id": ticket.id})
