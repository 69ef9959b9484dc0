"""
Activity log service: the audit sink and its tenant-scoped queries.

``log_activity`` is fire-and-forget from the caller's point of view: the row
is written inside a SAVEPOINT so a failing insert rolls back only the audit
row, is logged, and never fails the primary operation. The row commits
together with the caller's transaction.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.activity_log import ActivityLog
from worktrack.models.file_ticket import FileTicket
from worktrack.models.project import Project
from worktrack.models.user import User
from worktrack.models.work_item import WorkItem
from worktrack.services.authorization_service import (
    Action,
    authorize,
    is_admin,
    is_manager_or_above,
    require,
)
from worktrack.services.helpers.scoped_queries import get_scoped
from worktrack.services.identity import get_actor

logger = logging.getLogger(__name__)


def log_activity(
    *,
    user_id: int,
    action: str,
    entity_type: str,
    entity_id: int,
    description: str | None = None,
    old_value=None,
    new_value=None,
    project_id: int | None = None,
    work_item_id: int | None = None,
    file_ticket_id: int | None = None,
) -> ActivityLog | None:
    """Append one activity row. Returns the row, or None if the write failed."""
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        old_value=None if old_value is None else str(old_value),
        new_value=None if new_value is None else str(new_value),
        project_id=project_id,
        work_item_id=work_item_id,
        file_ticket_id=file_ticket_id,
    )
    try:
        with db.session.begin_nested():
            db.session.add(entry)
    except SQLAlchemyError:
        logger.warning(
            "Activity log write failed: %s %s/%s by user=%s",
            action, entity_type, entity_id, user_id, exc_info=True,
        )
        return None
    return entry


# ── Queries ──────────────────────────────────────────────────────────────


def _apply_filters(query, *, start=None, end=None, user_id=None, entity_type=None, entity_id=None):
    if start is not None:
        query = query.filter(ActivityLog.timestamp >= start)
    if end is not None:
        query = query.filter(ActivityLog.timestamp <= end)
    if user_id is not None:
        query = query.filter(ActivityLog.user_id == user_id)
    if entity_type:
        query = query.filter(ActivityLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ActivityLog.entity_id == entity_id)
    return query.order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())


def _company_scope(query, company_id):
    """Restrict to entries written by users of *company_id*."""
    return query.join(User, ActivityLog.user_id == User.id).filter(User.company_id == company_id)


def company_activity_query(actor, *, start=None, end=None, user_id=None, project_id=None):
    query = _company_scope(ActivityLog.query, actor.company_id)
    if project_id is not None:
        query = query.filter(ActivityLog.project_id == project_id)
    return _apply_filters(query, start=start, end=end, user_id=user_id)


@service_operation("activity.list_for_company")
def list_for_company(actor_id, *, start=None, end=None, user_id=None, project_id=None,
                     limit=None, offset=0):
    actor = get_actor(actor_id)
    if not is_admin(actor):
        return ServiceResult.forbidden("Only Admin or SuperAdmin can view company activity")
    query = company_activity_query(actor, start=start, end=end, user_id=user_id, project_id=project_id)
    return ServiceResult.success(_page(query, limit, offset))


@service_operation("activity.list_for_project")
def list_for_project(actor_id, project_id, *, start=None, end=None, user_id=None,
                     entity_type=None, entity_id=None, limit=None, offset=0):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.VIEW_PROJECT, project), project)
    query = _apply_filters(
        ActivityLog.query.filter(ActivityLog.project_id == project.id),
        start=start, end=end, user_id=user_id, entity_type=entity_type, entity_id=entity_id,
    )
    return ServiceResult.success(_page(query, limit, offset))


@service_operation("activity.list_for_work_item")
def list_for_work_item(actor_id, project_id, work_item_id):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    item = get_scoped(WorkItem, work_item_id, project_id=project.id, resource="Work item")
    require(authorize(actor, Action.VIEW_WORK_ITEM, item), item)
    rows = _apply_filters(ActivityLog.query.filter(ActivityLog.work_item_id == item.id)).all()
    return ServiceResult.success([r.to_dict() for r in rows])


@service_operation("activity.list_for_file_ticket")
def list_for_file_ticket(actor_id, project_id, file_ticket_id):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    ticket = get_scoped(FileTicket, file_ticket_id, project_id=project.id, resource="File ticket")
    require(authorize(actor, Action.VIEW_FILE_TICKET, ticket), ticket)
    rows = _apply_filters(ActivityLog.query.filter(ActivityLog.file_ticket_id == ticket.id)).all()
    return ServiceResult.success([r.to_dict() for r in rows])


@service_operation("activity.list_for_user")
def list_for_user(actor_id, target_user_id, *, start=None, end=None, limit=None, offset=0):
    """A user's own trail; Managers and above may read trails within their company."""
    actor = get_actor(actor_id)
    target = get_scoped(User, target_user_id, company_id=actor.company_id)
    if target.id != actor.id and not is_manager_or_above(actor):
        return ServiceResult.forbidden("You can only view your own activity")
    query = _apply_filters(ActivityLog.query, start=start, end=end, user_id=target.id)
    return ServiceResult.success(_page(query, limit, offset))


def _page(query, limit, offset):
    total = query.count()
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return {"items": [r.to_dict() for r in query.all()], "total": total}
