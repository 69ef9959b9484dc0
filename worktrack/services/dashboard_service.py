"""
Project dashboard metrics.

Aggregates for one project:
  - work item totals (completed / in progress / blocked by core status type)
  - sprint counts
  - file ticket counts (pending = not completed and not lost)
  - distribution by status and by priority
  - per-member workload (open items assigned)
"""

import logging

from sqlalchemy import func

from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.file_ticket import TERMINAL_STATUSES, FileTicket
from worktrack.models.project import Project, ProjectMember
from worktrack.models.sprint import Sprint, SprintStatus
from worktrack.models.user import User
from worktrack.models.work_item import WorkItem
from worktrack.models.workflow import CoreStatusType, WorkflowStatus
from worktrack.services.authorization_service import Action, authorize, require
from worktrack.services.helpers.scoped_queries import get_scoped
from worktrack.services.identity import get_actor

logger = logging.getLogger(__name__)


def _status_counts(project_id):
    rows = (
        db.session.query(WorkflowStatus.id, WorkflowStatus.name, WorkflowStatus.core_type, func.count(WorkItem.id))
        .join(WorkItem, WorkItem.status_id == WorkflowStatus.id)
        .filter(WorkItem.project_id == project_id, WorkItem.deleted_at.is_(None))
        .group_by(WorkflowStatus.id, WorkflowStatus.name, WorkflowStatus.core_type)
        .all()
    )
    return [{"status_id": sid, "name": name, "core_type": core, "count": count} for sid, name, core, count in rows]


def _priority_counts(project_id):
    rows = (
        db.session.query(WorkItem.priority, func.count(WorkItem.id))
        .filter(WorkItem.project_id == project_id, WorkItem.deleted_at.is_(None))
        .group_by(WorkItem.priority)
        .all()
    )
    return {priority: count for priority, count in rows}


def _workload(project_id, done_status_ids):
    members = (
        db.session.query(User)
        .join(ProjectMember, ProjectMember.user_id == User.id)
        .filter(
            ProjectMember.project_id == project_id,
            ProjectMember.deleted_at.is_(None),
            User.deleted_at.is_(None),
        )
        .order_by(User.first_name, User.id)
        .all()
    )
    query = (
        db.session.query(WorkItem.assigned_to_id, func.count(WorkItem.id))
        .filter(
            WorkItem.project_id == project_id,
            WorkItem.deleted_at.is_(None),
            WorkItem.assigned_to_id.isnot(None),
        )
    )
    if done_status_ids:
        query = query.filter(WorkItem.status_id.notin_(done_status_ids))
    open_counts = dict(query.group_by(WorkItem.assigned_to_id).all())
    return [
        {"user_id": m.id, "full_name": m.full_name, "open_items": open_counts.get(m.id, 0)}
        for m in members
    ]


@service_operation("dashboard.project")
def get_project_dashboard(actor_id, project_id):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.VIEW_PROJECT, project), project)

    by_status = _status_counts(project.id)

    def _count_core(core_type):
        return sum(row["count"] for row in by_status if row["core_type"] == core_type.value)

    done_ids = [
        s.id for s in WorkflowStatus.query.filter_by(
            project_id=project.id, core_type=CoreStatusType.DONE.value
        ).all()
    ]

    sprints = Sprint.query_active().filter_by(project_id=project.id)
    tickets = FileTicket.query_active().filter_by(project_id=project.id)
    terminal = [s.value for s in TERMINAL_STATUSES]

    return ServiceResult.success({
        "project": {"id": project.id, "key": project.key, "name": project.name},
        "work_items": {
            "total": sum(row["count"] for row in by_status),
            "completed": _count_core(CoreStatusType.DONE),
            "in_progress": _count_core(CoreStatusType.IN_PROGRESS),
            "blocked": _count_core(CoreStatusType.BLOCKED),
            "backlog": WorkItem.query_active().filter_by(project_id=project.id, is_in_backlog=True).count(),
        },
        "sprints": {
            "total": sprints.count(),
            "active": sprints.filter(Sprint.status == SprintStatus.ACTIVE.value).count(),
        },
        "file_tickets": {
            "total": tickets.count(),
            "pending": tickets.filter(FileTicket.status.notin_(terminal)).count(),
        },
        "by_status": by_status,
        "by_priority": _priority_counts(project.id),
        "workload": _workload(project.id, done_ids),
    })
