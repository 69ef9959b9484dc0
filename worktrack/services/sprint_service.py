"""
Sprint lifecycle.

planning -> active -> completed, forward only. Sprint writes require
Admin/SuperAdmin or an active project membership with role manager/admin.

Deleting a sprint returns every item it held to the backlog; completing
one returns only the unfinished items (anything not in a ``done`` status).
Both happen in the same commit as the sprint change.
"""

from __future__ import annotations

import logging

from worktrack.core.exceptions import ValidationError
from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.project import Project
from worktrack.models.sprint import Sprint, SprintStatus, validate_sprint_transition
from worktrack.models.work_item import WorkItem
from worktrack.models.workflow import CoreStatusType, WorkflowStatus
from worktrack.services.activity_log_service import log_activity
from worktrack.services.authorization_service import Action, authorize, require
from worktrack.services.helpers.scoped_queries import get_scoped
from worktrack.services.identity import get_actor
from worktrack.utils.helpers import clean_str, parse_date

logger = logging.getLogger(__name__)

_SPRINT_STATUSES = {s.value for s in SprintStatus}


def _load_project(actor, project_id, action=Action.VIEW_PROJECT):
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, action, project), project)
    return project


def _load_sprint(project, sprint_id) -> Sprint:
    return get_scoped(Sprint, sprint_id, project_id=project.id, resource="Sprint")


def _check_dates(start_date, end_date) -> None:
    if start_date is None or end_date is None:
        raise ValidationError("Start date and end date are required")
    if end_date < start_date:
        raise ValidationError("End date must be on or after the start date")


def _active_items(sprint):
    return WorkItem.query_active().filter(WorkItem.sprint_id == sprint.id).all()


def _return_to_backlog(items) -> int:
    for item in items:
        item.move_to_backlog()
    return len(items)


def _unfinished_items(sprint):
    done_ids = [
        s.id
        for s in WorkflowStatus.query.filter_by(
            project_id=sprint.project_id, core_type=CoreStatusType.DONE.value
        ).all()
    ]
    return [i for i in _active_items(sprint) if i.status_id not in done_ids]


@service_operation("sprint.list")
def list_sprints(actor_id, project_id, status=None):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    query = Sprint.query_active().filter(Sprint.project_id == project.id)
    if status:
        query = query.filter(Sprint.status == status)
    sprints = query.order_by(Sprint.start_date.desc(), Sprint.id.desc()).all()
    return ServiceResult.success([s.to_dict() for s in sprints])


@service_operation("sprint.get")
def get_sprint(actor_id, project_id, sprint_id, include_items=False):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    sprint = _load_sprint(project, sprint_id)
    data = sprint.to_dict()
    if include_items:
        data["work_items"] = [i.to_dict() for i in _active_items(sprint)]
    return ServiceResult.success(data)


@service_operation("sprint.create")
def create_sprint(actor_id, project_id, data: dict):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id, Action.MANAGE_WORKFLOW)

    name = clean_str(data.get("name"))
    if not name:
        return ServiceResult.bad_request("Sprint name is required")
    start_date = parse_date(data.get("start_date"))
    end_date = parse_date(data.get("end_date"))
    _check_dates(start_date, end_date)

    sprint = Sprint(
        project_id=project.id,
        name=name,
        goal=data.get("goal"),
        start_date=start_date,
        end_date=end_date,
        status=SprintStatus.PLANNING.value,
    )
    db.session.add(sprint)
    db.session.flush()

    log_activity(
        user_id=actor.id, action="Created", entity_type="Sprint", entity_id=sprint.id,
        description=f"Created sprint '{sprint.name}'", project_id=project.id,
    )
    db.session.commit()
    return ServiceResult.created(sprint.to_dict())


@service_operation("sprint.update")
def update_sprint(actor_id, project_id, sprint_id, data: dict):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id, Action.MANAGE_WORKFLOW)
    sprint = _load_sprint(project, sprint_id)

    if "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            return ServiceResult.bad_request("Sprint name cannot be empty")
        sprint.name = name
    if "goal" in data:
        sprint.goal = data.get("goal")
    if "start_date" in data or "end_date" in data:
        start_date = parse_date(data["start_date"]) if "start_date" in data else sprint.start_date
        end_date = parse_date(data["end_date"]) if "end_date" in data else sprint.end_date
        _check_dates(start_date, end_date)
        sprint.start_date, sprint.end_date = start_date, end_date

    if "status" in data and data.get("status") != sprint.status:
        new_status = clean_str(data.get("status")).lower()
        if new_status not in _SPRINT_STATUSES:
            return ServiceResult.bad_request(f"Invalid sprint status: {new_status}")
        if not validate_sprint_transition(sprint.status, new_status):
            return ServiceResult.bad_request(
                f"Cannot change sprint status from {sprint.status} to {new_status}"
            )
        _change_status(actor, project, sprint, new_status)

    log_activity(
        user_id=actor.id, action="Updated", entity_type="Sprint", entity_id=sprint.id,
        description=f"Updated sprint '{sprint.name}'", project_id=project.id,
    )
    db.session.commit()
    return ServiceResult.success(sprint.to_dict())


def _change_status(actor, project, sprint, new_status) -> None:
    old_status = sprint.status
    sprint.status = new_status
    moved = 0
    if new_status == SprintStatus.COMPLETED:
        moved = _return_to_backlog(_unfinished_items(sprint))
    action = "Started" if new_status == SprintStatus.ACTIVE else "Completed"
    log_activity(
        user_id=actor.id, action=action, entity_type="Sprint", entity_id=sprint.id,
        description=f"{action} sprint '{sprint.name}'"
        + (f", {moved} unfinished item(s) returned to backlog" if moved else ""),
        old_value=old_status, new_value=new_status, project_id=project.id,
    )


@service_operation("sprint.start")
def start_sprint(actor_id, project_id, sprint_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id, Action.MANAGE_WORKFLOW)
    sprint = _load_sprint(project, sprint_id)
    if sprint.status != SprintStatus.PLANNING:
        return ServiceResult.bad_request("Only planning sprints can be started")
    _change_status(actor, project, sprint, SprintStatus.ACTIVE.value)
    db.session.commit()
    return ServiceResult.success(sprint.to_dict())


@service_operation("sprint.complete")
def complete_sprint(actor_id, project_id, sprint_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id, Action.MANAGE_WORKFLOW)
    sprint = _load_sprint(project, sprint_id)
    if sprint.status != SprintStatus.ACTIVE:
        return ServiceResult.bad_request("Only active sprints can be completed")
    _change_status(actor, project, sprint, SprintStatus.COMPLETED.value)
    db.session.commit()
    return ServiceResult.success(sprint.to_dict())


@service_operation("sprint.delete")
def delete_sprint(actor_id, project_id, sprint_id):
    """Soft-delete the sprint and return all of its items to the backlog."""
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id, Action.MANAGE_WORKFLOW)
    sprint = _load_sprint(project, sprint_id)

    # deleted items are moved too so none keeps a reference to a dead sprint
    items = WorkItem.query.filter(WorkItem.sprint_id == sprint.id).all()
    moved = _return_to_backlog(items)
    sprint.soft_delete(by_user_id=actor.id)

    log_activity(
        user_id=actor.id, action="Deleted", entity_type="Sprint", entity_id=sprint.id,
        description=f"Deleted sprint '{sprint.name}', {moved} item(s) moved to backlog",
        project_id=project.id,
    )
    db.session.commit()
    logger.info("Sprint %s deleted, %d items moved to backlog", sprint.id, moved)
    return ServiceResult.success({"deleted": True, "id": sprint.id, "moved_to_backlog": moved})
