"""
Work item lifecycle.

State per item: (type, status, sprint | backlog, parent).

- Numbering: ``item_number`` is max+1 over every item of the project,
  deleted ones included, so numbers are never reused.
- Hierarchy: parent must live in the same project and be a legal parent
  type (see ``ALLOWED_CHILDREN``). Re-parenting also rejects cycles.
  ``parent_id = 0`` detaches.
- Status: any status of the same project may follow any other; each change
  is written to the activity log with the old and new names.
- Sprint/backlog: kept mutually exclusive on every write path.
- Deletion: soft delete, children keep their ``parent_id``.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, or_

from worktrack.core.exceptions import ValidationError
from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.project import Project
from worktrack.models.sprint import Sprint, SprintStatus
from worktrack.models.user import SystemRole, User
from worktrack.models.work_item import (
    Priority,
    WorkItem,
    WorkItemType,
    validate_parent_child,
)
from worktrack.models.workflow import WorkflowStatus
from worktrack.services.activity_log_service import log_activity
from worktrack.services.authorization_service import Action, authorize, require
from worktrack.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from worktrack.services.helpers.sequences import insert_with_sequence
from worktrack.services.identity import get_actor
from worktrack.services.workflow_status_service import default_status
from worktrack.utils.helpers import clean_str, parse_date, parse_int

logger = logging.getLogger(__name__)

DETACH_PARENT = 0
_MAX_ANCESTOR_DEPTH = 100
_ITEM_TYPES = {t.value for t in WorkItemType}
_PRIORITIES = {p.value for p in Priority}


# ── Validation helpers ───────────────────────────────────────────────────


def _parse_type(value, default=WorkItemType.TASK.value) -> str:
    item_type = clean_str(value).lower() or default
    if item_type not in _ITEM_TYPES:
        raise ValidationError(f"Invalid work item type: {item_type}")
    return item_type


def _parse_priority(value, default=Priority.MEDIUM.value) -> str:
    priority = clean_str(value).lower() or default
    if priority not in _PRIORITIES:
        raise ValidationError(f"Invalid priority: {priority}")
    return priority


def _parse_hours(value):
    if value is None or value == "":
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Hours must be a number") from None
    if hours < 0:
        raise ValidationError("Hours cannot be negative")
    return hours


def _hierarchy_error(parent_type, child_type) -> ValidationError:
    return ValidationError(
        f"Cannot create {WorkItemType(child_type).name.title()} "
        f"under {WorkItemType(parent_type).name.title()}"
    )


def _resolve_parent(project, parent_id, child_type, item=None) -> WorkItem:
    parent = get_scoped_or_none(WorkItem, parent_id, project_id=project.id)
    if parent is None:
        raise ValidationError("Parent work item not found in this project")
    if not validate_parent_child(parent.item_type, child_type):
        raise _hierarchy_error(parent.item_type, child_type)
    if item is not None:
        _check_no_cycle(item, parent)
    return parent


def _check_no_cycle(item, new_parent) -> None:
    """Walk up from *new_parent*; meeting *item* means a cycle."""
    node = new_parent
    depth = 0
    while node is not None and depth < _MAX_ANCESTOR_DEPTH:
        if node.id == item.id:
            raise ValidationError("Work item cannot be its own ancestor")
        node = db.session.get(WorkItem, node.parent_id) if node.parent_id else None
        depth += 1


def _resolve_status(project, status_id) -> WorkflowStatus:
    status = get_scoped_or_none(WorkflowStatus, parse_int(status_id), project_id=project.id)
    if status is None:
        raise ValidationError("Status does not belong to this project")
    return status


def _resolve_sprint(project, sprint_id) -> Sprint:
    sprint = get_scoped_or_none(Sprint, parse_int(sprint_id), project_id=project.id)
    if sprint is None:
        raise ValidationError("Sprint does not belong to this project")
    if sprint.status == SprintStatus.COMPLETED:
        raise ValidationError("Cannot add work items to a completed sprint")
    return sprint


def _resolve_assignee(project, user_id) -> User:
    user = get_scoped_or_none(User, parse_int(user_id), company_id=project.company_id)
    if user is None:
        raise ValidationError("Assignee not found or not in the same company")
    return user


def _next_item_number(project_id) -> int:
    current = (
        db.session.query(func.max(WorkItem.item_number))
        .filter(WorkItem.project_id == project_id)
        .scalar()
    )
    return (current or 0) + 1


def _load_project(actor, project_id) -> Project:
    return get_scoped(Project, project_id, company_id=actor.company_id)


def _load_item(project, item_id) -> WorkItem:
    return get_scoped(WorkItem, item_id, project_id=project.id, resource="Work item")


# ── Queries ──────────────────────────────────────────────────────────────


@service_operation("work_item.list")
def list_work_items(actor_id, project_id, *, sprint_id=None, backlog_only=False,
                    assigned_to_id=None, parent_id=None, item_type=None):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    require(authorize(actor, Action.VIEW_PROJECT, project), project)

    query = WorkItem.query_active().filter(WorkItem.project_id == project.id)
    if actor.system_role in (SystemRole.MEMBER, SystemRole.QA):
        query = query.filter(or_(WorkItem.created_by_id == actor.id, WorkItem.assigned_to_id == actor.id))
    if sprint_id is not None:
        query = query.filter(WorkItem.sprint_id == sprint_id)
    elif backlog_only:
        query = query.filter(WorkItem.is_in_backlog.is_(True))
    if assigned_to_id is not None:
        query = query.filter(WorkItem.assigned_to_id == assigned_to_id)
    if parent_id is not None:
        query = query.filter(WorkItem.parent_id == parent_id)
    if item_type:
        query = query.filter(WorkItem.item_type == _parse_type(item_type))

    items = query.order_by(WorkItem.created_at.desc(), WorkItem.id.desc()).all()
    return ServiceResult.success([i.to_dict() for i in items])


@service_operation("work_item.get")
def get_work_item(actor_id, project_id, item_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    item = _load_item(project, item_id)
    require(authorize(actor, Action.VIEW_WORK_ITEM, item), item)
    return ServiceResult.success(item.to_dict())


@service_operation("work_item.list_children")
def list_children(actor_id, project_id, item_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    item = _load_item(project, item_id)
    require(authorize(actor, Action.VIEW_WORK_ITEM, item), item)
    children = [c for c in item.active_children() if authorize(actor, Action.VIEW_WORK_ITEM, c).allowed]
    return ServiceResult.success([c.to_dict() for c in children])


# ── Mutations ────────────────────────────────────────────────────────────


@service_operation("work_item.create")
def create_work_item(actor_id, project_id, data: dict):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    require(authorize(actor, Action.CREATE_WORK_ITEM, project), project)

    title = clean_str(data.get("title"))
    if not title:
        return ServiceResult.bad_request("Title is required")
    item_type = _parse_type(data.get("type"))

    parent = None
    if parse_int(data.get("parent_id")):
        parent = _resolve_parent(project, parse_int(data.get("parent_id")), item_type)

    if data.get("status_id") is not None:
        status = _resolve_status(project, data.get("status_id"))
    else:
        status = default_status(project.id)
        if status is None:
            return ServiceResult.bad_request("No workflow statuses configured for this project")

    sprint = _resolve_sprint(project, data["sprint_id"]) if data.get("sprint_id") is not None else None
    assignee = _resolve_assignee(project, data["assigned_to_id"]) if data.get("assigned_to_id") is not None else None

    item = WorkItem(
        project_id=project.id,
        title=title,
        description=data.get("description"),
        item_type=item_type,
        priority=_parse_priority(data.get("priority")),
        due_date=parse_date(data.get("due_date")),
        estimated_hours=_parse_hours(data.get("estimated_hours")),
        status_id=status.id,
        assigned_to_id=assignee.id if assignee else None,
        created_by_id=actor.id,
        parent_id=parent.id if parent else None,
    )
    item.assign_sprint(sprint.id if sprint else None)

    def _assign(obj):
        obj.item_number = _next_item_number(project.id)

    insert_with_sequence(item, _assign, label="Work item")

    log_activity(
        user_id=actor.id, action="Created", entity_type="WorkItem", entity_id=item.id,
        description=f"Created {item.item_type} {project.key}-{item.item_number}: {item.title}",
        project_id=project.id, work_item_id=item.id,
    )
    db.session.commit()
    logger.info("Work item %s-%s created by user %s", project.key, item.item_number, actor.id)
    return ServiceResult.created(item.to_dict())


@service_operation("work_item.update")
def update_work_item(actor_id, project_id, item_id, data: dict):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    item = _load_item(project, item_id)
    require(authorize(actor, Action.UPDATE_WORK_ITEM, item), item)

    changes = []

    if "title" in data:
        title = clean_str(data.get("title"))
        if not title:
            return ServiceResult.bad_request("Title cannot be empty")
        if title != item.title:
            changes.append("title")
            item.title = title
    if "description" in data and data.get("description") != item.description:
        changes.append("description")
        item.description = data.get("description")
    if "priority" in data:
        priority = _parse_priority(data.get("priority"))
        if priority != item.priority:
            changes.append(f"priority: {item.priority} -> {priority}")
            item.priority = priority
    if "due_date" in data:
        item.due_date = parse_date(data.get("due_date"))
        changes.append("due date")
    if "estimated_hours" in data:
        item.estimated_hours = _parse_hours(data.get("estimated_hours"))
        changes.append("estimated hours")
    if "actual_hours" in data:
        item.actual_hours = _parse_hours(data.get("actual_hours"))
        changes.append("actual hours")
    if "queue_order" in data:
        item.queue_order = parse_int(data.get("queue_order"))

    if "type" in data:
        new_type = _parse_type(data.get("type"))
        if new_type != item.item_type:
            _check_type_change(item, new_type)
            changes.append(f"type: {item.item_type} -> {new_type}")
            item.item_type = new_type

    if "assigned_to_id" in data:
        raw = data.get("assigned_to_id")
        new_assignee = _resolve_assignee(project, raw).id if raw is not None else None
        if new_assignee != item.assigned_to_id:
            changes.append("assignee")
            item.assigned_to_id = new_assignee

    if "status_id" in data:
        new_status = _resolve_status(project, data.get("status_id"))
        if new_status.id != item.status_id:
            old_name = item.status.name if item.status else None
            item.status_id = new_status.id
            item.status = new_status
            changes.append(f"status: {old_name} -> {new_status.name}")
            log_activity(
                user_id=actor.id, action="StatusChanged", entity_type="WorkItem", entity_id=item.id,
                description=f"Changed status of {item.display_key}",
                old_value=old_name, new_value=new_status.name,
                project_id=project.id, work_item_id=item.id,
            )

    changes.extend(_apply_sprint_changes(project, item, data))

    if "parent_id" in data:
        raw_parent = parse_int(data.get("parent_id"))
        if raw_parent in (None, DETACH_PARENT):
            if item.parent_id is not None:
                changes.append("detached from parent")
                item.parent_id = None
        elif raw_parent != item.parent_id:
            parent = _resolve_parent(project, raw_parent, item.item_type, item=item)
            changes.append(f"parent: {parent.display_key}")
            item.parent_id = parent.id

    log_activity(
        user_id=actor.id, action="Updated", entity_type="WorkItem", entity_id=item.id,
        description=f"Updated {item.display_key}" + (f": {'; '.join(changes)}" if changes else ""),
        project_id=project.id, work_item_id=item.id,
    )
    db.session.commit()
    return ServiceResult.success(item.to_dict())


def _check_type_change(item, new_type) -> None:
    if item.parent_id:
        parent = db.session.get(WorkItem, item.parent_id)
        if parent is not None and not parent.is_deleted and not validate_parent_child(parent.item_type, new_type):
            raise _hierarchy_error(parent.item_type, new_type)
    for child in item.active_children():
        if not validate_parent_child(new_type, child.item_type):
            raise _hierarchy_error(new_type, child.item_type)


def _apply_sprint_changes(project, item, data) -> list[str]:
    """Apply ``sprint_id`` / ``is_in_backlog`` keeping the pair exclusive."""
    has_sprint = "sprint_id" in data
    has_backlog = "is_in_backlog" in data
    if not has_sprint and not has_backlog:
        return []

    to_backlog = has_backlog and bool(data.get("is_in_backlog"))
    sprint_value = data.get("sprint_id") if has_sprint else None

    if to_backlog and sprint_value is not None:
        raise ValidationError("A work item cannot be in a sprint and in the backlog")
    if has_backlog and not to_backlog and sprint_value is None and (has_sprint or item.sprint_id is None):
        raise ValidationError("A sprint is required to move a work item out of the backlog")

    if has_sprint and sprint_value is not None:
        sprint = _resolve_sprint(project, sprint_value)
        if sprint.id == item.sprint_id:
            return []
        item.assign_sprint(sprint.id)
        return [f"sprint: {sprint.name}"]

    if to_backlog or has_sprint:
        if item.is_in_backlog and item.sprint_id is None:
            return []
        item.move_to_backlog()
        return ["moved to backlog"]

    # is_in_backlog=False while already in a sprint
    return []


@service_operation("work_item.delete")
def delete_work_item(actor_id, project_id, item_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    item = _load_item(project, item_id)
    require(authorize(actor, Action.DELETE_WORK_ITEM, item), item)

    item.soft_delete(by_user_id=actor.id)
    log_activity(
        user_id=actor.id, action="Deleted", entity_type="WorkItem", entity_id=item.id,
        description=f"Deleted {item.display_key}: {item.title}",
        project_id=project.id, work_item_id=item.id,
    )
    db.session.commit()
    return ServiceResult.success({"deleted": True, "id": item.id})
