"""
Workflow status registry.

Per-project ordered statuses. Core statuses are seeded with the project and
are immutable in name and existence; custom statuses may be renamed and,
when unused, deleted. Writes require Admin/SuperAdmin or an active project
membership with role manager/admin.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from worktrack.core.exceptions import ConflictError, NotFoundError, ValidationError
from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.board import BoardColumn
from worktrack.models.project import Project
from worktrack.models.work_item import WorkItem
from worktrack.models.workflow import (
    CORE_STATUSES,
    DEFAULT_STATUS_COLOR,
    CoreStatusType,
    WorkflowStatus,
)
from worktrack.services.activity_log_service import log_activity
from worktrack.services.authorization_service import Action, authorize, require
from worktrack.services.helpers.scoped_queries import get_scoped
from worktrack.services.identity import get_actor
from worktrack.utils.helpers import clean_str, parse_int

logger = logging.getLogger(__name__)

_DUPLICATE_NAME = "Status name already exists in this project"


def seed_core_statuses(project: Project) -> list[WorkflowStatus]:
    """Create the four core statuses for a new project. Caller commits."""
    statuses = []
    for core in CORE_STATUSES:
        status = WorkflowStatus(
            project_id=project.id,
            name=core["name"],
            color=core["color"],
            order=core["order"],
            is_core=True,
            core_type=core["core_type"].value,
        )
        db.session.add(status)
        statuses.append(status)
    db.session.flush()
    return statuses


def active_statuses(project_id) -> list[WorkflowStatus]:
    return (
        WorkflowStatus.query_active()
        .filter_by(project_id=project_id)
        .order_by(WorkflowStatus.order, WorkflowStatus.id)
        .all()
    )


def default_status(project_id) -> WorkflowStatus | None:
    """The project's ``new`` core status, else the lowest-ordered status."""
    status = status_by_core_type(project_id, CoreStatusType.NEW)
    if status is not None:
        return status
    statuses = active_statuses(project_id)
    return statuses[0] if statuses else None


def status_by_core_type(project_id, core_type) -> WorkflowStatus | None:
    return (
        WorkflowStatus.query_active()
        .filter_by(project_id=project_id, core_type=CoreStatusType(core_type).value)
        .first()
    )


def _name_taken(project_id, name, exclude_id=None) -> bool:
    query = WorkflowStatus.query_active().filter(
        WorkflowStatus.project_id == project_id,
        func.lower(WorkflowStatus.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(WorkflowStatus.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _load_project(actor, project_id):
    return get_scoped(Project, project_id, company_id=actor.company_id)


@service_operation("workflow_status.list")
def list_statuses(actor_id, project_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    require(authorize(actor, Action.VIEW_PROJECT, project), project)
    return ServiceResult.success([s.to_dict() for s in active_statuses(project.id)])


@service_operation("workflow_status.get")
def get_status(actor_id, project_id, status_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    require(authorize(actor, Action.VIEW_PROJECT, project), project)
    status = get_scoped(WorkflowStatus, status_id, project_id=project.id, resource="Status")
    return ServiceResult.success(status.to_dict())


@service_operation("workflow_status.create")
def create_status(actor_id, project_id, data: dict):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    require(authorize(actor, Action.MANAGE_WORKFLOW, project), project)

    name = clean_str(data.get("name"))
    if not name:
        return ServiceResult.bad_request("Status name is required")
    if _name_taken(project.id, name):
        raise ConflictError("WorkflowStatus", "name", name, message=_DUPLICATE_NAME)

    order = parse_int(data.get("order"))
    if order is None:
        current_max = (
            db.session.query(func.max(WorkflowStatus.order))
            .filter(WorkflowStatus.project_id == project.id, WorkflowStatus.deleted_at.is_(None))
            .scalar()
        )
        order = (current_max or 0) + 1

    status = WorkflowStatus(
        project_id=project.id,
        name=name,
        description=data.get("description"),
        color=clean_str(data.get("color")) or DEFAULT_STATUS_COLOR,
        order=order,
        is_core=False,
        core_type=None,
    )
    db.session.add(status)
    db.session.flush()

    log_activity(
        user_id=actor.id, action="Created", entity_type="WorkflowStatus", entity_id=status.id,
        description=f"Created status '{status.name}'", project_id=project.id,
    )
    db.session.commit()
    logger.info("Status %s created in project %s", status.id, project.id)
    return ServiceResult.created(status.to_dict())


@service_operation("workflow_status.update")
def update_status(actor_id, project_id, status_id, data: dict):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    require(authorize(actor, Action.MANAGE_WORKFLOW, project), project)
    status = get_scoped(WorkflowStatus, status_id, project_id=project.id, resource="Status")

    if "name" in data:
        name = clean_str(data.get("name"))
        if name != status.name:
            if status.is_core:
                return ServiceResult.bad_request("Cannot rename core statuses")
            if not name:
                return ServiceResult.bad_request("Status name is required")
            if _name_taken(project.id, name, exclude_id=status.id):
                raise ConflictError("WorkflowStatus", "name", name, message=_DUPLICATE_NAME)
            status.name = name

    if "description" in data:
        status.description = data.get("description")
    if "color" in data:
        status.color = clean_str(data.get("color")) or DEFAULT_STATUS_COLOR
    if "order" in data:
        order = parse_int(data.get("order"))
        if order is None:
            return ServiceResult.bad_request("order must be an integer")
        status.order = order

    log_activity(
        user_id=actor.id, action="Updated", entity_type="WorkflowStatus", entity_id=status.id,
        description=f"Updated status '{status.name}'", project_id=project.id,
    )
    db.session.commit()
    return ServiceResult.success(status.to_dict())


@service_operation("workflow_status.delete")
def delete_status(actor_id, project_id, status_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    require(authorize(actor, Action.MANAGE_WORKFLOW, project), project)
    status = get_scoped(WorkflowStatus, status_id, project_id=project.id, resource="Status")

    if status.is_core:
        return ServiceResult.bad_request("Cannot delete core statuses")
    in_use = WorkItem.query_active().filter_by(status_id=status.id).count()
    if in_use:
        return ServiceResult.bad_request(
            "Cannot delete status with existing work items. Move items first."
        )

    status.soft_delete(by_user_id=actor.id)
    BoardColumn.query.filter_by(status_id=status.id).delete(synchronize_session="fetch")

    log_activity(
        user_id=actor.id, action="Deleted", entity_type="WorkflowStatus", entity_id=status.id,
        description=f"Deleted status '{status.name}'", project_id=project.id,
    )
    db.session.commit()
    return ServiceResult.success({"deleted": True, "id": status.id})


@service_operation("workflow_status.reorder")
def reorder_statuses(actor_id, project_id, status_ids: list):
    """Assign order 1..N following *status_ids*; omitted statuses keep their order."""
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    require(authorize(actor, Action.MANAGE_WORKFLOW, project), project)

    if not isinstance(status_ids, list) or not status_ids:
        raise ValidationError("status_ids must be a non-empty list")
    ids = [parse_int(sid) for sid in status_ids]
    if any(sid is None for sid in ids):
        raise ValidationError("status_ids must contain integers")
    if len(set(ids)) != len(ids):
        raise ValidationError("status_ids must not contain duplicates")

    by_id = {
        s.id: s
        for s in WorkflowStatus.query_active()
        .filter(WorkflowStatus.project_id == project.id, WorkflowStatus.id.in_(ids))
        .all()
    }
    missing = [sid for sid in ids if sid not in by_id]
    if missing:
        raise NotFoundError(resource="Status", resource_id=missing[0])

    for position, sid in enumerate(ids, start=1):
        by_id[sid].order = position

    log_activity(
        user_id=actor.id, action="Reordered", entity_type="Project", entity_id=project.id,
        description="Reordered workflow statuses",
        new_value=",".join(str(sid) for sid in ids), project_id=project.id,
    )
    db.session.commit()
    return ServiceResult.success([s.to_dict() for s in active_statuses(project.id)])
