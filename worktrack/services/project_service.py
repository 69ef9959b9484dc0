"""
Project service: project CRUD and membership.

Project creation is one transaction: the project row, its four core
statuses, the default board and the manager's membership commit together
or not at all.

Membership invariant: a project always keeps at least one active member who
is manager-class (project role manager/admin, or system role manager or
above). Removals and demotions that would break it are rejected.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_

from worktrack.core.exceptions import ConflictError, ValidationError
from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.project import (
    Project,
    ProjectMember,
    ProjectRole,
    is_valid_project_role,
    project_role_rank,
)
from worktrack.models.user import SystemRole, User
from worktrack.services.activity_log_service import log_activity
from worktrack.services.authorization_service import (
    Action,
    authorize,
    is_admin,
    is_manager_or_above,
    require,
)
from worktrack.services.board_service import create_default_board
from worktrack.services.helpers.memberships import ensure_not_last_manager
from worktrack.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from worktrack.services.identity import get_actor
from worktrack.services.workflow_status_service import seed_core_statuses
from worktrack.utils.helpers import clean_str, parse_date, parse_int

logger = logging.getLogger(__name__)

_DUPLICATE_KEY = "Project key already exists in this company"


def _key_taken(company_id, key, exclude_id=None) -> bool:
    query = Project.query_active().filter(Project.company_id == company_id, Project.key == key)
    if exclude_id is not None:
        query = query.filter(Project.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _normalize_key(value) -> str:
    return clean_str(value).upper()


def _parse_role(value, default=ProjectRole.MEMBER.value) -> str:
    role = clean_str(value).lower() or default
    if not is_valid_project_role(role):
        raise ValidationError(f"Invalid project role: {role}")
    return role


# ── Projects ─────────────────────────────────────────────────────────────


@service_operation("project.create")
def create_project(actor_id, data: dict):
    """Create a project with its core statuses, default board and manager."""
    actor = get_actor(actor_id)
    if not is_admin(actor):
        return ServiceResult.forbidden("Only Admin or SuperAdmin can create projects")

    name = clean_str(data.get("name"))
    key = _normalize_key(data.get("key"))
    if not name:
        return ServiceResult.bad_request("Project name is required")
    if not key:
        return ServiceResult.bad_request("Project key is required")
    if len(key) > 10:
        return ServiceResult.bad_request("Project key must be at most 10 characters")

    manager = get_scoped_or_none(User, parse_int(data.get("manager_id")), company_id=actor.company_id)
    if manager is None or not is_manager_or_above(manager):
        return ServiceResult.bad_request("A Manager or Admin must be assigned to the project")

    if _key_taken(actor.company_id, key):
        raise ConflictError("Project", "key", key, message=_DUPLICATE_KEY)

    project = Project(
        company_id=actor.company_id,
        name=name,
        key=key,
        description=data.get("description"),
        start_date=parse_date(data.get("start_date")),
        end_date=parse_date(data.get("end_date")),
        is_active=True,
    )
    db.session.add(project)
    db.session.flush()

    statuses = seed_core_statuses(project)
    create_default_board(project, statuses)
    db.session.add(ProjectMember(project_id=project.id, user_id=manager.id, role=ProjectRole.MANAGER.value))
    db.session.flush()

    log_activity(
        user_id=actor.id, action="Created", entity_type="Project", entity_id=project.id,
        description=f"Created project {project.key} - {project.name}", project_id=project.id,
    )
    db.session.commit()
    logger.info("Project %s (%s) created by user %s", project.id, project.key, actor.id)
    return ServiceResult.created(project.to_dict())


@service_operation("project.list")
def list_projects(actor_id):
    """Projects visible in the actor's project list.

    Admin/SuperAdmin: every project of the company. Manager: memberships plus
    projects of direct reports. Member/QA: memberships plus the manager's
    memberships.
    """
    actor = get_actor(actor_id)
    query = Project.query_active().filter(Project.company_id == actor.company_id)

    if not is_admin(actor):
        user_ids = [actor.id]
        if is_manager_or_above(actor):
            user_ids += [
                uid for (uid,) in db.session.query(User.id)
                .filter(User.manager_id == actor.id, User.deleted_at.is_(None))
                .all()
            ]
        elif actor.manager_id is not None:
            user_ids.append(actor.manager_id)
        member_project_ids = (
            db.session.query(ProjectMember.project_id)
            .filter(ProjectMember.user_id.in_(user_ids), ProjectMember.deleted_at.is_(None))
        )
        query = query.filter(Project.id.in_(member_project_ids))

    projects = query.order_by(Project.name).all()
    return ServiceResult.success([p.to_dict() for p in projects])


@service_operation("project.get")
def get_project(actor_id, project_id):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.VIEW_PROJECT, project), project)
    return ServiceResult.success(project.to_dict(include_members=True))


@service_operation("project.update")
def update_project(actor_id, project_id, data: dict):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.UPDATE_PROJECT, project), project)

    changes = []
    if "key" in data:
        key = _normalize_key(data.get("key"))
        if not key:
            return ServiceResult.bad_request("Project key cannot be empty")
        if key != project.key:
            if _key_taken(project.company_id, key, exclude_id=project.id):
                raise ConflictError("Project", "key", key, message=_DUPLICATE_KEY)
            changes.append(f"key: {project.key} -> {key}")
            project.key = key
    if "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            return ServiceResult.bad_request("Project name cannot be empty")
        if name != project.name:
            changes.append("name")
            project.name = name
    if "description" in data:
        project.description = data.get("description")
    if "start_date" in data:
        project.start_date = parse_date(data.get("start_date"))
    if "end_date" in data:
        project.end_date = parse_date(data.get("end_date"))
    if "is_active" in data:
        project.is_active = bool(data.get("is_active"))
        changes.append(f"is_active: {project.is_active}")

    log_activity(
        user_id=actor.id, action="Updated", entity_type="Project", entity_id=project.id,
        description="Updated project" + (f" ({', '.join(changes)})" if changes else ""),
        project_id=project.id,
    )
    db.session.commit()
    return ServiceResult.success(project.to_dict())


@service_operation("project.delete")
def delete_project(actor_id, project_id):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.DELETE_PROJECT, project), project)

    project.soft_delete(by_user_id=actor.id)
    log_activity(
        user_id=actor.id, action="Deleted", entity_type="Project", entity_id=project.id,
        description=f"Deleted project {project.key}", project_id=project.id,
    )
    db.session.commit()
    logger.info("Project %s soft-deleted by user %s", project.id, actor.id)
    return ServiceResult.success({"deleted": True, "id": project.id})


# ── Members ──────────────────────────────────────────────────────────────


@service_operation("project.list_members")
def list_members(actor_id, project_id):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.VIEW_PROJECT, project), project)
    return ServiceResult.success([m.to_dict() for m in project.active_members()])


@service_operation("project.list_available_users")
def list_available_users(actor_id, project_id, search: str | None = None):
    """Company users who are not active members of the project."""
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.MANAGE_MEMBERS, project), project)

    member_ids = (
        db.session.query(ProjectMember.user_id)
        .filter(ProjectMember.project_id == project.id, ProjectMember.deleted_at.is_(None))
    )
    query = User.query_active().filter(
        User.company_id == project.company_id,
        User.id.notin_(member_ids),
        User.system_role != SystemRole.SUPER_ADMIN.value,
    )
    term = clean_str(search)
    if term:
        like = f"%{term}%"
        query = query.filter(or_(User.email.ilike(like), User.first_name.ilike(like), User.last_name.ilike(like)))
    users = query.order_by(User.first_name, User.last_name).all()
    return ServiceResult.success([u.to_dict() for u in users])


def _add_or_restore_member(project, user, role, actor):
    """Returns the membership row, or None if the user is already active."""
    existing = ProjectMember.query.filter_by(project_id=project.id, user_id=user.id).first()
    if existing is not None and not existing.is_deleted:
        return None
    if existing is not None:
        existing.restore()
        existing.role = role
        member = existing
    else:
        member = ProjectMember(project_id=project.id, user_id=user.id, role=role)
        db.session.add(member)
    db.session.flush()
    log_activity(
        user_id=actor.id, action="MemberAdded", entity_type="ProjectMember", entity_id=member.id,
        description=f"Added {user.full_name or user.email} as {role}",
        new_value=role, project_id=project.id,
    )
    return member


@service_operation("project.add_member")
def add_member(actor_id, project_id, user_id, role=None):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.MANAGE_MEMBERS, project), project)

    role = _parse_role(role)
    user = get_scoped_or_none(User, parse_int(user_id), company_id=project.company_id)
    if user is None:
        return ServiceResult.bad_request("User not found or not in the same company")

    member = _add_or_restore_member(project, user, role, actor)
    if member is None:
        return ServiceResult.bad_request("User is already a member of this project")
    db.session.commit()
    return ServiceResult.created(member.to_dict())


@service_operation("project.bulk_add_members")
def bulk_add_members(actor_id, project_id, user_ids: list, role=None):
    """Add several users; unknown, foreign or already-active users are skipped."""
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.MANAGE_MEMBERS, project), project)

    role = _parse_role(role)
    added = 0
    for raw_id in dict.fromkeys(user_ids or []):
        user = get_scoped_or_none(User, parse_int(raw_id), company_id=project.company_id)
        if user is None:
            logger.debug("bulk_add_members: skipping user %r for project %s", raw_id, project.id)
            continue
        if _add_or_restore_member(project, user, role, actor) is not None:
            added += 1
    db.session.commit()
    return ServiceResult.success({"added": added})


@service_operation("project.update_member")
def update_member(actor_id, project_id, member_id, role):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.MANAGE_MEMBERS, project), project)
    member = get_scoped(ProjectMember, member_id, project_id=project.id, resource="Member")

    new_role = _parse_role(role)
    old_role = member.role
    if new_role != old_role:
        _ensure_not_last_manager_after_change(member, new_role)
        member.role = new_role
        log_activity(
            user_id=actor.id, action="MemberUpdated", entity_type="ProjectMember", entity_id=member.id,
            description=f"Changed role of {member.user.full_name or member.user.email}",
            old_value=old_role, new_value=new_role, project_id=project.id,
        )
    db.session.commit()
    return ServiceResult.success(member.to_dict())


def _ensure_not_last_manager_after_change(member, new_role):
    if not member.is_manager_class:
        return
    keeps_class = (
        project_role_rank(new_role) >= project_role_rank(ProjectRole.MANAGER)
        or is_manager_or_above(member.user)
    )
    if not keeps_class:
        ensure_not_last_manager(member)


@service_operation("project.remove_member")
def remove_member(actor_id, project_id, member_id):
    actor = get_actor(actor_id)
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.MANAGE_MEMBERS, project), project)
    member = get_scoped(ProjectMember, member_id, project_id=project.id, resource="Member")

    ensure_not_last_manager(member)
    member.soft_delete(by_user_id=actor.id)
    log_activity(
        user_id=actor.id, action="MemberRemoved", entity_type="ProjectMember", entity_id=member.id,
        description=f"Removed {member.user.full_name or member.user.email} from project",
        old_value=member.role, project_id=project.id,
    )
    db.session.commit()
    return ServiceResult.success({"deleted": True, "id": member.id})
