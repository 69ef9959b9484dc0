"""
User service: company-scoped user management.

Role assignment is guarded by ``can_create_role`` and deletion by
``can_delete_user`` (see authorization_service). Members and QA always
report to a manager in the same company. A SuperAdmin is never deleted;
the role moves with ``transfer_super_admin``. Deleting or demoting a user
never leaves a live project without a manager-class member.
"""

from __future__ import annotations

import logging

from email_validator import EmailNotValidError, validate_email
from flask import current_app
from sqlalchemy import func, or_

from worktrack.core.exceptions import ConflictError, ValidationError
from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.project import Project, ProjectMember
from worktrack.models.user import (
    ROLES_REQUIRING_MANAGER,
    SystemRole,
    User,
    is_valid_system_role,
    system_role_rank,
)
from worktrack.services.activity_log_service import log_activity
from worktrack.services.authorization_service import (
    can_create_role,
    can_delete_user,
    is_admin,
    is_manager_or_above,
    is_super_admin,
)
from worktrack.services.helpers.memberships import ensure_user_can_drop_to, ensure_user_can_leave_projects
from worktrack.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from worktrack.services.identity import get_actor
from worktrack.utils.crypto import hash_password
from worktrack.utils.helpers import clean_str, parse_int

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
PROFILE_FIELDS = ("first_name", "last_name", "phone")
_NEEDS_MANAGER = "Members and QA users must be assigned to a manager"


def normalize_email(value) -> str:
    """Validated, lower-cased email; empty input returns ''."""
    email = clean_str(value)
    if not email:
        return ""
    try:
        valid = validate_email(
            email,
            check_deliverability=False,
            test_environment=current_app.config.get("EMAIL_TEST_ENVIRONMENT", False),
        )
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid email: {exc}") from exc
    return valid.normalized.lower()


def _email_taken(company_id, email, exclude_id=None) -> bool:
    # the unique constraint covers soft-deleted rows too
    query = User.query.filter(User.company_id == company_id, func.lower(User.email) == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _parse_role(value) -> str:
    role = clean_str(value).lower()
    if not is_valid_system_role(role):
        raise ValidationError(f"Invalid role: {role or '(empty)'}")
    return role


def _resolve_manager(company_id, manager_id) -> User:
    manager = get_scoped_or_none(User, parse_int(manager_id), company_id=company_id)
    if manager is None or not is_manager_or_above(manager):
        raise ValidationError("Manager not found or does not hold a Manager role")
    return manager


def _company_users(actor):
    return User.query_active().filter(User.company_id == actor.company_id)


# ── Queries ──────────────────────────────────────────────────────────────


@service_operation("user.list")
def list_users(actor_id, search: str | None = None, unassigned: bool = False):
    """Users of the actor's company.

    *unassigned* keeps only users without an active membership in a live
    project.
    """
    actor = get_actor(actor_id)
    query = _company_users(actor)

    term = clean_str(search)
    if term:
        like = f"%{term.lower()}%"
        query = query.filter(
            or_(
                func.lower(User.email).like(like),
                func.lower(User.first_name).like(like),
                func.lower(User.last_name).like(like),
            )
        )
    if unassigned:
        assigned = (
            db.session.query(ProjectMember.user_id)
            .join(Project, Project.id == ProjectMember.project_id)
            .filter(ProjectMember.deleted_at.is_(None), Project.deleted_at.is_(None))
        )
        query = query.filter(User.id.notin_(assigned))

    users = query.order_by(User.first_name, User.last_name, User.id).all()
    return ServiceResult.success([u.to_dict() for u in users])


@service_operation("user.get")
def get_user(actor_id, user_id):
    actor = get_actor(actor_id)
    user = get_scoped(User, user_id, company_id=actor.company_id)
    return ServiceResult.success(user.to_dict())


@service_operation("user.me")
def get_me(actor_id):
    actor = get_actor(actor_id)
    return ServiceResult.success(actor.to_dict())


@service_operation("user.team")
def get_team_members(actor_id):
    """Direct reports of the actor."""
    actor = get_actor(actor_id)
    team = _company_users(actor).filter(User.manager_id == actor.id).order_by(User.first_name, User.id).all()
    return ServiceResult.success([u.to_dict() for u in team])


@service_operation("user.managers")
def list_managers(actor_id):
    actor = get_actor(actor_id)
    roles = [r.value for r in SystemRole if system_role_rank(r) >= system_role_rank(SystemRole.MANAGER)]
    managers = _company_users(actor).filter(User.system_role.in_(roles)).order_by(User.first_name, User.id).all()
    return ServiceResult.success([u.to_dict() for u in managers])


@service_operation("user.with_projects")
def get_user_with_projects(actor_id, user_id):
    actor = get_actor(actor_id)
    user = get_scoped(User, user_id, company_id=actor.company_id)
    rows = (
        db.session.query(ProjectMember, Project)
        .join(Project, Project.id == ProjectMember.project_id)
        .filter(
            ProjectMember.user_id == user.id,
            ProjectMember.deleted_at.is_(None),
            Project.deleted_at.is_(None),
        )
        .order_by(Project.name)
        .all()
    )
    data = user.to_dict()
    data["projects"] = [
        {"id": p.id, "name": p.name, "key": p.key, "role": m.role, "joined_at": m.joined_at.isoformat() if m.joined_at else None}
        for m, p in rows
    ]
    return ServiceResult.success(data)


# ── Mutations ────────────────────────────────────────────────────────────


@service_operation("user.create")
def create_user(actor_id, data: dict):
    actor = get_actor(actor_id)
    role = _parse_role(data.get("system_role") or data.get("role") or SystemRole.MEMBER.value)

    if not can_create_role(actor.system_role, role):
        logger.warning("User %s (%s) tried to create a %s user", actor.id, actor.system_role, role)
        return ServiceResult.forbidden(f"You don't have permission to create {role} users")

    email = normalize_email(data.get("email"))
    password = data.get("password") or ""
    if not email:
        return ServiceResult.bad_request("Email is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        return ServiceResult.bad_request(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if _email_taken(actor.company_id, email):
        raise ConflictError("User", "email", email, message="Email already exists in this company")

    manager = None
    if data.get("manager_id") is not None:
        manager = _resolve_manager(actor.company_id, data.get("manager_id"))
    elif SystemRole(role) in ROLES_REQUIRING_MANAGER:
        return ServiceResult.bad_request(_NEEDS_MANAGER)

    user = User(
        company_id=actor.company_id,
        email=email,
        password_hash=hash_password(password),
        first_name=clean_str(data.get("first_name")),
        last_name=clean_str(data.get("last_name")),
        phone=clean_str(data.get("phone")) or None,
        system_role=role,
        manager_id=manager.id if manager else None,
    )
    db.session.add(user)
    db.session.flush()

    log_activity(
        user_id=actor.id, action="Created", entity_type="User", entity_id=user.id,
        description=f"Created {role} user {user.email}", new_value=role,
    )
    db.session.commit()
    logger.info("User %s created by %s with role %s", user.id, actor.id, role)
    return ServiceResult.created(user.to_dict())


@service_operation("user.update")
def update_user(actor_id, user_id, data: dict):
    """Update a user.

    Self-updates are limited to profile fields and password. Changing
    someone else needs Manager or above; role changes also pass the
    role-assignment guard for both the current and the new role.
    """
    actor = get_actor(actor_id)
    user = get_scoped(User, user_id, company_id=actor.company_id)
    is_self = user.id == actor.id

    if not is_self and not is_manager_or_above(actor):
        return ServiceResult.forbidden("You can only update your own profile")
    if not is_self and not is_super_admin(actor) and user.rank >= actor.rank:
        return ServiceResult.forbidden("You cannot modify a user with an equal or higher role")

    changes = []
    for field in PROFILE_FIELDS:
        if field in data:
            value = clean_str(data.get(field)) or (None if field == "phone" else "")
            if value != getattr(user, field):
                setattr(user, field, value)
                changes.append(field)

    if data.get("password"):
        if len(data["password"]) < MIN_PASSWORD_LENGTH:
            return ServiceResult.bad_request(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        user.password_hash = hash_password(data["password"])
        changes.append("password")

    if "email" in data:
        email = normalize_email(data.get("email"))
        if not email:
            return ServiceResult.bad_request("Email cannot be empty")
        if email != user.email:
            if _email_taken(user.company_id, email, exclude_id=user.id):
                raise ConflictError("User", "email", email, message="Email already exists in this company")
            user.email = email
            changes.append("email")

    old_role = user.system_role
    if "system_role" in data or "role" in data:
        new_role = _parse_role(data.get("system_role") or data.get("role"))
        if new_role != user.system_role:
            if is_self:
                return ServiceResult.forbidden("You cannot change your own role")
            if not can_create_role(actor.system_role, new_role):
                return ServiceResult.forbidden(f"You don't have permission to create {new_role} users")
            ensure_user_can_drop_to(user, new_role)
            user.system_role = new_role
            changes.append(f"role: {old_role} -> {new_role}")

    if "manager_id" in data:
        if is_self:
            return ServiceResult.forbidden("You cannot change your own manager")
        raw = data.get("manager_id")
        if raw is None:
            user.manager_id = None
        else:
            manager = _resolve_manager(user.company_id, raw)
            if manager.id == user.id:
                return ServiceResult.bad_request("A user cannot be their own manager")
            user.manager_id = manager.id
        changes.append("manager")

    if SystemRole(user.system_role) in ROLES_REQUIRING_MANAGER and user.manager_id is None:
        return ServiceResult.bad_request(_NEEDS_MANAGER)

    log_activity(
        user_id=actor.id, action="Updated", entity_type="User", entity_id=user.id,
        description=f"Updated user {user.email}" + (f": {'; '.join(changes)}" if changes else ""),
        old_value=old_role if old_role != user.system_role else None,
        new_value=user.system_role if old_role != user.system_role else None,
    )
    db.session.commit()
    return ServiceResult.success(user.to_dict())


@service_operation("user.delete")
def delete_user(actor_id, user_id):
    actor = get_actor(actor_id)
    user = get_scoped(User, user_id, company_id=actor.company_id)

    if user.system_role == SystemRole.SUPER_ADMIN:
        return ServiceResult.bad_request("Super Admin cannot be deleted")
    if user.id == actor.id:
        return ServiceResult.bad_request("You cannot delete yourself")
    if not can_delete_user(actor.system_role, user.system_role):
        logger.warning("User %s (%s) tried to delete %s user %s",
                       actor.id, actor.system_role, user.system_role, user.id)
        return ServiceResult.forbidden(f"You don't have permission to delete {user.system_role} users")

    ensure_user_can_leave_projects(user)
    user.soft_delete(by_user_id=actor.id)
    for membership in ProjectMember.query_active().filter_by(user_id=user.id).all():
        membership.soft_delete(by_user_id=actor.id)

    log_activity(
        user_id=actor.id, action="Deleted", entity_type="User", entity_id=user.id,
        description=f"Deleted user {user.email}",
    )
    db.session.commit()
    return ServiceResult.success({"deleted": True, "id": user.id})


@service_operation("user.transfer_super_admin")
def transfer_super_admin(actor_id, target_user_id):
    """Hand the SuperAdmin role to an Admin of the same company.

    The actor is demoted to Admin in the same commit, so the company always
    has exactly one SuperAdmin.
    """
    actor = get_actor(actor_id)
    if not is_super_admin(actor):
        return ServiceResult.forbidden("Only the Super Admin can transfer the Super Admin role")

    target = get_scoped_or_none(User, parse_int(target_user_id), company_id=actor.company_id)
    if target is None:
        return ServiceResult.not_found("User not found")
    if target.id == actor.id:
        return ServiceResult.bad_request("You already hold the Super Admin role")
    if not is_admin(target) or target.system_role != SystemRole.ADMIN:
        return ServiceResult.bad_request("Super Admin can only be transferred to an Admin")

    actor.system_role = SystemRole.ADMIN.value
    target.system_role = SystemRole.SUPER_ADMIN.value

    log_activity(
        user_id=actor.id, action="SuperAdminTransferred", entity_type="User", entity_id=target.id,
        description=f"Transferred Super Admin role to {target.email}",
        old_value=str(actor.id), new_value=str(target.id),
    )
    db.session.commit()
    logger.warning("Super Admin role transferred from user %s to user %s", actor.id, target.id)
    return ServiceResult.success({"previous": actor.to_dict(), "current": target.to_dict()})
