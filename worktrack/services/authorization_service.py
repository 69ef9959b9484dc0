"""
Authorization engine.

Decides whether an actor may perform an action on a target entity. Every
decision is re-derived from the database on each call (role, company,
membership, ownership); there is no ACL cache, so role and membership
changes take effect immediately.

Precedence:
  1. Tenancy: a target outside the actor's company is reported as NOT_FOUND
     so its existence does not leak. SuperAdmin does not bypass tenancy.
  2. Admin / SuperAdmin: allowed on everything in their company, and bypass
     the project-membership requirement on project-scoped writes.
  3. Manager: writes need explicit project membership; reads are allowed
     anywhere in the company.
  4. Member / QA: work items are visible only when created by or assigned
     to the actor. Members never create or delete work items; QA deletes
     only items they created.
  5. Indirect access (one hop): a Member/QA sees the projects their direct
     manager is a member of.

Role-assignment guards (``can_create_role`` / ``can_delete_user``) live here
as well so user_service and the HTTP layer share one definition.

Usage:
    decision = authorize(actor, Action.DELETE_WORK_ITEM, item)
    if not decision.allowed:
        ...
    require(authorize(actor, Action.MANAGE_WORKFLOW, project))  # raises
"""

import logging
from dataclasses import dataclass
from enum import Enum

from worktrack.core.exceptions import ForbiddenError, NotFoundError
from worktrack.core.results import ResultKind
from worktrack.models.company import Company
from worktrack.models.project import Project, ProjectMember, ProjectRole, project_role_rank
from worktrack.models.user import SystemRole, User, system_role_rank

logger = logging.getLogger(__name__)

_MANAGER = system_role_rank(SystemRole.MANAGER)
_ADMIN = system_role_rank(SystemRole.ADMIN)

# Display names used in NOT_FOUND messages.
_RESOURCE_LABELS = {
    "Company": "Company",
    "User": "User",
    "Project": "Project",
    "WorkItem": "Work item",
    "Sprint": "Sprint",
    "WorkflowStatus": "Status",
    "Board": "Board",
    "FileTicket": "File ticket",
    "Comment": "Comment",
}


class Action(str, Enum):
    VIEW_COMPANY = "company.view"
    UPDATE_COMPANY = "company.update"
    VIEW_USER = "user.view"
    VIEW_PROJECT = "project.view"
    UPDATE_PROJECT = "project.update"
    DELETE_PROJECT = "project.delete"
    MANAGE_MEMBERS = "project.members"
    MANAGE_WORKFLOW = "project.workflow"  # statuses, sprints, default board
    CREATE_WORK_ITEM = "work_item.create"
    VIEW_WORK_ITEM = "work_item.view"
    UPDATE_WORK_ITEM = "work_item.update"
    DELETE_WORK_ITEM = "work_item.delete"
    CREATE_FILE_TICKET = "file_ticket.create"
    VIEW_FILE_TICKET = "file_ticket.view"
    UPDATE_FILE_TICKET = "file_ticket.update"
    DELETE_FILE_TICKET = "file_ticket.delete"


@dataclass(frozen=True)
class Decision:
    """ALLOW, or DENY with a reason and the result kind to report."""

    allowed: bool
    reason: str | None = None
    kind: ResultKind | None = None


ALLOW = Decision(True)


def deny(reason: str = "Access denied") -> Decision:
    return Decision(False, reason, ResultKind.FORBIDDEN)


def hide(target) -> Decision:
    label = _RESOURCE_LABELS.get(type(target).__name__, type(target).__name__)
    return Decision(False, f"{label} not found", ResultKind.NOT_FOUND)


def require(decision: Decision, target=None) -> None:
    """Raise the exception matching a denied decision."""
    if decision.allowed:
        return
    if decision.kind == ResultKind.NOT_FOUND:
        label = _RESOURCE_LABELS.get(type(target).__name__, "Resource") if target is not None else "Resource"
        raise NotFoundError(resource=label, resource_id=getattr(target, "id", None))
    raise ForbiddenError(decision.reason or "Access denied")


# ── Role helpers ─────────────────────────────────────────────────────────


def is_admin(actor: User) -> bool:
    """Admin or SuperAdmin."""
    return actor.rank >= _ADMIN


def is_super_admin(actor: User) -> bool:
    return actor.system_role == SystemRole.SUPER_ADMIN


def is_manager_or_above(actor: User) -> bool:
    return actor.rank >= _MANAGER


def can_create_role(creator_role, target_role) -> bool:
    """Whether a user with *creator_role* may grant *target_role*.

    SuperAdmin grants anything except SuperAdmin; Admin grants up to
    Manager; Manager grants Member and QA; nobody else grants anything.
    """
    creator = SystemRole(creator_role)
    target_rank = system_role_rank(target_role)
    if creator == SystemRole.SUPER_ADMIN:
        return SystemRole(target_role) != SystemRole.SUPER_ADMIN
    if creator == SystemRole.ADMIN:
        return target_rank <= _MANAGER
    if creator == SystemRole.MANAGER:
        return target_rank <= system_role_rank(SystemRole.QA)
    return False


def can_delete_user(deleter_role, target_role) -> bool:
    """Whether a user with *deleter_role* may delete a user holding *target_role*.

    A SuperAdmin is never deletable (only transferable).
    """
    if SystemRole(target_role) == SystemRole.SUPER_ADMIN:
        return False
    deleter = SystemRole(deleter_role)
    if deleter == SystemRole.SUPER_ADMIN:
        return True
    if deleter in (SystemRole.ADMIN, SystemRole.MANAGER):
        return system_role_rank(target_role) < system_role_rank(deleter)
    return False


# ── Tenancy and membership ───────────────────────────────────────────────


def same_company(actor: User, company_id) -> bool:
    return company_id is not None and actor.company_id == company_id


def company_id_of(target):
    if isinstance(target, Company):
        return target.id
    if isinstance(target, (User, Project)):
        return target.company_id
    project = project_of(target)
    return project.company_id if project is not None else None


def project_of(target):
    if isinstance(target, Project):
        return target
    project = getattr(target, "project", None)
    if project is None and getattr(target, "work_item", None) is not None:
        project = target.work_item.project
    return project


def get_membership(user_id, project_id):
    """Return the active ProjectMember row for (project, user), or None."""
    if user_id is None:
        return None
    return (
        ProjectMember.query_active()
        .filter_by(project_id=project_id, user_id=user_id)
        .first()
    )


def is_project_member(user_id, project_id) -> bool:
    return get_membership(user_id, project_id) is not None


def can_access_project(actor: User, project: Project) -> bool:
    """Read access to a project and its contents."""
    if project is None or project.is_deleted or not same_company(actor, project.company_id):
        return False
    if is_manager_or_above(actor):
        return True
    if is_project_member(actor.id, project.id):
        return True
    return actor.manager_id is not None and is_project_member(actor.manager_id, project.id)


def can_administer_project(actor: User, project: Project) -> bool:
    """Project settings and membership: Admin+, or a Manager who is a member."""
    if not same_company(actor, project.company_id):
        return False
    if is_admin(actor):
        return True
    return is_manager_or_above(actor) and is_project_member(actor.id, project.id)


def can_manage_project(actor: User, project: Project) -> bool:
    """Workflow writes (statuses, sprints, default board).

    Admin+ in the company, or an active member holding project role
    manager or admin.
    """
    if not same_company(actor, project.company_id):
        return False
    if is_admin(actor):
        return True
    membership = get_membership(actor.id, project.id)
    return membership is not None and membership.rank >= project_role_rank(ProjectRole.MANAGER)


def can_contribute_to_project(actor: User, project: Project) -> bool:
    """Create content in a project: Admin+, explicit members, or indirect access
    for Member/QA. A Manager's company-wide read access does not extend to writes."""
    if not same_company(actor, project.company_id):
        return False
    if is_admin(actor):
        return True
    if is_project_member(actor.id, project.id):
        return True
    if is_manager_or_above(actor):
        return False
    return actor.manager_id is not None and is_project_member(actor.manager_id, project.id)


# ── Work items ───────────────────────────────────────────────────────────


def can_view_work_item(actor: User, item) -> bool:
    project = item.project
    if not same_company(actor, project.company_id):
        return False
    if is_manager_or_above(actor):
        return True
    return actor.id in (item.created_by_id, item.assigned_to_id)


def can_update_work_item(actor: User, item) -> bool:
    if not can_view_work_item(actor, item):
        return False
    if is_admin(actor):
        return True
    if is_manager_or_above(actor):
        return is_project_member(actor.id, item.project_id)
    return True


def can_create_work_item(actor: User) -> bool:
    return actor.system_role != SystemRole.MEMBER


def can_delete_work_item(actor: User, item) -> bool:
    if actor.system_role == SystemRole.MEMBER:
        return False
    if actor.system_role == SystemRole.QA:
        return item.created_by_id == actor.id
    return can_update_work_item(actor, item)


# ── Engine ───────────────────────────────────────────────────────────────


def _check_work_item_create(actor, project):
    if not can_create_work_item(actor):
        return deny("Members cannot create work items")
    if not can_contribute_to_project(actor, project):
        return deny()
    return ALLOW


def _check_work_item_delete(actor, item):
    if actor.system_role == SystemRole.MEMBER:
        return deny("Members cannot delete work items")
    if actor.system_role == SystemRole.QA and item.created_by_id != actor.id:
        return deny("QA users can only delete work items they created")
    return ALLOW if can_delete_work_item(actor, item) else deny()


def _check_file_ticket_write(actor, ticket):
    if not can_access_project(actor, ticket.project):
        return deny()
    if actor.id in (ticket.created_by_id, ticket.current_holder_id):
        return ALLOW
    return ALLOW if can_manage_project(actor, ticket.project) else deny()


def _check_file_ticket_delete(actor, ticket):
    if not can_access_project(actor, ticket.project):
        return deny()
    if actor.id == ticket.created_by_id or can_manage_project(actor, ticket.project):
        return ALLOW
    return deny("Only the creator or a project manager can delete this file ticket")


def _bool_rule(predicate, reason="Access denied"):
    return lambda actor, target: ALLOW if predicate(actor, target) else deny(reason)


_RULES = {
    Action.VIEW_COMPANY: _bool_rule(lambda a, c: True),
    Action.UPDATE_COMPANY: _bool_rule(lambda a, c: is_admin(a)),
    Action.VIEW_USER: _bool_rule(lambda a, u: True),
    Action.VIEW_PROJECT: _bool_rule(can_access_project),
    Action.UPDATE_PROJECT: _bool_rule(
        can_administer_project, "Only project managers or admins can update this project"
    ),
    Action.DELETE_PROJECT: _bool_rule(
        lambda a, p: is_admin(a), "Only Admin or SuperAdmin can delete projects"
    ),
    Action.MANAGE_MEMBERS: _bool_rule(
        can_administer_project, "Only project managers or admins can manage members"
    ),
    Action.MANAGE_WORKFLOW: _bool_rule(
        can_manage_project, "Only project managers or admins can perform this action"
    ),
    Action.CREATE_WORK_ITEM: _check_work_item_create,
    Action.VIEW_WORK_ITEM: _bool_rule(can_view_work_item),
    Action.UPDATE_WORK_ITEM: _bool_rule(can_update_work_item),
    Action.DELETE_WORK_ITEM: _check_work_item_delete,
    Action.CREATE_FILE_TICKET: _bool_rule(can_contribute_to_project),
    Action.VIEW_FILE_TICKET: _bool_rule(lambda a, t: can_access_project(a, t.project)),
    Action.UPDATE_FILE_TICKET: _check_file_ticket_write,
    Action.DELETE_FILE_TICKET: _check_file_ticket_delete,
}


def authorize(actor: User, action: Action, target) -> Decision:
    """Decide whether *actor* may perform *action* on *target*.

    Targets outside the actor's company are hidden (NOT_FOUND); everything
    else is delegated to the per-action rule.
    """
    if not same_company(actor, company_id_of(target)):
        logger.info(
            "Cross-company %s denied: user=%s target=%s id=%s",
            action.value, actor.id, type(target).__name__, getattr(target, "id", None),
        )
        return hide(target)
    decision = _RULES[action](actor, target)
    if not decision.allowed:
        logger.debug("%s denied for user=%s: %s", action.value, actor.id, decision.reason)
    return decision
