"""
Last-manager rule for project memberships.

A live project always keeps at least one active manager-class member
(project role manager/admin, or system role manager or above). Project
membership changes and user deletion or demotion all check it here.
"""

from worktrack.core.exceptions import ValidationError
from worktrack.models.project import Project, ProjectMember, ProjectRole, project_role_rank
from worktrack.models.user import SystemRole, system_role_rank

LAST_MANAGER = "Cannot remove the last manager from a project"


def manager_class_members(project_id) -> list[ProjectMember]:
    members = ProjectMember.query_active().filter_by(project_id=project_id).all()
    return [m for m in members if m.is_manager_class]


def ensure_not_last_manager(member: ProjectMember) -> None:
    if not member.is_manager_class:
        return
    if len(manager_class_members(member.project_id)) <= 1:
        raise ValidationError(LAST_MANAGER)


def _live_memberships(user):
    return (
        ProjectMember.query_active()
        .join(Project, Project.id == ProjectMember.project_id)
        .filter(ProjectMember.user_id == user.id, Project.deleted_at.is_(None))
        .all()
    )


def ensure_user_can_leave_projects(user) -> None:
    """Raise if removing *user* would leave any live project without a manager."""
    for member in _live_memberships(user):
        ensure_not_last_manager(member)


def ensure_user_can_drop_to(user, new_system_role) -> None:
    """Raise if demoting *user* to *new_system_role* strips a project's last manager.

    Only memberships that are manager-class through the system role alone are
    affected; a project manager/admin role keeps the membership manager-class.
    """
    if system_role_rank(new_system_role) >= system_role_rank(SystemRole.MANAGER):
        return
    for member in _live_memberships(user):
        if member.rank < project_role_rank(ProjectRole.MANAGER):
            ensure_not_last_manager(member)
