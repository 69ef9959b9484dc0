"""
Authorization engine tests.

Covers:
    - explicit rank functions for system and project roles
    - role-assignment and deletion guards
    - tenancy: cross-company targets are hidden (NOT_FOUND), never allowed
    - Manager read vs write access, Member/QA indirect access via manager
    - work item visibility and Member/QA create/delete rules
"""

import pytest

from tests.conftest import create_company, create_project, create_user
from worktrack.core.exceptions import ForbiddenError, NotFoundError
from worktrack.core.results import ResultKind
from worktrack.models import db
from worktrack.models.project import PROJECT_ROLE_RANK, ProjectMember, ProjectRole, project_role_rank
from worktrack.models.user import SYSTEM_ROLE_RANK, SystemRole, system_role_rank
from worktrack.models.work_item import WorkItem
from worktrack.services import work_item_service
from worktrack.services.authorization_service import (
    Action,
    authorize,
    can_access_project,
    can_create_role,
    can_delete_user,
    can_manage_project,
    require,
)


# ── Ranks ────────────────────────────────────────────────────────────────


class TestRanks:
    def test_system_role_order_is_explicit(self):
        ordered = sorted(SystemRole, key=system_role_rank)
        assert ordered == [
            SystemRole.MEMBER, SystemRole.QA, SystemRole.MANAGER,
            SystemRole.ADMIN, SystemRole.SUPER_ADMIN,
        ]
        assert SYSTEM_ROLE_RANK[SystemRole.SUPER_ADMIN] == 4

    def test_rank_accepts_plain_strings(self):
        assert system_role_rank("manager") == system_role_rank(SystemRole.MANAGER)
        assert project_role_rank("admin") == PROJECT_ROLE_RANK[ProjectRole.ADMIN]

    def test_unknown_role_raises(self):
        with pytest.raises(ValueError):
            system_role_rank("owner")
        with pytest.raises(ValueError):
            project_role_rank("owner")


# ── Role guards ──────────────────────────────────────────────────────────


@pytest.mark.parametrize("creator,target,expected", [
    ("super_admin", "admin", True),
    ("super_admin", "member", True),
    ("super_admin", "super_admin", False),
    ("admin", "manager", True),
    ("admin", "qa", True),
    ("admin", "admin", False),
    ("manager", "member", True),
    ("manager", "qa", True),
    ("manager", "manager", False),
    ("qa", "member", False),
    ("member", "member", False),
])
def test_can_create_role(creator, target, expected):
    assert can_create_role(creator, target) is expected


@pytest.mark.parametrize("deleter,target,expected", [
    ("super_admin", "admin", True),
    ("super_admin", "super_admin", False),
    ("admin", "manager", True),
    ("admin", "admin", False),
    ("manager", "qa", True),
    ("manager", "manager", False),
    ("qa", "member", False),
    ("member", "member", False),
])
def test_can_delete_user(deleter, target, expected):
    assert can_delete_user(deleter, target) is expected


# ── Tenancy ──────────────────────────────────────────────────────────────


class TestTenancy:
    def test_cross_company_project_is_hidden(self, project):
        outsider_company = create_company("Initech")
        outsider = create_user(outsider_company, SystemRole.SUPER_ADMIN, email="root@initech.test")

        decision = authorize(outsider, Action.VIEW_PROJECT, project)
        assert not decision.allowed
        assert decision.kind == ResultKind.NOT_FOUND
        with pytest.raises(NotFoundError):
            require(decision, project)

    def test_cross_company_work_item_never_succeeds(self, project, admin):
        created = work_item_service.create_work_item(admin.id, project.id, {"title": "Secret"})
        assert created.ok
        outsider = create_user(create_company("Initech"), SystemRole.ADMIN, email="admin@initech.test")

        result = work_item_service.get_work_item(outsider.id, project.id, created.data["id"])
        assert result.kind in (ResultKind.NOT_FOUND, ResultKind.FORBIDDEN)
        assert result.kind == ResultKind.NOT_FOUND


# ── Project access ───────────────────────────────────────────────────────


class TestProjectAccess:
    def test_manager_reads_any_project_but_writes_only_as_member(self, company, project, admin):
        other_manager = create_user(company, SystemRole.MANAGER, email="m2@acme.test")

        assert can_access_project(other_manager, project)
        assert not can_manage_project(other_manager, project)
        decision = authorize(other_manager, Action.MANAGE_WORKFLOW, project)
        assert decision.kind == ResultKind.FORBIDDEN
        with pytest.raises(ForbiddenError):
            require(decision, project)

    def test_admin_bypasses_membership(self, admin, project):
        assert can_manage_project(admin, project)
        assert authorize(admin, Action.MANAGE_MEMBERS, project).allowed

    def test_member_sees_project_through_their_manager(self, member, project):
        # manager fixture is the project manager; member reports to them
        assert can_access_project(member, project)

    def test_member_without_link_is_denied(self, company, project):
        lone_manager = create_user(company, SystemRole.MANAGER, email="lone@acme.test")
        stranger = create_user(company, SystemRole.MEMBER, email="stranger@acme.test", manager=lone_manager)
        decision = authorize(stranger, Action.VIEW_PROJECT, project)
        assert not decision.allowed
        assert decision.kind == ResultKind.FORBIDDEN

    def test_membership_change_takes_effect_immediately(self, company, project, admin):
        lone_manager = create_user(company, SystemRole.MANAGER, email="lone@acme.test")
        stranger = create_user(company, SystemRole.MEMBER, email="stranger@acme.test", manager=lone_manager)
        assert not can_access_project(stranger, project)

        db.session.add(ProjectMember(project_id=project.id, user_id=stranger.id, role="member"))
        db.session.commit()
        assert can_access_project(stranger, project)


# ── Work items ───────────────────────────────────────────────────────────


class TestWorkItemRules:
    def _item(self, project, creator, assignee=None):
        result = work_item_service.create_work_item(
            creator.id, project.id,
            {"title": "Item", "assigned_to_id": assignee.id if assignee else None},
        )
        assert result.ok, result.message
        return db.session.get(WorkItem, result.data["id"])

    def test_member_cannot_create(self, member, project):
        decision = authorize(member, Action.CREATE_WORK_ITEM, project)
        assert not decision.allowed
        assert decision.reason == "Members cannot create work items"

    def test_member_sees_only_own_or_assigned(self, admin, member, project):
        unrelated = self._item(project, admin)
        assigned = self._item(project, admin, assignee=member)

        assert not authorize(member, Action.VIEW_WORK_ITEM, unrelated).allowed
        assert authorize(member, Action.VIEW_WORK_ITEM, assigned).allowed

    def test_qa_deletes_only_own_items(self, company, manager, qa, project):
        other_qa = create_user(company, SystemRole.QA, email="qa2@acme.test", manager=manager)
        item = self._item(project, qa)

        assert not authorize(other_qa, Action.DELETE_WORK_ITEM, item).allowed
        assert authorize(qa, Action.DELETE_WORK_ITEM, item).allowed

    def test_project_role_is_checked_for_workflow(self, company, admin, manager):
        second = create_project(admin, manager, name="Ops", key="OPS")
        viewer_manager = create_user(company, SystemRole.MANAGER, email="viewer@acme.test")
        db.session.add(ProjectMember(project_id=second.id, user_id=viewer_manager.id, role="viewer"))
        db.session.commit()

        assert not can_manage_project(viewer_manager, second)
        assert authorize(viewer_manager, Action.UPDATE_PROJECT, second).allowed
