"""
Project service tests.

Covers:
    - creation seeds core statuses, the default board and the manager membership
    - project keys are unique per company
    - project list visibility per role
    - membership add/restore/bulk and the last-manager invariant
"""

from tests.conftest import create_company, create_project, create_user
from worktrack.core.results import ResultKind
from worktrack.models import db
from worktrack.models.board import Board
from worktrack.models.project import ProjectMember
from worktrack.models.user import SystemRole
from worktrack.models.workflow import WorkflowStatus
from worktrack.services import project_service


def _member_row(project, user):
    return ProjectMember.query_active().filter_by(project_id=project.id, user_id=user.id).first()


# ── Creation ─────────────────────────────────────────────────────────────


class TestCreateProject:
    def test_creates_statuses_board_and_manager(self, admin, manager):
        result = project_service.create_project(
            admin.id, {"name": "ACME", "key": "ACM", "manager_id": manager.id}
        )

        assert result.kind == ResultKind.CREATED
        project_id = result.data["id"]
        statuses = (
            WorkflowStatus.query.filter_by(project_id=project_id)
            .order_by(WorkflowStatus.order).all()
        )
        assert [s.order for s in statuses] == [1, 2, 3, 4]
        assert [s.name for s in statuses] == ["To Do", "In Progress", "Review", "Done"]
        assert all(s.is_core for s in statuses)

        boards = Board.query.filter_by(project_id=project_id).all()
        assert len(boards) == 1
        assert boards[0].is_default
        assert len(boards[0].columns) == 4

        assert [m["id"] for m in result.data["managers"]] == [manager.id]

    def test_key_is_normalized_to_upper_case(self, admin, manager):
        result = project_service.create_project(
            admin.id, {"name": "Lower", "key": " low ", "manager_id": manager.id}
        )
        assert result.data["key"] == "LOW"

    def test_duplicate_key_in_company_rejected(self, admin, manager, project):
        result = project_service.create_project(
            admin.id, {"name": "Again", "key": project.key, "manager_id": manager.id}
        )
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Project key already exists in this company"

    def test_same_key_allowed_in_other_company(self, project):
        globex = create_company("Globex")
        globex_admin = create_user(globex, SystemRole.ADMIN, email="admin@globex.test")
        globex_manager = create_user(globex, SystemRole.MANAGER, email="manager@globex.test")

        other = create_project(globex_admin, globex_manager, key=project.key)
        assert other.key == project.key
        assert other.company_id != project.company_id

    def test_requires_manager(self, admin, member):
        result = project_service.create_project(admin.id, {"name": "X", "key": "X", "manager_id": member.id})
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "A Manager or Admin must be assigned to the project"

    def test_manager_cannot_create(self, manager):
        result = project_service.create_project(manager.id, {"name": "X", "key": "X", "manager_id": manager.id})
        assert result.kind == ResultKind.FORBIDDEN

    def test_unknown_actor_is_unauthorized(self, manager):
        result = project_service.create_project(9999, {"name": "X", "key": "X", "manager_id": manager.id})
        assert result.kind == ResultKind.UNAUTHORIZED


# ── Visibility ───────────────────────────────────────────────────────────


class TestProjectVisibility:
    def test_admin_sees_all_company_projects(self, admin, manager, project):
        create_project(admin, manager, name="Second", key="SEC")
        result = project_service.list_projects(admin.id)
        assert {p["key"] for p in result.data} == {"WEB", "SEC"}

    def test_member_sees_manager_projects(self, member, project):
        result = project_service.list_projects(member.id)
        assert [p["id"] for p in result.data] == [project.id]

    def test_unrelated_manager_list_is_empty(self, company, project):
        lone = create_user(company, SystemRole.MANAGER, email="lone@acme.test")
        assert project_service.list_projects(lone.id).data == []

    def test_cross_company_get_is_not_found(self, project):
        globex = create_company("Globex")
        outsider = create_user(globex, SystemRole.SUPER_ADMIN, email="root@globex.test")
        result = project_service.get_project(outsider.id, project.id)
        assert result.kind == ResultKind.NOT_FOUND
        assert result.message == "Project not found"

    def test_deleted_project_is_not_found(self, admin, project):
        assert project_service.delete_project(admin.id, project.id).ok
        assert project_service.get_project(admin.id, project.id).kind == ResultKind.NOT_FOUND


# ── Update ───────────────────────────────────────────────────────────────


class TestUpdateProject:
    def test_project_manager_can_rename(self, manager, project):
        result = project_service.update_project(manager.id, project.id, {"name": "Renamed"})
        assert result.ok
        assert result.data["name"] == "Renamed"

    def test_member_cannot_update(self, member, project):
        result = project_service.update_project(member.id, project.id, {"name": "Nope"})
        assert result.kind == ResultKind.FORBIDDEN

    def test_key_change_checks_uniqueness(self, admin, manager, project):
        create_project(admin, manager, name="Second", key="SEC")
        result = project_service.update_project(admin.id, project.id, {"key": "sec"})
        assert result.kind == ResultKind.BAD_REQUEST


# ── Members ──────────────────────────────────────────────────────────────


class TestMembers:
    def test_add_member(self, admin, member, project):
        result = project_service.add_member(admin.id, project.id, member.id, "member")
        assert result.kind == ResultKind.CREATED
        assert result.data["role"] == "member"

    def test_add_existing_member_rejected(self, admin, manager, project):
        result = project_service.add_member(admin.id, project.id, manager.id)
        assert result.kind == ResultKind.BAD_REQUEST

    def test_add_user_from_other_company_rejected(self, admin, project):
        outsider = create_user(create_company("Globex"), SystemRole.MEMBER, email="x@globex.test")
        result = project_service.add_member(admin.id, project.id, outsider.id)
        assert result.kind == ResultKind.BAD_REQUEST

    def test_invalid_role_rejected(self, admin, member, project):
        result = project_service.add_member(admin.id, project.id, member.id, "owner")
        assert result.kind == ResultKind.BAD_REQUEST

    def test_removed_member_is_restored_not_duplicated(self, admin, member, project):
        added = project_service.add_member(admin.id, project.id, member.id)
        assert project_service.remove_member(admin.id, project.id, added.data["id"]).ok

        again = project_service.add_member(admin.id, project.id, member.id, "viewer")
        assert again.data["id"] == added.data["id"]
        assert again.data["role"] == "viewer"
        assert ProjectMember.query.filter_by(project_id=project.id, user_id=member.id).count() == 1

    def test_bulk_add_skips_unknown_and_existing(self, admin, manager, member, qa, project):
        result = project_service.bulk_add_members(
            admin.id, project.id, [member.id, qa.id, manager.id, 9999, member.id]
        )
        assert result.data == {"added": 2}

    def test_available_users_exclude_members_and_super_admin(self, super_admin, admin, manager, member, project):
        result = project_service.list_available_users(admin.id, project.id)
        ids = {u["id"] for u in result.data}
        assert member.id in ids
        assert manager.id not in ids
        assert super_admin.id not in ids


class TestLastManager:
    def test_cannot_remove_last_manager(self, admin, manager, project):
        row = _member_row(project, manager)
        result = project_service.remove_member(admin.id, project.id, row.id)

        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Cannot remove the last manager from a project"
        db.session.refresh(row)
        assert not row.is_deleted

    def test_can_remove_manager_when_another_remains(self, admin, company, manager, project):
        second = create_user(company, SystemRole.MANAGER, email="second@acme.test")
        project_service.add_member(admin.id, project.id, second.id, "manager")

        result = project_service.remove_member(admin.id, project.id, _member_row(project, manager).id)
        assert result.ok
        assert [m["id"] for m in project_service.get_project(admin.id, project.id).data["managers"]] == [second.id]

    def test_regular_member_removal_is_unaffected(self, admin, member, project):
        added = project_service.add_member(admin.id, project.id, member.id)
        assert project_service.remove_member(admin.id, project.id, added.data["id"]).ok

    def test_demoting_project_manager_keeps_class_through_system_role(self, admin, manager, project):
        # manager's system role still counts after a project-role demotion
        row = _member_row(project, manager)
        result = project_service.update_member(admin.id, project.id, row.id, "member")
        assert result.ok

    def test_demoting_last_project_admin_rejected(self, admin, manager, qa, project):
        promoted = project_service.add_member(admin.id, project.id, qa.id, "admin")
        assert project_service.remove_member(admin.id, project.id, _member_row(project, manager).id).ok

        result = project_service.update_member(admin.id, project.id, promoted.data["id"], "member")
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Cannot remove the last manager from a project"
