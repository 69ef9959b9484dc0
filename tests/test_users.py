"""
User and company service tests.

Covers:
    - role-assignment guard on create and update
    - Member/QA must report to a manager
    - per-company email uniqueness
    - deletion rules (SuperAdmin never, self never, strictly lower roles)
    - SuperAdmin transfer swaps roles in one commit
    - company CRUD restricted to SuperAdmin, tenant scoping
"""

from tests.conftest import create_company, create_project, create_user
from worktrack.core.results import ResultKind
from worktrack.models import db
from worktrack.models.project import ProjectMember
from worktrack.models.user import SystemRole, User
from worktrack.services import company_service, user_service
from worktrack.services.helpers.memberships import LAST_MANAGER, manager_class_members
from worktrack.utils.crypto import verify_password


def _payload(**overrides):
    data = {
        "email": "new.user@acme.test",
        "password": "long-enough",
        "first_name": "New",
        "last_name": "User",
        "system_role": "member",
    }
    data.update(overrides)
    return data


# ── Create ───────────────────────────────────────────────────────────────


class TestCreateUser:
    def test_manager_creates_member_reporting_to_them(self, manager):
        result = user_service.create_user(manager.id, _payload(manager_id=manager.id))
        assert result.kind == ResultKind.CREATED
        assert result.data["manager_id"] == manager.id
        assert result.data["company_id"] == manager.company_id

        user = db.session.get(User, result.data["id"])
        assert verify_password("long-enough", user.password_hash)

    def test_member_requires_manager(self, admin):
        result = user_service.create_user(admin.id, _payload())
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Members and QA users must be assigned to a manager"

    def test_manager_must_hold_manager_role(self, admin, member):
        result = user_service.create_user(admin.id, _payload(system_role="qa", manager_id=member.id))
        assert result.kind == ResultKind.BAD_REQUEST

    def test_manager_cannot_create_manager(self, manager):
        result = user_service.create_user(manager.id, _payload(system_role="manager"))
        assert result.kind == ResultKind.FORBIDDEN
        assert result.message == "You don't have permission to create manager users"

    def test_admin_cannot_create_admin(self, admin):
        result = user_service.create_user(admin.id, _payload(system_role="admin"))
        assert result.kind == ResultKind.FORBIDDEN

    def test_super_admin_creates_admin(self, super_admin):
        result = user_service.create_user(super_admin.id, _payload(system_role="admin"))
        assert result.data["system_role"] == "admin"

    def test_nobody_creates_super_admin(self, super_admin):
        result = user_service.create_user(super_admin.id, _payload(system_role="super_admin"))
        assert result.kind == ResultKind.FORBIDDEN

    def test_short_password_rejected(self, admin, manager):
        result = user_service.create_user(admin.id, _payload(password="short", manager_id=manager.id))
        assert result.kind == ResultKind.BAD_REQUEST

    def test_email_unique_per_company(self, admin, manager):
        result = user_service.create_user(admin.id, _payload(email="MANAGER@acme.test", system_role="manager"))
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Email already exists in this company"

    def test_invalid_email_rejected(self, admin, manager):
        result = user_service.create_user(admin.id, _payload(email="not an email", manager_id=manager.id))
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message.startswith("Invalid email")
        assert User.query.filter_by(email="not an email").count() == 0

    def test_email_is_normalized(self, admin, manager):
        result = user_service.create_user(
            admin.id, _payload(email="  New.User@ACME.test ", manager_id=manager.id)
        )
        assert result.data["email"] == "new.user@acme.test"

    def test_same_email_allowed_in_other_company(self, manager):
        globex = create_company("Globex")
        globex_admin = create_user(globex, SystemRole.ADMIN, email="admin@globex.test")
        result = user_service.create_user(globex_admin.id, _payload(email=manager.email, system_role="manager"))
        assert result.kind == ResultKind.CREATED


# ── Read ─────────────────────────────────────────────────────────────────


class TestReadUsers:
    def test_list_is_company_scoped(self, admin, manager):
        create_user(create_company("Globex"), SystemRole.ADMIN, email="admin@globex.test")
        emails = {u["email"] for u in user_service.list_users(admin.id).data}
        assert emails == {"admin@acme.test", "manager@acme.test"}

    def test_search(self, admin, manager, member):
        result = user_service.list_users(admin.id, search="max")
        assert [u["id"] for u in result.data] == [member.id]

    def test_unassigned(self, admin, manager, member, project):
        ids = {u["id"] for u in user_service.list_users(admin.id, unassigned=True).data}
        assert member.id in ids
        assert manager.id not in ids

    def test_get_other_company_user_not_found(self, admin):
        outsider = create_user(create_company("Globex"), SystemRole.ADMIN, email="admin@globex.test")
        result = user_service.get_user(admin.id, outsider.id)
        assert result.kind == ResultKind.NOT_FOUND

    def test_team_and_managers(self, admin, manager, member, qa):
        team = user_service.get_team_members(manager.id).data
        assert {u["id"] for u in team} == {member.id, qa.id}
        managers = user_service.list_managers(member.id).data
        assert {u["id"] for u in managers} == {admin.id, manager.id}

    def test_user_with_projects(self, admin, manager, project):
        result = user_service.get_user_with_projects(admin.id, manager.id)
        assert [(p["key"], p["role"]) for p in result.data["projects"]] == [("WEB", "manager")]


# ── Update ───────────────────────────────────────────────────────────────


class TestUpdateUser:
    def test_self_profile_update(self, member):
        result = user_service.update_user(member.id, member.id, {"first_name": "Maxine"})
        assert result.data["first_name"] == "Maxine"

    def test_member_cannot_update_others(self, member, qa):
        result = user_service.update_user(member.id, qa.id, {"first_name": "X"})
        assert result.kind == ResultKind.FORBIDDEN

    def test_cannot_change_own_role(self, admin):
        result = user_service.update_user(admin.id, admin.id, {"system_role": "manager"})
        assert result.kind == ResultKind.FORBIDDEN

    def test_manager_cannot_promote_to_manager(self, manager, member):
        result = user_service.update_user(manager.id, member.id, {"system_role": "manager"})
        assert result.kind == ResultKind.FORBIDDEN
        assert db.session.get(User, member.id).system_role == "member"

    def test_admin_promotes_member(self, admin, member):
        result = user_service.update_user(admin.id, member.id, {"system_role": "manager"})
        assert result.data["system_role"] == "manager"

    def test_cannot_modify_peer(self, company, manager):
        peer = create_user(company, SystemRole.MANAGER, email="peer@acme.test")
        result = user_service.update_user(manager.id, peer.id, {"first_name": "X"})
        assert result.kind == ResultKind.FORBIDDEN

    def test_clearing_manager_of_member_rejected(self, admin, member):
        result = user_service.update_user(admin.id, member.id, {"manager_id": None})
        assert result.kind == ResultKind.BAD_REQUEST
        assert db.session.get(User, member.id).manager_id is not None


    def test_invalid_email_on_update_rejected(self, admin, member):
        result = user_service.update_user(admin.id, member.id, {"email": "max@"})
        assert result.kind == ResultKind.BAD_REQUEST
        assert db.session.get(User, member.id).email == "member@acme.test"


class TestDemotionKeepsProjectManaged:
    """A membership can be manager-class through the system role alone."""

    def _sole_manager_by_system_role(self, company, manager, project):
        mgr2 = create_user(company, SystemRole.MANAGER, email="mgr2@acme.test")
        db.session.add(ProjectMember(project_id=project.id, user_id=mgr2.id, role="member"))
        original = ProjectMember.query_active().filter_by(project_id=project.id, user_id=manager.id).one()
        original.soft_delete()
        db.session.commit()
        return mgr2

    def test_demoting_last_manager_rejected(self, admin, company, manager, project):
        mgr2 = self._sole_manager_by_system_role(company, manager, project)

        result = user_service.update_user(admin.id, mgr2.id, {"system_role": "qa", "manager_id": manager.id})
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == LAST_MANAGER
        assert db.session.get(User, mgr2.id).system_role == "manager"
        assert len(manager_class_members(project.id)) == 1

    def test_demotion_allowed_while_another_manager_remains(self, admin, company, manager, project):
        mgr2 = create_user(company, SystemRole.MANAGER, email="mgr2@acme.test")
        db.session.add(ProjectMember(project_id=project.id, user_id=mgr2.id, role="member"))
        db.session.commit()

        result = user_service.update_user(admin.id, mgr2.id, {"system_role": "qa", "manager_id": manager.id})
        assert result.data["system_role"] == "qa"
        assert [m.user_id for m in manager_class_members(project.id)] == [manager.id]

    def test_project_manager_role_keeps_membership_manager_class(self, admin, company, manager, project):
        member_row = ProjectMember.query_active().filter_by(project_id=project.id, user_id=manager.id).one()
        assert member_row.role == "manager"

        result = user_service.update_user(admin.id, manager.id, {"system_role": "member", "manager_id": admin.id})
        assert result.data["system_role"] == "member"
        assert [m.user_id for m in manager_class_members(project.id)] == [manager.id]

# ── Delete ───────────────────────────────────────────────────────────────


class TestDeleteUser:
    def test_super_admin_cannot_be_deleted(self, super_admin, admin):
        result = user_service.delete_user(admin.id, super_admin.id)
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Super Admin cannot be deleted"

    def test_cannot_delete_self(self, admin):
        result = user_service.delete_user(admin.id, admin.id)
        assert result.kind == ResultKind.BAD_REQUEST

    def test_manager_deletes_member(self, manager, member):
        assert user_service.delete_user(manager.id, member.id).ok
        assert db.session.get(User, member.id).is_deleted

    def test_manager_cannot_delete_admin(self, admin, manager):
        result = user_service.delete_user(manager.id, admin.id)
        assert result.kind == ResultKind.FORBIDDEN

    def test_memberships_removed_with_user(self, admin, member, project):
        db.session.add(ProjectMember(project_id=project.id, user_id=member.id, role="member"))
        db.session.commit()

        assert user_service.delete_user(admin.id, member.id).ok
        assert ProjectMember.query_active().filter_by(user_id=member.id).count() == 0

    def test_last_project_manager_cannot_be_deleted(self, admin, manager, project):
        result = user_service.delete_user(admin.id, manager.id)
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == LAST_MANAGER
        assert not db.session.get(User, manager.id).is_deleted
        assert [m.user_id for m in manager_class_members(project.id)] == [manager.id]

    def test_manager_deleted_once_another_manages_the_project(self, admin, company, manager, project):
        backup = create_user(company, SystemRole.MANAGER, email="backup@acme.test")
        db.session.add(ProjectMember(project_id=project.id, user_id=backup.id, role="manager"))
        db.session.commit()

        assert user_service.delete_user(admin.id, manager.id).ok
        assert [m.user_id for m in manager_class_members(project.id)] == [backup.id]

    def test_deleted_project_does_not_block(self, admin, manager, project):
        project.soft_delete()
        db.session.commit()
        assert user_service.delete_user(admin.id, manager.id).ok

    def test_deleted_user_cannot_act(self, admin, manager, member):
        user_service.delete_user(admin.id, member.id)
        assert user_service.get_me(member.id).kind == ResultKind.UNAUTHORIZED


# ── SuperAdmin transfer ──────────────────────────────────────────────────


class TestSuperAdminTransfer:
    def test_transfer_swaps_roles(self, super_admin, admin):
        result = user_service.transfer_super_admin(super_admin.id, admin.id)
        assert result.ok
        assert db.session.get(User, super_admin.id).system_role == "admin"
        assert db.session.get(User, admin.id).system_role == "super_admin"

        supers = User.query_active().filter_by(company_id=admin.company_id, system_role="super_admin").count()
        assert supers == 1

    def test_only_super_admin_can_transfer(self, admin, manager):
        result = user_service.transfer_super_admin(admin.id, manager.id)
        assert result.kind == ResultKind.FORBIDDEN

    def test_target_must_be_admin(self, super_admin, manager):
        result = user_service.transfer_super_admin(super_admin.id, manager.id)
        assert result.kind == ResultKind.BAD_REQUEST
        assert db.session.get(User, super_admin.id).system_role == "super_admin"

    def test_target_in_other_company_not_found(self, super_admin):
        outsider = create_user(create_company("Globex"), SystemRole.ADMIN, email="admin@globex.test")
        result = user_service.transfer_super_admin(super_admin.id, outsider.id)
        assert result.kind == ResultKind.NOT_FOUND
        assert result.message == "User not found"
        assert db.session.get(User, outsider.id).system_role == "admin"

    def test_unknown_target(self, super_admin):
        result = user_service.transfer_super_admin(super_admin.id, 9999)
        assert result.kind == ResultKind.NOT_FOUND


# ── Companies ────────────────────────────────────────────────────────────


class TestCompanies:
    def test_super_admin_creates_company(self, super_admin):
        result = company_service.create_company(super_admin.id, {"name": "Initech"})
        assert result.kind == ResultKind.CREATED

    def test_duplicate_company_name(self, super_admin, company):
        result = company_service.create_company(super_admin.id, {"name": "acme"})
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Company name already exists"

    def test_admin_cannot_create_company(self, admin):
        assert company_service.create_company(admin.id, {"name": "X"}).kind == ResultKind.FORBIDDEN

    def test_admin_updates_own_company(self, admin, company):
        result = company_service.update_company(admin.id, company.id, {"description": "Widgets"})
        assert result.data["description"] == "Widgets"

    def test_manager_cannot_update_company(self, manager, company):
        result = company_service.update_company(manager.id, company.id, {"description": "X"})
        assert result.kind == ResultKind.FORBIDDEN

    def test_admin_cannot_see_other_company(self, admin):
        globex = create_company("Globex")
        assert company_service.get_company(admin.id, globex.id).kind == ResultKind.NOT_FOUND
        assert [c["id"] for c in company_service.list_companies(admin.id).data] == [admin.company_id]

    def test_cannot_delete_own_company(self, super_admin, company):
        result = company_service.delete_company(super_admin.id, company.id)
        assert result.kind == ResultKind.BAD_REQUEST

    def test_cannot_delete_company_with_projects(self, super_admin):
        globex = create_company("Globex")
        globex_admin = create_user(globex, SystemRole.ADMIN, email="admin@globex.test")
        globex_manager = create_user(globex, SystemRole.MANAGER, email="manager@globex.test")
        create_project(globex_admin, globex_manager, key="GLX")

        result = company_service.delete_company(super_admin.id, globex.id)
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Cannot delete a company with active projects"
