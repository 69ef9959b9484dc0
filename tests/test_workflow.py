"""
Workflow statuses, boards and comments.

Covers:
    - status names unique per project, reusable across projects
    - core statuses cannot be renamed or deleted, even by SuperAdmin
    - statuses in use cannot be deleted; reorder assigns 1..N
    - default board vs personal boards (fork, ownership)
    - comment add/list/delete permissions
"""

from tests.conftest import create_project, create_user
from worktrack.core.results import ResultKind
from worktrack.models import db
from worktrack.models.board import Board
from worktrack.models.user import SystemRole
from worktrack.models.workflow import WorkflowStatus
from worktrack.services import board_service, comment_service, work_item_service, workflow_status_service


def _core(project, name):
    return WorkflowStatus.query.filter_by(project_id=project.id, name=name).one()


# ── Statuses ─────────────────────────────────────────────────────────────


class TestStatuses:
    def test_create_custom_status(self, manager, project):
        result = workflow_status_service.create_status(manager.id, project.id, {"name": "QA Review"})
        assert result.kind == ResultKind.CREATED
        assert result.data["is_core"] is False
        assert result.data["order"] == 5

    def test_duplicate_name_rejected(self, manager, project):
        workflow_status_service.create_status(manager.id, project.id, {"name": "QA Review"})
        result = workflow_status_service.create_status(manager.id, project.id, {"name": "qa review"})
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Status name already exists in this project"

    def test_name_reusable_in_other_project(self, admin, manager, project):
        other = create_project(admin, manager, name="Ops", key="OPS")
        workflow_status_service.create_status(manager.id, project.id, {"name": "QA Review"})
        result = workflow_status_service.create_status(manager.id, other.id, {"name": "QA Review"})
        assert result.ok

    def test_core_rename_rejected_even_for_super_admin(self, super_admin, project):
        done = _core(project, "Done")
        result = workflow_status_service.update_status(super_admin.id, project.id, done.id, {"name": "Shipped"})
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Cannot rename core statuses"
        db.session.refresh(done)
        assert done.name == "Done"

    def test_core_color_can_change(self, manager, project):
        done = _core(project, "Done")
        result = workflow_status_service.update_status(manager.id, project.id, done.id, {"color": "#000000"})
        assert result.data["color"] == "#000000"

    def test_core_delete_rejected(self, admin, project):
        result = workflow_status_service.delete_status(admin.id, project.id, _core(project, "To Do").id)
        assert result.kind == ResultKind.BAD_REQUEST

    def test_status_in_use_cannot_be_deleted(self, manager, project):
        status = workflow_status_service.create_status(manager.id, project.id, {"name": "Waiting"}).data
        work_item_service.create_work_item(manager.id, project.id, {"title": "X", "status_id": status["id"]})

        result = workflow_status_service.delete_status(manager.id, project.id, status["id"])
        assert result.kind == ResultKind.BAD_REQUEST

    def test_delete_unused_status_removes_board_columns(self, manager, project):
        status = workflow_status_service.create_status(manager.id, project.id, {"name": "Waiting"}).data
        board = board_service.get_default_board(project.id)
        board_service.add_column(manager.id, project.id, board.id, status["id"])

        assert workflow_status_service.delete_status(manager.id, project.id, status["id"]).ok
        db.session.refresh(board)
        assert status["id"] not in [c.status_id for c in board.columns]

    def test_reorder(self, manager, project):
        ids = [s["id"] for s in workflow_status_service.list_statuses(manager.id, project.id).data]
        reversed_ids = list(reversed(ids))

        result = workflow_status_service.reorder_statuses(manager.id, project.id, reversed_ids)
        assert [s["id"] for s in result.data] == reversed_ids
        assert [s["order"] for s in result.data] == [1, 2, 3, 4]

    def test_partial_reorder_leaves_omitted_statuses(self, manager, project):
        ids = [s["id"] for s in workflow_status_service.list_statuses(manager.id, project.id).data]
        to_do, in_progress, review, done = ids

        assert workflow_status_service.reorder_statuses(manager.id, project.id, [done, review]).ok

        orders = {s.id: s.order for s in WorkflowStatus.query.filter_by(project_id=project.id)}
        assert (orders[done], orders[review]) == (1, 2)
        assert (orders[to_do], orders[in_progress]) == (1, 2)

    def test_reorder_rejects_foreign_status(self, admin, manager, project):
        other = create_project(admin, manager, name="Ops", key="OPS")
        foreign = WorkflowStatus.query.filter_by(project_id=other.id).first()
        result = workflow_status_service.reorder_statuses(manager.id, project.id, [foreign.id])
        assert result.kind == ResultKind.NOT_FOUND

    def test_member_cannot_manage_statuses(self, member, project):
        result = workflow_status_service.create_status(member.id, project.id, {"name": "Mine"})
        assert result.kind == ResultKind.FORBIDDEN


# ── Boards ───────────────────────────────────────────────────────────────


class TestBoards:
    def test_personal_board_forks_default_columns(self, member, project):
        result = board_service.create_personal_board(member.id, project.id, "My board")
        assert result.kind == ResultKind.CREATED
        default = board_service.get_default_board(project.id)
        assert [c["status_id"] for c in result.data["columns"]] == [c.status_id for c in default.columns]

    def test_personal_board_evolves_independently(self, manager, member, project):
        personal = board_service.create_personal_board(member.id, project.id, "My board").data
        status = workflow_status_service.create_status(manager.id, project.id, {"name": "Waiting"}).data
        default = board_service.get_default_board(project.id)
        board_service.add_column(manager.id, project.id, default.id, status["id"])

        mine = board_service.get_board(member.id, project.id, personal["id"]).data
        assert len(mine["columns"]) == 4

    def test_boards_listed_for_owner_only(self, manager, member, project):
        board_service.create_personal_board(member.id, project.id, "My board")
        assert len(board_service.list_boards(member.id, project.id).data) == 2
        assert len(board_service.list_boards(manager.id, project.id).data) == 1

    def test_other_users_board_forbidden(self, manager, member, project):
        personal = board_service.create_personal_board(member.id, project.id, "My board").data
        result = board_service.get_board(manager.id, project.id, personal["id"])
        assert result.kind == ResultKind.FORBIDDEN

    def test_default_board_cannot_be_deleted(self, admin, project):
        default = board_service.get_default_board(project.id)
        result = board_service.delete_board(admin.id, project.id, default.id)
        assert result.kind == ResultKind.BAD_REQUEST

    def test_owner_deletes_personal_board(self, member, project):
        personal = board_service.create_personal_board(member.id, project.id, "My board").data
        assert board_service.delete_board(member.id, project.id, personal["id"]).ok
        assert db.session.get(Board, personal["id"]).is_deleted

    def test_member_cannot_edit_default_board(self, member, project):
        default = board_service.get_default_board(project.id)
        result = board_service.add_column(member.id, project.id, default.id, _core(project, "Done").id)
        assert result.kind == ResultKind.FORBIDDEN


# ── Comments ─────────────────────────────────────────────────────────────


class TestComments:
    def _item(self, manager, project, **extra):
        return work_item_service.create_work_item(manager.id, project.id, {"title": "Item", **extra}).data

    def test_add_and_list(self, manager, member, project):
        item = self._item(manager, project, assigned_to_id=member.id)
        added = comment_service.add_comment(member.id, project.id, item["id"], "  Looks good  ")
        assert added.kind == ResultKind.CREATED
        assert added.data["content"] == "Looks good"

        listed = comment_service.list_comments(manager.id, project.id, item["id"])
        assert [c["author_id"] for c in listed.data] == [member.id]

    def test_empty_comment_rejected(self, manager, project):
        item = self._item(manager, project)
        result = comment_service.add_comment(manager.id, project.id, item["id"], " ")
        assert result.kind == ResultKind.BAD_REQUEST

    def test_invisible_item_cannot_be_commented(self, manager, member, project):
        item = self._item(manager, project)
        result = comment_service.add_comment(member.id, project.id, item["id"], "hi")
        assert result.kind == ResultKind.FORBIDDEN

    def test_only_author_or_project_manager_deletes(self, company, manager, member, project):
        item = self._item(manager, project, assigned_to_id=member.id)
        comment = comment_service.add_comment(member.id, project.id, item["id"], "hi").data

        other_manager = create_user(company, SystemRole.MANAGER, email="other@acme.test")
        denied = comment_service.delete_comment(other_manager.id, project.id, item["id"], comment["id"])
        assert denied.kind == ResultKind.FORBIDDEN
        assert denied.message == "You can only delete your own comments"

        assert comment_service.delete_comment(manager.id, project.id, item["id"], comment["id"]).ok
        assert comment_service.list_comments(manager.id, project.id, item["id"]).data == []
