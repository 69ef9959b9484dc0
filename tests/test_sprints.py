"""
Sprint lifecycle tests.

Covers:
    - create validation (name, dates) and the project-manager gate
    - forward-only transitions planning -> active -> completed
    - completing returns unfinished items to the backlog
    - deleting returns every item to the backlog in the same commit
"""

import pytest

from tests.conftest import create_user
from worktrack.core.results import ResultKind
from worktrack.models import db
from worktrack.models.activity_log import ActivityLog
from worktrack.models.sprint import Sprint, validate_sprint_transition
from worktrack.models.user import SystemRole
from worktrack.models.work_item import WorkItem
from worktrack.models.workflow import WorkflowStatus
from worktrack.services import sprint_service, work_item_service

SPRINT_DATA = {"name": "Sprint 1", "start_date": "2026-03-02", "end_date": "2026-03-13"}


@pytest.fixture()
def sprint(manager, project):
    result = sprint_service.create_sprint(manager.id, project.id, dict(SPRINT_DATA))
    assert result.ok, result.message
    return result.data


def _item_in(actor, project, sprint, **extra):
    result = work_item_service.create_work_item(
        actor.id, project.id, {"title": "Item", "sprint_id": sprint["id"], **extra}
    )
    assert result.ok, result.message
    return result.data


@pytest.mark.parametrize("old,new,expected", [
    ("planning", "active", True),
    ("active", "completed", True),
    ("planning", "completed", False),
    ("active", "planning", False),
    ("completed", "active", False),
    ("completed", "planning", False),
])
def test_transition_table(old, new, expected):
    assert validate_sprint_transition(old, new) is expected


class TestCreateSprint:
    def test_defaults_to_planning(self, sprint):
        assert sprint["status"] == "planning"
        assert sprint["work_items_count"] == 0

    def test_name_required(self, manager, project):
        result = sprint_service.create_sprint(manager.id, project.id, {**SPRINT_DATA, "name": ""})
        assert result.kind == ResultKind.BAD_REQUEST

    def test_dates_required(self, manager, project):
        result = sprint_service.create_sprint(manager.id, project.id, {"name": "S"})
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Start date and end date are required"

    def test_end_before_start_rejected(self, manager, project):
        result = sprint_service.create_sprint(
            manager.id, project.id, {"name": "S", "start_date": "2026-03-13", "end_date": "2026-03-02"}
        )
        assert result.kind == ResultKind.BAD_REQUEST

    def test_non_member_manager_forbidden(self, company, project):
        outsider_manager = create_user(company, SystemRole.MANAGER, email="other@acme.test")
        result = sprint_service.create_sprint(outsider_manager.id, project.id, dict(SPRINT_DATA))
        assert result.kind == ResultKind.FORBIDDEN

    def test_member_can_list(self, member, project, sprint):
        result = sprint_service.list_sprints(member.id, project.id)
        assert [s["id"] for s in result.data] == [sprint["id"]]


class TestTransitions:
    def test_start_then_complete(self, manager, project, sprint):
        started = sprint_service.start_sprint(manager.id, project.id, sprint["id"])
        assert started.data["status"] == "active"
        completed = sprint_service.complete_sprint(manager.id, project.id, sprint["id"])
        assert completed.data["status"] == "completed"

        actions = [a.action for a in ActivityLog.query.filter_by(entity_type="Sprint").order_by(ActivityLog.id)]
        assert actions == ["Created", "Started", "Completed"]

    def test_cannot_complete_planning_sprint(self, manager, project, sprint):
        result = sprint_service.complete_sprint(manager.id, project.id, sprint["id"])
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Only active sprints can be completed"

    def test_cannot_restart(self, manager, project, sprint):
        sprint_service.start_sprint(manager.id, project.id, sprint["id"])
        result = sprint_service.start_sprint(manager.id, project.id, sprint["id"])
        assert result.kind == ResultKind.BAD_REQUEST

    def test_update_cannot_go_backwards(self, manager, project, sprint):
        sprint_service.start_sprint(manager.id, project.id, sprint["id"])
        result = sprint_service.update_sprint(manager.id, project.id, sprint["id"], {"status": "planning"})
        assert result.kind == ResultKind.BAD_REQUEST
        assert result.message == "Cannot change sprint status from active to planning"
        assert db.session.get(Sprint, sprint["id"]).status == "active"

    def test_complete_returns_unfinished_items(self, manager, project, sprint):
        done = WorkflowStatus.query.filter_by(project_id=project.id, core_type="done").one()
        finished = _item_in(manager, project, sprint, status_id=done.id)
        unfinished = _item_in(manager, project, sprint)

        sprint_service.start_sprint(manager.id, project.id, sprint["id"])
        sprint_service.complete_sprint(manager.id, project.id, sprint["id"])

        finished_row = db.session.get(WorkItem, finished["id"])
        unfinished_row = db.session.get(WorkItem, unfinished["id"])
        assert (finished_row.sprint_id, finished_row.is_in_backlog) == (sprint["id"], False)
        assert (unfinished_row.sprint_id, unfinished_row.is_in_backlog) == (None, True)


class TestDeleteSprint:
    def test_all_items_return_to_backlog(self, manager, project, sprint):
        items = [_item_in(manager, project, sprint) for _ in range(3)]

        result = sprint_service.delete_sprint(manager.id, project.id, sprint["id"])
        assert result.data == {"deleted": True, "id": sprint["id"], "moved_to_backlog": 3}

        for item in items:
            row = db.session.get(WorkItem, item["id"])
            assert row.sprint_id is None
            assert row.is_in_backlog is True
        assert db.session.get(Sprint, sprint["id"]).is_deleted

    def test_deleted_sprint_is_hidden(self, manager, project, sprint):
        sprint_service.delete_sprint(manager.id, project.id, sprint["id"])
        assert sprint_service.list_sprints(manager.id, project.id).data == []
        result = sprint_service.get_sprint(manager.id, project.id, sprint["id"])
        assert result.kind == ResultKind.NOT_FOUND

    def test_soft_deleted_items_are_released_too(self, manager, project, sprint):
        item = _item_in(manager, project, sprint)
        work_item_service.delete_work_item(manager.id, project.id, item["id"])

        result = sprint_service.delete_sprint(manager.id, project.id, sprint["id"])
        assert result.data["moved_to_backlog"] == 1
        assert db.session.get(WorkItem, item["id"]).sprint_id is None

    def test_member_cannot_delete(self, member, project, sprint):
        result = sprint_service.delete_sprint(member.id, project.id, sprint["id"])
        assert result.kind == ResultKind.FORBIDDEN
        assert not db.session.get(Sprint, sprint["id"]).is_deleted
