"""
Board service: the project's default board plus personal boards.

A personal board is a fork of the default board's columns taken at
creation time. Only its owner may see or change it. The default board is
shared, cannot be deleted, and its columns are edited by project managers.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, or_

from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.board import DEFAULT_BOARD_NAME, Board, BoardColumn
from worktrack.models.project import Project
from worktrack.models.workflow import WorkflowStatus
from worktrack.services.activity_log_service import log_activity
from worktrack.services.authorization_service import (
    Action,
    authorize,
    can_manage_project,
    require,
)
from worktrack.services.helpers.scoped_queries import get_scoped
from worktrack.services.identity import get_actor
from worktrack.utils.helpers import clean_str

logger = logging.getLogger(__name__)


def create_default_board(project: Project, statuses: list[WorkflowStatus]) -> Board:
    """Create the shared board with one column per status. Caller commits."""
    board = Board(project_id=project.id, name=DEFAULT_BOARD_NAME, is_default=True, owner_id=None)
    for status in statuses:
        board.columns.append(BoardColumn(status_id=status.id, order=status.order))
    db.session.add(board)
    db.session.flush()
    return board


def get_default_board(project_id) -> Board | None:
    return Board.query_active().filter_by(project_id=project_id, is_default=True).first()


def _load_project(actor, project_id):
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    require(authorize(actor, Action.VIEW_PROJECT, project), project)
    return project


def _check_board_visible(actor, board):
    if not board.is_default and board.owner_id != actor.id:
        return ServiceResult.forbidden("You can only access your own boards")
    return None


@service_operation("board.list")
def list_boards(actor_id, project_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    boards = (
        Board.query_active()
        .filter(
            Board.project_id == project.id,
            or_(Board.is_default.is_(True), Board.owner_id == actor.id),
        )
        .order_by(Board.is_default.desc(), Board.id)
        .all()
    )
    return ServiceResult.success([b.to_dict() for b in boards])


@service_operation("board.get")
def get_board(actor_id, project_id, board_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    board = get_scoped(Board, board_id, project_id=project.id, resource="Board")
    denied = _check_board_visible(actor, board)
    if denied:
        return denied
    return ServiceResult.success(board.to_dict())


@service_operation("board.create_personal")
def create_personal_board(actor_id, project_id, name: str):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)

    name = clean_str(name)
    if not name:
        return ServiceResult.bad_request("Board name is required")

    board = Board(project_id=project.id, name=name, owner_id=actor.id, is_default=False)
    default = get_default_board(project.id)
    if default is not None:
        for column in default.columns:
            board.columns.append(BoardColumn(status_id=column.status_id, order=column.order))
    db.session.add(board)
    db.session.flush()

    log_activity(
        user_id=actor.id, action="Created", entity_type="Board", entity_id=board.id,
        description=f"Created personal board '{board.name}'", project_id=project.id,
    )
    db.session.commit()
    return ServiceResult.created(board.to_dict())


@service_operation("board.add_column")
def add_column(actor_id, project_id, board_id, status_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    board = get_scoped(Board, board_id, project_id=project.id, resource="Board")

    if board.is_default:
        if not can_manage_project(actor, project):
            return ServiceResult.forbidden("Only project managers can edit the default board")
    elif board.owner_id != actor.id:
        return ServiceResult.forbidden("You can only modify your own boards")

    status = get_scoped(WorkflowStatus, status_id, project_id=project.id, resource="Status")
    if any(c.status_id == status.id for c in board.columns):
        return ServiceResult.bad_request("Status is already a column on this board")

    current_max = (
        db.session.query(func.max(BoardColumn.order))
        .filter(BoardColumn.board_id == board.id)
        .scalar()
    )
    board.columns.append(BoardColumn(status_id=status.id, order=(current_max or 0) + 1))
    db.session.commit()
    return ServiceResult.success(board.to_dict())


@service_operation("board.delete")
def delete_board(actor_id, project_id, board_id):
    actor = get_actor(actor_id)
    project = _load_project(actor, project_id)
    board = get_scoped(Board, board_id, project_id=project.id, resource="Board")

    if board.is_default:
        return ServiceResult.bad_request("Cannot delete the default board")
    if board.owner_id != actor.id:
        return ServiceResult.forbidden("You can only delete your own boards")

    board.soft_delete(by_user_id=actor.id)
    log_activity(
        user_id=actor.id, action="Deleted", entity_type="Board", entity_id=board.id,
        description=f"Deleted board '{board.name}'", project_id=project.id,
    )
    db.session.commit()
    return ServiceResult.success({"deleted": True, "id": board.id})
