"""
Project endpoints, including everything that hangs directly off a project.

    PROJECT   /api/v1/projects                                  GET, POST
              /api/v1/projects/<pid>                            GET, PUT, DELETE
              /api/v1/projects/<pid>/dashboard                  GET

    MEMBERS   /api/v1/projects/<pid>/members                    GET, POST
              /api/v1/projects/<pid>/members/bulk               POST  {"user_ids": [...], "role": ...}
              /api/v1/projects/<pid>/members/<mid>              PUT, DELETE
              /api/v1/projects/<pid>/available-users            GET   (?search=)

    STATUSES  /api/v1/projects/<pid>/statuses                   GET, POST
              /api/v1/projects/<pid>/statuses/reorder           PUT   {"status_ids": [...]}
              /api/v1/projects/<pid>/statuses/<sid>             GET, PUT, DELETE

    BOARDS    /api/v1/projects/<pid>/boards                     GET, POST
              /api/v1/projects/<pid>/boards/<bid>               GET, DELETE
              /api/v1/projects/<pid>/boards/<bid>/columns       POST  {"status_id": ...}

    SPRINTS   /api/v1/projects/<pid>/sprints                    GET (?status=), POST
              /api/v1/projects/<pid>/sprints/<sid>              GET (?include_items=1), PUT, DELETE
              /api/v1/projects/<pid>/sprints/<sid>/start        POST
              /api/v1/projects/<pid>/sprints/<sid>/complete     POST
"""

from flask import Blueprint, request

from worktrack.blueprints import flag_arg, json_body
from worktrack.middleware.jwt_auth import current_user_id, login_required
from worktrack.services import (
    board_service,
    dashboard_service,
    project_service,
    sprint_service,
    workflow_status_service,
)
from worktrack.utils.errors import result_response

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")


# ── Projects ─────────────────────────────────────────────────────────────


@project_bp.route("", methods=["GET"])
@login_required
def list_projects():
    return result_response(project_service.list_projects(current_user_id()))


@project_bp.route("", methods=["POST"])
@login_required
def create_project():
    return result_response(project_service.create_project(current_user_id(), json_body()))


@project_bp.route("/<int:project_id>", methods=["GET"])
@login_required
def get_project(project_id):
    return result_response(project_service.get_project(current_user_id(), project_id))


@project_bp.route("/<int:project_id>", methods=["PUT"])
@login_required
def update_project(project_id):
    return result_response(project_service.update_project(current_user_id(), project_id, json_body()))


@project_bp.route("/<int:project_id>", methods=["DELETE"])
@login_required
def delete_project(project_id):
    return result_response(project_service.delete_project(current_user_id(), project_id))


@project_bp.route("/<int:project_id>/dashboard", methods=["GET"])
@login_required
def project_dashboard(project_id):
    return result_response(dashboard_service.get_project_dashboard(current_user_id(), project_id))


# ── Members ──────────────────────────────────────────────────────────────


@project_bp.route("/<int:project_id>/members", methods=["GET"])
@login_required
def list_members(project_id):
    return result_response(project_service.list_members(current_user_id(), project_id))


@project_bp.route("/<int:project_id>/members", methods=["POST"])
@login_required
def add_member(project_id):
    data = json_body()
    return result_response(
        project_service.add_member(current_user_id(), project_id, data.get("user_id"), data.get("role"))
    )


@project_bp.route("/<int:project_id>/members/bulk", methods=["POST"])
@login_required
def bulk_add_members(project_id):
    data = json_body()
    user_ids = data.get("user_ids")
    if not isinstance(user_ids, list):
        user_ids = []
    return result_response(
        project_service.bulk_add_members(current_user_id(), project_id, user_ids, data.get("role"))
    )


@project_bp.route("/<int:project_id>/members/<int:member_id>", methods=["PUT"])
@login_required
def update_member(project_id, member_id):
    return result_response(
        project_service.update_member(current_user_id(), project_id, member_id, json_body().get("role"))
    )


@project_bp.route("/<int:project_id>/members/<int:member_id>", methods=["DELETE"])
@login_required
def remove_member(project_id, member_id):
    return result_response(project_service.remove_member(current_user_id(), project_id, member_id))


@project_bp.route("/<int:project_id>/available-users", methods=["GET"])
@login_required
def available_users(project_id):
    return result_response(
        project_service.list_available_users(current_user_id(), project_id, request.args.get("search"))
    )


# ── Workflow statuses ────────────────────────────────────────────────────


@project_bp.route("/<int:project_id>/statuses", methods=["GET"])
@login_required
def list_statuses(project_id):
    return result_response(workflow_status_service.list_statuses(current_user_id(), project_id))


@project_bp.route("/<int:project_id>/statuses", methods=["POST"])
@login_required
def create_status(project_id):
    return result_response(workflow_status_service.create_status(current_user_id(), project_id, json_body()))


@project_bp.route("/<int:project_id>/statuses/reorder", methods=["PUT"])
@login_required
def reorder_statuses(project_id):
    return result_response(
        workflow_status_service.reorder_statuses(current_user_id(), project_id, json_body().get("status_ids"))
    )


@project_bp.route("/<int:project_id>/statuses/<int:status_id>", methods=["GET"])
@login_required
def get_status(project_id, status_id):
    return result_response(workflow_status_service.get_status(current_user_id(), project_id, status_id))


@project_bp.route("/<int:project_id>/statuses/<int:status_id>", methods=["PUT"])
@login_required
def update_status(project_id, status_id):
    return result_response(
        workflow_status_service.update_status(current_user_id(), project_id, status_id, json_body())
    )


@project_bp.route("/<int:project_id>/statuses/<int:status_id>", methods=["DELETE"])
@login_required
def delete_status(project_id, status_id):
    return result_response(workflow_status_service.delete_status(current_user_id(), project_id, status_id))


# ── Boards ───────────────────────────────────────────────────────────────


@project_bp.route("/<int:project_id>/boards", methods=["GET"])
@login_required
def list_boards(project_id):
    return result_response(board_service.list_boards(current_user_id(), project_id))


@project_bp.route("/<int:project_id>/boards", methods=["POST"])
@login_required
def create_board(project_id):
    return result_response(
        board_service.create_personal_board(current_user_id(), project_id, json_body().get("name"))
    )


@project_bp.route("/<int:project_id>/boards/<int:board_id>", methods=["GET"])
@login_required
def get_board(project_id, board_id):
    return result_response(board_service.get_board(current_user_id(), project_id, board_id))


@project_bp.route("/<int:project_id>/boards/<int:board_id>", methods=["DELETE"])
@login_required
def delete_board(project_id, board_id):
    return result_response(board_service.delete_board(current_user_id(), project_id, board_id))


@project_bp.route("/<int:project_id>/boards/<int:board_id>/columns", methods=["POST"])
@login_required
def add_board_column(project_id, board_id):
    return result_response(
        board_service.add_column(current_user_id(), project_id, board_id, json_body().get("status_id"))
    )


# ── Sprints ──────────────────────────────────────────────────────────────


@project_bp.route("/<int:project_id>/sprints", methods=["GET"])
@login_required
def list_sprints(project_id):
    return result_response(
        sprint_service.list_sprints(current_user_id(), project_id, status=request.args.get("status"))
    )


@project_bp.route("/<int:project_id>/sprints", methods=["POST"])
@login_required
def create_sprint(project_id):
    return result_response(sprint_service.create_sprint(current_user_id(), project_id, json_body()))


@project_bp.route("/<int:project_id>/sprints/<int:sprint_id>", methods=["GET"])
@login_required
def get_sprint(project_id, sprint_id):
    return result_response(sprint_service.get_sprint(
        current_user_id(), project_id, sprint_id, include_items=flag_arg("include_items"),
    ))


@project_bp.route("/<int:project_id>/sprints/<int:sprint_id>", methods=["PUT"])
@login_required
def update_sprint(project_id, sprint_id):
    return result_response(sprint_service.update_sprint(current_user_id(), project_id, sprint_id, json_body()))


@project_bp.route("/<int:project_id>/sprints/<int:sprint_id>", methods=["DELETE"])
@login_required
def delete_sprint(project_id, sprint_id):
    return result_response(sprint_service.delete_sprint(current_user_id(), project_id, sprint_id))


@project_bp.route("/<int:project_id>/sprints/<int:sprint_id>/start", methods=["POST"])
@login_required
def start_sprint(project_id, sprint_id):
    return result_response(sprint_service.start_sprint(current_user_id(), project_id, sprint_id))


@project_bp.route("/<int:project_id>/sprints/<int:sprint_id>/complete", methods=["POST"])
@login_required
def complete_sprint(project_id, sprint_id):
    return result_response(sprint_service.complete_sprint(current_user_id(), project_id, sprint_id))
