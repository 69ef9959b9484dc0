"""
Work item and comment endpoints.

    /api/v1/projects/<pid>/work-items                       GET, POST
        filters: ?sprint_id= ?backlog=1 ?assigned_to_id= ?parent_id= ?type=
    /api/v1/projects/<pid>/work-items/<iid>                 GET, PUT, DELETE
    /api/v1/projects/<pid>/work-items/<iid>/children        GET
    /api/v1/projects/<pid>/work-items/<iid>/comments        GET, POST
    /api/v1/projects/<pid>/work-items/<iid>/comments/<cid>  DELETE
"""

from flask import Blueprint, request

from worktrack.blueprints import flag_arg, json_body
from worktrack.middleware.jwt_auth import current_user_id, login_required
from worktrack.services import comment_service, work_item_service
from worktrack.utils.errors import result_response

work_item_bp = Blueprint("work_items", __name__, url_prefix="/api/v1/projects/<int:project_id>/work-items")


@work_item_bp.route("", methods=["GET"])
@login_required
def list_work_items(project_id):
    return result_response(work_item_service.list_work_items(
        current_user_id(), project_id,
        sprint_id=request.args.get("sprint_id", type=int),
        backlog_only=flag_arg("backlog"),
        assigned_to_id=request.args.get("assigned_to_id", type=int),
        parent_id=request.args.get("parent_id", type=int),
        item_type=request.args.get("type"),
    ))


@work_item_bp.route("", methods=["POST"])
@login_required
def create_work_item(project_id):
    return result_response(work_item_service.create_work_item(current_user_id(), project_id, json_body()))


@work_item_bp.route("/<int:item_id>", methods=["GET"])
@login_required
def get_work_item(project_id, item_id):
    return result_response(work_item_service.get_work_item(current_user_id(), project_id, item_id))


@work_item_bp.route("/<int:item_id>", methods=["PUT"])
@login_required
def update_work_item(project_id, item_id):
    return result_response(
        work_item_service.update_work_item(current_user_id(), project_id, item_id, json_body())
    )


@work_item_bp.route("/<int:item_id>", methods=["DELETE"])
@login_required
def delete_work_item(project_id, item_id):
    return result_response(work_item_service.delete_work_item(current_user_id(), project_id, item_id))


@work_item_bp.route("/<int:item_id>/children", methods=["GET"])
@login_required
def list_children(project_id, item_id):
    return result_response(work_item_service.list_children(current_user_id(), project_id, item_id))


@work_item_bp.route("/<int:item_id>/comments", methods=["GET"])
@login_required
def list_comments(project_id, item_id):
    return result_response(comment_service.list_comments(current_user_id(), project_id, item_id))


@work_item_bp.route("/<int:item_id>/comments", methods=["POST"])
@login_required
def add_comment(project_id, item_id):
    return result_response(
        comment_service.add_comment(current_user_id(), project_id, item_id, json_body().get("content"))
    )


@work_item_bp.route("/<int:item_id>/comments/<int:comment_id>", methods=["DELETE"])
@login_required
def delete_comment(project_id, item_id, comment_id):
    return result_response(comment_service.delete_comment(current_user_id(), project_id, item_id, comment_id))
