"""
User endpoints.

    /api/v1/users                           GET (?search=, ?unassigned=1), POST
    /api/v1/users/me                        GET
    /api/v1/users/team                      GET   direct reports
    /api/v1/users/managers                  GET
    /api/v1/users/<id>                      GET, PUT, DELETE
    /api/v1/users/<id>/projects             GET
    /api/v1/users/transfer-super-admin      POST  {"target_user_id": ...}
"""

from flask import Blueprint, request

from worktrack.blueprints import flag_arg, json_body
from worktrack.middleware.jwt_auth import current_user_id, login_required
from worktrack.services import user_service
from worktrack.utils.errors import result_response

user_bp = Blueprint("users", __name__, url_prefix="/api/v1/users")


@user_bp.route("", methods=["GET"])
@login_required
def list_users():
    return result_response(user_service.list_users(
        current_user_id(), search=request.args.get("search"), unassigned=flag_arg("unassigned"),
    ))


@user_bp.route("", methods=["POST"])
@login_required
def create_user():
    return result_response(user_service.create_user(current_user_id(), json_body()))


@user_bp.route("/me", methods=["GET"])
@login_required
def me():
    return result_response(user_service.get_me(current_user_id()))


@user_bp.route("/team", methods=["GET"])
@login_required
def team():
    return result_response(user_service.get_team_members(current_user_id()))


@user_bp.route("/managers", methods=["GET"])
@login_required
def managers():
    return result_response(user_service.list_managers(current_user_id()))


@user_bp.route("/<int:user_id>", methods=["GET"])
@login_required
def get_user(user_id):
    return result_response(user_service.get_user(current_user_id(), user_id))


@user_bp.route("/<int:user_id>/projects", methods=["GET"])
@login_required
def get_user_projects(user_id):
    return result_response(user_service.get_user_with_projects(current_user_id(), user_id))


@user_bp.route("/<int:user_id>", methods=["PUT"])
@login_required
def update_user(user_id):
    return result_response(user_service.update_user(current_user_id(), user_id, json_body()))


@user_bp.route("/<int:user_id>", methods=["DELETE"])
@login_required
def delete_user(user_id):
    return result_response(user_service.delete_user(current_user_id(), user_id))


@user_bp.route("/transfer-super-admin", methods=["POST"])
@login_required
def transfer_super_admin():
    return result_response(
        user_service.transfer_super_admin(current_user_id(), json_body().get("target_user_id"))
    )
