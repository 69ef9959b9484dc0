"""
File ticket endpoints.

    /api/v1/projects/<pid>/file-tickets                     GET (?holder_id= ?status=), POST
    /api/v1/projects/<pid>/file-tickets/<tid>               GET, PUT, DELETE
    /api/v1/projects/<pid>/file-tickets/<tid>/transfers     GET
    /api/v1/projects/<pid>/file-tickets/<tid>/transfer      POST  {"to_user_id": ..., "notes": ...}
    /api/v1/projects/<pid>/file-tickets/<tid>/receive       POST
"""

from flask import Blueprint, request

from worktrack.blueprints import json_body
from worktrack.middleware.jwt_auth import current_user_id, login_required
from worktrack.services import file_ticket_service
from worktrack.utils.errors import result_response

file_ticket_bp = Blueprint(
    "file_tickets", __name__, url_prefix="/api/v1/projects/<int:project_id>/file-tickets"
)


@file_ticket_bp.route("", methods=["GET"])
@login_required
def list_file_tickets(project_id):
    return result_response(file_ticket_service.list_file_tickets(
        current_user_id(), project_id,
        current_holder_id=request.args.get("holder_id", type=int),
        status=request.args.get("status"),
    ))


@file_ticket_bp.route("", methods=["POST"])
@login_required
def create_file_ticket(project_id):
    return result_response(file_ticket_service.create_file_ticket(current_user_id(), project_id, json_body()))


@file_ticket_bp.route("/<int:ticket_id>", methods=["GET"])
@login_required
def get_file_ticket(project_id, ticket_id):
    return result_response(file_ticket_service.get_file_ticket(current_user_id(), project_id, ticket_id))


@file_ticket_bp.route("/<int:ticket_id>", methods=["PUT"])
@login_required
def update_file_ticket(project_id, ticket_id):
    return result_response(
        file_ticket_service.update_file_ticket(current_user_id(), project_id, ticket_id, json_body())
    )


@file_ticket_bp.route("/<int:ticket_id>", methods=["DELETE"])
@login_required
def delete_file_ticket(project_id, ticket_id):
    return result_response(file_ticket_service.delete_file_ticket(current_user_id(), project_id, ticket_id))


@file_ticket_bp.route("/<int:ticket_id>/transfers", methods=["GET"])
@login_required
def list_transfers(project_id, ticket_id):
    return result_response(file_ticket_service.list_transfers(current_user_id(), project_id, ticket_id))


@file_ticket_bp.route("/<int:ticket_id>/transfer", methods=["POST"])
@login_required
def transfer_file_ticket(project_id, ticket_id):
    data = json_body()
    return result_response(file_ticket_service.transfer_file_ticket(
        current_user_id(), project_id, ticket_id, data.get("to_user_id"), data.get("notes"),
    ))


@file_ticket_bp.route("/<int:ticket_id>/receive", methods=["POST"])
@login_required
def receive_file_ticket(project_id, ticket_id):
    return result_response(file_ticket_service.receive_file_ticket(current_user_id(), project_id, ticket_id))
