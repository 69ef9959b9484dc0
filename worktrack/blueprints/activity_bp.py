"""
Activity log endpoints (read-only).

    /api/v1/activity                                   GET  company-wide, Admin+
    /api/v1/users/<uid>/activity                       GET
    /api/v1/projects/<pid>/activity                    GET
    /api/v1/projects/<pid>/work-items/<iid>/activity   GET
    /api/v1/projects/<pid>/file-tickets/<tid>/activity GET

Filters: ?start=&end= (ISO datetimes), ?user_id=, ?entity_type=, ?entity_id=,
?limit=&offset=.
"""

from flask import Blueprint, request

from worktrack.blueprints import page_args
from worktrack.middleware.jwt_auth import current_user_id, login_required
from worktrack.services import activity_log_service
from worktrack.utils.errors import result_response
from worktrack.utils.helpers import parse_datetime

activity_bp = Blueprint("activity", __name__, url_prefix="/api/v1")


def _range():
    return parse_datetime(request.args.get("start")), parse_datetime(request.args.get("end"))


@activity_bp.route("/activity", methods=["GET"])
@login_required
def company_activity():
    start, end = _range()
    limit, offset = page_args()
    return result_response(activity_log_service.list_for_company(
        current_user_id(), start=start, end=end,
        user_id=request.args.get("user_id", type=int),
        project_id=request.args.get("project_id", type=int),
        limit=limit, offset=offset,
    ))


@activity_bp.route("/users/<int:user_id>/activity", methods=["GET"])
@login_required
def user_activity(user_id):
    start, end = _range()
    limit, offset = page_args()
    return result_response(activity_log_service.list_for_user(
        current_user_id(), user_id, start=start, end=end, limit=limit, offset=offset,
    ))


@activity_bp.route("/projects/<int:project_id>/activity", methods=["GET"])
@login_required
def project_activity(project_id):
    start, end = _range()
    limit, offset = page_args()
    return result_response(activity_log_service.list_for_project(
        current_user_id(), project_id, start=start, end=end,
        user_id=request.args.get("user_id", type=int),
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id", type=int),
        limit=limit, offset=offset,
    ))


@activity_bp.route("/projects/<int:project_id>/work-items/<int:item_id>/activity", methods=["GET"])
@login_required
def work_item_activity(project_id, item_id):
    return result_response(activity_log_service.list_for_work_item(current_user_id(), project_id, item_id))


@activity_bp.route("/projects/<int:project_id>/file-tickets/<int:ticket_id>/activity", methods=["GET"])
@login_required
def file_ticket_activity(project_id, ticket_id):
    return result_response(activity_log_service.list_for_file_ticket(current_user_id(), project_id, ticket_id))
