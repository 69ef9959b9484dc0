"""
Company endpoints.

    /api/v1/companies          GET, POST
    /api/v1/companies/<id>     GET, PUT, DELETE
"""

from flask import Blueprint

from worktrack.blueprints import json_body
from worktrack.middleware.jwt_auth import current_user_id, login_required
from worktrack.services import company_service
from worktrack.utils.errors import result_response

company_bp = Blueprint("companies", __name__, url_prefix="/api/v1/companies")


@company_bp.route("", methods=["GET"])
@login_required
def list_companies():
    return result_response(company_service.list_companies(current_user_id()))


@company_bp.route("", methods=["POST"])
@login_required
def create_company():
    return result_response(company_service.create_company(current_user_id(), json_body()))


@company_bp.route("/<int:company_id>", methods=["GET"])
@login_required
def get_company(company_id):
    return result_response(company_service.get_company(current_user_id(), company_id))


@company_bp.route("/<int:company_id>", methods=["PUT"])
@login_required
def update_company(company_id):
    return result_response(company_service.update_company(current_user_id(), company_id, json_body()))


@company_bp.route("/<int:company_id>", methods=["DELETE"])
@login_required
def delete_company(company_id):
    return result_response(company_service.delete_company(current_user_id(), company_id))
