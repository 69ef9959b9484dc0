"""
Auth blueprint.

  POST /api/v1/auth/register  company + SuperAdmin -> JWT pair
  POST /api/v1/auth/login     email + password -> JWT pair
  POST /api/v1/auth/refresh   refresh token -> rotated JWT pair
  POST /api/v1/auth/logout    revoke the refresh token
  GET  /api/v1/auth/me        current user
"""

from flask import Blueprint

from worktrack.blueprints import json_body
from worktrack.middleware.jwt_auth import current_user_id, login_required
from worktrack.services import auth_service, user_service
from worktrack.utils.errors import result_response

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.route("/register", methods=["POST"])
def register():
    return result_response(auth_service.register(json_body()))


@auth_bp.route("/login", methods=["POST"])
def login():
    data = json_body()
    return result_response(auth_service.login(data.get("email"), data.get("password")))


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    return result_response(auth_service.refresh(json_body().get("refresh_token")))


@auth_bp.route("/logout", methods=["POST"])
def logout():
    return result_response(auth_service.logout(json_body().get("refresh_token")))


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return result_response(user_service.get_me(current_user_id()))
