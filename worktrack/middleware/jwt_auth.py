"""
JWT identity middleware.

Parses ``Authorization: Bearer <token>`` on /api/v1 requests and sets
``g.jwt_user_id``. A missing, expired or invalid token leaves it None;
views decide whether that is acceptable (see ``login_required``).
"""

import logging
from functools import wraps

import jwt as pyjwt
from flask import g, request

from worktrack.services.jwt_service import decode_access_token, user_id_from_payload
from worktrack.utils.errors import E, api_error

logger = logging.getLogger(__name__)

JWT_SKIP_PREFIXES = (
    "/api/v1/auth/register",
    "/api/v1/auth/login",
    "/api/v1/auth/refresh",
    "/api/v1/auth/logout",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_company_id = None

        path = request.path
        if not path.startswith("/api/v1/") or path.startswith(JWT_SKIP_PREFIXES):
            return

        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return
        try:
            payload = decode_access_token(header[7:])
            g.jwt_user_id = user_id_from_payload(payload)
            g.jwt_company_id = payload.get("company_id")
        except pyjwt.ExpiredSignatureError:
            logger.debug("Expired access token on %s", path)
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected access token on %s: %s", path, exc)


def current_user_id():
    return getattr(g, "jwt_user_id", None)


def login_required(view):
    """401 unless the request carried a valid access token."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_user_id() is None:
            return api_error(E.UNAUTHORIZED, "Authentication required", status=401)
        return view(*args, **kwargs)

    return wrapper
