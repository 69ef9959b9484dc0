"""
Per-blueprint rate limits (Flask-Limiter).

The Limiter instance lives in worktrack/__init__.py with no default limits;
limits are attached here after the blueprints are registered.

    auth (login / refresh):  10/minute  per IP
    write-heavy blueprints:  60/minute
    activity (read-only):   200/minute

Disabled when TESTING is set.
"""

import logging

from flask import g, request
from flask_limiter.util import get_remote_address

logger = logging.getLogger(__name__)

AUTH_LIMIT = "10/minute"
WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

WRITE_BLUEPRINTS = ("companies", "users", "projects", "work_items", "file_tickets")
READ_BLUEPRINTS = ("activity",)


def rate_limit_key():
    """Authenticated callers are limited per user, anonymous ones per IP."""
    user_id = getattr(g, "jwt_user_id", None)
    if user_id:
        return f"user:{user_id}"
    return get_remote_address() or request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("auth")
    if bp:
        limiter.limit(AUTH_LIMIT, key_func=get_remote_address)(bp)

    for name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(name)
        if bp:
            limiter.limit(WRITE_LIMIT, key_func=rate_limit_key)(bp)

    for name in READ_BLUEPRINTS:
        bp = app.blueprints.get(name)
        if bp:
            limiter.limit(READ_LIMIT, key_func=rate_limit_key)(bp)

    logger.info("Rate limiter configured: auth=%s write=%s read=%s", AUTH_LIMIT, WRITE_LIMIT, READ_LIMIT)
