"""Blueprint registry and shared request helpers."""

from flask import request

DEFAULT_LIMIT = 200
MAX_LIMIT = 1000


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def page_args(default_limit=DEFAULT_LIMIT, max_limit=MAX_LIMIT):
    """Read ``limit`` / ``offset`` query params.

    Returns:
        (limit, offset) with limit capped at *max_limit*.
    """
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset


def flag_arg(name) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


def register_blueprints(app):
    from worktrack.blueprints.activity_bp import activity_bp
    from worktrack.blueprints.auth_bp import auth_bp
    from worktrack.blueprints.company_bp import company_bp
    from worktrack.blueprints.file_ticket_bp import file_ticket_bp
    from worktrack.blueprints.project_bp import project_bp
    from worktrack.blueprints.user_bp import user_bp
    from worktrack.blueprints.work_item_bp import work_item_bp

    for bp in (auth_bp, company_bp, user_bp, project_bp, work_item_bp, file_ticket_bp, activity_bp):
        app.register_blueprint(bp)
