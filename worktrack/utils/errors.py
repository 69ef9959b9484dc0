"""Standardised API responses.

Usage
-----
    from worktrack.utils.errors import api_error, result_response, E

    return api_error(E.VALIDATION_REQUIRED, "name is required")
    return result_response(project_service.get_project(user_id, pid))
"""

from __future__ import annotations

from flask import jsonify

from worktrack.core.results import ResultKind, ServiceResult


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_CONSTRAINT: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.INTERNAL: 500,
}

# ResultKind -> (error code, HTTP status) for non-OK results
_RESULT_ERRORS: dict[ResultKind, tuple[str, int]] = {
    ResultKind.BAD_REQUEST: (E.VALIDATION_CONSTRAINT, 400),
    ResultKind.UNAUTHORIZED: (E.UNAUTHORIZED, 401),
    ResultKind.FORBIDDEN: (E.FORBIDDEN, 403),
    ResultKind.NOT_FOUND: (E.NOT_FOUND, 404),
    ResultKind.FAILURE: (E.INTERNAL, 500),
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation, safe for display.
    status : int, optional
        HTTP status override. Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field errors, ...).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)``
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def result_response(result: ServiceResult):
    """Map a ServiceResult onto an HTTP response, one status per kind."""
    if result.kind == ResultKind.CREATED:
        return jsonify(result.data), 201
    if result.kind == ResultKind.SUCCESS:
        if result.data is None:
            return "", 204
        return jsonify(result.data), 200
    code, status = _RESULT_ERRORS[result.kind]
    return api_error(code, result.message or "Request failed", status=status, details=result.details)
