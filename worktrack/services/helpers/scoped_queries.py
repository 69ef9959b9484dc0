"""
Company- and project-scoped lookup helpers.

Every get-by-id in the services goes through these helpers instead of
``db.session.get(Model, pk)``. A row that exists but sits outside the given
scope is indistinguishable from a missing row: both raise NotFoundError.
Soft-deleted rows are excluded for models carrying ``deleted_at``.

Usage:
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    item = get_scoped(WorkItem, item_id, project_id=project.id, resource="Work item")
    parent = get_scoped_or_none(WorkItem, parent_id, project_id=project.id)
"""

import logging

from sqlalchemy import select

from worktrack.core.exceptions import NotFoundError
from worktrack.models import db

logger = logging.getLogger(__name__)

_SCOPE_KWARGS = ("company_id", "project_id", "work_item_id", "file_ticket_id", "board_id")


def get_scoped(model, pk, *, resource=None, include_deleted=False, **scopes):
    """Fetch a single entity by PK with a mandatory scope filter.

    Args:
        model: SQLAlchemy model class with an ``id`` column.
        pk: Primary key value.
        resource: Name used in the NotFound message; defaults to the class name.
        include_deleted: Also match soft-deleted rows.
        **scopes: One or more of ``company_id``, ``project_id``,
            ``work_item_id``, ``file_ticket_id``, ``board_id``. Each must be
            a column on *model*.

    Raises:
        ValueError: No scope given, unknown scope name, or the model lacks
            the scope column. These are programming errors.
        NotFoundError: Missing, soft-deleted, or out-of-scope row.
    """
    provided = {k: v for k, v in scopes.items() if v is not None}
    unknown = set(provided) - set(_SCOPE_KWARGS)
    if unknown:
        raise ValueError(f"Unknown scope field(s) {sorted(unknown)} for {model.__name__}")
    if not provided:
        raise ValueError(
            f"{model.__name__} id={pk} requires at least one scope filter; "
            "unscoped lookups bypass tenant isolation."
        )
    missing = [f for f in provided if not hasattr(model, f)]
    if missing:
        raise ValueError(f"{model.__name__} has no scope column(s) {sorted(missing)}")

    label = resource or model.__name__
    if pk is None:
        raise NotFoundError(resource=label)

    stmt = select(model).where(model.id == pk)
    for name, value in provided.items():
        stmt = stmt.where(getattr(model, name) == value)
    if not include_deleted and hasattr(model, "deleted_at"):
        stmt = stmt.where(model.deleted_at.is_(None))

    row = db.session.execute(stmt).scalar_one_or_none()
    if row is None:
        logger.debug("get_scoped: %s id=%s not found in scope %s", model.__name__, pk, provided)
        raise NotFoundError(resource=label, resource_id=pk, company_id=provided.get("company_id"))
    return row


def get_scoped_or_none(model, pk, **kwargs):
    """Same as get_scoped but returns None instead of raising NotFoundError."""
    try:
        return get_scoped(model, pk, **kwargs)
    except NotFoundError:
        return None
