"""
Human-facing sequence numbers (work item numbers, file ticket numbers).

Numbers are computed as ``max + 1`` and protected by a unique constraint.
The insert runs inside a SAVEPOINT; on a collision with a concurrent writer
only the savepoint is rolled back and the number is recomputed.
"""

import logging

from sqlalchemy.exc import IntegrityError

from worktrack.models import db

logger = logging.getLogger(__name__)

MAX_SEQUENCE_ATTEMPTS = 5


def insert_with_sequence(obj, assign_number, *, label: str, attempts: int = MAX_SEQUENCE_ATTEMPTS):
    """Insert *obj* after ``assign_number(obj)``, retrying on unique collisions.

    Re-raises the last IntegrityError when every attempt collides.
    """
    last_error = None
    for attempt in range(1, attempts + 1):
        assign_number(obj)
        try:
            with db.session.begin_nested():
                db.session.add(obj)
            return obj
        except IntegrityError as exc:
            last_error = exc
            logger.warning("%s number collision (attempt %d/%d)", label, attempt, attempts)
    raise last_error
