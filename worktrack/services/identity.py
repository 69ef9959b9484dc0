"""
Identity context: resolve the acting user for a request.

The HTTP layer authenticates the caller (JWT) and hands the service layer
a user id. Services resolve it here on every call; nothing is cached, so
role and membership changes take effect on the next request.
"""

from worktrack.core.exceptions import UnauthorizedError
from worktrack.models import db
from worktrack.models.user import User


def find_active_user(user_id):
    if user_id is None:
        return None
    user = db.session.get(User, user_id)
    if user is None or user.is_deleted:
        return None
    return user


def get_actor(user_id) -> User:
    """Return the non-deleted acting user or raise UnauthorizedError."""
    actor = find_active_user(user_id)
    if actor is None:
        raise UnauthorizedError("User not found")
    return actor
