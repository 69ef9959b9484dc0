"""
Typed service results.

Every public service function returns a ``ServiceResult``: one of
success / created / bad_request / unauthorized / forbidden / not_found /
failure. The HTTP layer maps each kind 1:1 to a status code
(see ``worktrack.utils.errors.result_response``).

``service_operation`` is the boundary decorator. It converts the
``worktrack.core.exceptions`` hierarchy into results, rolls the session back
on any non-OK outcome, and turns unexpected exceptions into ``failure``
with a generic message while keeping the original exception on the result.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from worktrack.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from worktrack.models import db

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "An unexpected error occurred"


class ResultKind(str, Enum):
    SUCCESS = "success"
    CREATED = "created"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    FAILURE = "failure"


@dataclass(frozen=True)
class ServiceResult:
    """Outcome of a service operation."""

    kind: ResultKind
    data: Any = None
    message: str | None = None
    details: dict = field(default_factory=dict)
    error: BaseException | None = field(default=None, compare=False, repr=False)

    @property
    def ok(self) -> bool:
        return self.kind in (ResultKind.SUCCESS, ResultKind.CREATED)

    @classmethod
    def success(cls, data=None) -> ServiceResult:
        return cls(ResultKind.SUCCESS, data=data)

    @classmethod
    def created(cls, data=None) -> ServiceResult:
        return cls(ResultKind.CREATED, data=data)

    @classmethod
    def bad_request(cls, message: str, details: dict | None = None) -> ServiceResult:
        return cls(ResultKind.BAD_REQUEST, message=message, details=details or {})

    @classmethod
    def unauthorized(cls, message: str = "User not found") -> ServiceResult:
        return cls(ResultKind.UNAUTHORIZED, message=message)

    @classmethod
    def forbidden(cls, message: str = "Access denied") -> ServiceResult:
        return cls(ResultKind.FORBIDDEN, message=message)

    @classmethod
    def not_found(cls, message: str) -> ServiceResult:
        return cls(ResultKind.NOT_FOUND, message=message)

    @classmethod
    def failure(cls, message: str, error: BaseException | None = None) -> ServiceResult:
        return cls(ResultKind.FAILURE, message=message, error=error)


def service_operation(name: str):
    """Decorate a public service function with the result boundary."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                result = func(*args, **kwargs)
            except NotFoundError as exc:
                db.session.rollback()
                logger.info("%s: %s", name, exc)
                return ServiceResult.not_found(exc.public_message)
            except ValidationError as exc:
                db.session.rollback()
                return ServiceResult.bad_request(str(exc), exc.details)
            except ForbiddenError as exc:
                db.session.rollback()
                logger.info("%s denied: %s", name, exc)
                return ServiceResult.forbidden(str(exc) or "Access denied")
            except UnauthorizedError as exc:
                db.session.rollback()
                return ServiceResult.unauthorized(str(exc) or "User not found")
            except Exception as exc:
                db.session.rollback()
                logger.exception("%s failed", name)
                return ServiceResult.failure(GENERIC_FAILURE_MESSAGE, exc)
            if not result.ok:
                db.session.rollback()
            return result

        return wrapper

    return decorator
