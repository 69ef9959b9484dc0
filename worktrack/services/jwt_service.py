"""
JWT service: token generation and verification.

Access token:  15 minutes (JWT_ACCESS_EXPIRES)
Refresh token: 7 days     (JWT_REFRESH_EXPIRES)
Algorithm:     HS256

Access payload:
{
    "sub": "<user_id>",          # string, as required by RFC 7519 / PyJWT
    "company_id": <company_id>,
    "role": "manager",
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

Tokens only carry identity. Role and company are re-read from the database
on every request, so a role change takes effect before the token expires.
"""

import hashlib
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

DEFAULT_ACCESS_EXPIRES = 900       # 15 minutes
DEFAULT_REFRESH_EXPIRES = 604800   # 7 days
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


def _get_refresh_expires():
    return current_app.config.get("JWT_REFRESH_EXPIRES", DEFAULT_REFRESH_EXPIRES)


def _encode(user_id: int, company_id, token_type: str, expires_in: int, extra: dict | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        "jti": str(uuid.uuid4()),
    }
    if company_id is not None:
        payload["company_id"] = company_id
    if extra:
        payload.update(extra)
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def generate_access_token(user_id: int, company_id: int | None, role: str) -> str:
    return _encode(user_id, company_id, "access", _get_access_expires(), {"role": role})


def generate_refresh_token(user_id: int, company_id: int | None) -> str:
    return _encode(user_id, company_id, "refresh", _get_refresh_expires())


def generate_token_pair(user_id: int, company_id: int | None, role: str) -> dict:
    return {
        "access_token": generate_access_token(user_id, company_id, role),
        "refresh_token": generate_refresh_token(user_id, company_id),
        "token_type": "Bearer",
        "expires_in": _get_access_expires(),
    }


def decode_token(token: str, expected_type: str = "access") -> dict:
    """Decode and verify *token*.

    Raises jwt.InvalidTokenError (or a subclass such as
    ExpiredSignatureError) on any failure.
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token, got {payload.get('type')}")
    return payload


def decode_access_token(token: str) -> dict:
    return decode_token(token, expected_type="access")


def decode_refresh_token(token: str) -> dict:
    return decode_token(token, expected_type="refresh")


def user_id_from_payload(payload: dict) -> int:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise jwt.InvalidTokenError("Token subject is not a user id") from None


def hash_token(token: str) -> str:
    """SHA-256 of a refresh token; raw refresh tokens are never stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
