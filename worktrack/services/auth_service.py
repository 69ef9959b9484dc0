"""
Authentication: email + password to a JWT pair.

Emails are unique per company, not globally, so the same address may
match several users. Login succeeds for the first non-deleted user
whose bcrypt hash verifies.

Each user holds one live refresh token, stored as a SHA-256 hash. Login,
register and refresh rotate it; logout clears it.
"""

import logging

import jwt
from sqlalchemy import func

from worktrack.core.exceptions import ConflictError
from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.company import Company
from worktrack.models.user import SystemRole, User
from worktrack.services.activity_log_service import log_activity
from worktrack.services.company_service import company_name_taken
from worktrack.services.identity import find_active_user
from worktrack.services.jwt_service import (
    decode_refresh_token,
    generate_token_pair,
    hash_token,
    user_id_from_payload,
)
from worktrack.services.user_service import MIN_PASSWORD_LENGTH, normalize_email
from worktrack.utils.crypto import hash_password, verify_password
from worktrack.utils.helpers import clean_str

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH = "Invalid refresh token"


def _candidates(email):
    return (
        User.query_active()
        .outerjoin(Company, Company.id == User.company_id)
        .filter(func.lower(User.email) == email)
        .filter((Company.id.is_(None)) | (Company.deleted_at.is_(None)))
        .order_by(User.id)
        .all()
    )


def _issue_tokens(user: User) -> dict:
    tokens = generate_token_pair(user.id, user.company_id, user.system_role)
    user.refresh_token_hash = hash_token(tokens["refresh_token"])
    return tokens


@service_operation("auth.login")
def login(email, password):
    email = clean_str(email).lower()
    if not email or not password:
        return ServiceResult.bad_request("Email and password are required")

    for user in _candidates(email):
        if user.password_hash and verify_password(password, user.password_hash):
            tokens = _issue_tokens(user)
            db.session.commit()
            logger.info("User %s logged in", user.id)
            return ServiceResult.success({**tokens, "user": user.to_dict()})

    logger.warning("Failed login for %s", email)
    return ServiceResult.unauthorized(INVALID_CREDENTIALS)


@service_operation("auth.register")
def register(data: dict):
    """Create a company and its SuperAdmin in one transaction.

    This is the only way a new tenant comes into existence without an
    existing SuperAdmin.
    """
    company_name = clean_str(data.get("company_name"))
    if not company_name:
        return ServiceResult.bad_request("Company name is required")
    email = normalize_email(data.get("email"))
    if not email:
        return ServiceResult.bad_request("Email is required")
    password = data.get("password") or ""
    if len(password) < MIN_PASSWORD_LENGTH:
        return ServiceResult.bad_request(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if company_name_taken(company_name):
        raise ConflictError("Company", "name", company_name, message="Company name already exists")

    company = Company(name=company_name, is_active=True)
    db.session.add(company)
    db.session.flush()

    user = User(
        company_id=company.id,
        email=email,
        password_hash=hash_password(password),
        first_name=clean_str(data.get("first_name")),
        last_name=clean_str(data.get("last_name")),
        system_role=SystemRole.SUPER_ADMIN.value,
    )
    db.session.add(user)
    db.session.flush()

    log_activity(
        user_id=user.id, action="Registered", entity_type="Company", entity_id=company.id,
        description=f"Registered company {company.name}",
    )
    tokens = _issue_tokens(user)
    db.session.commit()
    logger.info("Company %s registered by user %s", company.id, user.id)
    return ServiceResult.created({**tokens, "user": user.to_dict()})


def _user_for_refresh_token(refresh_token):
    payload = decode_refresh_token(refresh_token)
    user = find_active_user(user_id_from_payload(payload))
    if user is None or user.refresh_token_hash != hash_token(refresh_token):
        return None
    return user


@service_operation("auth.refresh")
def refresh(refresh_token):
    """Rotate a valid refresh token into a new token pair."""
    if not refresh_token:
        return ServiceResult.bad_request("refresh_token is required")
    try:
        user = _user_for_refresh_token(refresh_token)
    except jwt.ExpiredSignatureError:
        return ServiceResult.unauthorized("Refresh token expired")
    except jwt.InvalidTokenError:
        return ServiceResult.unauthorized(INVALID_REFRESH)

    if user is None:
        return ServiceResult.unauthorized(INVALID_REFRESH)
    tokens = _issue_tokens(user)
    db.session.commit()
    return ServiceResult.success(tokens)


@service_operation("auth.logout")
def logout(refresh_token):
    """Revoke *refresh_token*. Unknown or invalid tokens are ignored."""
    if not refresh_token:
        return ServiceResult.success()
    try:
        user = _user_for_refresh_token(refresh_token)
    except jwt.InvalidTokenError:
        logger.info("Logout with an invalid refresh token")
        return ServiceResult.success()

    if user is not None:
        user.refresh_token_hash = None
        db.session.commit()
        logger.info("User %s logged out", user.id)
    return ServiceResult.success()
