"""
Company service.

SuperAdmin manages companies; an Admin may edit their own company.
Company names are unique among non-deleted companies.
"""

import logging

from sqlalchemy import func

from worktrack.core.exceptions import ConflictError, NotFoundError
from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.company import Company
from worktrack.models.project import Project
from worktrack.services.activity_log_service import log_activity
from worktrack.services.authorization_service import is_admin, is_super_admin
from worktrack.services.identity import get_actor
from worktrack.utils.helpers import clean_str

logger = logging.getLogger(__name__)

_DUPLICATE_NAME = "Company name already exists"


def company_name_taken(name, exclude_id=None) -> bool:
    query = Company.query_active().filter(func.lower(Company.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Company.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _load_company(actor, company_id) -> Company:
    """SuperAdmin reaches any company; everyone else only their own."""
    company = db.session.get(Company, company_id) if company_id is not None else None
    if company is None or company.is_deleted:
        raise NotFoundError(resource="Company", resource_id=company_id)
    if not is_super_admin(actor) and company.id != actor.company_id:
        logger.info("Cross-company company access denied: user=%s company=%s", actor.id, company_id)
        raise NotFoundError(resource="Company", resource_id=company_id)
    return company


@service_operation("company.list")
def list_companies(actor_id):
    actor = get_actor(actor_id)
    query = Company.query_active()
    if not is_super_admin(actor):
        query = query.filter(Company.id == actor.company_id)
    return ServiceResult.success([c.to_dict() for c in query.order_by(Company.name).all()])


@service_operation("company.get")
def get_company(actor_id, company_id):
    actor = get_actor(actor_id)
    company = _load_company(actor, company_id)
    return ServiceResult.success(company.to_dict())


@service_operation("company.create")
def create_company(actor_id, data: dict):
    actor = get_actor(actor_id)
    if not is_super_admin(actor):
        return ServiceResult.forbidden("Only Super Admin can create companies")

    name = clean_str(data.get("name"))
    if not name:
        return ServiceResult.bad_request("Company name is required")
    if company_name_taken(name):
        raise ConflictError("Company", "name", name, message=_DUPLICATE_NAME)

    company = Company(
        name=name,
        description=data.get("description"),
        logo=clean_str(data.get("logo")) or None,
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(company)
    db.session.flush()

    log_activity(
        user_id=actor.id, action="Created", entity_type="Company", entity_id=company.id,
        description=f"Created company '{company.name}'",
    )
    db.session.commit()
    logger.info("Company %s created by user %s", company.id, actor.id)
    return ServiceResult.created(company.to_dict())


@service_operation("company.update")
def update_company(actor_id, company_id, data: dict):
    actor = get_actor(actor_id)
    company = _load_company(actor, company_id)
    if not is_admin(actor):
        return ServiceResult.forbidden("Only Admin or Super Admin can update the company")

    if "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            return ServiceResult.bad_request("Company name cannot be empty")
        if name != company.name:
            if company_name_taken(name, exclude_id=company.id):
                raise ConflictError("Company", "name", name, message=_DUPLICATE_NAME)
            company.name = name
    if "description" in data:
        company.description = data.get("description")
    if "logo" in data:
        company.logo = clean_str(data.get("logo")) or None
    if "is_active" in data:
        company.is_active = bool(data.get("is_active"))

    log_activity(
        user_id=actor.id, action="Updated", entity_type="Company", entity_id=company.id,
        description=f"Updated company '{company.name}'",
    )
    db.session.commit()
    return ServiceResult.success(company.to_dict())


@service_operation("company.delete")
def delete_company(actor_id, company_id):
    actor = get_actor(actor_id)
    if not is_super_admin(actor):
        return ServiceResult.forbidden("Only Super Admin can delete companies")
    company = _load_company(actor, company_id)

    if company.id == actor.company_id:
        return ServiceResult.bad_request("You cannot delete your own company")
    active_projects = Project.query_active().filter_by(company_id=company.id).count()
    if active_projects:
        return ServiceResult.bad_request("Cannot delete a company with active projects")

    company.soft_delete(by_user_id=actor.id)
    log_activity(
        user_id=actor.id, action="Deleted", entity_type="Company", entity_id=company.id,
        description=f"Deleted company '{company.name}'",
    )
    db.session.commit()
    return ServiceResult.success({"deleted": True, "id": company.id})
