"""Work item comments."""

import logging

from worktrack.core.results import ServiceResult, service_operation
from worktrack.models import db
from worktrack.models.comment import Comment
from worktrack.models.project import Project, ProjectRole, project_role_rank
from worktrack.models.work_item import WorkItem
from worktrack.services.activity_log_service import log_activity
from worktrack.services.authorization_service import (
    Action,
    authorize,
    get_membership,
    is_super_admin,
    require,
)
from worktrack.services.helpers.scoped_queries import get_scoped
from worktrack.services.identity import get_actor
from worktrack.utils.helpers import clean_str

logger = logging.getLogger(__name__)


def _load_visible_item(actor, project_id, item_id):
    project = get_scoped(Project, project_id, company_id=actor.company_id)
    item = get_scoped(WorkItem, item_id, project_id=project.id, resource="Work item")
    require(authorize(actor, Action.VIEW_WORK_ITEM, item), item)
    return item


@service_operation("comment.list")
def list_comments(actor_id, project_id, item_id):
    actor = get_actor(actor_id)
    item = _load_visible_item(actor, project_id, item_id)
    comments = (
        Comment.query_active()
        .filter_by(work_item_id=item.id)
        .order_by(Comment.created_at, Comment.id)
        .all()
    )
    return ServiceResult.success([c.to_dict() for c in comments])


@service_operation("comment.add")
def add_comment(actor_id, project_id, item_id, content):
    actor = get_actor(actor_id)
    item = _load_visible_item(actor, project_id, item_id)

    content = clean_str(content)
    if not content:
        return ServiceResult.bad_request("Comment content is required")

    comment = Comment(work_item_id=item.id, author_id=actor.id, content=content)
    db.session.add(comment)
    db.session.flush()

    log_activity(
        user_id=actor.id, action="Commented", entity_type="WorkItem", entity_id=item.id,
        description=f"Commented on {item.display_key}", new_value=content[:500],
        project_id=item.project_id, work_item_id=item.id,
    )
    db.session.commit()
    return ServiceResult.created(comment.to_dict())


@service_operation("comment.delete")
def delete_comment(actor_id, project_id, item_id, comment_id):
    """Authors, SuperAdmins and project managers may delete a comment."""
    actor = get_actor(actor_id)
    item = _load_visible_item(actor, project_id, item_id)
    comment = get_scoped(Comment, comment_id, work_item_id=item.id, resource="Comment")

    if comment.author_id != actor.id and not is_super_admin(actor):
        membership = get_membership(actor.id, item.project_id)
        if membership is None or membership.rank < project_role_rank(ProjectRole.MANAGER):
            return ServiceResult.forbidden("You can only delete your own comments")

    comment.soft_delete(by_user_id=actor.id)
    log_activity(
        user_id=actor.id, action="Deleted", entity_type="Comment", entity_id=comment.id,
        description=f"Deleted a comment on {item.display_key}",
        project_id=item.project_id, work_item_id=item.id,
    )
    db.session.commit()
    return ServiceResult.success({"deleted": True, "id": comment.id})
