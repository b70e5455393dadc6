"""Comment Service — flat notes on features, projects, plannings and commitments."""

import logging

from sqlalchemy import select

from wsjfp.core.exceptions import ValidationError
from wsjfp.models import db
from wsjfp.models.comment import COMMENTABLE_TYPES, Comment
from wsjfp.models.history import MODELS_BY_TYPE
from wsjfp.services.helpers.scoped_queries import get_scoped, scoped_all
from wsjfp.tenancy import as_tenant_context, stamp_on_create

logger = logging.getLogger(__name__)


def _target(ctx, commentable_type: str, commentable_id: int):
    if commentable_type not in COMMENTABLE_TYPES:
        raise ValidationError(
            "Invalid comment target", details={"commentable_type": f"unknown type {commentable_type!r}"},
        )
    return get_scoped(MODELS_BY_TYPE[commentable_type], commentable_id, ctx)


def list_comments(ctx, commentable_type: str, commentable_id: int) -> list[Comment]:
    target = _target(ctx, commentable_type, commentable_id)
    return scoped_all(
        select(Comment)
        .where(Comment.commentable_type == commentable_type, Comment.commentable_id == target.id)
        .order_by(Comment.created_at, Comment.id),
        ctx,
    )


def add_comment(ctx, commentable_type: str, commentable_id: int, body) -> Comment:
    target = _target(ctx, commentable_type, commentable_id)
    body = str(body or "").strip()
    if not body:
        raise ValidationError("Invalid comment", details={"body": "body is required"})

    comment = Comment(
        commentable_type=commentable_type,
        commentable_id=target.id,
        user_id=as_tenant_context(ctx).user_id,
        body=body,
    )
    stamp_on_create(comment, ctx)
    db.session.add(comment)
    db.session.commit()
    logger.info("Comment id=%s on %s id=%s", comment.id, commentable_type, target.id)
    return comment
