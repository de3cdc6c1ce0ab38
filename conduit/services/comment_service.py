"""
Comment service: comments scoped to one article.

Comments are listed oldest first.  Deletion is reserved to the comment's
author; setting ``ALLOW_ARTICLE_AUTHOR_COMMENT_DELETE`` also lets the
article's author moderate comments on their own article.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from conduit.config import settings
from conduit.exceptions import AuthenticationError, NotFoundError, ValidationError
from conduit.models import Comment, User
from conduit.permissions import ensure_owner, require_viewer
from conduit.schemas import CommentCreate
from conduit.services import profile_service
from conduit.services.article_service import get_article_model

logger = logging.getLogger(__name__)


def _comment_to_dict(comment: Comment, author: User, following: bool) -> dict:
    return {
        "id": comment.id,
        "body": comment.body,
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
        "author": profile_service.profile_to_dict(author, following),
    }


async def add_comment(
    db: AsyncSession,
    slug: str,
    viewer_id: int | None,
    data: CommentCreate,
) -> dict:
    viewer_id = require_viewer(viewer_id)
    article = await get_article_model(db, slug)
    if not data.body.strip():
        raise ValidationError({"body": ["can't be blank"]})

    author = await db.get(User, viewer_id)
    if author is None:
        raise AuthenticationError("Token refers to an unknown user")

    comment = Comment(body=data.body, article_id=article.id, author_id=viewer_id)
    db.add(comment)
    await db.flush()

    logger.info("Comment %d added to %s by user %d", comment.id, slug, viewer_id)
    # Nobody follows themselves, so the author flag is always False here.
    return _comment_to_dict(comment, author, following=False)


async def list_comments(db: AsyncSession, slug: str, viewer_id: int | None = None) -> list[dict]:
    article = await get_article_model(db, slug)

    q = (
        select(Comment)
        .where(Comment.article_id == article.id)
        .options(joinedload(Comment.author))
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    comments = (await db.execute(q)).unique().scalars().all()

    following_ids = await profile_service.get_following_ids(
        db, viewer_id, {c.author_id for c in comments}
    )
    return [
        _comment_to_dict(c, c.author, following=c.author_id in following_ids)
        for c in comments
    ]


async def delete_comment(
    db: AsyncSession, slug: str, comment_id: int, viewer_id: int | None
) -> None:
    viewer_id = require_viewer(viewer_id)
    article = await get_article_model(db, slug)

    comment = await db.get(Comment, comment_id)
    if comment is None or comment.article_id != article.id:
        raise NotFoundError("comment", comment_id)

    moderator = (
        settings.ALLOW_ARTICLE_AUTHOR_COMMENT_DELETE and article.author_id == viewer_id
    )
    if not moderator:
        ensure_owner(comment.author_id, viewer_id, "comment")

    await db.delete(comment)
    await db.flush()
    logger.info("Comment %d deleted from %s by user %d", comment_id, slug, viewer_id)
