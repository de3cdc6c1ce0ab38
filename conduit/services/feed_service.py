"""
Feed service: filtered, paginated article listings.

Every listing issues the same shape of statements:

1. COUNT over the filtered set, ignoring limit/offset.
2. SELECT of the page, ordered newest first with ``id DESC`` as the
   tie-breaker, author joined and tags select-loaded.
3. The per-page flag queries from ``article_service.serialize_articles``.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from conduit.config import settings
from conduit.models import Article, Tag, User, article_tags, favorites, follows
from conduit.permissions import require_viewer
from conduit.services.article_service import serialize_articles


def clamp_page(limit: int | None, offset: int | None) -> tuple[int, int]:
    """
    Apply the listing defaults: a missing limit means ``DEFAULT_PAGE_SIZE``,
    negatives become 0 and the limit never exceeds ``MAX_PAGE_SIZE``.
    A limit of 0 is honoured (no rows, but a real total).
    """
    if limit is None:
        limit = settings.DEFAULT_PAGE_SIZE
    limit = min(max(limit, 0), settings.MAX_PAGE_SIZE)
    offset = max(offset or 0, 0)
    return limit, offset


async def _fetch_page(
    db: AsyncSession,
    conditions: list,
    limit: int | None,
    offset: int | None,
    viewer_id: int | None,
) -> dict:
    limit, offset = clamp_page(limit, offset)

    count_q = select(func.count()).select_from(Article).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    articles: list[Article] = []
    if limit > 0 and offset < total:
        page_q = (
            select(Article)
            .where(*conditions)
            .options(joinedload(Article.author), selectinload(Article.tags))
            .order_by(Article.created_at.desc(), Article.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(page_q)
        articles = list(result.unique().scalars().all())

    return {
        "articles": await serialize_articles(db, articles, viewer_id),
        "articles_count": total,
    }


async def list_articles(
    db: AsyncSession,
    viewer_id: int | None = None,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    limit: int | None = None,
    offset: int | None = 0,
) -> dict:
    """
    Global feed.  ``tag`` keeps articles carrying that tag, ``author`` and
    ``favorited`` are usernames; an unknown username matches nothing.
    """
    conditions = []
    if tag is not None:
        tagged = (
            select(article_tags.c.article_id)
            .join(Tag, Tag.id == article_tags.c.tag_id)
            .where(Tag.name == tag)
        )
        conditions.append(Article.id.in_(tagged))
    if author is not None:
        authored_by = select(User.id).where(User.username == author)
        conditions.append(Article.author_id.in_(authored_by))
    if favorited is not None:
        favorited_by = (
            select(favorites.c.article_id)
            .join(User, User.id == favorites.c.user_id)
            .where(User.username == favorited)
        )
        conditions.append(Article.id.in_(favorited_by))

    return await _fetch_page(db, conditions, limit, offset, viewer_id)


async def list_feed(
    db: AsyncSession,
    viewer_id: int | None,
    limit: int | None = None,
    offset: int | None = 0,
) -> dict:
    """Articles by the authors the viewer follows, newest first."""
    viewer_id = require_viewer(viewer_id)
    followed = select(follows.c.followee_id).where(follows.c.follower_id == viewer_id)
    return await _fetch_page(db, [Article.author_id.in_(followed)], limit, offset, viewer_id)
