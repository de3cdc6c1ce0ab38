"""
Article service: business logic for the Article aggregate.

Design notes
------------
- The slug is derived once, at creation, and never touched again so links
  stay stable.  Collisions get a numeric suffix (``-2``, ``-3``...); the
  insert runs in a savepoint and a unique-constraint race moves on to the
  next suffix.
- ``favorited`` and ``favorites_count`` are read from the ``favorites``
  edge table for a whole page of articles at once (see
  ``serialize_articles``), never stored on the article row.
- Relationships are ``lazy="noload"``; every read eager-loads the author
  with ``joinedload`` and the tags with ``selectinload``.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
import re
from datetime import datetime, timezone

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from conduit.cache import CacheManager
from conduit.exceptions import AuthenticationError, NotFoundError, ValidationError
from conduit.models import Article, Comment, User, article_tags, favorites
from conduit.permissions import ensure_owner, require_viewer
from conduit.schemas import ArticleCreate, ArticleUpdate
from conduit.services import profile_service, tag_service

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

_FALLBACK_SLUG = "article"
_MAX_SLUG_ATTEMPTS = 50


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def _slug_candidate(base: str, attempt: int) -> str:
    return base if attempt == 1 else f"{base}-{attempt}"


async def _slug_taken(db: AsyncSession, slug: str) -> bool:
    result = await db.execute(select(Article.id).where(Article.slug == slug))
    return result.first() is not None


def _require_text(fields: dict[str, str | None]) -> None:
    errors = {
        name: ["can't be blank"]
        for name, value in fields.items()
        if value is None or not value.strip()
    }
    if errors:
        raise ValidationError(errors)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _article_to_dict(
    article: Article, favorited: bool, favorites_count: int, following: bool
) -> dict:
    return {
        "slug": article.slug,
        "title": article.title,
        "description": article.description,
        "body": article.body,
        "tag_list": sorted(t.name for t in article.tags),
        "created_at": article.created_at,
        "updated_at": article.updated_at,
        "favorited": favorited,
        "favorites_count": favorites_count,
        "author": profile_service.profile_to_dict(article.author, following),
    }


async def serialize_articles(
    db: AsyncSession, articles: list[Article], viewer_id: int | None = None
) -> list[dict]:
    """
    Decorate *articles* (author and tags already loaded) with the
    viewer-relative flags, using a fixed number of queries per page.
    """
    if not articles:
        return []
    ids = [a.id for a in articles]

    counts_q = (
        select(favorites.c.article_id, func.count())
        .where(favorites.c.article_id.in_(ids))
        .group_by(favorites.c.article_id)
    )
    counts = {article_id: n for article_id, n in (await db.execute(counts_q)).all()}

    favorited_ids: set[int] = set()
    if viewer_id is not None:
        fav_q = select(favorites.c.article_id).where(
            favorites.c.user_id == viewer_id,
            favorites.c.article_id.in_(ids),
        )
        favorited_ids = set((await db.execute(fav_q)).scalars().all())

    following_ids = await profile_service.get_following_ids(
        db, viewer_id, {a.author_id for a in articles}
    )

    return [
        _article_to_dict(
            a,
            favorited=a.id in favorited_ids,
            favorites_count=counts.get(a.id, 0),
            following=a.author_id in following_ids,
        )
        for a in articles
    ]


async def has_favorited(db: AsyncSession, user_id: int, article_id: int) -> bool:
    q = select(favorites.c.article_id).where(
        favorites.c.user_id == user_id,
        favorites.c.article_id == article_id,
    )
    return (await db.execute(q)).first() is not None


async def _serialize_one(db: AsyncSession, article: Article, viewer_id: int | None) -> dict:
    return (await serialize_articles(db, [article], viewer_id))[0]


async def get_article_model(db: AsyncSession, slug: str) -> Article:
    """Load an article with author and tags, or raise ``NotFoundError``."""
    q = (
        select(Article)
        .where(Article.slug == slug)
        .options(joinedload(Article.author), selectinload(Article.tags))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    article = result.unique().scalar_one_or_none()
    if article is None:
        raise NotFoundError("article", slug)
    return article


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_article(
    db: AsyncSession,
    author_id: int | None,
    data: ArticleCreate,
    cache: CacheManager | None = None,
) -> dict:
    author_id = require_viewer(author_id)
    _require_text({"title": data.title, "description": data.description, "body": data.body})

    tags = await tag_service.upsert_tags(db, data.tag_list)
    base = slugify(data.title) or _FALLBACK_SLUG

    for attempt in range(1, _MAX_SLUG_ATTEMPTS + 1):
        slug = _slug_candidate(base, attempt)
        if await _slug_taken(db, slug):
            continue
        article = Article(
            slug=slug,
            title=data.title,
            description=data.description,
            body=data.body,
            author_id=author_id,
        )
        try:
            async with db.begin_nested():
                db.add(article)
        except IntegrityError:
            # Another writer claimed this slug between the check and the insert.
            logger.debug("Slug %r claimed concurrently, retrying", slug)
            continue
        break
    else:
        raise ValidationError({"title": ["could not derive a unique slug"]})

    article.tags = list(tags)
    await db.flush()

    logger.info("Article created: slug=%s author_id=%d", article.slug, author_id)
    if cache is not None:
        await cache.invalidate_tags()

    article = await get_article_model(db, article.slug)
    return await _serialize_one(db, article, author_id)


async def get_article(db: AsyncSession, slug: str, viewer_id: int | None = None) -> dict:
    article = await get_article_model(db, slug)
    return await _serialize_one(db, article, viewer_id)


async def update_article(
    db: AsyncSession,
    slug: str,
    viewer_id: int | None,
    data: ArticleUpdate,
    cache: CacheManager | None = None,
) -> dict:
    """
    Partially update an article.  Only fields explicitly set in the payload
    are modified (``model_dump(exclude_unset=True)``); the slug is kept.
    """
    require_viewer(viewer_id)
    article = await get_article_model(db, slug)
    ensure_owner(article.author_id, viewer_id, "article")

    update_data = data.model_dump(exclude_unset=True)
    tag_names: list[str] | None = update_data.pop("tag_list", None)
    _require_text(update_data)

    for field, value in update_data.items():
        setattr(article, field, value)
    if tag_names is not None:
        article.tags = await tag_service.upsert_tags(db, tag_names)
    article.updated_at = datetime.now(timezone.utc)

    await db.flush()
    logger.info("Article updated: slug=%s", slug)
    if cache is not None and tag_names is not None:
        await cache.invalidate_tags()
    return await _serialize_one(db, article, viewer_id)


async def delete_article(
    db: AsyncSession,
    slug: str,
    viewer_id: int | None,
    cache: CacheManager | None = None,
) -> None:
    """
    Delete an article together with its comments, favorites and tag links.

    All four deletes share one savepoint: if any of them fails nothing is
    removed and the error propagates.
    """
    require_viewer(viewer_id)
    article = await get_article_model(db, slug)
    ensure_owner(article.author_id, viewer_id, "article")

    async with db.begin_nested():
        await db.execute(delete(Comment).where(Comment.article_id == article.id))
        await db.execute(delete(favorites).where(favorites.c.article_id == article.id))
        await db.execute(delete(article_tags).where(article_tags.c.article_id == article.id))
        await db.execute(delete(Article).where(Article.id == article.id))

    logger.info("Article deleted: slug=%s", slug)
    if cache is not None:
        await cache.invalidate_tags()


async def favorite_article(db: AsyncSession, slug: str, viewer_id: int | None) -> dict:
    """Add the viewer's favorite edge.  Repeating the call changes nothing."""
    viewer_id = require_viewer(viewer_id)
    article = await get_article_model(db, slug)
    if await db.get(User, viewer_id) is None:
        raise AuthenticationError("Token refers to an unknown user")

    if not await has_favorited(db, viewer_id, article.id):
        try:
            async with db.begin_nested():
                await db.execute(
                    insert(favorites).values(user_id=viewer_id, article_id=article.id)
                )
        except IntegrityError:
            # Only a concurrent identical favorite is benign.
            if not await has_favorited(db, viewer_id, article.id):
                raise
            logger.debug("Favorite %d -> %s already present", viewer_id, slug)

    return await _serialize_one(db, article, viewer_id)


async def unfavorite_article(db: AsyncSession, slug: str, viewer_id: int | None) -> dict:
    viewer_id = require_viewer(viewer_id)
    article = await get_article_model(db, slug)
    await db.execute(
        delete(favorites).where(
            favorites.c.user_id == viewer_id,
            favorites.c.article_id == article.id,
        )
    )
    return await _serialize_one(db, article, viewer_id)
