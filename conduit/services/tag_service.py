"""
Tag service: upsert-by-name and the cached popular-tags listing.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import TAGS_KEY, CacheManager
from conduit.config import settings
from conduit.models import Tag, article_tags

logger = logging.getLogger(__name__)


def normalize_tag_names(names: list[str]) -> list[str]:
    """Strip, drop blanks and deduplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for name in names:
        name = name.strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


async def _existing_tags(db: AsyncSession, names: list[str]) -> dict[str, Tag]:
    result = await db.execute(select(Tag).where(Tag.name.in_(names)))
    return {tag.name: tag for tag in result.scalars().all()}


async def upsert_tags(db: AsyncSession, names: list[str]) -> list[Tag]:
    """
    Return one ``Tag`` per distinct name, creating the missing ones.

    Existing tags are fetched in a single query.  Each new tag is inserted
    in its own savepoint so that a concurrent insert of the same name only
    costs a re-select instead of failing the caller's transaction.
    """
    names = normalize_tag_names(names)
    if not names:
        return []

    by_name = await _existing_tags(db, names)

    for name in names:
        if name in by_name:
            continue
        tag = Tag(name=name)
        try:
            async with db.begin_nested():
                db.add(tag)
        except IntegrityError:
            result = await db.execute(select(Tag).where(Tag.name == name))
            tag = result.scalar_one()
        by_name[name] = tag

    return [by_name[name] for name in names]


async def get_tags(db: AsyncSession, cache: CacheManager | None = None) -> list[str]:
    """
    Names of tags attached to at least one article, most used first.

    Served cache-aside from Redis when a cache is supplied.
    """
    if cache is not None:
        cached = await cache.get(TAGS_KEY)
        if cached is not None:
            return cached

    usage = func.count(article_tags.c.article_id)
    q = (
        select(Tag.name)
        .join(article_tags, article_tags.c.tag_id == Tag.id)
        .group_by(Tag.id, Tag.name)
        .order_by(usage.desc(), Tag.name.asc())
    )
    names = list((await db.execute(q)).scalars().all())

    if cache is not None:
        await cache.set(TAGS_KEY, names, ttl=settings.CACHE_TTL_TAGS)
    return names
