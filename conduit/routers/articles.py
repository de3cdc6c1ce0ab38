from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.cache import CacheManager
from conduit.database import get_db
from conduit.dependencies import PaginationParams, get_cache, get_viewer_id
from conduit.schemas import (
    ArticleCreateEnvelope,
    ArticleEnvelope,
    ArticleListResponse,
    ArticleUpdateEnvelope,
)
from conduit.services import article_service, feed_service

router = APIRouter(prefix="/api/articles", tags=["articles"])

@router.get("", response_model=ArticleListResponse)
async def list_articles(
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    pagination: PaginationParams = Depends(),
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await feed_service.list_articles(
        db,
        viewer_id,
        tag=tag,
        author=author,
        favorited=favorited,
        limit=pagination.limit,
        offset=pagination.offset,
    )

# Declared before "/{slug}" so "feed" is not taken for a slug.
@router.get("/feed", response_model=ArticleListResponse)
async def list_feed(
    pagination: PaginationParams = Depends(),
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return await feed_service.list_feed(db, viewer_id, pagination.limit, pagination.offset)

@router.post("", status_code=201, response_model=ArticleEnvelope)
async def create_article(
    payload: ArticleCreateEnvelope,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return {"article": await article_service.create_article(db, viewer_id, payload.article, cache)}

@router.get("/{slug}", response_model=ArticleEnvelope)
async def get_article(
    slug: str,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.get_article(db, slug, viewer_id)}

@router.put("/{slug}", response_model=ArticleEnvelope)
async def update_article(
    slug: str,
    payload: ArticleUpdateEnvelope,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    return {"article": await article_service.update_article(db, slug, viewer_id, payload.article, cache)}

@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
    cache: CacheManager = Depends(get_cache),
):
    await article_service.delete_article(db, slug, viewer_id, cache)
    return Response(status_code=204)

@router.post("/{slug}/favorite", response_model=ArticleEnvelope)
async def favorite_article(
    slug: str,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.favorite_article(db, slug, viewer_id)}

@router.delete("/{slug}/favorite", response_model=ArticleEnvelope)
async def unfavorite_article(
    slug: str,
    viewer_id: int | None = Depends(get_viewer_id),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.unfavorite_article(db, slug, viewer_id)}
