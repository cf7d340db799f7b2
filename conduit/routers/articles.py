from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import PaginationParams, get_current_username
from conduit.schemas import ArticleCreate, ArticleFilters, ArticleUpdate, CommentCreate
from conduit.services import article_service, comment_service, favorite_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])


@router.get("")
async def list_articles(
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    pagination: PaginationParams = Depends(),
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    filters = ArticleFilters(tag=tag, author=author, favorited=favorited)
    return await article_service.list_articles(
        db, filters, pagination.limit, pagination.offset, username
    )


@router.get("/feed")
async def feed(
    pagination: PaginationParams = Depends(),
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.feed_articles(db, username, pagination.limit, pagination.offset)


@router.post("", status_code=201)
async def create_article(
    data: ArticleCreate,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, username, data, as_draft=False)


@router.get("/{slug}")
async def get_article(
    slug: str,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_article(db, slug, username)


@router.put("/{slug}")
async def edit_article(
    slug: str,
    data: ArticleUpdate,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.edit_article(db, slug, username, data)


@router.put("/{slug}/publish")
async def publish_article(
    slug: str,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.publish_article(db, slug, username)


@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, slug, username)


@router.post("/{slug}/favorite")
async def favorite_article(
    slug: str,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await favorite_service.favorite(db, slug, username)


@router.delete("/{slug}/favorite")
async def unfavorite_article(
    slug: str,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await favorite_service.unfavorite(db, slug, username)


@router.get("/{slug}/comments")
async def list_comments(
    slug: str,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return {"comments": await comment_service.list_comments(db, slug, username)}


@router.post("/{slug}/comments", status_code=201)
async def add_comment(
    slug: str,
    data: CommentCreate,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.add_comment(db, slug, username, data)


@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, slug, comment_id, username)
