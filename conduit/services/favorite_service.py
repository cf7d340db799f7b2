"""
Favorite service: idempotent favorite / unfavorite of an article.

The ``(person_id, article_id)`` primary key guarantees at most one
favorite row per pair; repeating either operation leaves state unchanged.
"""
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.errors import NotFoundError
from conduit.models import Article
from conduit.services import person_service
from conduit.services.article_service import load_by_slug, render_article
from conduit.services.projection import ARTICLE_LOAD_OPTIONS


async def _load(db: AsyncSession, slug: str) -> Article:
    article = await load_by_slug(db, slug, *ARTICLE_LOAD_OPTIONS)
    if article is None or article.is_draft:
        raise NotFoundError({"article": ["Article not found"]})
    return article


async def favorite(db: AsyncSession, slug: str, username: str | None) -> dict:
    person = await person_service.require_person(db, username)
    article = await _load(db, slug)
    if all(p.id != person.id for p in article.favorited_by):
        article.favorited_by.append(person)
        await db.flush()
    return await render_article(db, article, person)


async def unfavorite(db: AsyncSession, slug: str, username: str | None) -> dict:
    person = await person_service.require_person(db, username)
    article = await _load(db, slug)
    remaining = [p for p in article.favorited_by if p.id != person.id]
    if len(remaining) != len(article.favorited_by):
        article.favorited_by = remaining
        await db.flush()
    return await render_article(db, article, person)
