"""
Slug derivation and collision resolution for published articles.

``generate_slug`` is a pure function of the title.  ``resolve_unique_slug``
probes ``base``, ``base-1``, ``base-2``, ... against an existence check; it
holds no locks, the surrounding transaction plus the unique index on
``articles.slug`` decide the winner when two publishes race.
"""
import re
from typing import Awaitable, Callable

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import Article

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

SlugExists = Callable[[str], Awaitable[bool]]


def generate_slug(title: str) -> str:
    """Return a lowercase, hyphen-separated slug made of ``[a-z0-9-]`` only."""
    return _NON_ALNUM_RE.sub("-", title.lower()).strip("-")


async def resolve_unique_slug(candidate: str, slug_exists: SlugExists) -> str:
    if not await slug_exists(candidate):
        return candidate
    suffix = 1
    while await slug_exists(f"{candidate}-{suffix}"):
        suffix += 1
    return f"{candidate}-{suffix}"


def article_slug_checker(db: AsyncSession, exclude_id: int | None = None) -> SlugExists:
    """
    Build an existence check against ``articles.slug``.

    *exclude_id* ignores the article's own row so that re-deriving the
    slug of an article that already owns it does not count as a collision.
    """

    async def _exists(slug: str) -> bool:
        condition = Article.slug == slug
        if exclude_id is not None:
            condition = condition & (Article.id != exclude_id)
        return bool((await db.execute(select(exists().where(condition)))).scalar())

    return _exists


async def assign_slug(db: AsyncSession, article: Article) -> str:
    """Derive the slug from the article's current title and make it unique."""
    slug = await resolve_unique_slug(
        generate_slug(article.title or ""), article_slug_checker(db, article.id)
    )
    article.slug = slug
    return slug
