"""
Read-side assembly of the externally visible article representation.

Every article-returning operation (list, details, drafts, writes) goes
through ``article_to_dict`` so the shape is identical everywhere.  The
caller supplies the viewer's identity and the set of person ids the
viewer follows; an anonymous viewer follows nobody and has favorited
nothing.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from conduit.models import Article, Comment, Person, person_follows

# Loader options shared by every query that feeds ``article_to_dict``.
ARTICLE_LOAD_OPTIONS = (
    joinedload(Article.author),
    selectinload(Article.tags),
    selectinload(Article.favorited_by),
)

ARTICLE_DETAIL_LOAD_OPTIONS = ARTICLE_LOAD_OPTIONS + (
    selectinload(Article.comments).joinedload(Comment.author),
)


async def followed_ids(db: AsyncSession, viewer: Person | None) -> frozenset[int]:
    if viewer is None:
        return frozenset()
    result = await db.execute(
        select(person_follows.c.followed_id).where(person_follows.c.follower_id == viewer.id)
    )
    return frozenset(result.scalars().all())


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def profile_to_dict(person: Person, following: bool = False) -> dict:
    return {
        "username": person.username,
        "bio": person.bio,
        "image": person.image,
        "following": following,
    }


def comment_to_dict(comment: Comment, following: frozenset[int] = frozenset()) -> dict:
    return {
        "id": comment.id,
        "body": comment.body,
        "created_at": _iso(comment.created_at),
        "updated_at": _iso(comment.updated_at),
        "author": profile_to_dict(comment.author, comment.author_id in following),
    }


def article_to_dict(
    article: Article,
    viewer: Person | None = None,
    following: frozenset[int] = frozenset(),
    with_comments: bool = False,
) -> dict:
    data = {
        "id": article.id,
        "slug": article.slug,
        "title": article.title,
        "description": article.description,
        "body": article.body,
        "tag_list": sorted(tag.name for tag in article.tags),
        "created_at": _iso(article.created_at),
        "updated_at": _iso(article.updated_at),
        "is_draft": article.is_draft,
        "read_count": article.read_count,
        "favorited": viewer is not None and any(p.id == viewer.id for p in article.favorited_by),
        "favorites_count": len(article.favorited_by),
        "author": profile_to_dict(article.author, article.author_id in following),
    }
    if with_comments:
        data["comments"] = [comment_to_dict(c, following) for c in article.comments]
    return data
