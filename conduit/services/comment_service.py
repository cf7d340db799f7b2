"""
Comment service: comments attached to an article.

Comments on a draft are only visible to, and may only be written by,
the draft's author.  A comment can be deleted by the person who wrote it.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from conduit.errors import ForbiddenError, NotFoundError
from conduit.models import Comment, utcnow
from conduit.schemas import CommentCreate
from conduit.services import person_service
from conduit.services.article_service import get_article_for_viewer
from conduit.services.projection import comment_to_dict, followed_ids


async def add_comment(
    db: AsyncSession, slug: str, author_username: str | None, data: CommentCreate
) -> dict:
    author = await person_service.require_person(db, author_username)
    article = await get_article_for_viewer(db, slug, author)

    now = utcnow()
    comment = Comment(
        body=data.body,
        article_id=article.id,
        author=author,
        created_at=now,
        updated_at=now,
    )
    db.add(comment)
    await db.flush()
    return comment_to_dict(comment, await followed_ids(db, author))


async def list_comments(
    db: AsyncSession, slug: str, viewer_username: str | None = None
) -> list[dict]:
    """Return the article's comments ordered by creation."""
    viewer = await person_service.find_by_username(db, viewer_username)
    article = await get_article_for_viewer(db, slug, viewer)

    q = (
        select(Comment)
        .where(Comment.article_id == article.id)
        .options(joinedload(Comment.author))
        .order_by(Comment.created_at, Comment.id)
    )
    comments = (await db.execute(q)).scalars().all()
    following = await followed_ids(db, viewer)
    return [comment_to_dict(c, following) for c in comments]


async def delete_comment(
    db: AsyncSession, slug: str, comment_id: int, requester_username: str | None
) -> None:
    requester = await person_service.require_person(db, requester_username)
    article = await get_article_for_viewer(db, slug, requester)

    comment = (
        await db.execute(
            select(Comment).where(Comment.id == comment_id, Comment.article_id == article.id)
        )
    ).scalar_one_or_none()
    if comment is None:
        raise NotFoundError({"comment": ["Comment not found"]})
    if comment.author_id != requester.id:
        raise ForbiddenError({"comment": ["You are not authorized to delete this comment"]})

    await db.delete(comment)
    await db.flush()
