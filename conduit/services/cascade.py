"""
Article deletion policy.

Deleting an article removes its tag associations, favorite records and
comments, then the article row itself.  Tag rows and every Person
(author, favoriters, commenters) are left untouched.  The dependent rows
are deleted with explicit statements rather than relying on ``ON DELETE
CASCADE``, so SQLite without ``PRAGMA foreign_keys`` behaves like
Postgres and loaded ORM collections are never flushed against rows that
are already gone.
"""
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import Article, Comment, article_favorites, article_tags


async def delete_article_cascade(db: AsyncSession, article: Article) -> None:
    await db.execute(delete(article_tags).where(article_tags.c.article_id == article.id))
    await db.execute(
        delete(article_favorites).where(article_favorites.c.article_id == article.id)
    )
    await db.execute(delete(Comment).where(Comment.article_id == article.id))
    await db.execute(delete(Article).where(Article.id == article.id))
