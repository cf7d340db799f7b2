"""
Article service: the article lifecycle and its read operations.

Lifecycle
---------
An article is created either as a *draft* (slug NULL, only the title
required) or directly as *published* (title, description and body
required, slug derived from the title).  ``Draft -> Published`` is the
only transition and it is one-way; the slug is assigned on that edge,
re-derived from the current title and made unique excluding the
article's own row.

Every mutating operation resolves the caller in the same order:
missing identity -> UnauthorizedError, unknown article -> NotFoundError,
caller is not the author -> ForbiddenError, then field validation, which
reports every violated field together.

Design notes
------------
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency, so a failure anywhere (including a
  lost slug or tag race at the unique index) leaves no partial effect.
- ``updated_at`` is bumped by comparing submitted values against stored
  ones, never by inspecting ORM dirty state.
- Eager loading goes through the shared options in ``projection`` so every
  response is assembled from fully loaded rows.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.errors import ConflictError, FieldErrors, ForbiddenError, NotFoundError
from conduit.models import Article, Person, Tag, person_follows, utcnow
from conduit.schemas import ArticleCreate, ArticleFilters, ArticleUpdate
from conduit.services import person_service
from conduit.services.cascade import delete_article_cascade
from conduit.services.projection import (
    ARTICLE_DETAIL_LOAD_OPTIONS,
    ARTICLE_LOAD_OPTIONS,
    article_to_dict,
    followed_ids,
)
from conduit.services.slugs import (
    article_slug_checker,
    assign_slug,
    generate_slug,
    resolve_unique_slug,
)
from conduit.services.tags import apply_tags, check_tag_lengths, ensure_tags, normalize_tags

_CONTENT_FIELDS = ("title", "description", "body")

_ARTICLE_NOT_FOUND = {"article": ["Article not found"]}
_DRAFT_NOT_FOUND = {"draft": ["Draft not found"]}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _check_publishable(title, description, body, errors: FieldErrors) -> None:
    """Record every content field that would violate the published invariants."""
    for field, value in zip(_CONTENT_FIELDS, (title, description, body)):
        if _blank(value):
            errors.add(field, f"{field.capitalize()} is required")
    if not _blank(title) and not generate_slug(title):
        errors.add("title", "Title must contain at least one letter or digit")


async def _fetch(db: AsyncSession, condition, *options) -> Article | None:
    """
    Load one article.  When eager-load *options* are given the row is
    re-populated even if already in the identity map, so collections
    changed with bulk statements earlier in the same session are fresh.
    Callers pass either no options or a complete set from ``projection``.
    """
    q = select(Article).where(condition).options(*options)
    if options:
        q = q.execution_options(populate_existing=True)
    return (await db.execute(q)).unique().scalar_one_or_none()


async def load_by_slug(db: AsyncSession, slug: str, *options) -> Article | None:
    return await _fetch(db, Article.slug == slug, *options)


async def _get_by_id(db: AsyncSession, article_id: int, *options) -> Article | None:
    return await _fetch(db, Article.id == article_id, *options)


def _ensure_author(article: Article, requester: Person, action: str) -> None:
    if article.author_id != requester.id:
        noun = "draft" if article.is_draft else "article"
        raise ForbiddenError({noun: [f"You are not authorized to {action} this {noun}"]})


async def render_article(
    db: AsyncSession, article: Article, viewer: Person | None, **kwargs
) -> dict:
    return article_to_dict(article, viewer, await followed_ids(db, viewer), **kwargs)


async def _load_owned_article(
    db: AsyncSession, slug: str, requester_username: str | None, action: str, *options
) -> tuple[Article, Person]:
    requester = await person_service.require_person(db, requester_username)
    article = await load_by_slug(db, slug, *options)
    if article is None:
        raise NotFoundError(_ARTICLE_NOT_FOUND)
    _ensure_author(article, requester, action)
    return article, requester


async def _load_owned_draft(
    db: AsyncSession, draft_id: int, requester_username: str | None, action: str, *options
) -> tuple[Article, Person]:
    requester = await person_service.require_person(db, requester_username)
    article = await _get_by_id(db, draft_id, *options)
    if article is None or not article.is_draft:
        raise NotFoundError(_DRAFT_NOT_FOUND)
    _ensure_author(article, requester, action)
    return article, requester


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------

async def create_article(
    db: AsyncSession,
    author_username: str | None,
    data: ArticleCreate,
    as_draft: bool = False,
) -> dict:
    """
    Create a draft (``as_draft=True``) or a published article.

    Tags are resolved and the slug probed before the Article is
    constructed, so the new row is inserted exactly once, complete.
    """
    author = await person_service.require_person(db, author_username)

    errors = FieldErrors()
    if as_draft:
        if _blank(data.title):
            errors.add("title", "Title is required")
    else:
        _check_publishable(data.title, data.description, data.body, errors)
    check_tag_lengths(data.tag_list, errors)
    errors.raise_if_any()

    tags = await ensure_tags(db, normalize_tags(data.tag_list) or [])
    slug = None
    if not as_draft:
        slug = await resolve_unique_slug(generate_slug(data.title), article_slug_checker(db))

    now = utcnow()
    article = Article(
        slug=slug,
        title=data.title,
        description=data.description,
        body=data.body,
        is_draft=as_draft,
        read_count=0,
        created_at=now,
        updated_at=now,
        author=author,
        tags=tags,
        favorited_by=[],
    )
    db.add(article)
    await db.flush()
    return await render_article(db, article, author)


async def _apply_edit(db: AsyncSession, article: Article, data: ArticleUpdate) -> None:
    errors = FieldErrors()
    if data.title is not None and _blank(data.title):
        errors.add("title", "Title must not be empty")
    if not article.is_draft:
        for field in ("description", "body"):
            value = getattr(data, field)
            if value is not None and _blank(value):
                errors.add(field, f"{field.capitalize()} must not be empty")
        if not _blank(data.title) and not generate_slug(data.title):
            errors.add("title", "Title must contain at least one letter or digit")
    check_tag_lengths(data.tag_list, errors)
    errors.raise_if_any()

    changed: set[str] = set()
    for field in _CONTENT_FIELDS:
        value = getattr(data, field)
        if value is not None and value != getattr(article, field):
            setattr(article, field, value)
            changed.add(field)

    diff = await apply_tags(db, article, data.tag_list)

    if "title" in changed and not article.is_draft:
        await assign_slug(db, article)
    if changed or diff.changed:
        article.updated_at = utcnow()
    await db.flush()


async def edit_article(
    db: AsyncSession, slug: str, requester_username: str | None, data: ArticleUpdate
) -> dict:
    """
    Partially update the article at *slug*.

    Changing the title of a published article re-derives its slug.
    """
    article, requester = await _load_owned_article(
        db, slug, requester_username, "edit", *ARTICLE_LOAD_OPTIONS
    )
    await _apply_edit(db, article, data)
    return await render_article(db, article, requester)


async def edit_draft(
    db: AsyncSession, draft_id: int, requester_username: str | None, data: ArticleUpdate
) -> dict:
    article, requester = await _load_owned_draft(
        db, draft_id, requester_username, "edit", *ARTICLE_LOAD_OPTIONS
    )
    await _apply_edit(db, article, data)
    return await render_article(db, article, requester)


async def _publish(db: AsyncSession, article: Article) -> None:
    if not article.is_draft:
        raise ConflictError("Article is already published")

    errors = FieldErrors()
    _check_publishable(article.title, article.description, article.body, errors)
    errors.raise_if_any()

    await assign_slug(db, article)
    article.is_draft = False
    article.updated_at = utcnow()
    await db.flush()


async def publish_article(db: AsyncSession, slug: str, requester_username: str | None) -> dict:
    """
    Publish the article addressed by *slug*.

    New drafts carry no slug and are published through ``publish_draft``.
    By slug this reaches either a published article, reported as a
    ConflictError, or a draft that still carries a working slug, which is
    published with its slug re-derived from the current title.
    """
    article, requester = await _load_owned_article(
        db, slug, requester_username, "publish", *ARTICLE_LOAD_OPTIONS
    )
    await _publish(db, article)
    return await render_article(db, article, requester)


async def publish_draft(db: AsyncSession, draft_id: int, requester_username: str | None) -> dict:
    """
    Publish the draft with *draft_id*.

    Unlike the other draft operations an already-published article is
    reported as a ConflictError rather than NotFoundError, because the
    caller asked for a transition that has already happened.
    """
    requester = await person_service.require_person(db, requester_username)
    article = await _get_by_id(db, draft_id, *ARTICLE_LOAD_OPTIONS)
    if article is None:
        raise NotFoundError(_DRAFT_NOT_FOUND)
    _ensure_author(article, requester, "publish")
    await _publish(db, article)
    return await render_article(db, article, requester)


async def delete_article(db: AsyncSession, slug: str, requester_username: str | None) -> None:
    article, _ = await _load_owned_article(db, slug, requester_username, "delete")
    await delete_article_cascade(db, article)


async def delete_draft(db: AsyncSession, draft_id: int, requester_username: str | None) -> None:
    article, _ = await _load_owned_draft(db, draft_id, requester_username, "delete")
    await delete_article_cascade(db, article)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_article(db: AsyncSession, slug: str, viewer_username: str | None = None) -> dict:
    """
    Return the article at *slug* with its comments, incrementing the read
    counter for published articles.  Drafts are visible to their author only.
    """
    article = await load_by_slug(db, slug, *ARTICLE_DETAIL_LOAD_OPTIONS)
    if article is None:
        raise NotFoundError(_ARTICLE_NOT_FOUND)
    viewer = await person_service.find_by_username(db, viewer_username)
    if article.is_draft:
        if viewer is None or viewer.id != article.author_id:
            raise ForbiddenError({"article": ["Drafts are only visible to their author"]})
    else:
        article.read_count += 1
        await db.flush()
    return await render_article(db, article, viewer, with_comments=True)


async def get_draft(db: AsyncSession, draft_id: int, viewer_username: str | None) -> dict:
    article, viewer = await _load_owned_draft(
        db, draft_id, viewer_username, "access", *ARTICLE_DETAIL_LOAD_OPTIONS
    )
    return await render_article(db, article, viewer, with_comments=True)


async def _page(
    db: AsyncSession,
    conditions: list,
    order_by: tuple,
    limit: int,
    offset: int,
    viewer: Person | None,
) -> tuple[list[dict], int]:
    """
    Issue the COUNT over the full filtered set, then the windowed SELECT
    with relationships eager-loaded.
    """
    total: int = (
        await db.execute(select(func.count()).select_from(Article).where(*conditions))
    ).scalar_one()

    q = (
        select(Article)
        .where(*conditions)
        .options(*ARTICLE_LOAD_OPTIONS)
        .order_by(*order_by)
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    articles = (await db.execute(q)).unique().scalars().all()
    following = await followed_ids(db, viewer)
    return [article_to_dict(a, viewer, following) for a in articles], total


async def list_articles(
    db: AsyncSession,
    filters: ArticleFilters | None = None,
    limit: int = 20,
    offset: int = 0,
    viewer_username: str | None = None,
) -> dict:
    """
    Return published articles, newest first.  The tag, author and
    favorited filters are each optional and combine with AND.
    """
    filters = filters or ArticleFilters()
    conditions = [Article.is_draft.is_(False)]
    if filters.tag:
        conditions.append(Article.tags.any(Tag.name == filters.tag))
    if filters.author:
        conditions.append(Article.author.has(Person.username == filters.author))
    if filters.favorited:
        conditions.append(Article.favorited_by.any(Person.username == filters.favorited))

    viewer = await person_service.find_by_username(db, viewer_username)
    articles, total = await _page(
        db, conditions, (Article.created_at.desc(), Article.id.desc()), limit, offset, viewer
    )
    return {"articles": articles, "articles_count": total}


async def feed_articles(
    db: AsyncSession, viewer_username: str | None, limit: int = 20, offset: int = 0
) -> dict:
    """Published articles written by people the viewer follows, newest first."""
    viewer = await person_service.require_person(db, viewer_username)
    followed = select(person_follows.c.followed_id).where(
        person_follows.c.follower_id == viewer.id
    )
    conditions = [Article.is_draft.is_(False), Article.author_id.in_(followed)]
    articles, total = await _page(
        db, conditions, (Article.created_at.desc(), Article.id.desc()), limit, offset, viewer
    )
    return {"articles": articles, "articles_count": total}


async def list_drafts(
    db: AsyncSession, viewer_username: str | None, limit: int = 20, offset: int = 0
) -> dict:
    """The viewer's own drafts, most recently updated first."""
    viewer = await person_service.require_person(db, viewer_username)
    conditions = [Article.is_draft.is_(True), Article.author_id == viewer.id]
    drafts, total = await _page(
        db, conditions, (Article.updated_at.desc(), Article.id.desc()), limit, offset, viewer
    )
    return {"drafts": drafts, "drafts_count": total}


async def get_article_for_viewer(
    db: AsyncSession, slug: str, viewer: Person | None
) -> Article:
    """
    Load the bare article at *slug* for dependent operations
    such as comments; drafts are hidden from everyone but their author.
    """
    article = await load_by_slug(db, slug)
    if article is None:
        raise NotFoundError(_ARTICLE_NOT_FOUND)
    if article.is_draft and (viewer is None or viewer.id != article.author_id):
        raise ForbiddenError({"article": ["Drafts are only visible to their author"]})
    return article
