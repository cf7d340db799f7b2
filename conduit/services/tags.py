"""
Tag reconciliation: brings an article's tag associations to a desired
set with the fewest inserts and deletes.

Two signals are kept apart throughout: ``None`` means "no tag list was
supplied" (leave associations alone) while an empty list means "clear
every tag".  Tag rows are global, keyed by their text, created lazily and
never removed here; only association rows come and go.
"""
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import tag_cache
from conduit.errors import FieldErrors
from conduit.models import TAG_NAME_MAX_LENGTH, Article, Tag


@dataclass(frozen=True)
class TagDiff:
    to_create: frozenset[str] = field(default_factory=frozenset)
    to_remove: frozenset[str] = field(default_factory=frozenset)

    @property
    def changed(self) -> bool:
        return bool(self.to_create or self.to_remove)


def normalize_tags(tag_texts: Iterable[str] | None) -> list[str] | None:
    """Strip whitespace, drop blanks and duplicates, keep first-seen order."""
    if tag_texts is None:
        return None
    seen: dict[str, None] = {}
    for text in tag_texts:
        text = text.strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)


def check_tag_lengths(tag_texts: Iterable[str] | None, errors: FieldErrors) -> None:
    """Record every submitted tag that would not fit in ``tags.name``."""
    for text in normalize_tags(tag_texts) or ():
        if len(text) > TAG_NAME_MAX_LENGTH:
            errors.add(
                "tag_list",
                f"Tag '{text[:20]}...' is longer than {TAG_NAME_MAX_LENGTH} characters",
            )


def reconcile(existing: Iterable[str], desired: Iterable[str] | None) -> TagDiff:
    """Compute the associations to add and remove; ``desired=None`` is a no-op."""
    if desired is None:
        return TagDiff()
    existing_set = frozenset(existing)
    desired_set = frozenset(normalize_tags(desired) or ())
    return TagDiff(
        to_create=desired_set - existing_set,
        to_remove=existing_set - desired_set,
    )


async def ensure_tags(db: AsyncSession, names: Iterable[str]) -> list[Tag]:
    """
    Return a Tag for every name, reusing existing rows and creating the
    missing ones inside the caller's transaction.  Creating a tag marks the
    cached tag list stale; it is dropped when the transaction commits.

    ``AsyncSession.get`` consults the identity map first, so a tag that is
    already pending in this unit of work is reused instead of inserted
    twice.  A concurrent transaction inserting the same text loses on the
    primary key and surfaces as an ``IntegrityError``.
    """
    tags: list[Tag] = []
    created = False
    for name in names:
        tag = await db.get(Tag, name)
        if tag is None:
            tag = Tag(name=name)
            db.add(tag)
            created = True
        tags.append(tag)
    if created:
        await db.flush()
        tag_cache.mark_stale(db)
    return tags


async def apply_tags(db: AsyncSession, article: Article, desired: Iterable[str] | None) -> TagDiff:
    """
    Reconcile *article*'s loaded ``tags`` collection against *desired*.

    The collection must have been eager-loaded by the caller (it is
    ``noload`` by default).
    """
    current = {tag.name: tag for tag in article.tags}
    diff = reconcile(current, desired)
    if not diff.changed:
        return diff

    # Keep the caller's order for the new associations.
    ordered_new = [name for name in normalize_tags(desired) or () if name in diff.to_create]
    new_tags = await ensure_tags(db, ordered_new)
    article.tags = [tag for name, tag in current.items() if name not in diff.to_remove] + new_tags
    return diff


async def list_tags(db: AsyncSession) -> list[str]:
    """Return every tag text in alphabetical order, served from Redis when warm."""
    cached = await tag_cache.get_tags()
    if cached is not None:
        return cached

    result = await db.execute(select(Tag.name).order_by(Tag.name))
    tags = list(result.scalars().all())
    await tag_cache.set_tags(tags)
    return tags
