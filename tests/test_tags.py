"""
Tag reconciliation tests: the pure diff, tag-row reuse and the cached
alphabetical tag list.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import database
from conduit.cache import STALE_FLAG, tag_cache
from conduit.errors import FieldErrors, ValidationError
from conduit.models import TAG_NAME_MAX_LENGTH, Person, Tag
from conduit.schemas import DraftCreate
from conduit.services import article_service
from conduit.services.tags import (
    check_tag_lengths,
    ensure_tags,
    list_tags,
    normalize_tags,
    reconcile,
)


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------

def test_reconcile_from_empty():
    diff = reconcile(set(), ["a", "b"])
    assert diff.to_create == {"a", "b"}
    assert diff.to_remove == set()
    assert diff.changed


def test_reconcile_adds_and_removes_minimal_sets():
    diff = reconcile({"a", "b"}, ["b", "c"])
    assert diff.to_create == {"c"}
    assert diff.to_remove == {"a"}


def test_reconcile_absent_list_is_noop():
    diff = reconcile({"a", "b"}, None)
    assert not diff.changed


def test_reconcile_empty_list_clears():
    diff = reconcile({"a", "b"}, [])
    assert diff.to_create == set()
    assert diff.to_remove == {"a", "b"}


def test_reconcile_is_idempotent():
    existing = {"keep", "drop"}
    desired = ["keep", "new"]
    diff = reconcile(existing, desired)
    after = (existing - diff.to_remove) | diff.to_create
    assert after == set(desired)

    again = reconcile(after, desired)
    assert again.to_create == set()
    assert again.to_remove == set()


def test_normalize_tags_strips_and_dedupes():
    assert normalize_tags([" a ", "a", "", "   ", "b"]) == ["a", "b"]
    assert normalize_tags(None) is None
    assert normalize_tags([]) == []


# ---------------------------------------------------------------------------
# ensure_tags / list_tags
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_ensure_tags_reuses_existing_rows(db_session: AsyncSession):
    db_session.add(Tag(name="python"))
    await db_session.flush()

    tags = await ensure_tags(db_session, ["python", "fastapi"])
    assert [t.name for t in tags] == ["python", "fastapi"]

    count = await db_session.scalar(select(func.count()).select_from(Tag))
    assert count == 2


@pytest.mark.asyncio
async def test_list_tags_alphabetical(db_session: AsyncSession):
    await ensure_tags(db_session, ["zeta", "alpha", "mu"])
    assert await list_tags(db_session) == ["alpha", "mu", "zeta"]


@pytest.mark.asyncio
async def test_tags_endpoint(async_client: AsyncClient, alice):
    await async_client.post("/api/v1/users", json={"username": "alice", "email": "a@example.com"})
    await async_client.post(
        "/api/v1/articles",
        json={"title": "T", "description": "D", "body": "B", "tag_list": ["web", "api"]},
        headers=alice,
    )
    resp = await async_client.get("/api/v1/tags")
    assert resp.status_code == 200
    assert resp.json() == {"tags": ["api", "web"]}


@pytest.mark.asyncio
async def test_tags_endpoint_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/tags")
    assert resp.json() == {"tags": []}


def test_check_tag_lengths_bounds_each_tag():
    errors = FieldErrors()
    check_tag_lengths(["a" * TAG_NAME_MAX_LENGTH, "  ok  "], errors)
    assert not errors

    check_tag_lengths(["b" * (TAG_NAME_MAX_LENGTH + 1), "fine", "c" * 250], errors)
    with pytest.raises(ValidationError) as exc:
        errors.raise_if_any()
    assert len(exc.value.errors["tag_list"]) == 2


# ---------------------------------------------------------------------------
# Cache invalidation is tied to the commit
# ---------------------------------------------------------------------------

class FakeRedis:
    """In-memory double for the redis.asyncio calls TagCache makes."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def delete(self, key):
        self.store.pop(key, None)


async def _seed_alice(session_factory) -> None:
    async with session_factory() as setup:
        setup.add(Person(username="alice", email="alice@example.com"))
        await setup.commit()


@pytest.mark.asyncio
async def test_new_tag_survives_recache_before_commit(monkeypatch, session_factory):
    """A reader that re-caches the old list mid-transaction is overruled by the commit."""
    tag_cache._redis = FakeRedis()
    monkeypatch.setattr(database, "async_session", session_factory)
    await _seed_alice(session_factory)

    unit = database.get_db()
    writer = await unit.__anext__()
    await article_service.create_article(
        writer, "alice", DraftCreate(title="Fresh", tag_list=["brandnew"]), as_draft=True
    )

    # Another request read the committed rows before this one finished.
    await tag_cache.set_tags([])
    assert await tag_cache.get_tags() == []

    with pytest.raises(StopAsyncIteration):
        await unit.__anext__()

    assert await tag_cache.get_tags() is None
    async with session_factory() as reader:
        assert await list_tags(reader) == ["brandnew"]


@pytest.mark.asyncio
async def test_failed_unit_of_work_keeps_cache(monkeypatch, session_factory):
    tag_cache._redis = FakeRedis()
    monkeypatch.setattr(database, "async_session", session_factory)

    unit = database.get_db()
    writer = await unit.__anext__()
    await ensure_tags(writer, ["doomed"])
    await tag_cache.set_tags(["cached"])

    with pytest.raises(RuntimeError):
        await unit.athrow(RuntimeError("handler failed"))

    assert await tag_cache.get_tags() == ["cached"]
    assert STALE_FLAG not in writer.info
    async with session_factory() as reader:
        assert await reader.scalar(select(func.count()).select_from(Tag)) == 0


@pytest.mark.asyncio
async def test_tags_endpoint_with_warm_cache(async_client: AsyncClient, alice):
    tag_cache._redis = FakeRedis()
    await async_client.post("/api/v1/users", json={"username": "alice", "email": "a@example.com"})

    assert (await async_client.get("/api/v1/tags")).json() == {"tags": []}

    await async_client.post(
        "/api/v1/drafts", json={"title": "T", "tag_list": ["fresh"]}, headers=alice
    )
    assert (await async_client.get("/api/v1/tags")).json() == {"tags": ["fresh"]}
