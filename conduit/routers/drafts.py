from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import PaginationParams, get_current_username
from conduit.schemas import ArticleUpdate, DraftCreate
from conduit.services import article_service

router = APIRouter(prefix="/api/v1/drafts", tags=["drafts"])


@router.post("", status_code=201)
async def create_draft(
    data: DraftCreate,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, username, data, as_draft=True)


@router.get("")
async def list_drafts(
    pagination: PaginationParams = Depends(),
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_drafts(db, username, pagination.limit, pagination.offset)


@router.get("/{draft_id}")
async def get_draft(
    draft_id: int,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_draft(db, draft_id, username)


@router.put("/{draft_id}")
async def edit_draft(
    draft_id: int,
    data: ArticleUpdate,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.edit_draft(db, draft_id, username, data)


@router.put("/{draft_id}/publish")
async def publish_draft(
    draft_id: int,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.publish_draft(db, draft_id, username)


@router.delete("/{draft_id}", status_code=204)
async def delete_draft(
    draft_id: int,
    username: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_draft(db, draft_id, username)
