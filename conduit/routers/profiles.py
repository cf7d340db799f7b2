from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import get_current_username
from conduit.schemas import PersonCreate
from conduit.services import person_service

router = APIRouter(prefix="/api/v1", tags=["profiles"])


@router.post("/users", status_code=201)
async def register(data: PersonCreate, db: AsyncSession = Depends(get_db)):
    return await person_service.create_person(db, data)


@router.get("/profiles/{username}")
async def get_profile(
    username: str,
    viewer: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await person_service.get_profile(db, username, viewer)


@router.post("/profiles/{username}/follow")
async def follow(
    username: str,
    viewer: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await person_service.follow(db, username, viewer)


@router.delete("/profiles/{username}/follow")
async def unfollow(
    username: str,
    viewer: str | None = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
):
    return await person_service.unfollow(db, username, viewer)
