"""
Person directory: registration, lookup by username, profiles and the
follow graph.

Passwords and tokens are not handled here; callers arrive with an
already-authenticated username (or none).
"""
from sqlalchemy import delete, exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.errors import AlreadyExistsError, NotFoundError, UnauthorizedError
from conduit.models import Person, person_follows
from conduit.schemas import PersonCreate
from conduit.services.projection import profile_to_dict


async def find_by_username(db: AsyncSession, username: str | None) -> Person | None:
    if not username:
        return None
    result = await db.execute(select(Person).where(Person.username == username))
    return result.scalar_one_or_none()


async def require_person(db: AsyncSession, username: str | None) -> Person:
    """
    Resolve the current identity to a Person.

    Raises UnauthorizedError when no identity is present and
    NotFoundError when it does not name a known person.
    """
    if not username:
        raise UnauthorizedError("Authentication required")
    person = await find_by_username(db, username)
    if person is None:
        raise NotFoundError({"user": ["User not found"]})
    return person


async def create_person(db: AsyncSession, data: PersonCreate) -> dict:
    """
    Register a person.  Username and email uniqueness is enforced by the
    database; a duplicate is reported as AlreadyExistsError and leaves the
    session to be rolled back by the caller.
    """
    person = Person(
        username=data.username,
        email=data.email,
        bio=data.bio,
        image=data.image,
    )
    db.add(person)
    try:
        await db.flush()
    except IntegrityError:
        raise AlreadyExistsError("A user with this username or email already exists")
    return profile_to_dict(person)


async def is_following(db: AsyncSession, follower: Person | None, followed: Person) -> bool:
    if follower is None:
        return False
    q = select(
        exists().where(
            person_follows.c.follower_id == follower.id,
            person_follows.c.followed_id == followed.id,
        )
    )
    return bool((await db.execute(q)).scalar())


async def get_profile(db: AsyncSession, username: str, viewer_username: str | None = None) -> dict:
    person = await find_by_username(db, username)
    if person is None:
        raise NotFoundError({"profile": ["Profile not found"]})
    viewer = await find_by_username(db, viewer_username)
    return profile_to_dict(person, await is_following(db, viewer, person))


async def follow(db: AsyncSession, username: str, viewer_username: str | None) -> dict:
    """Follow *username*; following someone already followed is a no-op."""
    viewer = await require_person(db, viewer_username)
    target = await find_by_username(db, username)
    if target is None:
        raise NotFoundError({"profile": ["Profile not found"]})

    if not await is_following(db, viewer, target):
        await db.execute(
            person_follows.insert().values(follower_id=viewer.id, followed_id=target.id)
        )
    return profile_to_dict(target, True)


async def unfollow(db: AsyncSession, username: str, viewer_username: str | None) -> dict:
    """Stop following *username*; unfollowing someone not followed is a no-op."""
    viewer = await require_person(db, viewer_username)
    target = await find_by_username(db, username)
    if target is None:
        raise NotFoundError({"profile": ["Profile not found"]})

    await db.execute(
        delete(person_follows).where(
            person_follows.c.follower_id == viewer.id,
            person_follows.c.followed_id == target.id,
        )
    )
    return profile_to_dict(target, False)
