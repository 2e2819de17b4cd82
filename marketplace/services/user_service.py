"""
User service: minimal account records that sellers attach to.

Identity and authentication live elsewhere; this module only stores the
account a seller profile is bound to.  Users are fetched without caching
because the list is small and changes infrequently.
"""
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.exceptions import ConflictError, NotFoundError
from marketplace.models import User
from marketplace.schemas import UserCreate
from marketplace.services.slugs import flush_or_conflict

_DUPLICATE = "A user with this username or email already exists"


def user_to_dict(user: User) -> dict:
    """Serialise a User ORM instance to a plain dict (list view)."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "displayName": user.display_name,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


async def get_users(db: AsyncSession) -> list[dict]:
    """Return all users ordered by creation date (newest first)."""
    q = select(User).order_by(User.created_at.desc(), User.id.desc())
    result = await db.execute(q)
    return [user_to_dict(u) for u in result.scalars().all()]


async def get_user(db: AsyncSession, user_id: int) -> dict:
    """
    Return the detail dict for *user_id* including the id of the seller
    profile bound to it, if any.
    """
    q = select(User).where(User.id == user_id).options(selectinload(User.seller))
    user = (await db.execute(q)).scalar_one_or_none()
    if user is None:
        raise NotFoundError(f'User with ID "{user_id}" not found')

    data = user_to_dict(user)
    data["sellerId"] = user.seller.id if user.seller else None
    return data


async def create_user(db: AsyncSession, data: UserCreate) -> dict:
    """
    Create a new user.  Username and email are unique: checked up front,
    and enforced again by the schema's unique constraints on flush.
    """
    q = select(User.id).where(or_(User.username == data.username, User.email == data.email))
    if (await db.execute(q)).first() is not None:
        raise ConflictError(_DUPLICATE)

    user = User(
        username=data.username,
        email=data.email,
        display_name=data.display_name,
    )
    db.add(user)
    await flush_or_conflict(db, _DUPLICATE)
    return user_to_dict(user)
