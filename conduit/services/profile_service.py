"""
Profile service: public user projections and the follow graph.

``following`` is never stored on a user row: it is the existence of a
``follows`` edge from the viewer, looked up at read time.  Follow and
unfollow are idempotent toggles; a concurrent duplicate follow trips the
composite primary key inside a savepoint and is treated as success.
"""
import logging

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import AuthenticationError, NotFoundError, ValidationError
from conduit.models import User, follows
from conduit.permissions import require_viewer

logger = logging.getLogger(__name__)


def profile_to_dict(user: User, following: bool = False) -> dict:
    return {
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
        "following": following,
    }


async def get_following_ids(
    db: AsyncSession, viewer_id: int | None, user_ids: set[int]
) -> set[int]:
    """Return the subset of *user_ids* the viewer follows, in one query."""
    if viewer_id is None or not user_ids:
        return set()
    q = select(follows.c.followee_id).where(
        follows.c.follower_id == viewer_id,
        follows.c.followee_id.in_(list(user_ids)),
    )
    return set((await db.execute(q)).scalars().all())


async def _get_user_by_username(db: AsyncSession, username: str) -> User:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("profile", username)
    return user


async def get_profile(db: AsyncSession, username: str, viewer_id: int | None = None) -> dict:
    user = await _get_user_by_username(db, username)
    following = user.id in await get_following_ids(db, viewer_id, {user.id})
    return profile_to_dict(user, following)


async def _follow_exists(db: AsyncSession, follower_id: int, followee_id: int) -> bool:
    q = select(follows.c.follower_id).where(
        follows.c.follower_id == follower_id,
        follows.c.followee_id == followee_id,
    )
    return (await db.execute(q)).first() is not None


async def follow(db: AsyncSession, username: str, viewer_id: int | None) -> dict:
    viewer_id = require_viewer(viewer_id)
    user = await _get_user_by_username(db, username)
    if user.id == viewer_id:
        raise ValidationError({"profile": ["cannot follow yourself"]})
    if await db.get(User, viewer_id) is None:
        raise AuthenticationError("Token refers to an unknown user")

    if not await get_following_ids(db, viewer_id, {user.id}):
        try:
            async with db.begin_nested():
                await db.execute(
                    insert(follows).values(follower_id=viewer_id, followee_id=user.id)
                )
        except IntegrityError:
            # Only a concurrent identical follow is benign.
            if not await _follow_exists(db, viewer_id, user.id):
                raise
            logger.debug("Follow %d -> %d already present", viewer_id, user.id)
        else:
            logger.info("User %d followed %s", viewer_id, username)

    return profile_to_dict(user, following=True)


async def unfollow(db: AsyncSession, username: str, viewer_id: int | None) -> dict:
    viewer_id = require_viewer(viewer_id)
    user = await _get_user_by_username(db, username)
    await db.execute(
        delete(follows).where(
            follows.c.follower_id == viewer_id,
            follows.c.followee_id == user.id,
        )
    )
    return profile_to_dict(user, following=False)
