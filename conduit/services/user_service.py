"""
User service: registration, login and account settings.

Uniqueness of username and email is checked up front so the caller gets a
precise field error, and enforced again by the unique constraints: the
insert/update runs in a savepoint and a constraint violation from a
concurrent registration is reported as the same ``ValidationError``.
"""
import logging
import re
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.exceptions import AuthenticationError, ValidationError
from conduit.models import User
from conduit.permissions import require_viewer
from conduit.schemas import UserLogin, UserRegister, UserSettingsUpdate
from conduit.security import (
    MAX_PASSWORD_BYTES,
    create_access_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_to_dict(user: User) -> dict:
    """The authenticated user's own view, with a fresh token."""
    return {
        "email": user.email,
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
        "token": create_access_token(user.id),
    }


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _validate_username(username: str, errors: dict[str, list[str]]) -> None:
    if not username.strip():
        errors.setdefault("username", []).append("can't be blank")


def _validate_email(email: str, errors: dict[str, list[str]]) -> None:
    if not email.strip():
        errors.setdefault("email", []).append("can't be blank")
    elif not _EMAIL_RE.match(email):
        errors.setdefault("email", []).append("is invalid")


def _validate_password(password: str, errors: dict[str, list[str]]) -> None:
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        errors.setdefault("password", []).append(
            f"is too short (minimum is {settings.PASSWORD_MIN_LENGTH} characters)"
        )
    elif len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.setdefault("password", []).append(
            f"is too long (maximum is {MAX_PASSWORD_BYTES} bytes)"
        )


async def _check_taken(
    db: AsyncSession,
    errors: dict[str, list[str]],
    username: str | None = None,
    email: str | None = None,
    exclude_id: int | None = None,
) -> None:
    for field, column, value in (("username", User.username, username), ("email", User.email, email)):
        if value is None:
            continue
        q = select(User.id).where(column == value)
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        if (await db.execute(q)).first() is not None:
            errors.setdefault(field, []).append("has already been taken")


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def register(db: AsyncSession, data: UserRegister) -> dict:
    errors: dict[str, list[str]] = {}
    _validate_username(data.username, errors)
    _validate_email(data.email, errors)
    _validate_password(data.password, errors)
    if errors:
        raise ValidationError(errors)

    await _check_taken(db, errors, username=data.username, email=data.email)
    if errors:
        raise ValidationError(errors)

    user = User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
    )
    try:
        async with db.begin_nested():
            db.add(user)
    except IntegrityError as exc:
        raise ValidationError({"username or email": ["has already been taken"]}) from exc

    logger.info("Registered user id=%d username=%s", user.id, user.username)
    return _user_to_dict(user)


async def authenticate(db: AsyncSession, data: UserLogin) -> dict:
    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()
    # One message for unknown email and wrong password.
    if user is None or not verify_password(data.password, user.password_hash):
        raise AuthenticationError("email or password is invalid")
    return _user_to_dict(user)


async def _get_viewer(db: AsyncSession, viewer_id: int | None) -> User:
    viewer_id = require_viewer(viewer_id)
    user = await db.get(User, viewer_id)
    if user is None:
        raise AuthenticationError("Token refers to an unknown user")
    return user


async def get_current_user(db: AsyncSession, viewer_id: int | None) -> dict:
    return _user_to_dict(await _get_viewer(db, viewer_id))


async def update_settings(
    db: AsyncSession, viewer_id: int | None, data: UserSettingsUpdate
) -> dict:
    """
    Partially update the viewer's account.  Only fields present in the
    payload are touched (``model_dump(exclude_unset=True)``); a new password
    is re-hashed.
    """
    user = await _get_viewer(db, viewer_id)
    update_data = data.model_dump(exclude_unset=True)

    errors: dict[str, list[str]] = {}
    if update_data.get("username") is not None:
        _validate_username(update_data["username"], errors)
    if update_data.get("email") is not None:
        _validate_email(update_data["email"], errors)
    if update_data.get("password") is not None:
        _validate_password(update_data["password"], errors)
    if errors:
        raise ValidationError(errors)

    new_username = update_data.get("username")
    new_email = update_data.get("email")
    await _check_taken(
        db,
        errors,
        username=new_username if new_username not in (None, user.username) else None,
        email=new_email if new_email not in (None, user.email) else None,
        exclude_id=user.id,
    )
    if errors:
        raise ValidationError(errors)

    password = update_data.pop("password", None)
    for field, value in update_data.items():
        if field in ("username", "email") and value is None:
            continue
        setattr(user, field, value)
    if password is not None:
        user.password_hash = hash_password(password)
    user.updated_at = datetime.now(timezone.utc)

    try:
        async with db.begin_nested():
            await db.flush()
    except IntegrityError as exc:
        raise ValidationError({"username or email": ["has already been taken"]}) from exc

    logger.info("Updated settings for user id=%d", user.id)
    return _user_to_dict(user)
