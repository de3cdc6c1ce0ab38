"""
Credential primitives: bcrypt password hashing and signed viewer tokens.

Tokens are HS256 JWTs (python-jose) whose ``sub`` claim is the user id as
a string.  Decoding failures of any kind surface as
``AuthenticationError``; callers never see a ``JWTError``.
"""
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from conduit.config import settings
from conduit.exceptions import AuthenticationError

# bcrypt only looks at the first 72 bytes of its input and newer releases
# refuse longer passwords outright.
MAX_PASSWORD_BYTES = 72


def hash_password(raw_password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(raw_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(raw_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(raw_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long input: never a match.
        return False


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {"sub": str(user_id), "iat": now, "exp": now + expires_delta}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """Return the user id carried by *token*, or raise ``AuthenticationError``."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise AuthenticationError(f"Invalid token: {exc}") from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.isdigit():
        raise AuthenticationError("Invalid token: malformed subject")
    return int(subject)
