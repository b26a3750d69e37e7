"""Password hashing and bearer-token primitives."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import bcrypt
from jose import JWTError, jwt

from .errors import InvalidToken

# bcrypt only looks at the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of ``password`` using ``rounds`` as work factor."""

    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(password), hashed.encode("ascii"))
    except ValueError:
        # Malformed stored hash.
        return False


def create_access_token(
    user_id: str,
    *,
    secret: str,
    algorithm: str = "HS256",
    ttl: timedelta = timedelta(hours=24),
    now: datetime | None = None,
) -> str:
    """Sign a token binding ``user_id`` that expires ``ttl`` after ``now``."""

    issued_at = now or datetime.now(UTC)
    claims = {
        "user_id": user_id,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + ttl).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_access_token(token: str, *, secret: str, algorithm: str = "HS256") -> str:
    """Verify signature and expiry of ``token`` and return the bound user id.

    Raises:
      InvalidToken: If the token is malformed, tampered with, expired or
        does not carry a user id.
    """

    try:
        claims = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as exc:
        raise InvalidToken() from exc
    user_id = claims.get("user_id")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidToken()
    return user_id


__all__ = ["create_access_token", "decode_access_token", "hash_password", "verify_password"]
