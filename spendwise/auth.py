"""Credential store and authenticator for Spendwise users."""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import cache

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .config import Settings
from .errors import DuplicateUser, InvalidCredentials, InvalidToken, MissingToken
from .security import create_access_token, decode_access_token, hash_password, verify_password

LOG = logging.getLogger(__name__)


@cache
def _dummy_hash(rounds: int) -> str:
    return hash_password("spendwise-timing-guard", rounds=rounds)


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""

    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


class Authenticator:
    """Register users, check their credentials and validate bearer tokens.

    Only :meth:`register` writes to the users table. Tokens are stateless:
    nothing is stored server-side, so a token stays valid until it expires.
    """

    def __init__(self, session: Session, settings: Settings) -> None:
        self.session = session
        self.settings = settings

    def _find_by_email(self, email: str) -> models.User | None:
        stmt = select(models.User).where(models.User.email == email)
        return self.session.scalars(stmt).first()

    def register(self, credentials: schemas.RegisterRequest) -> models.User:
        email = str(credentials.email)
        if self._find_by_email(email) is not None:
            raise DuplicateUser()
        user = models.User(
            email=email,
            password_hash=hash_password(credentials.password, rounds=self.settings.bcrypt_rounds),
        )
        self.session.add(user)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise DuplicateUser() from exc
        self.session.refresh(user)
        LOG.info("Registered user %s", user.id, extra={"user_id": user.id})
        return user

    def login(self, credentials: schemas.LoginRequest) -> tuple[str, models.User]:
        """Check credentials and issue a token.

        Returns:
          The signed token and the matching user.

        Raises:
          InvalidCredentials: For an unknown email or a wrong password; both
            cases are reported identically.
        """

        user = self._find_by_email(str(credentials.email))
        if user is None:
            # Same hashing cost as a real check so response time does not reveal the email.
            verify_password(credentials.password, _dummy_hash(self.settings.bcrypt_rounds))
            LOG.warning("Failed login attempt")
            raise InvalidCredentials()
        if not verify_password(credentials.password, user.password_hash):
            LOG.warning("Failed login attempt")
            raise InvalidCredentials()
        token = create_access_token(
            user.id,
            secret=self.settings.jwt_secret,
            algorithm=self.settings.jwt_algorithm,
            ttl=timedelta(hours=self.settings.token_ttl_hours),
        )
        return token, user

    def authenticate(self, authorization: str | None) -> str:
        """Return the user id bound to the request's bearer token."""

        token = bearer_token(authorization)
        if token is None:
            raise MissingToken()
        try:
            user_id = decode_access_token(token, secret=self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)
        except InvalidToken:
            LOG.debug("Rejected bearer token")
            raise
        # A validly signed token can outlive its user, e.g. after the store is reset.
        if self.session.get(models.User, user_id) is None:
            LOG.debug("Bearer token names unknown user %s", user_id, extra={"user_id": user_id})
            raise InvalidToken()
        return user_id


__all__ = ["Authenticator", "bearer_token"]
