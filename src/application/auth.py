from __future__ import annotations

import logging
import secrets
from datetime import timedelta

import bcrypt

from domain.errors import AuthenticationError
from domain.models import Session, User, utcnow
from domain.schemas import LoginRequest, RegisterRequest
from infrastructure.persistence.store import UserStore, new_object_id

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


class AuthService:
    """Registers users, issues bearer tokens and resolves them back to users."""

    def __init__(self, users: UserStore, token_ttl_seconds: int = 7 * 24 * 3600):
        self._users = users
        self._token_ttl = timedelta(seconds=token_ttl_seconds)

    def register(self, request: RegisterRequest) -> tuple[User, Session]:
        user = User(
            id=new_object_id(),
            email=request.email,
            name=request.name.strip(),
            password_hash=hash_password(request.password),
        )
        self._users.add_user(user)
        logger.info("AuthService registered user_id=%s", user.id)
        return user, self._issue_session(user)

    def login(self, request: LoginRequest) -> tuple[User, Session]:
        user = self._users.find_by_email(request.email)
        if user is None or not verify_password(request.password, user.password_hash):
            logger.warning("AuthService login rejected email=%s", request.email)
            raise AuthenticationError("Invalid credentials")
        logger.info("AuthService login user_id=%s", user.id)
        return user, self._issue_session(user)

    def authenticate(self, token: str | None) -> User:
        if not token:
            raise AuthenticationError("No token, authorization denied")
        session = self._users.get_session(token)
        if session is None:
            raise AuthenticationError("Token is not valid")
        if session.is_expired():
            self._users.delete_session(token)
            raise AuthenticationError("Token has expired")
        user = self._users.get_user(session.user_id)
        if user is None:
            raise AuthenticationError("Token is not valid")
        return user

    def logout(self, token: str) -> None:
        self._users.delete_session(token)

    def _issue_session(self, user: User) -> Session:
        session = Session(
            token=secrets.token_urlsafe(32),
            user_id=user.id,
            expires_at=utcnow() + self._token_ttl,
        )
        self._users.save_session(session)
        return session
