"""Registration, login and refresh-session rotation.

A login opens a :class:`UserSession`. The refresh token handed to the client
carries the session id (``sid``) and is stored encrypted on the session. Every
refresh replaces the stored token, so only the most recently issued refresh
token of a session is accepted.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JOSEError
from sqlalchemy.orm import Session

from app.core import security
from app.core.config import settings
from app.core.permissions import Role
from app.crud import user_crud
from app.models.user.session_model import UserSession
from app.models.user.user_model import User
from app.services.errors import ForbiddenError, InvalidInputError, UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenPair:
    access_token: str
    refresh_token: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def register(self, *, name: Optional[str], email: str, password: str, role: Role = Role.LEARNER) -> User:
        if user_crud.get_user_by_email(self.db, email):
            raise InvalidInputError("email_already_registered")
        user = user_crud.create_user(self.db, name=name, email=email, password=password, role=role)
        logger.info("Registered %s account %s", role.value, user.id)
        return user

    def login(
        self,
        *,
        email: str,
        password: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> TokenPair:
        user = user_crud.get_user_by_email(self.db, email)
        if user is None or not security.verify_password(password, user.hashed_password):
            logger.warning("Login rejected for %s", email)
            raise UnauthorizedError("invalid_credentials")

        session_id = str(uuid.uuid4())
        refresh_token = security.create_refresh_token(session_id)
        session = UserSession(
            id=session_id,
            user_id=user.id,
            refresh_token=security.encrypt_token(refresh_token),
            user_agent=user_agent,
            ip_address=ip_address,
            expires_at=_utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )
        self.db.add(session)
        self.db.commit()

        logger.info("User %s logged in (session %s)", user.id, session.id)
        return TokenPair(access_token=security.create_access_token(user), refresh_token=refresh_token)

    def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        if not refresh_token:
            raise UnauthorizedError("missing_refresh_token")

        try:
            payload = security.decode_refresh_token(refresh_token)
        except JOSEError:
            logger.warning("Refresh rejected: invalid or expired token")
            raise ForbiddenError("invalid_refresh_token")

        session = self._get_session(payload)
        if session is None or session.is_revoked or _as_aware(session.expires_at) <= _utcnow():
            raise ForbiddenError("session_revoked")

        try:
            stored_token = security.decrypt_token(session.refresh_token)
        except JOSEError:
            logger.warning("Refresh rejected: stored token for session %s is unreadable", session.id)
            raise ForbiddenError("session_revoked")
        if stored_token != refresh_token:
            logger.warning("Refresh rejected: stale token replayed for session %s", session.id)
            raise ForbiddenError("session_revoked")

        user = self.db.get(User, session.user_id)
        if user is None:
            raise ForbiddenError("session_revoked")

        new_refresh_token = security.create_refresh_token(session.id)
        session.refresh_token = security.encrypt_token(new_refresh_token)
        session.last_used_at = _utcnow()
        self.db.commit()

        logger.info("Session %s rotated", session.id)
        return TokenPair(access_token=security.create_access_token(user), refresh_token=new_refresh_token)

    def logout(self, refresh_token: Optional[str]) -> None:
        """Revoke the session behind ``refresh_token``; unusable tokens are ignored."""

        if not refresh_token:
            return

        try:
            payload = security.decode_refresh_token(refresh_token)
        except JOSEError as exc:
            logger.debug("Logout with unreadable refresh token ignored: %s", exc)
            return

        session = self._get_session(payload)
        if session is None or session.is_revoked:
            return

        session.is_revoked = True
        self.db.commit()
        logger.info("Session %s revoked", session.id)

    def _get_session(self, payload: dict) -> Optional[UserSession]:
        session_id = payload.get("sid")
        if not session_id:
            return None
        return self.db.get(UserSession, session_id)
