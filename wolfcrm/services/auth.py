from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..models import LoginCode, User, UserSession
from ..models.base import as_utc, utcnow
from .email import ConsoleEmailClient, EmailClient, EmailDeliveryError, EmailMessage, get_email_client

logger = logging.getLogger(__name__)

CODE_MIN = 100000
CODE_MAX = 999999


class AuthError(Exception):
    """Rejected login step. ``str(exc)`` is the short code sent to clients."""


@dataclass
class CodeIssued:
    delivery: str
    expires_at: datetime


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def generate_code() -> str:
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


class AuthService:
    def __init__(self, db: Session, email_client: Optional[EmailClient] = None) -> None:
        self.db = db
        self._email_client = email_client
        self.fallback_client = ConsoleEmailClient()

    @property
    def email_client(self) -> EmailClient:
        if self._email_client is None:
            self._email_client = get_email_client()
        return self._email_client

    # --- Login code flow -------------------------------------------------
    def request_code(self, email: Optional[str]) -> CodeIssued:
        normalized_email = normalize_email(email)
        if not normalized_email or "@" not in normalized_email:
            raise AuthError("invalid_email")

        user = self.get_or_create_user(normalized_email)

        code = generate_code()
        expires_at = utcnow() + timedelta(minutes=settings.login_code_expiry_minutes)
        login_code = LoginCode(email=normalized_email, code=code, expires_at=expires_at)
        self.db.add(login_code)
        self.db.commit()

        logger.info("login_code_issued user_id=%s login_code_id=%s", user.id, login_code.id)

        delivery = self._deliver_code(normalized_email, code, expires_at)
        return CodeIssued(delivery=delivery, expires_at=expires_at)

    def verify_code(self, email: Optional[str], code: Optional[str]) -> tuple[User, str]:
        normalized_email = normalize_email(email)
        code = (code or "").strip()
        if not normalized_email or not code:
            raise AuthError("missing_params")

        login_code = (
            self.db.query(LoginCode)
            .filter(LoginCode.email == normalized_email, LoginCode.code == code)
            .order_by(LoginCode.created_at.desc())
            .first()
        )
        if login_code is None:
            raise AuthError("invalid_code")
        if login_code.used_at is not None:
            raise AuthError("code_used")

        now = utcnow()
        if now > as_utc(login_code.expires_at):
            raise AuthError("code_expired")

        # Only one verifier can flip used_at; the loser sees zero rows.
        consumed = self.db.execute(
            update(LoginCode)
            .where(LoginCode.id == login_code.id, LoginCode.used_at.is_(None))
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        if consumed.rowcount != 1:
            self.db.rollback()
            raise AuthError("code_used")

        user = self.get_user_by_email(normalized_email)
        if user is None:
            self.db.rollback()
            raise AuthError("user_missing")

        session_token = self.start_session(user, commit=False)
        self.db.commit()

        logger.info("user_login user_id=%s login_code_id=%s", user.id, login_code.id)
        return user, session_token

    # --- Session flow ----------------------------------------------------
    def start_session(self, user: User, commit: bool = True) -> str:
        session_token = secrets.token_urlsafe(32)
        expires_at = None
        if settings.session_ttl_hours:
            expires_at = utcnow() + timedelta(hours=settings.session_ttl_hours)

        self.db.add(
            UserSession(
                token_hash=self.hash_token(session_token),
                user_id=user.id,
                expires_at=expires_at,
            )
        )
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        return session_token

    def session_from_token(self, raw_token: str) -> Optional[tuple[UserSession, User]]:
        if not raw_token:
            return None
        now = utcnow()
        row = (
            self.db.query(UserSession, User)
            .join(User, User.id == UserSession.user_id)
            .filter(
                UserSession.token_hash == self.hash_token(raw_token),
                or_(UserSession.expires_at.is_(None), UserSession.expires_at > now),
            )
            .one_or_none()
        )
        if row is None:
            return None

        session, _ = row
        session.last_used_at = now
        self.db.commit()
        return row

    def revoke_session(self, raw_token: str) -> None:
        hashed = self.hash_token(raw_token)
        deleted = self.db.query(UserSession).filter(UserSession.token_hash == hashed).delete()
        if deleted:
            logger.info("session_revoked hash=%s", hashed[:8])
        self.db.commit()

    # --- Helpers ---------------------------------------------------------
    @staticmethod
    def hash_token(value: str) -> str:
        return hashlib.sha256(value.encode("utf-8")).hexdigest()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return (
            self.db.query(User)
            .filter(func.lower(User.email) == email.lower())
            .one_or_none()
        )

    def get_or_create_user(self, email: str) -> User:
        email = normalize_email(email)
        user = self.get_user_by_email(email)
        if user:
            return user

        try:
            with self.db.begin_nested():
                user = User(email=email)
                self.db.add(user)
        except IntegrityError:
            # Another request inserted the same email first.
            user = self.get_user_by_email(email)
            if user is None:
                raise
            return user

        logger.info("user_created user_id=%s", user.id)
        return user

    def _deliver_code(self, email: str, code: str, expires_at: datetime) -> str:
        message = EmailMessage(
            to=email,
            subject="Your WolfCRM login code",
            text_body=(
                f"Your WolfCRM login code is {code}.\n\n"
                f"It expires at {expires_at.isoformat()} "
                f"({settings.login_code_expiry_minutes} minutes). "
                "If you did not request it, you can ignore this message."
            ),
        )
        try:
            self.email_client.send(message)
            return self.email_client.delivery_mode
        except EmailDeliveryError as exc:
            logger.warning("Login code delivery failed, using console: email=%s error=%s", email, exc)
            self.fallback_client.send(message)
            return self.fallback_client.delivery_mode
