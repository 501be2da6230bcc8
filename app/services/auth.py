"""Session lifecycle: credential checks, token issuance, refresh-token rotation and revocation."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from sqlalchemy.orm import Session

from app.core.security import (
    create_access_token,
    generate_refresh_token_value,
    hash_password,
    refresh_token_expiry,
    verify_password,
)
from app.models.refresh_token import RefreshToken
from app.models.user import User
from app.schemas.auth import UserPublic
from app.services import users
from app.services.audit import (
    EVENT_LOGIN,
    EVENT_LOGIN_FAILED,
    EVENT_LOGOUT,
    EVENT_LOGOUT_ALL,
    EVENT_REFRESH,
    EVENT_REFRESH_FAILED,
    OUTCOME_FAILURE,
    OUTCOME_SUCCESS,
    AuditSink,
    emit,
)

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base for authentication failures; the HTTP layer maps all of them to 401."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidCredentialsError(AuthError):
    """Unknown email, inactive account or wrong password (deliberately not distinguished)."""


class AccountDisabledError(AuthError):
    """The token owner has been deactivated."""


class InvalidOrExpiredTokenError(AuthError):
    """Refresh token unknown, already consumed, revoked or past its expiry."""


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    user: UserPublic
    access_token: str
    refresh_token: str


@lru_cache
def _dummy_password_hash() -> str:
    # Compared against when no usable account exists so every failure path pays one bcrypt check.
    return hash_password("collectdesk-timing-equalizer")


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps from the database as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _issue_access_token(user: User) -> str:
    return create_access_token(sub=user.id, email=user.email, role=user.role)


def _issue_refresh_token(db: Session, user_id: int) -> str:
    """Insert a new refresh-token row (flushed, not committed) and return its value."""
    now = datetime.now(UTC)
    value = generate_refresh_token_value()
    db.add(
        RefreshToken(
            token=value,
            user_id=user_id,
            expires_at=refresh_token_expiry(now),
            created_at=now,
        )
    )
    db.flush()
    return value


def validate_credentials(
    db: Session,
    email: str,
    password: str,
    audit: AuditSink | None = None,
) -> User | None:
    """
    Return the active user whose email and password match, else None.

    Unknown email, inactive account and wrong password all return None; the real
    reason is only recorded on the audit sink. No tokens are issued here.
    """
    user = users.find_by_email(db, email)
    if user is None or not user.is_active:
        verify_password(password, _dummy_password_hash())
        emit(
            audit,
            EVENT_LOGIN_FAILED,
            OUTCOME_FAILURE,
            actor_id=user.id if user is not None else None,
            reason="unknown_email" if user is None else "inactive",
        )
        return None
    if not verify_password(password, user.password_hash):
        emit(audit, EVENT_LOGIN_FAILED, OUTCOME_FAILURE, actor_id=user.id, reason="bad_password")
        return None
    return user


def login(db: Session, user: User, audit: AuditSink | None = None) -> LoginResult:
    """
    Issue an access token and a new refresh token for an already-validated user.

    Every call persists a new refresh-token row; earlier sessions stay valid.
    Stamps last_login as a side effect.
    """
    access_token = _issue_access_token(user)
    refresh_token = _issue_refresh_token(db, user.id)
    users.update_last_login(db, user)
    db.commit()
    emit(audit, EVENT_LOGIN, OUTCOME_SUCCESS, actor_id=user.id)
    return LoginResult(
        user=UserPublic.model_validate(user),
        access_token=access_token,
        refresh_token=refresh_token,
    )


def authenticate(
    db: Session,
    email: str,
    password: str,
    audit: AuditSink | None = None,
) -> LoginResult:
    """validate_credentials followed by login; raises InvalidCredentialsError on no match."""
    user = validate_credentials(db, email, password, audit=audit)
    if user is None:
        raise InvalidCredentialsError("Invalid credentials")
    return login(db, user, audit=audit)


def refresh(db: Session, token_value: str, audit: AuditSink | None = None) -> TokenPair:
    """
    Exchange a refresh token for a new access token and a new refresh token.

    The consumed row is deleted and the replacement inserted in one transaction.
    The delete must affect exactly one row; if a concurrent exchange already
    consumed the token, nothing is committed and the call fails.
    """
    if not token_value:
        raise InvalidOrExpiredTokenError("Invalid or expired refresh token")

    row = db.query(RefreshToken).filter(RefreshToken.token == token_value).first()
    if row is None:
        emit(audit, EVENT_REFRESH_FAILED, OUTCOME_FAILURE, reason="not_found")
        raise InvalidOrExpiredTokenError("Invalid or expired refresh token")
    if _as_utc(row.expires_at) <= datetime.now(UTC):
        emit(audit, EVENT_REFRESH_FAILED, OUTCOME_FAILURE, actor_id=row.user_id, reason="expired")
        raise InvalidOrExpiredTokenError("Invalid or expired refresh token")

    user = users.find_by_id(db, row.user_id)
    if user is None or not user.is_active:
        emit(audit, EVENT_REFRESH_FAILED, OUTCOME_FAILURE, actor_id=row.user_id, reason="disabled")
        raise AccountDisabledError("User account is disabled")

    deleted = (
        db.query(RefreshToken)
        .filter(RefreshToken.id == row.id)
        .delete(synchronize_session=False)
    )
    if deleted != 1:
        db.rollback()
        emit(audit, EVENT_REFRESH_FAILED, OUTCOME_FAILURE, actor_id=user.id, reason="consumed")
        raise InvalidOrExpiredTokenError("Invalid or expired refresh token")

    # Identity fields are read now, so role/email changes apply from this refresh on.
    access_token = _issue_access_token(user)
    new_refresh_token = _issue_refresh_token(db, user.id)
    db.commit()
    emit(audit, EVENT_REFRESH, OUTCOME_SUCCESS, actor_id=user.id)
    return TokenPair(access_token=access_token, refresh_token=new_refresh_token)


def logout(db: Session, token_value: str | None, audit: AuditSink | None = None) -> None:
    """Delete refresh-token rows with this value. Idempotent; a missing token is not an error."""
    deleted = 0
    if token_value:
        deleted = (
            db.query(RefreshToken)
            .filter(RefreshToken.token == token_value)
            .delete(synchronize_session=False)
        )
        db.commit()
    emit(audit, EVENT_LOGOUT, OUTCOME_SUCCESS, revoked=deleted)


def logout_all(db: Session, user_id: int, audit: AuditSink | None = None) -> int:
    """Delete every refresh token owned by the user ("sign out everywhere"). Returns rows deleted."""
    deleted = (
        db.query(RefreshToken)
        .filter(RefreshToken.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    emit(audit, EVENT_LOGOUT_ALL, OUTCOME_SUCCESS, actor_id=user_id, revoked=deleted)
    logger.info("Revoked all refresh tokens", extra={"user_id": user_id, "revoked": deleted})
    return deleted


def validate_access_token(db: Session, payload: dict[str, Any]) -> User | None:
    """
    Resolve a verified access-token payload to its user.

    Returns None when the subject is missing, the user no longer exists or is
    inactive, so deactivation locks out outstanding access tokens immediately.
    """
    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        return None
    user = users.find_by_id(db, user_id)
    if user is None or not user.is_active:
        return None
    return user
