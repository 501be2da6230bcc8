"""Credential store lookups used by the auth service."""

from datetime import UTC, datetime

from sqlalchemy.orm import Session

from app.models.user import User


def find_by_email(db: Session, email: str) -> User | None:
    """Exact (case-sensitive) email match."""
    return db.query(User).filter(User.email == email).first()


def find_by_id(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def update_last_login(db: Session, user: User, when: datetime | None = None) -> None:
    """Stamp last_login; the caller commits."""
    user.last_login = when or datetime.now(UTC)
