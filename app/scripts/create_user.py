"""
Create a user (e.g. the first admin). Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD FIRST_NAME LAST_NAME [ROLE]
Example:
  python -m app.scripts.create_user admin@example.com your-secure-password Ada Admin SUPER_ADMIN
"""
import argparse
import logging
import sys

from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.database import session_scope
from app.core.logging import configure_logging
from app.core.security import (
    EMAIL_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    hash_password,
)
from app.models.user import ROLE_AGENT, USER_ROLES, User
from app.services.users import find_by_email

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a CollectDesk user (no registration UI).")
    parser.add_argument("email", help=f"Email address (login name, up to {EMAIL_MAX_LEN} chars)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("first_name", help="First name")
    parser.add_argument("last_name", help="Last name")
    parser.add_argument("role", nargs="?", default=ROLE_AGENT, choices=USER_ROLES)
    args = parser.parse_args(argv)
    configure_logging(settings.LOG_LEVEL)

    email = args.email.strip()
    if not email or len(email) > EMAIL_MAX_LEN or "@" not in email:
        print("Invalid email address.", file=sys.stderr)
        return 1
    if not PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN:
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1
    first_name = args.first_name.strip()
    last_name = args.last_name.strip()
    if not first_name or not last_name:
        print("First and last name are required.", file=sys.stderr)
        return 1

    try:
        with session_scope() as db:
            if find_by_email(db, email) is not None:
                print(f"User '{email}' already exists.", file=sys.stderr)
                return 1
            user = User(
                email=email,
                password_hash=hash_password(args.password),
                first_name=first_name,
                last_name=last_name,
                role=args.role,
                is_active=True,
            )
            db.add(user)
            db.flush()
            user_id = user.id
    except IntegrityError:
        print(f"User '{email}' already exists.", file=sys.stderr)
        return 1
    logger.info("Created user", extra={"user_id": user_id, "role": args.role})
    print(f"Created user '{email}' with role '{args.role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
