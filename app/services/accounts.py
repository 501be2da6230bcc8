"""Account persistence used by bulk ingestion: existence check, insert, update."""

from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.account import Account
from app.services.row_validation import INSERT_DEFAULTS


class AccountConflictError(Exception):
    """A write hit the account-number unique constraint (e.g. a concurrent batch inserted it first)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


def account_exists(db: Session, account_number: str) -> bool:
    return (
        db.query(Account.id).filter(Account.account_number == account_number).first()
        is not None
    )


def create_account(db: Session, data: dict[str, Any], batch_id: str) -> Account:
    """Insert an account inside a savepoint; a unique violation rolls back only this row."""
    values = {**INSERT_DEFAULTS, **data, "batch_id": batch_id}
    account = Account(**values)
    try:
        with db.begin_nested():
            db.add(account)
    except IntegrityError as e:
        raise AccountConflictError(
            f"Account {data.get('account_number')} already exists"
        ) from e
    return account


def update_account(db: Session, data: dict[str, Any], batch_id: str) -> Account | None:
    """
    Overwrite the columns present in `data` on the account with the same number.
    Returns None if the account vanished in the meantime.
    """
    account_number = data["account_number"]
    account = db.query(Account).filter(Account.account_number == account_number).first()
    if account is None:
        return None
    try:
        with db.begin_nested():
            for attr, value in data.items():
                if attr != "account_number":
                    setattr(account, attr, value)
            account.batch_id = batch_id
    except IntegrityError as e:
        raise AccountConflictError(f"Account {account_number} could not be updated") from e
    return account
