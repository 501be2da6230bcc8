"""ORM model for debtor accounts (the records bulk upload creates and updates)."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    func,
)

from app.models.base import Base

MONEY = Numeric(14, 2)


class Account(Base):
    """Debt account keyed by a unique account number."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_number = Column(String(64), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    full_name = Column(String(201), nullable=False, default="")
    email = Column(String(255), nullable=True)
    address1 = Column(String(255), nullable=True)
    address2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(64), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(64), nullable=False, default="US")

    original_amount = Column(MONEY, nullable=False)
    current_balance = Column(MONEY, nullable=False)
    amount_paid = Column(MONEY, nullable=False, default=0)
    interest_rate = Column(Numeric(7, 4), nullable=True)
    last_payment_date = Column(DateTime(timezone=True), nullable=True)
    last_payment_amount = Column(MONEY, nullable=True)

    status = Column(String(32), nullable=False, default="NEW", index=True)
    priority = Column(String(16), nullable=False, default="MEDIUM")
    preferred_contact_method = Column(String(16), nullable=False, default="PHONE")
    best_time_to_call = Column(String(64), nullable=True)
    timezone = Column(String(32), nullable=False, default="EST")
    language = Column(String(16), nullable=False, default="EN")
    days_past_due = Column(Integer, nullable=False, default=0)
    last_contact_date = Column(DateTime(timezone=True), nullable=True)
    next_contact_date = Column(DateTime(timezone=True), nullable=True)

    do_not_call = Column(Boolean, nullable=False, default=False)
    dispute_flag = Column(Boolean, nullable=False, default=False)
    bankruptcy_flag = Column(Boolean, nullable=False, default=False)
    deceased_flag = Column(Boolean, nullable=False, default=False)

    notes = Column(Text, nullable=True)
    source = Column(String(64), nullable=False, default="BULK_UPLOAD")
    batch_id = Column(String(64), nullable=True, index=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
