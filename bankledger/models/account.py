"""
Account model — a ledger account owned by an external identity.

Each account has:
  - A unique account number (randomly generated 10-digit string)
  - A type: checking, savings, credit, investment, or loan
  - A balance in signed integer cents (updated atomically with every posting)
  - A status: active, inactive, or closed
  - Optional category-specific fields (credit limit, APR, due date, ...)

Balance management:
  `balance_cents` equals the sum of every change_amount_cents in the
  account's balance history, starting from the "initial" record written at
  creation. It is patched only by the ledger services, in the same session
  that writes the corresponding history row.

  Unlike a deposit-only account, the balance is signed: credit and loan
  accounts carry negative balances, and back-office "remove" adjustments are
  allowed to overdraw. There is therefore no non-negative CHECK constraint.

Why integer cents?
  Integer arithmetic is exact. $10.99 is stored as 1099, and bulk splits
  are computed in whole cents so their pieces always sum to the total.
"""

import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import String, Integer, Float, Date, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column

from bankledger.database import Base


class AccountType(str, enum.Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    INVESTMENT = "investment"
    LOAN = "loan"


class AccountStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CLOSED = "closed"


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Opaque reference to the owner in the identity layer (not managed here)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        Enum(AccountType),
        nullable=False,
        default=AccountType.CHECKING,
        index=True,
    )

    # Signed balance in cents
    balance_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Sequence number of the latest balance history row
    history_sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Unique 10-digit account number (generated at creation time)
    account_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
    )

    routing_number: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus),
        nullable=False,
        default=AccountStatus.ACTIVE,
        index=True,
    )

    # --- Category-specific fields ---
    credit_limit_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    available_credit_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    apr: Mapped[float | None] = mapped_column(Float, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    minimum_payment_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ytd_contributions_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
