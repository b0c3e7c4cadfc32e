"""
Transaction model — one credit or debit entry against a single account.

Key fields:
  - type: "credit" or "debit"
  - amount_cents: SIGNED — positive for credits, negative for debits.
    The sign is always derived from `type` by the ledger; callers only
    ever supply a magnitude.
  - pending: a pending transaction is recorded but NOT yet reflected in
    the account balance. Clearing it (pending -> false) applies it.
  - reference: free-text reference; transfer legs carry the transfer's
    reference code here, which is how the two legs are correlated.
  - batch_id: shared by every transaction created by one bulk adjustment.

Invariant:
  A non-pending transaction has already been applied to its account's
  balance_cents; a pending one has not.
"""

import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import String, Integer, Boolean, Date, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from bankledger.database import Base


class TransactionType(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


def signed_amount(amount_cents: int, txn_type: TransactionType | str) -> int:
    """Discard the caller's sign and re-derive it from the transaction type."""
    magnitude = abs(amount_cents)
    return -magnitude if TransactionType(txn_type) == TransactionType.DEBIT else magnitude


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        # "All transactions of an account in a date range"
        Index("ix_transactions_account_date", "account_id", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    # Signed amount in cents (credit > 0, debit < 0)
    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )

    # Calendar date of the transaction (not the insert time)
    date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    merchant: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    receipt_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    pending: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
    )

    batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def applied_cents(self) -> int:
        """The amount currently reflected in the account balance."""
        return 0 if self.pending else self.amount_cents
