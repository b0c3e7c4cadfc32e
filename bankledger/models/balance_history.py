"""
BalanceHistory model — the append-only audit trail of balance changes.

Every mutation of Account.balance_cents appends exactly one row here
(a bulk adjustment appends one row for the whole batch). Rows are never
updated, and only removed by the account-deletion cascade.

Reconstructability:
  Summing change_amount_cents over an account's rows, starting with the
  INITIAL row written at account creation, reproduces balance_cents.

Ordering:
  `sequence` numbers an account's rows 1, 2, 3, ... in the order they were
  written (the INITIAL row is 1). Timestamps can tie; sequence never does.

change_type and reference_type are closed enums so reconciliation code can
handle every tag exhaustively.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bankledger.database import Base


class ChangeType(str, enum.Enum):
    INITIAL = "initial"
    TRANSACTION = "transaction"
    TRANSACTION_UPDATE = "transaction_update"
    TRANSACTION_DELETION = "transaction_deletion"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    BULK_ADJUSTMENT = "bulk_adjustment"


class ReferenceType(str, enum.Enum):
    ACCOUNT_CREATION = "account_creation"
    TRANSACTION = "transaction"
    TRANSFER = "transfer"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    ADMIN_BULK_ADJUSTMENT = "admin_bulk_adjustment"


class BalanceHistory(Base):
    __tablename__ = "account_balance_history"

    __table_args__ = (
        Index("ix_balance_history_reference", "reference_id", "reference_type"),
        UniqueConstraint("account_id", "sequence", name="uq_balance_history_account_sequence"),
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

    # 1, 2, 3, ... per account; the order the changes were applied in
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Balance after this change was applied
    balance_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    change_amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    change_type: Mapped[ChangeType] = mapped_column(
        Enum(ChangeType),
        nullable=False,
        index=True,
    )

    # Id of the causing transaction / transfer / account / batch, as a string
    # because it can point at any of those tables.
    reference_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    reference_type: Mapped[ReferenceType | None] = mapped_column(
        Enum(ReferenceType),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
