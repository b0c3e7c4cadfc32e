"""
Transfer model — one logical movement of funds between two accounts.

A completed internal transfer is backed by exactly two Transactions:
a debit on the source and a credit on the destination, both carrying the
transfer's reference_code in their `reference` column.

Either account reference may be NULL for external transfers that have no
matching internal leg. amount_cents is unsigned (always > 0); direction is
given by from/to.
"""

import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import String, Integer, Date, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bankledger.database import Base


class TransferStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TransferType(str, enum.Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class Transfer(Base):
    __tablename__ = "transfers"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_transfers_positive_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    from_account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
        index=True,
    )

    to_account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
        index=True,
    )

    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )

    status: Mapped[TransferStatus] = mapped_column(
        Enum(TransferStatus),
        nullable=False,
        default=TransferStatus.PENDING,
        index=True,
    )

    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Human-readable XXXX-XXXX-XXXX code. UNIQUE backs the bounded
    # generate-and-check loop in transfer_service.
    reference_code: Mapped[str] = mapped_column(
        String(14),
        unique=True,
        nullable=False,
    )

    type: Mapped[TransferType] = mapped_column(
        Enum(TransferType),
        nullable=False,
        default=TransferType.INTERNAL,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
