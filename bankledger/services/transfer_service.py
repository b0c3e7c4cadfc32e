"""
Transfer service — atomic two-sided movement of funds between accounts.

A successful transfer touches seven records in ONE session:
  - 1 Transfer (status "completed", dated today, with a reference code)
  - 2 Transactions (debit on source, credit on destination, both cleared,
    both carrying the reference code and the "Transfer" category)
  - 2 Account balance patches
  - 2 BalanceHistory rows (change_type "transfer")

All validation happens BEFORE the first write, and get_db() rolls the
session back on any exception, so a rejected or crashed transfer can never
leave one side debited without the other credited.

Deadlock prevention:
  Both accounts are locked in a consistent order (sorted by UUID). This
  prevents the classic deadlock where transfer A->B locks A then waits on
  B while transfer B->A locks B then waits on A. On SQLite the row locks
  are no-ops and BEGIN IMMEDIATE serializes the whole transfer instead.

Status changes:
  cancel_transfer() only moves "pending" -> "cancelled". update_transfer_status()
  is an unconditional administrative overwrite that does NOT reverse or
  replay the transfer's transactions.
"""

import logging
import random
import string
import uuid
from datetime import date

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from bankledger.config import settings
from bankledger.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    GenerationExhaustedError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateTransitionError,
    TransferNotFoundError,
)
from bankledger.models.account import Account, AccountStatus
from bankledger.models.balance_history import ChangeType, ReferenceType
from bankledger.models.transaction import Transaction, TransactionType
from bankledger.models.transfer import Transfer, TransferStatus, TransferType
from bankledger.services import history_service

logger = logging.getLogger(__name__)

REFERENCE_CODE_ALPHABET = string.ascii_uppercase + string.digits
TRANSFER_CATEGORY = "Transfer"


def generate_reference_code() -> str:
    """Generate a code of three 4-character groups, e.g. "7KQ2-ZP0D-A9XM"."""
    chars = random.choices(REFERENCE_CODE_ALPHABET, k=12)
    return "-".join("".join(chars[i:i + 4]) for i in (0, 4, 8))


async def _unique_reference_code(db: AsyncSession) -> str:
    attempts = settings.MAX_GENERATION_ATTEMPTS
    for _ in range(attempts):
        code = generate_reference_code()
        existing = await db.execute(
            select(Transfer.id).where(Transfer.reference_code == code)
        )
        if existing.scalar_one_or_none() is None:
            return code
        logger.debug("Reference code collision on %s, retrying", code)

    raise GenerationExhaustedError("transfer reference code", attempts)


async def _lock_accounts(
    db: AsyncSession,
    from_account_id: uuid.UUID,
    to_account_id: uuid.UUID,
) -> tuple[Account | None, Account | None]:
    """Load both accounts FOR UPDATE in sorted-id order; map back to (source, destination)."""
    locked: dict[uuid.UUID, Account | None] = {}
    for account_id in sorted({from_account_id, to_account_id}):
        result = await db.execute(
            select(Account).where(Account.id == account_id).with_for_update()
        )
        locked[account_id] = result.scalar_one_or_none()
    return locked[from_account_id], locked[to_account_id]


async def execute_transfer(
    db: AsyncSession,
    from_account_id: uuid.UUID,
    to_account_id: uuid.UUID,
    amount_cents: int,
    description: str | None = None,
    transfer_type: TransferType = TransferType.INTERNAL,
) -> tuple[Transfer, Transaction, Transaction]:
    """
    Execute an atomic transfer between two accounts.

    Validation order (each a distinct error):
      1. amount must be strictly positive          -> InvalidAmountError
      2. source, then destination, must exist      -> AccountNotFoundError
      3. source, then destination, must be active  -> AccountInactiveError
      4. source balance must cover the amount      -> InsufficientFundsError

    The balance rule is flat: credit-type accounts are NOT allowed to draw
    on available credit here.

    Args:
        db: Database session.
        from_account_id: Source account.
        to_account_id: Destination account.
        amount_cents: Positive integer amount in cents.
        description: Optional memo stored on the Transfer.
        transfer_type: "internal" (default) or "external".

    Returns:
        Tuple of (transfer, debit_transaction, credit_transaction).
    """
    if amount_cents <= 0:
        logger.warning("Rejected transfer with non-positive amount %d", amount_cents)
        raise InvalidAmountError(amount_cents, "Transfer amount must be positive")

    source, dest = await _lock_accounts(db, from_account_id, to_account_id)

    if source is None:
        logger.warning("Transfer rejected: source account %s not found", from_account_id)
        raise AccountNotFoundError(from_account_id, side="source")
    if dest is None:
        logger.warning("Transfer rejected: destination account %s not found", to_account_id)
        raise AccountNotFoundError(to_account_id, side="destination")

    if source.status != AccountStatus.ACTIVE:
        logger.warning(
            "Transfer rejected: source account %s is %s", source.id, source.status.value
        )
        raise AccountInactiveError(source.id, "source", source.status.value)
    if dest.status != AccountStatus.ACTIVE:
        logger.warning(
            "Transfer rejected: destination account %s is %s", dest.id, dest.status.value
        )
        raise AccountInactiveError(dest.id, "destination", dest.status.value)

    if source.balance_cents < amount_cents:
        logger.warning(
            "Transfer of %d cents from %s declined: balance %d",
            amount_cents, source.id, source.balance_cents,
        )
        raise InsufficientFundsError(
            account_id=source.id,
            requested_cents=amount_cents,
            available_cents=source.balance_cents,
        )

    # --- Atomic phase: nothing above this line has written anything ---
    reference_code = await _unique_reference_code(db)
    today = date.today()

    transfer = Transfer(
        from_account_id=source.id,
        to_account_id=dest.id,
        amount_cents=amount_cents,
        date=today,
        status=TransferStatus.COMPLETED,
        description=description,
        reference_code=reference_code,
        type=TransferType(transfer_type),
    )
    debit_txn = Transaction(
        account_id=source.id,
        amount_cents=-amount_cents,
        type=TransactionType.DEBIT,
        description=f"Transfer to {dest.account_number}",
        date=today,
        category=TRANSFER_CATEGORY,
        reference=reference_code,
        pending=False,
    )
    credit_txn = Transaction(
        account_id=dest.id,
        amount_cents=amount_cents,
        type=TransactionType.CREDIT,
        description=f"Transfer from {source.account_number}",
        date=today,
        category=TRANSFER_CATEGORY,
        reference=reference_code,
        pending=False,
    )
    db.add_all([transfer, debit_txn, credit_txn])
    await db.flush()

    history_service.apply_balance_change(
        db,
        source,
        -amount_cents,
        ChangeType.TRANSFER,
        reference_id=transfer.id,
        reference_type=ReferenceType.TRANSFER,
    )
    history_service.apply_balance_change(
        db,
        dest,
        amount_cents,
        ChangeType.TRANSFER,
        reference_id=transfer.id,
        reference_type=ReferenceType.TRANSFER,
    )
    await db.flush()

    logger.info(
        "Transfer %s (%s): %d cents from %s to %s",
        transfer.id, reference_code, amount_cents, source.id, dest.id,
    )
    return transfer, debit_txn, credit_txn


async def get_transfer(db: AsyncSession, transfer_id: uuid.UUID) -> Transfer:
    """
    Get a transfer by ID.

    Raises:
        TransferNotFoundError: If the transfer doesn't exist.
    """
    result = await db.execute(select(Transfer).where(Transfer.id == transfer_id))
    transfer = result.scalar_one_or_none()

    if transfer is None:
        raise TransferNotFoundError(transfer_id)

    return transfer


async def get_transfer_by_reference(db: AsyncSession, reference_code: str) -> Transfer:
    """Get a transfer by its human-readable reference code."""
    result = await db.execute(
        select(Transfer).where(Transfer.reference_code == reference_code.upper())
    )
    transfer = result.scalar_one_or_none()

    if transfer is None:
        raise TransferNotFoundError(reference_code)

    return transfer


async def get_account_transfers(
    db: AsyncSession,
    account_id: uuid.UUID,
    limit: int | None = None,
) -> list[Transfer]:
    """
    List incoming and outgoing transfers of an account, newest first.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    from bankledger.services.account_service import get_account
    await get_account(db, account_id)

    query = (
        select(Transfer)
        .where(
            or_(
                Transfer.from_account_id == account_id,
                Transfer.to_account_id == account_id,
            )
        )
        .order_by(Transfer.created_at.desc())
    )
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_all_transfers(
    db: AsyncSession,
    status_filter: TransferStatus | None = None,
    limit: int | None = None,
) -> list[Transfer]:
    """List all transfers, newest first, optionally filtered by status."""
    query = select(Transfer).order_by(Transfer.created_at.desc())
    if status_filter is not None:
        query = query.where(Transfer.status == TransferStatus(status_filter))
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def cancel_transfer(db: AsyncSession, transfer_id: uuid.UUID) -> Transfer:
    """
    Cancel a pending transfer.

    A pending transfer has no transactions yet, so there is nothing to
    reverse — only the status changes.

    Raises:
        TransferNotFoundError: If the transfer doesn't exist.
        InvalidStateTransitionError: If the transfer is not "pending".
    """
    transfer = await get_transfer(db, transfer_id)

    if transfer.status != TransferStatus.PENDING:
        logger.warning(
            "Cannot cancel transfer %s: status is %s", transfer.id, transfer.status.value
        )
        raise InvalidStateTransitionError(
            transfer.status.value,
            TransferStatus.CANCELLED.value,
            "Only pending transfers can be cancelled",
        )

    transfer.status = TransferStatus.CANCELLED
    await db.flush()

    logger.info("Cancelled transfer %s", transfer.id)
    return transfer


async def update_transfer_status(
    db: AsyncSession,
    transfer_id: uuid.UUID,
    new_status: TransferStatus,
) -> Transfer:
    """
    [ADMIN] Overwrite a transfer's status unconditionally.

    This does NOT reverse or replay the transfer's transactions. Moving a
    completed transfer to another status leaves its two legs (and the
    balances they moved) in place; callers doing corrections must post
    compensating transactions themselves.
    """
    transfer = await get_transfer(db, transfer_id)
    new_status = TransferStatus(new_status)

    if transfer.status == TransferStatus.COMPLETED and new_status != TransferStatus.COMPLETED:
        logger.warning(
            "Transfer %s moved from completed to %s; its transactions are not reversed",
            transfer.id, new_status.value,
        )

    transfer.status = new_status
    await db.flush()
    return transfer
