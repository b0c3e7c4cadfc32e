"""
Transaction service — posting, clearing, editing, and deleting entries.

THIS IS THE CORE OF THE LEDGER. It handles:
  - Posting credits and debits (with pending / cleared semantics)
  - Updating a transaction, including pending-flag flips and amount/type
    edits, as ONE net balance adjustment
  - Deleting a transaction and reversing its balance effect
  - Read paths (by account, by date range, pending only)

Sign convention:
  The caller's sign on `amount` is always discarded. The stored
  amount_cents is abs(amount) for credits and -abs(amount) for debits.

Atomicity:
  Every balance change and its history row are staged in the same session
  as the Transaction insert/update/delete. get_db() commits them together
  or rolls all of them back.

Locking:
  Accounts are loaded with SELECT ... FOR UPDATE before their balance is
  patched. On PostgreSQL with_for_update() takes row locks. On SQLite it is
  a no-op, and the engine instead opens every transaction with BEGIN
  IMMEDIATE (see database.enable_sqlite_write_locking).
"""

import logging
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bankledger.exceptions import TransactionNotFoundError
from bankledger.models.balance_history import ChangeType, ReferenceType
from bankledger.models.transaction import Transaction, TransactionType, signed_amount
from bankledger.services import history_service
from bankledger.services.account_service import get_account

logger = logging.getLogger(__name__)

# Fields with no balance effect; applied verbatim by update_transaction().
_METADATA_FIELDS = (
    "description",
    "date",
    "category",
    "merchant",
    "location",
    "reference",
    "receipt_number",
    "batch_id",
)


async def post_transaction(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount_cents: int,
    txn_type: TransactionType,
    description: str = "",
    txn_date: date | None = None,
    pending: bool = False,
    category: str | None = None,
    merchant: str | None = None,
    location: str | None = None,
    reference: str | None = None,
    receipt_number: str | None = None,
    batch_id: str | None = None,
    change_type: ChangeType = ChangeType.TRANSACTION,
) -> Transaction:
    """
    Post a single credit or debit against one account.

    If the transaction is NOT pending, the account balance is patched by the
    signed amount and a balance history row (change_type, referencing the new
    transaction) is appended. A pending transaction touches neither.

    Args:
        db: Database session.
        account_id: The account to post against.
        amount_cents: Amount in cents; only the magnitude is used.
        txn_type: "credit" or "debit" — determines the sign.
        description: Free-text memo.
        txn_date: Calendar date (defaults to today).
        pending: Record now, apply to the balance later.
        change_type: History tag; the admin adjuster posts with ADMIN_ADJUSTMENT.

    Returns:
        The created Transaction instance.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    account = await get_account(db, account_id, for_update=True)

    txn = Transaction(
        account_id=account.id,
        amount_cents=signed_amount(amount_cents, txn_type),
        type=TransactionType(txn_type),
        description=description,
        date=txn_date or date.today(),
        category=category,
        merchant=merchant,
        location=location,
        reference=reference,
        receipt_number=receipt_number,
        pending=pending,
        batch_id=batch_id,
    )
    db.add(txn)
    await db.flush()

    if not pending:
        history_service.apply_balance_change(
            db,
            account,
            txn.amount_cents,
            change_type,
            reference_id=txn.id,
            reference_type=ReferenceType.TRANSACTION,
        )
        await db.flush()

    logger.info(
        "Posted %s %s of %d cents on account %s (pending=%s)",
        txn.type.value, txn.id, txn.amount_cents, account.id, pending,
    )
    return txn


async def get_transaction(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    for_update: bool = False,
) -> Transaction:
    """
    Get a single transaction by ID.

    Raises:
        TransactionNotFoundError: If the transaction doesn't exist.
    """
    query = select(Transaction).where(Transaction.id == transaction_id)
    if for_update:
        query = query.with_for_update()

    result = await db.execute(query)
    txn = result.scalar_one_or_none()

    if txn is None:
        raise TransactionNotFoundError(transaction_id)

    return txn


async def update_transaction(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    fields: dict,
) -> Transaction:
    """
    Update a transaction, folding every balance effect into ONE net change.

    `fields` holds only what the caller supplied. The net change is

        new_applied - old_applied

    where applied = 0 for a pending transaction and its signed amount
    otherwise. This covers a pending flip, an amount/type edit, or both at
    once, without ever writing a transient intermediate balance. Editing the
    amount of a transaction that ends up pending has no balance effect.

    Raises:
        TransactionNotFoundError: If the transaction doesn't exist.
        AccountNotFoundError: If its account no longer exists.
    """
    txn = await get_transaction(db, transaction_id, for_update=True)
    account = await get_account(db, txn.account_id, for_update=True)

    old_applied = txn.applied_cents

    if "amount_cents" in fields or "type" in fields:
        new_type = TransactionType(fields.get("type") or txn.type)
        magnitude = fields.get("amount_cents")
        if magnitude is None:
            magnitude = txn.amount_cents
        txn.type = new_type
        txn.amount_cents = signed_amount(magnitude, new_type)

    if fields.get("pending") is not None:
        txn.pending = fields["pending"]

    for name in _METADATA_FIELDS:
        if name in fields:
            # description and date are NOT NULL; an explicit null leaves them as-is
            if fields[name] is None and name in ("description", "date"):
                continue
            setattr(txn, name, fields[name])

    txn.updated_at = datetime.now(timezone.utc)
    balance_change = txn.applied_cents - old_applied

    if balance_change != 0:
        history_service.apply_balance_change(
            db,
            account,
            balance_change,
            ChangeType.TRANSACTION_UPDATE,
            reference_id=txn.id,
            reference_type=ReferenceType.TRANSACTION,
        )
        logger.info(
            "Transaction %s update moved account %s by %+d cents",
            txn.id, account.id, balance_change,
        )

    await db.flush()
    return txn


async def delete_transaction(db: AsyncSession, transaction_id: uuid.UUID) -> None:
    """
    Delete a transaction, reversing its balance effect if it was applied.

    The reversal (balance patch + TRANSACTION_DELETION history row with the
    negated amount) is staged first; the Transaction row is deleted last.
    A pending transaction was never applied, so the balance is untouched.

    Raises:
        TransactionNotFoundError: If the transaction doesn't exist.
        AccountNotFoundError: If its account no longer exists.
    """
    txn = await get_transaction(db, transaction_id, for_update=True)
    account = await get_account(db, txn.account_id, for_update=True)

    if not txn.pending:
        history_service.apply_balance_change(
            db,
            account,
            -txn.amount_cents,
            ChangeType.TRANSACTION_DELETION,
            reference_id=txn.id,
            reference_type=ReferenceType.TRANSACTION,
        )
        await db.flush()

    await db.delete(txn)
    await db.flush()

    logger.info("Deleted transaction %s on account %s", transaction_id, account.id)


async def get_transactions(
    db: AsyncSession,
    account_id: uuid.UUID,
    pending: bool | None = None,
    type_filter: TransactionType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Transaction]:
    """
    List transactions for an account, newest first, with optional filters.

    Args:
        db: Database session.
        account_id: The account to query transactions for.
        pending: Only pending (True) or only cleared (False) transactions.
        type_filter: Only "credit" or only "debit".
        start_date / end_date: Inclusive calendar-date range.
        limit: Max number of results.
        offset: Number of results to skip (for pagination).

    Raises:
        AccountNotFoundError: If the account doesn't exist (an unknown
            account is an error, not an empty list).
    """
    await get_account(db, account_id)

    query = select(Transaction).where(Transaction.account_id == account_id)

    if pending is not None:
        query = query.where(Transaction.pending == pending)
    if type_filter is not None:
        query = query.where(Transaction.type == TransactionType(type_filter))
    if start_date is not None:
        query = query.where(Transaction.date >= start_date)
    if end_date is not None:
        query = query.where(Transaction.date <= end_date)

    query = (
        query
        .order_by(Transaction.date.desc(), Transaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_pending_transactions(
    db: AsyncSession,
    account_id: uuid.UUID,
) -> list[Transaction]:
    """List all pending transactions for an account, newest first."""
    await get_account(db, account_id)

    result = await db.execute(
        select(Transaction)
        .where(Transaction.account_id == account_id)
        .where(Transaction.pending.is_(True))
        .order_by(Transaction.created_at.desc())
    )
    return list(result.scalars().all())
