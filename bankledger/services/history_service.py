"""
Balance history service — the single choke point for balance mutation.

Every ledger operation that changes an account's balance goes through
apply_balance_change(), which:
  1. Adds the signed delta to account.balance_cents
  2. Appends one BalanceHistory row recording the resulting balance,
     the delta, the change type, and what caused it

Both happen in the caller's session, so they commit or roll back together
with whatever Transaction/Transfer rows the caller staged. Routing all
balance writes through here is what makes the history reconstructable.

The caller is responsible for having loaded `account` with a row lock
(select ... with_for_update()) before calling.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from bankledger.models.account import Account
from bankledger.models.balance_history import BalanceHistory, ChangeType, ReferenceType


def record_balance(
    db: AsyncSession,
    account: Account,
    change_cents: int,
    change_type: ChangeType,
    reference_id: uuid.UUID | str | None = None,
    reference_type: ReferenceType | None = None,
) -> BalanceHistory:
    """
    Append a history row for a change that has ALREADY been applied to
    account.balance_cents. Used directly only for the INITIAL record and
    manual balance sets; everything else should call apply_balance_change().
    """
    account.history_sequence = (account.history_sequence or 0) + 1
    entry = BalanceHistory(
        account_id=account.id,
        sequence=account.history_sequence,
        balance_cents=account.balance_cents,
        change_amount_cents=change_cents,
        change_type=change_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        reference_type=reference_type,
    )
    db.add(entry)
    return entry


def apply_balance_change(
    db: AsyncSession,
    account: Account,
    change_cents: int,
    change_type: ChangeType,
    reference_id: uuid.UUID | str | None = None,
    reference_type: ReferenceType | None = None,
) -> BalanceHistory:
    """
    Patch the account balance by `change_cents` and append the audit record.

    Args:
        db: Database session (the operation's unit of work).
        account: Row-locked account to mutate.
        change_cents: Signed delta in cents.
        change_type: Why the balance changed.
        reference_id: Id of the causing transaction/transfer/batch.
        reference_type: What kind of thing reference_id points at.

    Returns:
        The new (not yet flushed) BalanceHistory row.
    """
    account.balance_cents += change_cents
    account.updated_at = datetime.now(timezone.utc)
    return record_balance(
        db,
        account,
        change_cents,
        change_type,
        reference_id=reference_id,
        reference_type=reference_type,
    )


async def get_balance_history(
    db: AsyncSession,
    account_id: uuid.UUID,
    limit: int | None = None,
    offset: int = 0,
) -> list[BalanceHistory]:
    """
    List an account's balance history, newest first.

    Existence of the account is checked by the caller (account_service).
    """
    query = (
        select(BalanceHistory)
        .where(BalanceHistory.account_id == account_id)
        .order_by(BalanceHistory.sequence.desc())
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def reconstruct_balance(db: AsyncSession, account_id: uuid.UUID) -> int:
    """
    Replay the history: the sum of every change_amount_cents for the account.

    This is the integrity-check counterpart to Account.balance_cents.
    """
    result = await db.execute(
        select(func.coalesce(func.sum(BalanceHistory.change_amount_cents), 0))
        .where(BalanceHistory.account_id == account_id)
    )
    return result.scalar()
