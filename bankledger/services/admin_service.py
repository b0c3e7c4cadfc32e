"""
Admin service — back-office balance adjustments and dashboard statistics.

adjust_balance() is the administrative override used to add or remove money
from an account outside of normal customer activity. It has two modes:

  Single:
    Exactly one Transaction Ledger posting, tagged ADMIN_ADJUSTMENT in the
    balance history.

  Bulk (is_bulk with bulk_count = N):
    The requested total is split into N cleared transactions dated today,
    all sharing a generated batch_id and the same metadata. The balance is
    patched ONCE by exactly the requested total, and ONE BULK_ADJUSTMENT
    history row is written for the whole batch.

    Splitting is done in whole cents. Without randomization each piece is
    the even share and the last piece absorbs the remainder. With
    randomization each piece is weighted by the even share times a factor
    drawn uniformly from [0.1, 2.0]; every piece gets at least one cent and
    the rest is distributed by weight (largest remainder). Either way the
    pieces sum to the requested total exactly, so the batch's transactions
    agree with the single history row.

No funds-sufficiency check is applied to "remove": this is a back-office
override and may overdraw the account.
"""

import enum
import logging
import random
import uuid
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from bankledger.config import settings
from bankledger.exceptions import InvalidAmountError
from bankledger.models.account import Account
from bankledger.models.balance_history import ChangeType, ReferenceType
from bankledger.models.transaction import Transaction, TransactionType
from bankledger.services import history_service, transaction_service
from bankledger.services.account_service import get_account

logger = logging.getLogger(__name__)

DEFAULT_ADJUSTMENT_CATEGORY = "Admin Adjustment"

RANDOM_FACTOR_MIN = 0.1
RANDOM_FACTOR_MAX = 2.0


class AdjustmentDirection(str, enum.Enum):
    ADD = "add"
    REMOVE = "remove"


def split_amount(total_cents: int, count: int, randomize: bool = False) -> list[int]:
    """
    Split `total_cents` into `count` positive integer pieces summing to it exactly.

    Raises:
        InvalidAmountError: If the total can't give every piece at least one cent.
    """
    if count < 1:
        raise ValueError("count must be at least 1")
    if total_cents < count:
        raise InvalidAmountError(
            total_cents,
            f"Cannot split {total_cents} cents into {count} transactions",
        )

    if not randomize:
        share = total_cents // count
        return [share] * (count - 1) + [total_cents - share * (count - 1)]

    # Weights in thousandths of a cent so the apportioning below is exact
    even_share = total_cents / count
    weights = [
        max(1, round(even_share * random.uniform(RANDOM_FACTOR_MIN, RANDOM_FACTOR_MAX) * 1000))
        for _ in range(count)
    ]
    weight_total = sum(weights)

    # One cent each up front, the rest proportionally to the weights
    spare = total_cents - count
    pieces = [1 + spare * w // weight_total for w in weights]
    remainders = [spare * w % weight_total for w in weights]

    leftover = total_cents - sum(pieces)
    by_remainder = sorted(range(count), key=lambda i: remainders[i], reverse=True)
    for i in by_remainder[:leftover]:
        pieces[i] += 1

    return pieces


async def adjust_balance(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount_cents: int,
    direction: AdjustmentDirection,
    description: str,
    is_bulk: bool = False,
    bulk_count: int | None = None,
    randomize_amounts: bool = False,
    category: str | None = None,
    merchant: str | None = None,
    reference: str | None = None,
) -> dict:
    """
    Administratively add or remove money from an account.

    Args:
        db: Database session.
        account_id: The account to adjust.
        amount_cents: Requested magnitude (the bulk TOTAL in bulk mode).
        direction: "add" or "remove".
        description: Memo copied onto every created transaction.
        is_bulk / bulk_count: Split the total into bulk_count transactions.
        randomize_amounts: Vary the bulk pieces instead of splitting evenly.

    Returns:
        Dict with new_balance_cents, transactions_created, transaction_ids,
        and batch_id (None in single mode).

    Raises:
        InvalidAmountError: Non-positive amount, or too small to split.
        AccountNotFoundError: If the account doesn't exist.
    """
    if amount_cents <= 0:
        logger.warning(
            "Rejected adjustment on account %s: non-positive amount %d", account_id, amount_cents
        )
        raise InvalidAmountError(amount_cents, "Adjustment amount must be positive")

    direction = AdjustmentDirection(direction)
    txn_type = TransactionType.CREDIT if direction == AdjustmentDirection.ADD else TransactionType.DEBIT
    category = category or DEFAULT_ADJUSTMENT_CATEGORY

    if not (is_bulk and bulk_count):
        txn = await transaction_service.post_transaction(
            db,
            account_id=account_id,
            amount_cents=amount_cents,
            txn_type=txn_type,
            description=description,
            category=category,
            merchant=merchant,
            reference=reference,
            change_type=ChangeType.ADMIN_ADJUSTMENT,
        )
        account = await get_account(db, account_id)
        return {
            "account_id": account.id,
            "new_balance_cents": account.balance_cents,
            "transactions_created": 1,
            "transaction_ids": [txn.id],
            "batch_id": None,
        }

    if bulk_count > settings.MAX_BULK_TRANSACTIONS:
        logger.warning(
            "Rejected bulk adjustment on account %s: %d transactions exceeds limit of %d",
            account_id, bulk_count, settings.MAX_BULK_TRANSACTIONS,
        )
        raise InvalidAmountError(
            amount_cents,
            f"Bulk adjustments are limited to {settings.MAX_BULK_TRANSACTIONS} transactions",
        )

    account = await get_account(db, account_id, for_update=True)
    pieces = split_amount(amount_cents, bulk_count, randomize=randomize_amounts)
    batch_id = str(uuid.uuid4())
    today = date.today()
    sign = 1 if direction == AdjustmentDirection.ADD else -1

    transactions = [
        Transaction(
            account_id=account.id,
            amount_cents=sign * piece,
            type=txn_type,
            description=description,
            date=today,
            category=category,
            merchant=merchant,
            reference=reference,
            pending=False,
            batch_id=batch_id,
        )
        for piece in pieces
    ]
    db.add_all(transactions)

    history_service.apply_balance_change(
        db,
        account,
        sign * amount_cents,
        ChangeType.BULK_ADJUSTMENT,
        reference_id=batch_id,
        reference_type=ReferenceType.ADMIN_BULK_ADJUSTMENT,
    )
    await db.flush()

    logger.info(
        "Bulk %s of %d cents on account %s across %d transactions (batch %s)",
        direction.value, amount_cents, account.id, len(transactions), batch_id,
    )
    return {
        "account_id": account.id,
        "new_balance_cents": account.balance_cents,
        "transactions_created": len(transactions),
        "transaction_ids": [t.id for t in transactions],
        "batch_id": batch_id,
    }


async def get_dashboard_stats(db: AsyncSession) -> dict:
    """
    Ledger-wide totals for the admin dashboard.

    Returns:
        Dict with total_accounts, total_balance_cents, recent_transactions
        (created in the last 7 days), and pending_transactions.
    """
    totals = await db.execute(
        select(func.count(Account.id), func.coalesce(func.sum(Account.balance_cents), 0))
    )
    total_accounts, total_balance = totals.one()

    since = datetime.now(timezone.utc) - timedelta(days=7)
    recent = await db.execute(
        select(func.count(Transaction.id)).where(Transaction.created_at >= since)
    )
    pending = await db.execute(
        select(func.count(Transaction.id)).where(Transaction.pending.is_(True))
    )

    return {
        "total_accounts": total_accounts,
        "total_balance_cents": total_balance,
        "recent_transactions": recent.scalar(),
        "pending_transactions": pending.scalar(),
    }
