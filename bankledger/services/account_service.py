"""
Account service — the minimal account lifecycle the ledger depends on.

This module handles:
  - Account creation (unique account number + INITIAL balance history row)
  - Account retrieval (single, or all accounts of an owner)
  - Metadata / status updates, including a manual balance set that is
    recorded in the history as an ADJUSTMENT
  - Cascading deletion (transactions, history, transfers, then the account)
  - Balance verification (cached vs. reconstructed from history)

Identity is out of scope: owner_id is an opaque UUID supplied by the
caller, and no ownership checks are made here.
"""

import logging
import random
import string
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession

from bankledger.config import settings
from bankledger.exceptions import AccountNotFoundError, GenerationExhaustedError
from bankledger.models.account import Account, AccountType, AccountStatus
from bankledger.models.balance_history import BalanceHistory, ChangeType, ReferenceType
from bankledger.models.transaction import Transaction
from bankledger.models.transfer import Transfer
from bankledger.services import history_service

logger = logging.getLogger(__name__)

# Columns update_account() may overwrite directly. balance_cents is handled
# separately because it must write a history row.
_UPDATABLE_FIELDS = (
    "name",
    "account_type",
    "routing_number",
    "status",
    "credit_limit_cents",
    "available_credit_cents",
    "apr",
    "due_date",
    "minimum_payment_cents",
    "ytd_contributions_cents",
)


def _generate_account_number() -> str:
    """Generate a random 10-digit account number."""
    return "".join(random.choices(string.digits, k=10))


async def _unique_account_number(db: AsyncSession) -> str:
    """
    Bounded generate-and-check loop. The UNIQUE index on account_number is
    the final guard against two concurrent creations picking the same value.
    """
    attempts = settings.MAX_GENERATION_ATTEMPTS
    for _ in range(attempts):
        account_number = _generate_account_number()
        existing = await db.execute(
            select(Account.id).where(Account.account_number == account_number)
        )
        if existing.scalar_one_or_none() is None:
            return account_number
        logger.debug("Account number collision on %s, retrying", account_number)

    raise GenerationExhaustedError("account number", attempts)


async def create_account(
    db: AsyncSession,
    owner_id: uuid.UUID,
    name: str,
    account_type: AccountType = AccountType.CHECKING,
    balance_cents: int = 0,
    status: AccountStatus = AccountStatus.ACTIVE,
    routing_number: str | None = None,
    credit_limit_cents: int | None = None,
    available_credit_cents: int | None = None,
    apr: float | None = None,
    due_date=None,
    minimum_payment_cents: int | None = None,
    ytd_contributions_cents: int | None = None,
) -> Account:
    """
    Create a new account and its INITIAL balance history record.

    For credit accounts opened with a credit limit but no explicit available
    credit, available credit starts out equal to the limit.

    Returns:
        The newly created Account instance.

    Raises:
        GenerationExhaustedError: If no unique account number was found.
    """
    account_number = await _unique_account_number(db)

    if (
        account_type == AccountType.CREDIT
        and credit_limit_cents
        and available_credit_cents is None
    ):
        available_credit_cents = credit_limit_cents

    account = Account(
        owner_id=owner_id,
        name=name,
        account_type=account_type,
        balance_cents=balance_cents,
        history_sequence=0,
        account_number=account_number,
        routing_number=routing_number,
        status=status,
        credit_limit_cents=credit_limit_cents,
        available_credit_cents=available_credit_cents,
        apr=apr,
        due_date=due_date,
        minimum_payment_cents=minimum_payment_cents,
        ytd_contributions_cents=ytd_contributions_cents,
    )
    db.add(account)
    await db.flush()

    history_service.record_balance(
        db,
        account,
        balance_cents,
        ChangeType.INITIAL,
        reference_id=account.id,
        reference_type=ReferenceType.ACCOUNT_CREATION,
    )
    await db.flush()

    logger.info(
        "Created %s account %s (number %s) with balance %d",
        account_type.value, account.id, account_number, balance_cents,
    )
    return account


async def get_accounts(
    db: AsyncSession,
    owner_id: uuid.UUID | None = None,
) -> list[Account]:
    """List accounts, optionally only those of one owner."""
    query = select(Account).order_by(Account.created_at)
    if owner_id is not None:
        query = query.where(Account.owner_id == owner_id)

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    for_update: bool = False,
) -> Account:
    """
    Get a single account.

    Args:
        db: Database session.
        account_id: The account to retrieve.
        for_update: Take a row lock for a read-modify-write (SQLite relies on
            BEGIN IMMEDIATE instead).

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    query = select(Account).where(Account.id == account_id)
    if for_update:
        query = query.with_for_update()

    result = await db.execute(query)
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(account_id)

    return account


async def update_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    fields: dict,
) -> Account:
    """
    Update account metadata and, optionally, set its balance.

    `fields` holds only what the caller supplied (schema.model_dump(exclude_unset=True)).
    A supplied balance_cents that differs from the current balance is
    applied through the history as an ADJUSTMENT of the difference.
    """
    account = await get_account(db, account_id, for_update=True)

    for name in _UPDATABLE_FIELDS:
        if name in fields:
            # NOT NULL columns ignore an explicit null
            if fields[name] is None and name in ("name", "account_type", "status"):
                continue
            setattr(account, name, fields[name])

    account.updated_at = datetime.now(timezone.utc)

    new_balance = fields.get("balance_cents")
    if new_balance is not None and new_balance != account.balance_cents:
        change = new_balance - account.balance_cents
        history_service.apply_balance_change(
            db,
            account,
            change,
            ChangeType.ADJUSTMENT,
            reference_id=account.id,
            reference_type=ReferenceType.MANUAL_ADJUSTMENT,
        )
        logger.info("Manual balance set on account %s: %+d cents", account.id, change)

    await db.flush()
    return account


async def delete_account(db: AsyncSession, account_id: uuid.UUID) -> None:
    """
    Delete an account and everything that references it.

    Dependents go first (transactions, balance history, transfers where
    the account is source or destination), then the account itself, so no
    foreign key is ever left dangling.
    """
    account = await get_account(db, account_id, for_update=True)

    await db.execute(delete(Transaction).where(Transaction.account_id == account_id))
    await db.execute(delete(BalanceHistory).where(BalanceHistory.account_id == account_id))
    await db.execute(
        delete(Transfer).where(
            or_(
                Transfer.from_account_id == account_id,
                Transfer.to_account_id == account_id,
            )
        )
    )
    await db.delete(account)
    await db.flush()

    logger.info("Deleted account %s and its dependent records", account_id)


async def get_balance(db: AsyncSession, account_id: uuid.UUID) -> dict:
    """
    Get the account balance — both cached and reconstructed from history.

    A mismatch between the two signals a data integrity issue.

    Returns:
        Dict with balance_cents, history_balance_cents, match.
    """
    account = await get_account(db, account_id)
    history_balance = await history_service.reconstruct_balance(db, account_id)

    return {
        "account_id": account.id,
        "balance_cents": account.balance_cents,
        "history_balance_cents": history_balance,
        "match": account.balance_cents == history_balance,
    }


async def get_balance_history(
    db: AsyncSession,
    account_id: uuid.UUID,
    limit: int | None = None,
    offset: int = 0,
) -> list[BalanceHistory]:
    """List an account's balance history (newest first), 404 if the account is unknown."""
    await get_account(db, account_id)
    return await history_service.get_balance_history(db, account_id, limit=limit, offset=offset)
