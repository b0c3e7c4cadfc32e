"""
Accounts router — account lifecycle, balance, and balance history.

Endpoints:
    POST   /accounts                               — Create an account
    GET    /accounts                               — List accounts (optionally by owner)
    GET    /accounts/{account_id}                  — Get account details
    PATCH  /accounts/{account_id}                  — Update metadata / status / balance
    DELETE /accounts/{account_id}                  — Delete account and dependents
    GET    /accounts/{account_id}/balance          — Cached vs. history-replayed balance
    GET    /accounts/{account_id}/balance-history  — Append-only balance audit trail

The ledger trusts the owner_id it is given; authentication is handled by
the surrounding identity layer.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from bankledger.database import get_db
from bankledger.schemas.account import (
    AccountCreateRequest,
    AccountResponse,
    AccountUpdateRequest,
    BalanceHistoryResponse,
    BalanceResponse,
)
from bankledger.services import account_service

router = APIRouter()


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new account",
)
async def create_account(
    request: AccountCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a new account with a randomly generated 10-digit account number.

    The opening balance (default 0) is recorded as the account's "initial"
    balance history entry.
    """
    return await account_service.create_account(db=db, **request.model_dump())


@router.get(
    "",
    response_model=list[AccountResponse],
    summary="List accounts",
)
async def list_accounts(
    owner_id: uuid.UUID | None = Query(None, description="Only this owner's accounts"),
    db: AsyncSession = Depends(get_db),
):
    """List all accounts, or all accounts of one owner."""
    return await account_service.get_accounts(db, owner_id=owner_id)


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get account details",
)
async def get_account(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await account_service.get_account(db, account_id)


@router.patch(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Update an account",
)
async def update_account(
    account_id: uuid.UUID,
    request: AccountUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Update account fields. Only supplied fields change.

    Setting **balance_cents** records the difference as an "adjustment"
    in the balance history.
    """
    return await account_service.update_account(
        db, account_id, request.model_dump(exclude_unset=True)
    )


@router.delete(
    "/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an account",
)
async def delete_account(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Delete an account together with its transactions, history, and transfers."""
    await account_service.delete_account(db, account_id)


@router.get(
    "/{account_id}/balance",
    response_model=BalanceResponse,
    summary="Get account balance",
)
async def get_balance(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Get the account's cached balance and the balance replayed from its
    history. `match` is false if they disagree.
    """
    return await account_service.get_balance(db, account_id)


@router.get(
    "/{account_id}/balance-history",
    response_model=list[BalanceHistoryResponse],
    summary="Get balance history",
)
async def get_balance_history(
    account_id: uuid.UUID,
    limit: int | None = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List every balance change of the account, newest first."""
    return await account_service.get_balance_history(
        db, account_id, limit=limit, offset=offset
    )
