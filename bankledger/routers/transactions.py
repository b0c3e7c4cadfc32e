"""
Transactions router — post, list, update, and delete ledger entries.

Endpoints:
  POST   /accounts/{account_id}/transactions          — Post a credit or debit
  GET    /accounts/{account_id}/transactions          — List (with filters)
  GET    /accounts/{account_id}/transactions/pending  — List pending only
  GET    /transactions/{transaction_id}               — Get one transaction
  PATCH  /transactions/{transaction_id}               — Update / clear / un-clear
  DELETE /transactions/{transaction_id}               — Delete (reversing its effect)
"""

import datetime as dt
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from bankledger.database import get_db
from bankledger.models.transaction import TransactionType
from bankledger.schemas.transaction import (
    TransactionCreateRequest,
    TransactionResponse,
    TransactionUpdateRequest,
)
from bankledger.services import transaction_service

router = APIRouter()


@router.post(
    "/accounts/{account_id}/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a transaction (credit or debit)",
)
async def create_transaction(
    account_id: uuid.UUID,
    request: TransactionCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Post a credit (money in) or debit (money out).

    The sign of **amount_cents** is ignored; it is derived from **type**.
    A **pending** transaction is recorded without touching the balance
    until it is cleared with PATCH /transactions/{id}.
    """
    return await transaction_service.post_transaction(
        db=db,
        account_id=account_id,
        amount_cents=request.amount_cents,
        txn_type=request.type,
        description=request.description,
        txn_date=request.date,
        pending=request.pending,
        category=request.category,
        merchant=request.merchant,
        location=request.location,
        reference=request.reference,
        receipt_number=request.receipt_number,
        batch_id=request.batch_id,
    )


@router.get(
    "/accounts/{account_id}/transactions",
    response_model=list[TransactionResponse],
    summary="List transactions for an account",
)
async def list_transactions(
    account_id: uuid.UUID,
    pending: bool | None = Query(None, description="Filter by pending flag"),
    type: TransactionType | None = Query(None, description="Filter by type: credit, debit"),
    start_date: dt.date | None = Query(None, description="Inclusive lower date bound"),
    end_date: dt.date | None = Query(None, description="Inclusive upper date bound"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List an account's transactions, newest first."""
    return await transaction_service.get_transactions(
        db=db,
        account_id=account_id,
        pending=pending,
        type_filter=type,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/accounts/{account_id}/transactions/pending",
    response_model=list[TransactionResponse],
    summary="List pending transactions for an account",
)
async def list_pending_transactions(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await transaction_service.get_pending_transactions(db, account_id)


@router.get(
    "/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a single transaction",
)
async def get_transaction(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await transaction_service.get_transaction(db, transaction_id)


@router.patch(
    "/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="Update a transaction",
)
async def update_transaction(
    transaction_id: uuid.UUID,
    request: TransactionUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Update a transaction. Only supplied fields change.

    Flipping **pending**, or editing **amount_cents** / **type**, moves the
    account balance by a single net amount and is recorded in the history.
    """
    return await transaction_service.update_transaction(
        db, transaction_id, request.model_dump(exclude_unset=True)
    )


@router.delete(
    "/transactions/{transaction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a transaction",
)
async def delete_transaction(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Delete a transaction, reversing its balance effect if it was cleared."""
    await transaction_service.delete_transaction(db, transaction_id)
