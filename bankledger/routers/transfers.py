"""
Transfers router — atomic money transfers between accounts.

Endpoints:
  POST  /transfers                              — Execute a transfer
  GET   /transfers                              — List all transfers (status filter)
  GET   /transfers/reference/{reference_code}   — Look up by reference code
  GET   /transfers/{transfer_id}                — Get a transfer
  POST  /transfers/{transfer_id}/cancel         — Cancel a pending transfer
  PATCH /transfers/{transfer_id}/status         — [Admin] overwrite status
  GET   /accounts/{account_id}/transfers        — An account's transfers

A transfer creates one Transfer record and two linked transactions:
  1. A DEBIT on the source account
  2. A CREDIT on the destination account
Both transactions carry the transfer's reference code.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from bankledger.database import get_db
from bankledger.models.transfer import TransferStatus
from bankledger.schemas.transfer import (
    TransferRecordResponse,
    TransferRequest,
    TransferResponse,
    TransferStatusUpdateRequest,
)
from bankledger.services import transfer_service

router = APIRouter()


@router.post(
    "/transfers",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer money between accounts",
)
async def create_transfer(
    request: TransferRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Transfer money from one account to another.

    This is an atomic operation — either the Transfer record, both
    transactions, both balance updates, and both history rows are written,
    or none of them are.

    - **amount_cents**: Positive integer in cents (e.g., $50.00 = 5000)
    - Both accounts must exist and be active
    - The source balance must cover the amount
    """
    transfer, debit_txn, credit_txn = await transfer_service.execute_transfer(
        db=db,
        from_account_id=request.from_account_id,
        to_account_id=request.to_account_id,
        amount_cents=request.amount_cents,
        description=request.description,
        transfer_type=request.type,
    )

    return TransferResponse(
        transfer_id=transfer.id,
        from_transaction_id=debit_txn.id,
        to_transaction_id=credit_txn.id,
        reference_code=transfer.reference_code,
        transfer=TransferRecordResponse.model_validate(transfer),
    )


@router.get(
    "/transfers",
    response_model=list[TransferRecordResponse],
    summary="List all transfers",
)
async def list_transfers(
    status: TransferStatus | None = Query(None, description="Filter by status"),
    limit: int | None = Query(None, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    return await transfer_service.get_all_transfers(db, status_filter=status, limit=limit)


@router.get(
    "/transfers/reference/{reference_code}",
    response_model=TransferRecordResponse,
    summary="Get a transfer by reference code",
)
async def get_transfer_by_reference(
    reference_code: str,
    db: AsyncSession = Depends(get_db),
):
    return await transfer_service.get_transfer_by_reference(db, reference_code)


@router.get(
    "/transfers/{transfer_id}",
    response_model=TransferRecordResponse,
    summary="Get a transfer",
)
async def get_transfer(
    transfer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return await transfer_service.get_transfer(db, transfer_id)


@router.post(
    "/transfers/{transfer_id}/cancel",
    response_model=TransferRecordResponse,
    summary="Cancel a pending transfer",
)
async def cancel_transfer(
    transfer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Cancel a transfer. Only transfers in "pending" status can be cancelled."""
    return await transfer_service.cancel_transfer(db, transfer_id)


@router.patch(
    "/transfers/{transfer_id}/status",
    response_model=TransferRecordResponse,
    summary="[Admin] Overwrite a transfer's status",
)
async def update_transfer_status(
    transfer_id: uuid.UUID,
    request: TransferStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Overwrite the status unconditionally.

    This does NOT reverse or replay the transfer's transactions; balances
    are left exactly as they are.
    """
    return await transfer_service.update_transfer_status(db, transfer_id, request.status)


@router.get(
    "/accounts/{account_id}/transfers",
    response_model=list[TransferRecordResponse],
    summary="List an account's transfers",
)
async def list_account_transfers(
    account_id: uuid.UUID,
    limit: int | None = Query(None, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List incoming and outgoing transfers of an account, newest first."""
    return await transfer_service.get_account_transfers(db, account_id, limit=limit)
