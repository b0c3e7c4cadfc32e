"""
Admin router — back-office balance adjustments and ledger statistics.

Endpoints:
  POST /admin/accounts/{account_id}/adjust-balance — Add/remove money (single or bulk)
  GET  /admin/stats                                — Dashboard totals

Role checks are the identity layer's job; this router assumes the caller
has already been authorized as an administrator.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bankledger.database import get_db
from bankledger.schemas.admin import (
    BalanceAdjustmentRequest,
    BalanceAdjustmentResponse,
    DashboardStatsResponse,
)
from bankledger.services import admin_service

router = APIRouter()


@router.post(
    "/accounts/{account_id}/adjust-balance",
    response_model=BalanceAdjustmentResponse,
    summary="[Admin] Adjust an account's balance",
)
async def adjust_balance(
    account_id: uuid.UUID,
    request: BalanceAdjustmentRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Add or remove money from an account.

    - **direction**: "add" or "remove" (remove may overdraw)
    - **is_bulk** / **bulk_count**: split **amount_cents** across several
      transactions; the balance still moves by exactly **amount_cents**
    - **randomize_amounts**: vary the bulk pieces for realistic data
    """
    return await admin_service.adjust_balance(
        db=db,
        account_id=account_id,
        amount_cents=request.amount_cents,
        direction=request.direction,
        description=request.description,
        is_bulk=request.is_bulk,
        bulk_count=request.bulk_count,
        randomize_amounts=request.randomize_amounts,
        category=request.category,
        merchant=request.merchant,
        reference=request.reference,
    )


@router.get(
    "/stats",
    response_model=DashboardStatsResponse,
    summary="[Admin] Ledger-wide statistics",
)
async def get_stats(db: AsyncSession = Depends(get_db)):
    return await admin_service.get_dashboard_stats(db)
