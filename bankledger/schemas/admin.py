"""
Pydantic schemas for the back-office (admin) endpoints.
"""

import uuid

from pydantic import BaseModel, Field

from bankledger.services.admin_service import AdjustmentDirection


class BalanceAdjustmentRequest(BaseModel):
    """
    Request body for POST /admin/accounts/{id}/adjust-balance.

    amount_cents is the requested magnitude — in bulk mode, the TOTAL that
    is split across bulk_count transactions.
    """
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    direction: AdjustmentDirection
    description: str = Field(min_length=1, max_length=255)
    is_bulk: bool = False
    bulk_count: int | None = Field(default=None, ge=1)
    randomize_amounts: bool = False
    category: str | None = None
    merchant: str | None = None
    reference: str | None = None


class BalanceAdjustmentResponse(BaseModel):
    """Result of an administrative adjustment."""
    account_id: uuid.UUID
    new_balance_cents: int
    transactions_created: int
    transaction_ids: list[uuid.UUID]
    batch_id: str | None


class DashboardStatsResponse(BaseModel):
    """Ledger-wide totals for the admin dashboard."""
    total_accounts: int
    total_balance_cents: int
    recent_transactions: int
    pending_transactions: int
