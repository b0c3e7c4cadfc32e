"""
Pydantic schemas for Transaction endpoints.

All monetary amounts are in integer cents (e.g., $10.50 = 1050). On input
only the magnitude of amount_cents matters: the sign is re-derived from
`type`. On output amount_cents is signed (credit > 0, debit < 0).
"""

import datetime as dt
import uuid

from pydantic import BaseModel, Field

from bankledger.models.transaction import TransactionType


class TransactionCreateRequest(BaseModel):
    """Request body for POST /accounts/{id}/transactions."""
    type: TransactionType
    amount_cents: int = Field(description="Amount in cents; the sign is ignored")
    description: str = Field(default="", max_length=255)
    date: dt.date | None = Field(default=None, description="Defaults to today")
    pending: bool = False
    category: str | None = None
    merchant: str | None = None
    location: str | None = None
    reference: str | None = None
    receipt_number: str | None = None
    batch_id: str | None = None


class TransactionUpdateRequest(BaseModel):
    """
    Request body for PATCH /transactions/{id}.

    Every field is optional; only supplied fields are applied. Changing
    `pending`, `amount_cents`, or `type` may move the account balance.
    """
    type: TransactionType | None = None
    amount_cents: int | None = None
    description: str | None = Field(default=None, max_length=255)
    date: dt.date | None = None
    pending: bool | None = None
    category: str | None = None
    merchant: str | None = None
    location: str | None = None
    reference: str | None = None
    receipt_number: str | None = None
    batch_id: str | None = None


class TransactionResponse(BaseModel):
    """Public representation of a transaction."""
    id: uuid.UUID
    account_id: uuid.UUID
    amount_cents: int
    type: TransactionType
    description: str
    date: dt.date
    category: str | None
    merchant: str | None
    location: str | None
    reference: str | None
    receipt_number: str | None
    pending: bool
    batch_id: str | None
    created_at: dt.datetime

    model_config = {"from_attributes": True}
