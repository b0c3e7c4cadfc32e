"""
Pydantic schemas for Transfer endpoints.

Transfer amounts are unsigned positive integer cents; direction is given
by from_account_id / to_account_id.
"""

import datetime as dt
import uuid

from pydantic import BaseModel, Field, model_validator

from bankledger.models.transfer import TransferStatus, TransferType


class TransferRequest(BaseModel):
    """Request body for POST /transfers."""
    from_account_id: uuid.UUID
    to_account_id: uuid.UUID
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    description: str | None = Field(default=None, max_length=255)
    type: TransferType = TransferType.INTERNAL

    @model_validator(mode="after")
    def accounts_must_differ(self):
        """Cannot transfer money to the same account."""
        if self.from_account_id == self.to_account_id:
            raise ValueError("Cannot transfer to the same account")
        return self


class TransferRecordResponse(BaseModel):
    """Public representation of a Transfer record."""
    id: uuid.UUID
    from_account_id: uuid.UUID | None
    to_account_id: uuid.UUID | None
    amount_cents: int
    date: dt.date
    status: TransferStatus
    description: str | None
    reference_code: str
    type: TransferType
    created_at: dt.datetime

    model_config = {"from_attributes": True}


class TransferResponse(BaseModel):
    """Response body for a successful transfer."""
    transfer_id: uuid.UUID
    from_transaction_id: uuid.UUID
    to_transaction_id: uuid.UUID
    reference_code: str
    transfer: TransferRecordResponse


class TransferStatusUpdateRequest(BaseModel):
    """Request body for PATCH /transfers/{id}/status (administrative)."""
    status: TransferStatus
