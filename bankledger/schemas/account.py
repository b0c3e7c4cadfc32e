"""
Pydantic schemas for Account endpoints.

These schemas define the API contract for account creation, update,
retrieval, balance checking, and balance history. All monetary amounts are
expressed in signed integer cents.
"""

import datetime as dt
import uuid

from pydantic import BaseModel, Field

from bankledger.models.account import AccountType, AccountStatus
from bankledger.models.balance_history import ChangeType, ReferenceType


class AccountCreateRequest(BaseModel):
    """Request body for POST /accounts."""
    owner_id: uuid.UUID
    name: str = Field(min_length=1, max_length=100)
    account_type: AccountType = AccountType.CHECKING
    balance_cents: int = Field(default=0, description="Opening balance in cents")
    status: AccountStatus = AccountStatus.ACTIVE
    routing_number: str | None = None
    credit_limit_cents: int | None = None
    available_credit_cents: int | None = None
    apr: float | None = None
    due_date: dt.date | None = None
    minimum_payment_cents: int | None = None
    ytd_contributions_cents: int | None = None


class AccountUpdateRequest(BaseModel):
    """
    Request body for PATCH /accounts/{id}.

    Only supplied fields are applied. Supplying balance_cents sets the
    balance and records the difference as an "adjustment" in the history.
    """
    name: str | None = Field(default=None, min_length=1, max_length=100)
    account_type: AccountType | None = None
    balance_cents: int | None = None
    status: AccountStatus | None = None
    routing_number: str | None = None
    credit_limit_cents: int | None = None
    available_credit_cents: int | None = None
    apr: float | None = None
    due_date: dt.date | None = None
    minimum_payment_cents: int | None = None
    ytd_contributions_cents: int | None = None


class AccountResponse(BaseModel):
    """Public representation of a ledger account."""
    id: uuid.UUID
    owner_id: uuid.UUID
    name: str
    account_type: AccountType
    balance_cents: int
    account_number: str
    routing_number: str | None
    status: AccountStatus
    credit_limit_cents: int | None
    available_credit_cents: int | None
    apr: float | None
    due_date: dt.date | None
    minimum_payment_cents: int | None
    ytd_contributions_cents: int | None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = {"from_attributes": True}


class BalanceResponse(BaseModel):
    """
    Balance check response — cached balance vs. replayed history.

    `match` is False only if balance_cents and the sum of the account's
    balance history disagree, which would indicate a data integrity issue.
    """
    account_id: uuid.UUID
    balance_cents: int
    history_balance_cents: int
    match: bool


class BalanceHistoryResponse(BaseModel):
    """One append-only balance history record."""
    id: uuid.UUID
    account_id: uuid.UUID
    sequence: int
    balance_cents: int
    change_amount_cents: int
    change_type: ChangeType
    reference_id: str | None
    reference_type: ReferenceType | None
    created_at: dt.datetime

    model_config = {"from_attributes": True}
