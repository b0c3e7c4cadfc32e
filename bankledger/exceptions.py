"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like InsufficientFundsError)
without importing HTTP concepts. The handler layer translates them into a
consistent structured failure response:

    {"detail": "<message>", "error_type": "<kind>", ...extra fields}

Because get_db() rolls the session back on any exception, a raised
LedgerError also guarantees that nothing the operation staged is persisted.

Exception hierarchy:
    LedgerError (base)
    ├── NotFoundError
    │   ├── AccountNotFoundError
    │   ├── TransactionNotFoundError
    │   └── TransferNotFoundError
    ├── InvalidAmountError           — non-positive transfer/adjustment amount
    ├── AccountInactiveError         — source or destination not "active"
    ├── InsufficientFundsError       — source balance below transfer amount
    ├── InvalidStateTransitionError  — e.g. cancelling a non-pending transfer
    └── GenerationExhaustedError     — unique id generation ran out of attempts
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class LedgerError(Exception):
    """Base exception for all ledger domain errors."""

    status_code = 400
    error_type = "ledger_error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)

    def extra(self) -> dict:
        """Additional fields merged into the JSON error body."""
        return {}


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class NotFoundError(LedgerError):
    """A referenced account, transaction, or transfer does not exist."""

    status_code = 404
    error_type = "not_found"


class AccountNotFoundError(NotFoundError):
    """Raised when a requested account does not exist.

    `side` is set by the transfer engine ("source" / "destination").
    """

    error_type = "account_not_found"

    def __init__(self, account_id: uuid.UUID, side: str | None = None):
        self.account_id = account_id
        self.side = side
        if side:
            super().__init__(f"{side.capitalize()} account {account_id} not found")
        else:
            super().__init__(f"Account {account_id} not found")

    def extra(self) -> dict:
        return {"side": self.side} if self.side else {}


class TransactionNotFoundError(NotFoundError):
    """Raised when a requested transaction does not exist."""

    error_type = "transaction_not_found"

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class TransferNotFoundError(NotFoundError):
    """Raised when a transfer can't be found by id or reference code."""

    error_type = "transfer_not_found"

    def __init__(self, key: uuid.UUID | str):
        self.key = key
        super().__init__(f"Transfer {key} not found")


class InvalidAmountError(LedgerError):
    """Raised for a non-positive transfer or adjustment amount."""

    status_code = 422
    error_type = "invalid_amount"

    def __init__(self, amount_cents: int, detail: str | None = None):
        self.amount_cents = amount_cents
        super().__init__(detail or f"Amount must be positive, got {amount_cents} cents")

    def extra(self) -> dict:
        return {"amount_cents": self.amount_cents}


class AccountInactiveError(LedgerError):
    """
    Raised when a transfer touches an account whose status is not "active".

    Attributes:
        account_id: The offending account.
        side: "source" or "destination".
        account_status: The account's current status.
    """

    status_code = 409
    error_type = "account_inactive"

    def __init__(self, account_id: uuid.UUID, side: str, account_status: str):
        self.account_id = account_id
        self.side = side
        self.account_status = account_status
        super().__init__(
            f"{side.capitalize()} account {account_id} is not active "
            f"(status: {account_status})"
        )

    def extra(self) -> dict:
        return {"side": self.side, "account_status": self.account_status}


class InsufficientFundsError(LedgerError):
    """
    Raised when a transfer exceeds the source account's balance.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested_cents: The amount the caller tried to move.
        available_cents: The current balance of the account.
    """

    status_code = 422
    error_type = "insufficient_funds"

    def __init__(
        self,
        account_id: uuid.UUID,
        requested_cents: int,
        available_cents: int,
    ):
        self.account_id = account_id
        self.requested_cents = requested_cents
        self.available_cents = available_cents
        super().__init__(
            f"Insufficient funds: requested {requested_cents} cents, "
            f"available {available_cents} cents"
        )

    def extra(self) -> dict:
        return {
            "requested_cents": self.requested_cents,
            "available_cents": self.available_cents,
        }


class InvalidStateTransitionError(LedgerError):
    """Raised when a status change is not allowed from the current status."""

    status_code = 409
    error_type = "invalid_state_transition"

    def __init__(self, current_status: str, requested_status: str, detail: str | None = None):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            detail
            or f"Cannot move from '{current_status}' to '{requested_status}'"
        )

    def extra(self) -> dict:
        return {
            "current_status": self.current_status,
            "requested_status": self.requested_status,
        }


class GenerationExhaustedError(LedgerError):
    """Raised when a unique account number / reference code can't be generated."""

    status_code = 503
    error_type = "generation_exhausted"

    def __init__(self, what: str, attempts: int):
        self.what = what
        self.attempts = attempts
        super().__init__(f"Failed to generate a unique {what} after {attempts} attempts")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the ledger exception handler with the FastAPI application.

    Every LedgerError subclass carries its own status_code and error_type,
    so one handler covers the whole hierarchy.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(
        request: Request, exc: LedgerError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "error_type": exc.error_type,
                **exc.extra(),
            },
        )
