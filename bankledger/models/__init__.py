"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from bankledger.models directly
"""

from bankledger.models.account import Account, AccountType, AccountStatus  # noqa: F401
from bankledger.models.transaction import Transaction, TransactionType  # noqa: F401
from bankledger.models.transfer import Transfer, TransferStatus, TransferType  # noqa: F401
from bankledger.models.balance_history import (  # noqa: F401
    BalanceHistory,
    ChangeType,
    ReferenceType,
)
