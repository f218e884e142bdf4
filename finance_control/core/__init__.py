from .errors import (
    CategoryInUse,
    CategoryNotFound,
    FinanceControlError,
    InvalidTransactionError,
    StoreError,
    TransactionNotFound,
)
from .imports import import_transactions
from .ledger import SheetsTransactionStore
from .projection import build_projection, current_balance, project
from .recurrence import generate_recurring_transactions, next_due_date, roll_forward

__all__ = [
    "CategoryInUse",
    "CategoryNotFound",
    "FinanceControlError",
    "InvalidTransactionError",
    "StoreError",
    "TransactionNotFound",
    "SheetsTransactionStore",
    "build_projection",
    "current_balance",
    "import_transactions",
    "project",
    "generate_recurring_transactions",
    "next_due_date",
    "roll_forward",
]
