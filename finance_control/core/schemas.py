import datetime
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import InvalidTransactionError
from .formatting import as_amount, normalize_amount, parse_date


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    LATE = "late"
    CANCELED = "canceled"


class Recurrence(str, Enum):
    ONCE = "once"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class Transaction(BaseModel):
    id: Optional[str] = Field(None, description="Assigned by the store on insert.")
    description: str = Field("", description="Free text label.")
    amount: Decimal = Field(..., gt=0, description="Magnitude; the sign is carried by type.")
    type: TransactionType
    category_id: Optional[str] = None
    due_date: date
    payment_date: Optional[date] = Field(None, description="Set only once paid.")
    status: TransactionStatus = TransactionStatus.PENDING
    recurrence: Recurrence = Recurrence.ONCE
    next_generation_date: Optional[date] = Field(
        None, description="Set once the successor has been generated."
    )
    parent_transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    department: Optional[str] = None

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, value):
        return "" if value is None else str(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value):
        amount = normalize_amount(value)
        if amount is None:
            raise ValueError(f"invalid amount {value!r}")
        return amount

    @field_validator("due_date", mode="before")
    @classmethod
    def _coerce_due_date(cls, value):
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(f"invalid date {value!r}")
        return parsed

    @field_validator("payment_date", "next_generation_date", mode="before")
    @classmethod
    def _coerce_optional_date(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(f"invalid date {value!r}")
        return parsed

    @property
    def signed_amount(self):
        if self.type == TransactionType.INCOME:
            return self.amount
        return -self.amount

    @property
    def is_recurring(self):
        return self.recurrence != Recurrence.ONCE


class Category(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None


class ProjectionPoint(BaseModel):
    date: datetime.date
    income: Decimal
    expense: Decimal
    balance: Decimal

    def as_dict(self):
        return {
            "date": self.date.isoformat(),
            "income": as_amount(self.income),
            "expense": as_amount(self.expense),
            "balance": as_amount(self.balance),
        }


class RollForwardResult(BaseModel):
    generated_count: int = 0
    generated: List[dict] = Field(default_factory=list)
    skipped_ids: List[str] = Field(default_factory=list)
    invalid_ids: List[str] = Field(default_factory=list)


class TransactionUpdate(BaseModel):
    """Fields a user may change on an existing transaction."""

    description: Optional[str] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    type: Optional[TransactionType] = None
    category_id: Optional[str] = None
    due_date: Optional[date] = None
    payment_date: Optional[date] = None
    status: Optional[TransactionStatus] = None
    recurrence: Optional[Recurrence] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    department: Optional[str] = None


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    parent_id: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    parent_id: Optional[str] = None


class ImportResult(BaseModel):
    total: int = 0
    imported: int = 0
    invalid_rows: List[int] = Field(default_factory=list)
    failed_batches: int = 0


def coerce_transaction(record):
    if isinstance(record, Transaction):
        return record
    try:
        return Transaction.model_validate(record)
    except ValidationError as exc:
        transaction_id = record.get("id") if hasattr(record, "get") else None
        reason = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidTransactionError(transaction_id, reason) from exc
