"""
Day by day cash-flow forecast.

The realized balance (every paid transaction, all history) is rolled
forward over the horizon by the pending transactions due on each day.
Amounts are summed as Decimal so thousands of entries add up to the cent.
"""

from datetime import timedelta
from decimal import Decimal

from .formatting import CENTS
from .labels import PAID, PENDING
from .recurrence import utc_today
from .schemas import ProjectionPoint, TransactionType, coerce_transaction

ZERO = Decimal("0.00")


def current_balance(paid_transactions):
    balance = ZERO
    for record in paid_transactions:
        balance += coerce_transaction(record).signed_amount
    return balance.quantize(CENTS)


def bucket_by_day(pending_transactions):
    """Maps each due date to its {"income": ..., "expense": ...} totals."""
    buckets = {}
    for record in pending_transactions:
        transaction = coerce_transaction(record)
        totals = buckets.setdefault(transaction.due_date, {"income": ZERO, "expense": ZERO})
        if transaction.type == TransactionType.INCOME:
            totals["income"] += transaction.amount
        else:
            totals["expense"] += transaction.amount
    return buckets


def project(paid_transactions, pending_transactions, horizon_days, today=None):
    if isinstance(horizon_days, bool) or not isinstance(horizon_days, int) or horizon_days <= 0:
        raise ValueError(f"horizon_days must be a positive integer, got {horizon_days!r}")
    today = today or utc_today()

    running_balance = current_balance(paid_transactions)
    buckets = bucket_by_day(pending_transactions)

    points = []
    for i in range(horizon_days + 1):
        day = today + timedelta(days=i)
        totals = buckets.get(day, {"income": ZERO, "expense": ZERO})
        running_balance += totals["income"] - totals["expense"]
        points.append(
            ProjectionPoint(
                date=day,
                income=totals["income"],
                expense=totals["expense"],
                balance=running_balance,
            )
        )
    return points


def build_projection(store, horizon_days, today=None):
    today = today or utc_today()
    paid = store.list_transactions(status=PAID)["transactions"]
    pending = store.list_transactions(
        status=PENDING,
        due_from=today,
        due_to=today + timedelta(days=horizon_days),
    )["transactions"]
    return project(paid, pending, horizon_days, today=today)
