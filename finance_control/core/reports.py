import calendar
from datetime import date, timedelta
from decimal import Decimal

from .labels import CHART_COLORS, PERIODS
from .recurrence import utc_today
from .schemas import TransactionStatus, TransactionType, coerce_transaction

ZERO = Decimal("0.00")


def period_bounds(period, today=None):
    """First and last day of the calendar week/month/quarter/year holding today."""
    today = today or utc_today()
    if period == "week":
        start = today - timedelta(days=today.weekday())
        return start, start + timedelta(days=6)
    if period == "month":
        last_day = calendar.monthrange(today.year, today.month)[1]
        return date(today.year, today.month, 1), date(today.year, today.month, last_day)
    if period == "quarter":
        first_month = 3 * ((today.month - 1) // 3) + 1
        last_month = first_month + 2
        last_day = calendar.monthrange(today.year, last_month)[1]
        return date(today.year, first_month, 1), date(today.year, last_month, last_day)
    if period == "year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    raise ValueError(f"Unknown period {period!r}; expected one of {PERIODS}")


def financial_summary(transactions, period="month", today=None):
    start, end = period_bounds(period, today)
    balance = income = expense = ZERO
    pending_count = 0

    for record in transactions:
        transaction = coerce_transaction(record)
        if transaction.status == TransactionStatus.PAID:
            balance += transaction.signed_amount
            paid_on = transaction.payment_date or transaction.due_date
            if start <= paid_on <= end:
                if transaction.type == TransactionType.INCOME:
                    income += transaction.amount
                else:
                    expense += transaction.amount
        elif transaction.status == TransactionStatus.PENDING:
            if start <= transaction.due_date <= end:
                pending_count += 1

    return {
        "balance": balance,
        "income": income,
        "expense": expense,
        "pending_count": pending_count,
    }


def expenses_by_category(transactions, categories, start, end):
    """
    Expense totals per category for transactions due in [start, end].
    Subcategories roll up into their parent; uncategorized expenses are left out.
    """
    by_id = {category["id"]: category for category in categories}
    totals = {}

    for record in transactions:
        transaction = coerce_transaction(record)
        if transaction.type != TransactionType.EXPENSE:
            continue
        if not start <= transaction.due_date <= end:
            continue
        category = by_id.get(transaction.category_id)
        if category is None:
            continue
        parent = by_id.get(category.get("parent_id"))
        if parent is not None:
            category = parent
        entry = totals.setdefault(
            category["id"],
            {"id": category["id"], "name": category["name"], "amount": ZERO},
        )
        entry["amount"] += transaction.amount

    ranked = sorted(totals.values(), key=lambda item: item["amount"], reverse=True)
    for index, item in enumerate(ranked):
        item["color"] = CHART_COLORS[index % len(CHART_COLORS)]
    return ranked


def upcoming(transactions, today=None, days=7):
    today = today or utc_today()
    until = today + timedelta(days=days)
    selected = [coerce_transaction(record) for record in transactions]
    selected = [
        t
        for t in selected
        if t.status == TransactionStatus.PENDING and today <= t.due_date <= until
    ]
    return sorted(selected, key=lambda t: t.due_date)


def overdue(transactions, today=None):
    today = today or utc_today()
    selected = [coerce_transaction(record) for record in transactions]
    selected = [
        t for t in selected if t.status == TransactionStatus.PENDING and t.due_date < today
    ]
    return sorted(selected, key=lambda t: t.due_date)
