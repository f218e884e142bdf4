from datetime import date
from decimal import Decimal

import pytest

from finance_control.core.labels import CHART_COLORS
from finance_control.core.reports import (
    expenses_by_category,
    financial_summary,
    overdue,
    period_bounds,
    upcoming,
)

TODAY = date(2024, 5, 15)

CATEGORIES = [
    {"id": "inst", "name": "Instalações", "parent_id": None},
    {"id": "rent", "name": "Aluguel", "parent_id": "inst"},
    {"id": "tax", "name": "Impostos", "parent_id": None},
]


def _tx(id_, type_, amount, due_date, status="paid", category_id=None, payment_date=None):
    return {
        "id": id_,
        "description": id_,
        "amount": amount,
        "type": type_,
        "due_date": due_date,
        "payment_date": payment_date,
        "status": status,
        "category_id": category_id,
    }


@pytest.mark.parametrize(
    "period, expected",
    [
        ("week", (date(2024, 5, 13), date(2024, 5, 19))),
        ("month", (date(2024, 5, 1), date(2024, 5, 31))),
        ("quarter", (date(2024, 4, 1), date(2024, 6, 30))),
        ("year", (date(2024, 1, 1), date(2024, 12, 31))),
    ],
)
def test_period_bounds(period, expected):
    assert period_bounds(period, TODAY) == expected


def test_unknown_period_raises():
    with pytest.raises(ValueError):
        period_bounds("decade", TODAY)


def test_financial_summary_for_month():
    transactions = [
        _tx("salary", "income", "5000.00", "2024-05-05", payment_date="2024-05-05"),
        _tx("old", "income", "1000.00", "2024-03-01", payment_date="2024-03-02"),
        _tx("rent", "expense", "1500.00", "2024-04-30", payment_date="2024-05-02"),
        _tx("energy", "expense", "300.00", "2024-05-20", status="pending"),
        _tx("june", "expense", "300.00", "2024-06-20", status="pending"),
        _tx("void", "expense", "999.00", "2024-05-10", status="canceled"),
    ]

    summary = financial_summary(transactions, period="month", today=TODAY)

    assert summary == {
        "balance": Decimal("4500.00"),
        "income": Decimal("5000.00"),
        "expense": Decimal("1500.00"),
        "pending_count": 1,
    }


def test_expenses_roll_up_to_parent_category_and_sort_by_amount():
    transactions = [
        _tx("r1", "expense", "3500.00", "2024-05-05", category_id="rent"),
        _tx("i1", "expense", "200.00", "2024-05-06", category_id="inst"),
        _tx("t1", "expense", "1200.00", "2024-05-07", category_id="tax", status="pending"),
        _tx("none", "expense", "50.00", "2024-05-08"),
        _tx("inc", "income", "9999.00", "2024-05-08", category_id="tax"),
        _tx("late", "expense", "70.00", "2024-06-08", category_id="tax"),
    ]

    breakdown = expenses_by_category(
        transactions, CATEGORIES, date(2024, 5, 1), date(2024, 5, 31)
    )

    assert breakdown == [
        {"id": "inst", "name": "Instalações", "amount": Decimal("3700.00"), "color": CHART_COLORS[0]},
        {"id": "tax", "name": "Impostos", "amount": Decimal("1200.00"), "color": CHART_COLORS[1]},
    ]


def test_upcoming_and_overdue_lists():
    transactions = [
        _tx("soon", "expense", "10.00", "2024-05-17", status="pending"),
        _tx("today", "expense", "10.00", "2024-05-15", status="pending"),
        _tx("far", "expense", "10.00", "2024-06-30", status="pending"),
        _tx("late", "expense", "10.00", "2024-05-01", status="pending"),
        _tx("paid", "expense", "10.00", "2024-05-16"),
    ]

    assert [t.id for t in upcoming(transactions, today=TODAY, days=7)] == ["today", "soon"]
    assert [t.id for t in overdue(transactions, today=TODAY)] == ["late"]
