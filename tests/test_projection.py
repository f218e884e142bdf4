from datetime import date, timedelta
from decimal import Decimal

import pytest

from finance_control.core.errors import InvalidTransactionError
from finance_control.core.projection import (
    bucket_by_day,
    build_projection,
    current_balance,
    project,
)

TODAY = date(2024, 1, 15)


def _tx(type_, amount, due_date, status="pending", id_=None):
    return {
        "id": id_,
        "description": f"{type_} {amount}",
        "amount": amount,
        "type": type_,
        "due_date": due_date,
        "status": status,
    }


def test_empty_input_gives_flat_zero_balance():
    points = project([], [], 30, today=TODAY)

    assert len(points) == 31
    assert all(p.balance == 0 for p in points)
    assert points[0].date == TODAY
    assert points[-1].date == TODAY + timedelta(days=30)
    assert [p.date for p in points] == [TODAY + timedelta(days=i) for i in range(31)]


def test_realized_balance_is_carried_through_every_point():
    paid = [
        _tx("income", "1000.00", "2020-05-01", status="paid"),
        _tx("expense", "300.00", "2023-12-01", status="paid"),
    ]

    points = project(paid, [], 15, today=TODAY)

    assert current_balance(paid) == Decimal("700.00")
    assert {p.balance for p in points} == {Decimal("700.00")}


def test_pending_expense_steps_balance_down_from_its_day():
    pending = [_tx("expense", "100.00", TODAY + timedelta(days=5))]

    points = project([], pending, 30, today=TODAY)

    assert [p.balance for p in points[:5]] == [Decimal("0.00")] * 5
    assert all(p.balance == Decimal("-100.00") for p in points[5:])
    assert points[5].expense == Decimal("100.00")
    assert points[4].expense == 0


def test_day_zero_transactions_count_on_day_zero():
    pending = [_tx("income", "250.00", TODAY)]

    points = project([_tx("income", "50.00", "2023-01-01", status="paid")], pending, 5, today=TODAY)

    assert points[0].income == Decimal("250.00")
    assert points[0].balance == Decimal("300.00")


def test_final_balance_is_realized_plus_all_pending_net():
    paid = [_tx("income", "500.00", "2023-01-01", status="paid")]
    pending = [
        _tx("income", "1200.00", TODAY + timedelta(days=3)),
        _tx("expense", "450.50", TODAY + timedelta(days=3)),
        _tx("expense", "99.99", TODAY + timedelta(days=10)),
    ]

    points = project(paid, pending, 10, today=TODAY)

    assert points[3].income == Decimal("1200.00")
    assert points[3].expense == Decimal("450.50")
    assert points[-1].balance == Decimal("500.00") + Decimal("1200.00") - Decimal("450.50") - Decimal(
        "99.99"
    )


def test_sums_do_not_drift():
    paid = [_tx("income", "0.10", "2023-01-01", status="paid") for _ in range(3000)]

    assert current_balance(paid) == Decimal("300.00")


def test_pending_outside_horizon_is_ignored():
    pending = [_tx("expense", "80.00", TODAY + timedelta(days=40))]

    points = project([], pending, 30, today=TODAY)

    assert points[-1].balance == 0


def test_due_dates_are_bucketed_by_utc_day():
    buckets = bucket_by_day([_tx("income", "10.00", "2024-01-15T23:30:00-03:00")])

    assert list(buckets) == [date(2024, 1, 16)]


@pytest.mark.parametrize("horizon", [0, -5, "30", 2.5, True])
def test_horizon_must_be_positive_integer(horizon):
    with pytest.raises(ValueError):
        project([], [], horizon, today=TODAY)


def test_invalid_pending_date_is_a_hard_failure():
    pending = [_tx("expense", "10.00", "not a date", id_="t9")]

    with pytest.raises(InvalidTransactionError) as excinfo:
        project([], pending, 30, today=TODAY)

    assert excinfo.value.transaction_id == "t9"


def test_as_dict_rounds_to_cents():
    points = project([_tx("income", "10.005", "2023-01-01", status="paid")], [], 1, today=TODAY)

    assert points[0].as_dict() == {
        "date": "2024-01-15",
        "income": 0.0,
        "expense": 0.0,
        "balance": 10.01,
    }


def test_build_projection_reads_paid_and_pending_window(sheets):
    _, store = sheets(
        transactions=[
            {"id": "p1", "amount": "1000.00", "type": "income", "due_date": "2023-12-01",
             "status": "paid", "recurrence": "once"},
            {"id": "p2", "amount": "200.00", "type": "expense", "due_date": "2024-01-20",
             "status": "pending", "recurrence": "once"},
            {"id": "p3", "amount": "999.00", "type": "expense", "due_date": "2024-03-20",
             "status": "pending", "recurrence": "once"},
            {"id": "p4", "amount": "50.00", "type": "expense", "due_date": "2024-01-16",
             "status": "canceled", "recurrence": "once"},
        ]
    )

    points = build_projection(store, 15, today=TODAY)

    assert len(points) == 16
    assert points[0].balance == Decimal("1000.00")
    assert points[5].balance == Decimal("800.00")
    assert points[-1].balance == Decimal("800.00")
