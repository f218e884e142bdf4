import hmac
import logging
import math
from datetime import timedelta
from typing import List, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from finance_control.config import get_settings
from finance_control.core.errors import (
    CategoryInUse,
    CategoryNotFound,
    FinanceControlError,
    InvalidTransactionError,
    TransactionNotFound,
)
from finance_control.core.formatting import as_amount
from finance_control.core.imports import import_transactions
from finance_control.core.labels import (
    EXPENSE,
    PAID,
    PENDING,
    PROJECTION_HORIZONS,
    STATUS_LABELS,
)
from finance_control.core.ledger import SheetsTransactionStore
from finance_control.core.notices import build_due_notice, notice_window
from finance_control.core.projection import build_projection
from finance_control.core.recurrence import generate_recurring_transactions, utc_today
from finance_control.core.reports import (
    expenses_by_category,
    financial_summary,
    overdue,
    period_bounds,
    upcoming,
)
from finance_control.core.schemas import (
    CategoryIn,
    CategoryUpdate,
    Transaction,
    TransactionStatus,
    TransactionType,
    TransactionUpdate,
)

SETTINGS = get_settings()

logging.basicConfig(level=SETTINGS.log_level)
LOGGER = logging.getLogger("finance_control")


def get_store():
    settings = get_settings()
    return SheetsTransactionStore(
        spreadsheet_id=settings.spreadsheet_id,
        credentials_path=settings.credentials_path,
    )


def get_today():
    return utc_today()


def require_api_key(authorization: Optional[str] = Header(None)):
    api_key = get_settings().api_key
    scheme, _, token = (authorization or "").partition(" ")
    if not api_key or scheme != "Bearer":
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not hmac.compare_digest(token.encode(), api_key.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


def _transaction_payload(transaction):
    payload = transaction.model_dump(mode="json")
    payload["amount"] = as_amount(transaction.amount)
    payload["status_label"] = STATUS_LABELS[transaction.status.value]
    return payload


def _record_payload(record):
    return dict(record, status_label=STATUS_LABELS.get(record.get("status")))


def _amounts(values):
    return {
        key: as_amount(value) if key != "pending_count" else value
        for key, value in values.items()
    }


app = FastAPI(title=SETTINGS.app_name, version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    LOGGER.info("Request: %s %s", request.method, request.url)
    try:
        response = await call_next(request)
        LOGGER.info("Response: %s", response.status_code)
        return response
    except Exception as e:
        LOGGER.error("Request failed: %s", e)
        raise


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/cron/recurring-transactions", dependencies=[Depends(require_api_key)])
def cron_recurring_transactions(store=Depends(get_store), today=Depends(get_today)):
    try:
        result = generate_recurring_transactions(store, today=today)
    except FinanceControlError as exc:
        LOGGER.exception("Error generating recurring transactions: %s", exc)
        return JSONResponse(status_code=500, content={"success": False, "message": str(exc)})

    return {
        "success": True,
        "message": f"Generated {result.generated_count} recurring transactions",
        "generated_count": result.generated_count,
        "skipped": len(result.skipped_ids),
        "invalid": len(result.invalid_ids),
    }


@app.post("/notifications/email", dependencies=[Depends(require_api_key)])
def notifications_email(store=Depends(get_store), today=Depends(get_today)):
    settings = get_settings()
    start, end = notice_window(today, settings.notice_window_days)
    try:
        transactions = store.list_transactions(status=PENDING, due_from=start, due_to=end)
        categories = store.list_categories()
        notice = build_due_notice(
            transactions["transactions"],
            categories,
            today=today,
            window_days=settings.notice_window_days,
            app_name=settings.app_name,
        )
    except FinanceControlError as exc:
        LOGGER.exception("Error preparing notifications: %s", exc)
        return JSONResponse(status_code=500, content={"success": False, "message": str(exc)})

    recipients = len(settings.notify_recipients)
    return {
        "success": True,
        "message": (
            f"Notification prepared for {recipients} users "
            f"about {notice.count} upcoming transactions"
        ),
        "subject": notice.subject,
        "email_content": notice.html,
    }


@app.get("/admin/transactions", dependencies=[Depends(require_api_key)])
def admin_transactions(store=Depends(get_store)):
    try:
        result = store.list_transactions(limit=10)
    except FinanceControlError as exc:
        LOGGER.exception("Admin listing failed: %s", exc)
        return JSONResponse(status_code=500, content={"success": False, "message": str(exc)})
    return {
        "success": True,
        "message": "Admin API accessed successfully",
        "data": result["transactions"],
    }


@app.get("/projection")
def projection(
    days: Optional[int] = Query(None, ge=1, le=365),
    store=Depends(get_store),
    today=Depends(get_today),
):
    horizon = days or get_settings().default_horizon_days
    try:
        points = build_projection(store, horizon, today=today)
    except FinanceControlError as exc:
        LOGGER.exception("Error building projection: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to build projection")
    return [point.as_dict() for point in points]


@app.get("/projection/horizons")
def projection_horizons():
    return {"horizons": PROJECTION_HORIZONS, "default": get_settings().default_horizon_days}


@app.get("/dashboard/summary")
def dashboard_summary(
    period: str = Query("month", pattern="^(week|month|quarter|year)$"),
    store=Depends(get_store),
    today=Depends(get_today),
):
    try:
        transactions = store.list_transactions()["transactions"]
        summary = financial_summary(transactions, period=period, today=today)
    except FinanceControlError as exc:
        LOGGER.exception("Error fetching dashboard data: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch dashboard data")
    return _amounts(summary)


@app.get("/dashboard/expenses-by-category")
def dashboard_expenses_by_category(store=Depends(get_store), today=Depends(get_today)):
    start, end = period_bounds("month", today)
    try:
        transactions = store.list_transactions(type_=EXPENSE, due_from=start, due_to=end)
        categories = store.list_categories()
        breakdown = expenses_by_category(transactions["transactions"], categories, start, end)
    except FinanceControlError as exc:
        LOGGER.exception("Error fetching category expenses: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch category expenses")
    for item in breakdown:
        item["amount"] = as_amount(item["amount"])
    return {"start": start.isoformat(), "end": end.isoformat(), "categories": breakdown}


@app.get("/dashboard/upcoming")
def dashboard_upcoming(store=Depends(get_store), today=Depends(get_today)):
    try:
        pending = store.list_transactions(status=PENDING)["transactions"]
        due = upcoming(pending, today=today, days=7)
    except FinanceControlError as exc:
        LOGGER.exception("Error fetching upcoming transactions: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch upcoming transactions")
    return {"transactions": [_transaction_payload(t) for t in due]}


@app.get("/dashboard/overdue")
def dashboard_overdue(store=Depends(get_store), today=Depends(get_today)):
    try:
        pending = store.list_transactions(status=PENDING, due_before=today)["transactions"]
        late = overdue(pending, today=today)
    except FinanceControlError as exc:
        LOGGER.exception("Error fetching overdue transactions: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch overdue transactions")
    return {"transactions": [_transaction_payload(t) for t in late]}


def _view_filters(view, today):
    if view == "upcoming":
        return {"status": PENDING, "due_from": today, "due_to": today + timedelta(days=7)}
    if view == "late":
        return {"status": PENDING, "due_before": today}
    if view == "paid":
        return {"status": PAID}
    return {}


@app.get("/transactions")
def list_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[TransactionStatus] = None,
    type_: Optional[TransactionType] = Query(None, alias="type"),
    category_id: Optional[str] = None,
    view: str = Query("all", pattern="^(all|upcoming|late|paid)$"),
    store=Depends(get_store),
    today=Depends(get_today),
):
    filters = {"status": status.value if status else None}
    filters.update(_view_filters(view, today))
    try:
        result = store.list_transactions(
            type_=type_.value if type_ else None,
            search=search,
            category_id=category_id,
            descending=view in ("all", "paid"),
            offset=(page - 1) * page_size,
            limit=page_size,
            **filters,
        )
    except FinanceControlError as exc:
        LOGGER.exception("Error fetching transactions: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch transactions")

    return {
        "count": result["count"],
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(result["count"] / page_size),
        "transactions": [_record_payload(record) for record in result["transactions"]],
    }


@app.post("/transactions", status_code=201)
def create_transaction(transaction: Transaction, store=Depends(get_store)):
    try:
        record = store.create_transaction(transaction)
    except InvalidTransactionError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except FinanceControlError as exc:
        LOGGER.exception("Error creating transaction: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to create transaction")
    return {"success": True, "transaction": _record_payload(record)}


@app.post("/transactions/import")
def import_mapped_transactions(rows: List[dict] = Body(...), store=Depends(get_store)):
    result = import_transactions(store, rows)
    return {
        "success": result.failed_batches == 0,
        "message": f"{result.imported} of {result.total} rows imported",
        **result.model_dump(),
    }


@app.patch("/transactions/{transaction_id}")
def update_transaction(
    transaction_id: str,
    changes: TransactionUpdate,
    store=Depends(get_store),
):
    try:
        record = store.update_transaction(transaction_id, changes.model_dump(exclude_unset=True))
    except TransactionNotFound:
        raise HTTPException(status_code=404, detail="Transaction not found")
    except InvalidTransactionError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except FinanceControlError as exc:
        LOGGER.exception("Error updating transaction: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to update transaction")
    return {"success": True, "transaction": _record_payload(record)}


@app.delete("/transactions/{transaction_id}")
def delete_transaction(transaction_id: str, store=Depends(get_store)):
    try:
        store.delete_transaction(transaction_id)
    except TransactionNotFound:
        raise HTTPException(status_code=404, detail="Transaction not found")
    except FinanceControlError as exc:
        LOGGER.exception("Error deleting transaction: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to delete transaction")
    return {"success": True}


@app.post("/transactions/{transaction_id}/pay")
def pay_transaction(transaction_id: str, store=Depends(get_store), today=Depends(get_today)):
    try:
        record = store.mark_paid(transaction_id, today)
    except TransactionNotFound:
        raise HTTPException(status_code=404, detail="Transaction not found")
    except FinanceControlError as exc:
        LOGGER.exception("Error updating transaction: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to update transaction")
    return {"success": True, "transaction": _record_payload(record)}


@app.get("/categories")
def list_categories(store=Depends(get_store)):
    try:
        categories = store.list_categories()
    except FinanceControlError as exc:
        LOGGER.exception("Error fetching categories: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch categories")
    return {"categories": categories}


@app.post("/categories", status_code=201)
def create_category(category: CategoryIn, store=Depends(get_store)):
    try:
        record = store.create_category(category)
    except CategoryNotFound:
        raise HTTPException(status_code=422, detail="Parent category not found")
    except FinanceControlError as exc:
        LOGGER.exception("Error creating category: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to create category")
    return {"success": True, "category": record}


@app.patch("/categories/{category_id}")
def update_category(category_id: str, changes: CategoryUpdate, store=Depends(get_store)):
    try:
        record = store.update_category(category_id, changes.model_dump(exclude_unset=True))
    except CategoryNotFound as exc:
        if exc.category_id == category_id:
            raise HTTPException(status_code=404, detail="Category not found")
        raise HTTPException(status_code=422, detail="Parent category not found")
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except FinanceControlError as exc:
        LOGGER.exception("Error updating category: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to update category")
    return {"success": True, "category": record}


@app.delete("/categories/{category_id}")
def delete_category(category_id: str, store=Depends(get_store)):
    try:
        store.delete_category(category_id)
    except CategoryNotFound:
        raise HTTPException(status_code=404, detail="Category not found")
    except CategoryInUse as exc:
        raise HTTPException(
            status_code=409,
            detail=f"Esta categoria está sendo usada em {exc.count} transações.",
        )
    except FinanceControlError as exc:
        LOGGER.exception("Error deleting category: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to delete category")
    return {"success": True}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("finance_control.main:app", host="0.0.0.0", port=SETTINGS.port, log_level="info")
