import logging
from datetime import datetime, timezone

from dateutil.relativedelta import relativedelta

from .errors import InvalidTransactionError
from .labels import PENDING, RECURRENCE_MONTHS
from .schemas import Recurrence, RollForwardResult, coerce_transaction

LOGGER = logging.getLogger("finance_control.recurrence")

# Fields a successor inherits from the transaction that generated it.
INHERITED_FIELDS = (
    "description",
    "amount",
    "type",
    "category_id",
    "recurrence",
    "payment_method",
    "notes",
    "department",
)


def utc_today():
    return datetime.now(timezone.utc).date()


def next_due_date(due_date, recurrence):
    """
    One recurrence period after due_date. Day-of-month overflow is clamped
    to the last day of the target month (Jan 31 + 1 month = Feb 28/29).
    """
    months = RECURRENCE_MONTHS.get(Recurrence(recurrence).value)
    if months is None:
        raise ValueError(f"{recurrence!r} transactions do not recur")
    return due_date + relativedelta(months=months)


def build_successor(transaction, next_date):
    successor = {}
    for name in INHERITED_FIELDS:
        value = getattr(transaction, name)
        successor[name] = getattr(value, "value", value)
    successor.update(
        {
            "due_date": next_date,
            "status": PENDING,
            "parent_transaction_id": transaction.id,
        }
    )
    return successor


def _parent(record):
    transaction = coerce_transaction(record)
    if not transaction.id:
        raise InvalidTransactionError(None, "id: missing, the successor could not reference it")
    return transaction


def roll_forward(store, transactions, today=None):
    """
    Generates the next pending occurrence of each paid recurring transaction.

    Parents are marked first, in one store call that only fills an empty
    next_generation_date, then the successors of the parents actually marked
    are inserted in one batch. A crash between the two writes leaves a parent
    without successor rather than a duplicate successor. A failed batch
    insert raises StoreError.
    """
    today = today or utc_today()
    result = RollForwardResult()
    queued = {}

    for record in transactions:
        try:
            transaction = _parent(record)
        except InvalidTransactionError as exc:
            LOGGER.warning("Skipping transaction: %s", exc)
            result.invalid_ids.append(exc.transaction_id or "")
            continue

        if not transaction.is_recurring:
            LOGGER.warning("Transaction %s does not recur; skipped", transaction.id)
            result.skipped_ids.append(transaction.id)
            continue

        next_date = next_due_date(transaction.due_date, transaction.recurrence)
        if transaction.id in queued:
            LOGGER.warning("Transaction %s listed twice; skipped", transaction.id)
            result.skipped_ids.append(transaction.id)
            continue
        if next_date <= today:
            LOGGER.info(
                "Next occurrence %s of %s is not in the future; skipped",
                next_date,
                transaction.id,
            )
            result.skipped_ids.append(transaction.id)
            continue

        queued[transaction.id] = (transaction, next_date)

    marked = set()
    if queued:
        marked = set(
            store.mark_generated_many(
                [(transaction_id, next_date) for transaction_id, (_, next_date) in queued.items()]
            )
        )

    successors = []
    for transaction_id, (transaction, next_date) in queued.items():
        if transaction_id not in marked:
            result.skipped_ids.append(transaction_id)
            continue
        successors.append(build_successor(transaction, next_date))

    if successors:
        result.generated = store.insert_transactions(successors)
    result.generated_count = len(successors)
    LOGGER.info(
        "Generated %s recurring transactions (%s skipped, %s invalid)",
        result.generated_count,
        len(result.skipped_ids),
        len(result.invalid_ids),
    )
    return result


def generate_recurring_transactions(store, today=None):
    return roll_forward(store, store.list_rollforward_candidates(), today=today)
