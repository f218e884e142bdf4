"""
Bulk entry of transactions whose columns were already mapped to ledger
fields. Reading the uploaded file is left to the caller.
"""

import logging

from .errors import InvalidTransactionError, StoreError
from .schemas import ImportResult, coerce_transaction

LOGGER = logging.getLogger("finance_control.imports")

IMPORT_BATCH_SIZE = 20


def import_transactions(store, rows, batch_size=IMPORT_BATCH_SIZE):
    """
    Validates each mapped row and inserts the valid ones batch by batch.
    A failed batch is counted and the import moves on to the next one.
    """
    result = ImportResult(total=len(rows))
    valid = []
    for index, row in enumerate(rows):
        record = dict(row)
        for name in ("id", "next_generation_date", "parent_transaction_id"):
            record.pop(name, None)
        try:
            coerce_transaction(record)
        except InvalidTransactionError as exc:
            LOGGER.warning("Import row %s rejected: %s", index, exc.reason)
            result.invalid_rows.append(index)
            continue
        valid.append(record)

    for start in range(0, len(valid), batch_size):
        batch = valid[start : start + batch_size]
        try:
            store.insert_transactions(batch)
        except StoreError as exc:
            LOGGER.error("Import batch starting at %s failed: %s", start, exc)
            result.failed_batches += 1
            continue
        result.imported += len(batch)

    LOGGER.info("Imported %s of %s rows", result.imported, result.total)
    return result
