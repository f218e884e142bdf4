import logging
import os
import uuid
from datetime import datetime, timezone
from enum import Enum

from googleapiclient.errors import HttpError

from .errors import CategoryInUse, CategoryNotFound, StoreError, TransactionNotFound
from .formatting import normalize_amount, normalize_date, parse_date
from .labels import PAID, RECURRING
from .schemas import coerce_transaction

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

TRANSACTIONS_TAB = "Transactions"
CATEGORIES_TAB = "Categories"

TRANSACTION_HEADERS = [
    "id",
    "description",
    "amount",
    "type",
    "category_id",
    "due_date",
    "payment_date",
    "status",
    "recurrence",
    "next_generation_date",
    "parent_transaction_id",
    "payment_method",
    "notes",
    "department",
    "created_at",
]
CATEGORY_HEADERS = ["id", "name", "description", "parent_id"]

# Columns a user edit may touch; lineage and the generation flag stay as written.
EDITABLE_TRANSACTION_FIELDS = (
    "description",
    "amount",
    "type",
    "category_id",
    "due_date",
    "payment_date",
    "status",
    "recurrence",
    "payment_method",
    "notes",
    "department",
)
EDITABLE_CATEGORY_FIELDS = ("name", "description", "parent_id")

_DATE_FIELDS = {"due_date", "payment_date", "next_generation_date"}

# Numbers come back as numbers whatever the sheet locale; dates as displayed.
_READ_OPTIONS = {
    "valueRenderOption": "UNFORMATTED_VALUE",
    "dateTimeRenderOption": "FORMATTED_STRING",
}


def _column(index):
    return chr(ord("A") + index)


def _normalize_text(value):
    if value is None:
        return ""
    return " ".join(str(value).strip().split())


def _row_is_header(row, headers):
    if len(row) < len(headers):
        return False
    return [_normalize_text(cell).lower() for cell in row[: len(headers)]] == headers


def _row_to_record(row, headers):
    record = {}
    for i, name in enumerate(headers):
        cell = _normalize_text(row[i]) if i < len(row) else ""
        record[name] = cell or None
    return record


def _cell_value(name, value):
    if value is None:
        return ""
    if isinstance(value, Enum):
        return value.value
    if name in _DATE_FIELDS:
        return normalize_date(value) or str(value)
    if name == "amount":
        amount = normalize_amount(value)
        return str(amount) if amount is not None else str(value)
    return str(value)


def _as_mapping(record):
    if hasattr(record, "model_dump"):
        return record.model_dump()
    return dict(record)


def _stored(record, headers):
    """The record as it reads back from the sheet."""
    return {name: _cell_value(name, record.get(name)) or None for name in headers}


def get_sheets_service(credentials_path=None):
    from google.oauth2 import service_account
    from googleapiclient.discovery import build

    key_path = credentials_path or os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    if not key_path:
        raise RuntimeError("GOOGLE_APPLICATION_CREDENTIALS is not set")
    creds = service_account.Credentials.from_service_account_file(key_path, scopes=SCOPES)
    return build("sheets", "v4", credentials=creds)


class SheetsTransactionStore:
    """
    Transactions and categories kept as rows of a Google spreadsheet.
    Filtering, ordering and paging happen over the fetched rows.
    """

    def __init__(self, service=None, spreadsheet_id=None, credentials_path=None):
        self._service = service
        self._spreadsheet_id = spreadsheet_id
        self._credentials_path = credentials_path
        self._logger = logging.getLogger("finance_control.ledger")

    def _ensure_service(self):
        if self._service is not None:
            return self._service
        try:
            self._service = get_sheets_service(self._credentials_path)
        except Exception as exc:
            raise StoreError("Unable to initialize Google Sheets access") from exc
        return self._service

    def _ensure_spreadsheet_id(self):
        if not self._spreadsheet_id:
            self._spreadsheet_id = os.getenv("LEDGER_SPREADSHEET_ID")
        if not self._spreadsheet_id:
            raise StoreError("LEDGER_SPREADSHEET_ID is not set")
        return self._spreadsheet_id

    def _sheet_ids(self, service, spreadsheet_id):
        spreadsheet = service.spreadsheets().get(spreadsheetId=spreadsheet_id).execute()
        return {
            sheet.get("properties", {}).get("title", ""): sheet.get("properties", {}).get("sheetId")
            for sheet in spreadsheet.get("sheets", [])
        }

    def _ensure_tab(self, service, spreadsheet_id, tab, headers):
        if tab in self._sheet_ids(service, spreadsheet_id):
            return False
        batch_update = {"requests": [{"addSheet": {"properties": {"title": tab}}}]}
        service.spreadsheets().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body=batch_update,
        ).execute()

        service.spreadsheets().values().update(
            spreadsheetId=spreadsheet_id,
            range=f"'{tab}'!A1",
            valueInputOption="RAW",
            body={"values": [headers]},
        ).execute()
        self._logger.info("Created tab %s", tab)
        return True

    def _read_rows(self, tab, headers):
        """Returns (sheet row number, record) pairs, header row excluded."""
        service = self._ensure_service()
        spreadsheet_id = self._ensure_spreadsheet_id()
        try:
            if tab not in self._sheet_ids(service, spreadsheet_id):
                return []
            values = (
                service.spreadsheets()
                .values()
                .get(
                    spreadsheetId=spreadsheet_id,
                    range=f"'{tab}'!A:{_column(len(headers) - 1)}",
                    **_READ_OPTIONS,
                )
                .execute()
                .get("values", [])
            )
        except HttpError as exc:
            raise StoreError(f"Failed to read '{tab}'") from exc

        start_index = 1 if values and _row_is_header(values[0], headers) else 0
        rows = []
        for i, row in enumerate(values[start_index:]):
            if not any(_normalize_text(cell) for cell in row):
                continue
            rows.append((start_index + i + 1, _row_to_record(row, headers)))
        return rows

    def _find(self, tab, headers, record_id):
        # Rows without an id never match; a blank id would hit an unrelated row.
        if record_id:
            for row_number, record in self._read_rows(tab, headers):
                if record["id"] == record_id:
                    return row_number, record
        return None, None

    def _find_row(self, transaction_id):
        row_number, record = self._find(TRANSACTIONS_TAB, TRANSACTION_HEADERS, transaction_id)
        if record is None:
            raise TransactionNotFound(transaction_id)
        return row_number, record

    def _find_category(self, category_id):
        row_number, record = self._find(CATEGORIES_TAB, CATEGORY_HEADERS, category_id)
        if record is None:
            raise CategoryNotFound(category_id)
        return row_number, record

    def _update_cells(self, cell_range, values, tab=TRANSACTIONS_TAB):
        service = self._ensure_service()
        spreadsheet_id = self._ensure_spreadsheet_id()
        try:
            service.spreadsheets().values().update(
                spreadsheetId=spreadsheet_id,
                range=f"'{tab}'!{cell_range}",
                valueInputOption="RAW",
                body={"values": [values]},
            ).execute()
        except HttpError as exc:
            raise StoreError(f"Failed to update {cell_range}") from exc

    def _write_row(self, tab, headers, row_number, record):
        last = _column(len(headers) - 1)
        self._update_cells(
            f"A{row_number}:{last}{row_number}",
            [_cell_value(name, record.get(name)) for name in headers],
            tab=tab,
        )

    def _append_rows(self, tab, headers, rows):
        service = self._ensure_service()
        spreadsheet_id = self._ensure_spreadsheet_id()
        try:
            self._ensure_tab(service, spreadsheet_id, tab, headers)
            service.spreadsheets().values().append(
                spreadsheetId=spreadsheet_id,
                range=f"'{tab}'!A1",
                valueInputOption="RAW",
                body={"values": rows},
            ).execute()
        except HttpError as exc:
            raise StoreError(f"Failed to insert {len(rows)} rows into '{tab}'") from exc

    def _delete_row(self, tab, row_number):
        service = self._ensure_service()
        spreadsheet_id = self._ensure_spreadsheet_id()
        try:
            sheet_id = self._sheet_ids(service, spreadsheet_id)[tab]
            service.spreadsheets().batchUpdate(
                spreadsheetId=spreadsheet_id,
                body={
                    "requests": [
                        {
                            "deleteDimension": {
                                "range": {
                                    "sheetId": sheet_id,
                                    "dimension": "ROWS",
                                    "startIndex": row_number - 1,
                                    "endIndex": row_number,
                                }
                            }
                        }
                    ]
                },
            ).execute()
        except HttpError as exc:
            raise StoreError(f"Failed to delete row {row_number} of '{tab}'") from exc

    def list_transactions(
        self,
        status=None,
        type_=None,
        search=None,
        due_from=None,
        due_to=None,
        due_before=None,
        recurrence_in=None,
        next_generation_date_is_null=None,
        category_id=None,
        descending=False,
        offset=0,
        limit=None,
    ):
        due_from = parse_date(due_from)
        due_to = parse_date(due_to)
        due_before = parse_date(due_before)
        needle = _normalize_text(search).lower()

        dated = []
        undated = []
        for row_number, record in self._read_rows(TRANSACTIONS_TAB, TRANSACTION_HEADERS):
            due = parse_date(record["due_date"])
            if status and record["status"] != status:
                continue
            if type_ and record["type"] != type_:
                continue
            if category_id and record["category_id"] != category_id:
                continue
            if recurrence_in is not None and record["recurrence"] not in recurrence_in:
                continue
            if next_generation_date_is_null is not None:
                if (record["next_generation_date"] is None) != next_generation_date_is_null:
                    continue
            if needle and needle not in _normalize_text(record["description"]).lower():
                continue
            if due_from or due_to or due_before:
                if due is None:
                    continue
                if due_from and due < due_from:
                    continue
                if due_to and due > due_to:
                    continue
                if due_before and due >= due_before:
                    continue
            if due is None:
                undated.append(record)
            else:
                dated.append((due, row_number, record))

        # Rows without a due date go last in either direction, in sheet order.
        dated.sort(key=lambda item: (item[0], item[1]), reverse=descending)
        transactions = [record for _, _, record in dated] + undated
        count = len(transactions)
        if offset:
            transactions = transactions[offset:]
        if limit is not None:
            transactions = transactions[:limit]
        return {"count": count, "transactions": transactions}

    def list_rollforward_candidates(self):
        result = self.list_transactions(
            status=PAID,
            recurrence_in=RECURRING,
            next_generation_date_is_null=True,
        )
        return result["transactions"]

    def insert_transactions(self, records):
        if not records:
            return []
        created_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        inserted = []
        rows = []
        for record in records:
            item = _as_mapping(record)
            item["id"] = item.get("id") or str(uuid.uuid4())
            item["created_at"] = item.get("created_at") or created_at
            inserted.append(item)
            rows.append([_cell_value(name, item.get(name)) for name in TRANSACTION_HEADERS])

        self._append_rows(TRANSACTIONS_TAB, TRANSACTION_HEADERS, rows)
        self._logger.info("Inserted %s transactions", len(rows))
        return inserted

    def create_transaction(self, record):
        item = _as_mapping(record)
        item.pop("id", None)
        item.pop("next_generation_date", None)
        item.pop("parent_transaction_id", None)
        coerce_transaction(item)
        return _stored(self.insert_transactions([item])[0], TRANSACTION_HEADERS)

    def update_transaction(self, transaction_id, changes):
        row_number, record = self._find_row(transaction_id)
        updated = dict(record)
        updated.update(
            {name: value for name, value in changes.items() if name in EDITABLE_TRANSACTION_FIELDS}
        )
        coerce_transaction(updated)
        self._write_row(TRANSACTIONS_TAB, TRANSACTION_HEADERS, row_number, updated)
        self._logger.info("Transaction %s updated", transaction_id)
        return _stored(updated, TRANSACTION_HEADERS)

    def delete_transaction(self, transaction_id):
        row_number, _ = self._find_row(transaction_id)
        self._delete_row(TRANSACTIONS_TAB, row_number)
        self._logger.info("Transaction %s deleted", transaction_id)

    def mark_generated_many(self, items):
        """
        Sets next_generation_date for each (transaction_id, next_date) pair
        whose cell is still empty, with one read and one write.
        Returns the ids actually marked.

        The read and the write are separate calls, so two runs overlapping
        between them can still both mark the same row.
        """
        rows = {
            record["id"]: (row_number, record)
            for row_number, record in self._read_rows(TRANSACTIONS_TAB, TRANSACTION_HEADERS)
            if record["id"]
        }
        column = _column(TRANSACTION_HEADERS.index("next_generation_date"))
        data = []
        marked = []
        for transaction_id, next_date in items:
            row_number, record = rows.get(transaction_id, (None, None))
            if record is None:
                raise TransactionNotFound(transaction_id)
            if record["next_generation_date"] or transaction_id in marked:
                self._logger.info(
                    "Transaction %s already generated on %s",
                    transaction_id,
                    record["next_generation_date"],
                )
                continue
            data.append(
                {
                    "range": f"'{TRANSACTIONS_TAB}'!{column}{row_number}",
                    "values": [[normalize_date(next_date)]],
                }
            )
            marked.append(transaction_id)

        if data:
            service = self._ensure_service()
            try:
                service.spreadsheets().values().batchUpdate(
                    spreadsheetId=self._ensure_spreadsheet_id(),
                    body={"valueInputOption": "RAW", "data": data},
                ).execute()
            except HttpError as exc:
                raise StoreError(f"Failed to mark {len(data)} transactions generated") from exc
        return marked

    def mark_generated(self, transaction_id, next_date):
        """
        Sets next_generation_date only while it is still empty.
        Returns False when another run already set it.
        """
        return bool(self.mark_generated_many([(transaction_id, next_date)]))

    def mark_paid(self, transaction_id, payment_date):
        row_number, record = self._find_row(transaction_id)
        first = _column(TRANSACTION_HEADERS.index("payment_date"))
        last = _column(TRANSACTION_HEADERS.index("status"))
        self._update_cells(
            f"{first}{row_number}:{last}{row_number}",
            [normalize_date(payment_date), PAID],
        )
        self._logger.info("Transaction %s marked as paid", transaction_id)
        record.update({"payment_date": normalize_date(payment_date), "status": PAID})
        return record

    def list_categories(self):
        records = [record for _, record in self._read_rows(CATEGORIES_TAB, CATEGORY_HEADERS)]
        return sorted(records, key=lambda record: _normalize_text(record["name"]).lower())

    def create_category(self, record):
        item = {name: _as_mapping(record).get(name) for name in CATEGORY_HEADERS}
        item["id"] = str(uuid.uuid4())
        if item["parent_id"]:
            self._find_category(item["parent_id"])
        self._append_rows(
            CATEGORIES_TAB,
            CATEGORY_HEADERS,
            [[_cell_value(name, item[name]) for name in CATEGORY_HEADERS]],
        )
        self._logger.info("Category %s created", item["id"])
        return _stored(item, CATEGORY_HEADERS)

    def update_category(self, category_id, changes):
        row_number, record = self._find_category(category_id)
        updated = dict(record)
        updated.update(
            {name: value for name, value in changes.items() if name in EDITABLE_CATEGORY_FIELDS}
        )
        if updated["parent_id"] == category_id:
            raise ValueError(f"Category {category_id} cannot be its own parent")
        if updated["parent_id"] and updated["parent_id"] != record["parent_id"]:
            self._find_category(updated["parent_id"])
        self._write_row(CATEGORIES_TAB, CATEGORY_HEADERS, row_number, updated)
        self._logger.info("Category %s updated", category_id)
        return _stored(updated, CATEGORY_HEADERS)

    def delete_category(self, category_id):
        """Deletes a category no transaction references."""
        row_number, _ = self._find_category(category_id)
        in_use = self.list_transactions(category_id=category_id)["count"]
        if in_use:
            raise CategoryInUse(category_id, in_use)
        self._delete_row(CATEGORIES_TAB, row_number)
        self._logger.info("Category %s deleted", category_id)
