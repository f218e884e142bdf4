import re

import httplib2
import pytest
from googleapiclient.errors import HttpError

from finance_control.core.ledger import (
    CATEGORIES_TAB,
    CATEGORY_HEADERS,
    TRANSACTION_HEADERS,
    TRANSACTIONS_TAB,
    SheetsTransactionStore,
)

_CELL_RE = re.compile(r"([A-Z]+)(\d+)")


def _split_range(value):
    tab, _, ref = value.partition("!")
    return tab.strip("'"), ref


def _column_index(letters):
    index = 0
    for letter in letters:
        index = index * 26 + (ord(letter) - ord("A") + 1)
    return index - 1


class _Request:
    def __init__(self, result=None, error=None):
        self._result = result if result is not None else {}
        self._error = error

    def execute(self):
        if self._error is not None:
            raise self._error
        return self._result


def _http_error():
    return HttpError(httplib2.Response({"status": "500"}), b"backend error")


class FakeValues:
    def __init__(self, tabs, fail_append=False):
        self._tabs = tabs
        self.fail_append = fail_append
        self.appended = []
        self.updates = []
        self.read_options = []

    def get(self, spreadsheetId=None, range=None, **options):
        tab, _ = _split_range(range)
        self.read_options.append(options)
        return _Request({"values": [list(row) for row in self._tabs.get(tab, [])]})

    def update(self, spreadsheetId=None, range=None, valueInputOption=None, body=None):
        tab, ref = _split_range(range)
        self._write(tab, ref, body["values"])
        return _Request({"updatedCells": len(body["values"][0])})

    def batchUpdate(self, spreadsheetId=None, body=None):
        for item in body["data"]:
            tab, ref = _split_range(item["range"])
            self._write(tab, ref, item["values"])
        return _Request({"totalUpdatedCells": len(body["data"])})

    def _write(self, tab, ref, values):
        self.updates.append((tab, ref, values))
        column, row_number = _CELL_RE.match(ref.split(":")[0]).groups()
        rows = self._tabs.setdefault(tab, [])
        while len(rows) < int(row_number):
            rows.append([])
        row = rows[int(row_number) - 1]
        start = _column_index(column)
        for offset, value in enumerate(values[0]):
            while len(row) <= start + offset:
                row.append("")
            row[start + offset] = value

    def append(self, spreadsheetId=None, range=None, valueInputOption=None, body=None):
        if self.fail_append:
            return _Request(error=_http_error())
        tab, _ = _split_range(range)
        self.appended.append(body["values"])
        self._tabs.setdefault(tab, []).extend(list(row) for row in body["values"])
        return _Request({"updates": {"updatedRows": len(body["values"])}})


class FakeSpreadsheets:
    def __init__(self, tabs, fail_append=False):
        self._tabs = tabs
        self._values = FakeValues(tabs, fail_append=fail_append)
        self.batch_requested = False
        self._ids = {}

    def _sheet_id(self, title):
        return self._ids.setdefault(title, len(self._ids) + 100)

    def get(self, spreadsheetId=None):
        sheets = [
            {"properties": {"title": title, "sheetId": self._sheet_id(title)}}
            for title in self._tabs
        ]
        return _Request({"properties": {"locale": "pt_BR"}, "sheets": sheets})

    def batchUpdate(self, spreadsheetId=None, body=None):
        self.batch_requested = True
        for request in body.get("requests", []):
            if "addSheet" in request:
                self._tabs.setdefault(request["addSheet"]["properties"]["title"], [])
                continue
            target = request["deleteDimension"]["range"]
            title = next(t for t in self._tabs if self._sheet_id(t) == target["sheetId"])
            del self._tabs[title][target["startIndex"] : target["endIndex"]]
        return _Request({"replies": []})

    def values(self):
        return self._values


class FakeService:
    def __init__(self, tabs=None, fail_append=False):
        self.tabs = tabs if tabs is not None else {}
        self._spreadsheets = FakeSpreadsheets(self.tabs, fail_append=fail_append)

    def spreadsheets(self):
        return self._spreadsheets


def transaction_row(**fields):
    return [str(fields.get(name) or "") for name in TRANSACTION_HEADERS]


def category_row(**fields):
    return [str(fields.get(name) or "") for name in CATEGORY_HEADERS]


def make_service(transactions=None, categories=None, fail_append=False):
    tabs = {}
    if transactions is not None:
        tabs[TRANSACTIONS_TAB] = [list(TRANSACTION_HEADERS)] + [
            transaction_row(**t) for t in transactions
        ]
    if categories is not None:
        tabs[CATEGORIES_TAB] = [list(CATEGORY_HEADERS)] + [category_row(**c) for c in categories]
    return FakeService(tabs, fail_append=fail_append)


@pytest.fixture
def sheets():
    """Builds a (fake service, store) pair over the given rows."""

    def _build(transactions=None, categories=None, fail_append=False):
        service = make_service(transactions, categories, fail_append=fail_append)
        return service, SheetsTransactionStore(service=service, spreadsheet_id="sheet123")

    return _build
