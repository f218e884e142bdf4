import logging
from datetime import timedelta
from html import escape
from typing import List

from pydantic import BaseModel, Field

from .formatting import due_date_label, format_currency
from .labels import UNCATEGORIZED
from .reports import upcoming
from .schemas import Transaction, TransactionType

LOGGER = logging.getLogger("finance_control.notices")

_CELL = "padding: 8px; border: 1px solid #e5e7eb;"


class DueNotice(BaseModel):
    subject: str
    html: str
    count: int = 0
    transactions: List[Transaction] = Field(default_factory=list)


def _row(transaction, category_names):
    category = category_names.get(transaction.category_id) or UNCATEGORIZED
    income = transaction.type == TransactionType.INCOME
    color = "green" if income else "red"
    sign = "+" if income else "-"
    return (
        "<tr>"
        f'<td style="{_CELL}">{escape(transaction.description)}</td>'
        f'<td style="{_CELL}">{escape(category)}</td>'
        f'<td style="{_CELL}">{due_date_label(transaction.due_date)}</td>'
        f'<td style="{_CELL} text-align: right; color: {color};">'
        f"{sign}{format_currency(transaction.amount)}</td>"
        "</tr>"
    )


def build_due_notice(
    transactions,
    categories,
    today=None,
    window_days=3,
    app_name="Sistema de Controle Financeiro",
):
    """Prepares the e-mail listing pending transactions due in the next window_days."""
    due = upcoming(transactions, today=today, days=window_days)
    category_names = {category["id"]: category["name"] for category in categories}

    rows = "".join(_row(transaction, category_names) for transaction in due)
    html = (
        "<h2>Próximos Vencimentos</h2>"
        f"<p>Você tem {len(due)} contas a vencer nos próximos {window_days} dias:</p>"
        '<table style="width: 100%; border-collapse: collapse;">'
        '<thead><tr style="background-color: #f3f4f6;">'
        f'<th style="{_CELL} text-align: left;">Descrição</th>'
        f'<th style="{_CELL} text-align: left;">Categoria</th>'
        f'<th style="{_CELL} text-align: left;">Vencimento</th>'
        f'<th style="{_CELL} text-align: right;">Valor</th>'
        "</tr></thead>"
        f"<tbody>{rows}</tbody>"
        "</table>"
        '<p style="margin-top: 20px;">'
        "Acesse o sistema para mais detalhes e para efetuar os pagamentos.</p>"
    )
    LOGGER.info("Prepared due notice for %s transactions", len(due))
    return DueNotice(
        subject=f"{app_name}: {len(due)} contas a vencer",
        html=html,
        count=len(due),
        transactions=due,
    )


def notice_window(today, window_days):
    return today, today + timedelta(days=window_days)
