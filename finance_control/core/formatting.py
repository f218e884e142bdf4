from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENTS = Decimal("0.01")

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
)

_MONTHS_PT = [
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
]


def parse_date(value):
    """
    Returns a calendar date for a date, datetime or string value, or None.
    Aware datetimes are normalized to UTC before the day is taken.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return parse_date(datetime.fromisoformat(s))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(value):
    parsed = parse_date(value)
    if parsed:
        return parsed.isoformat()
    return None


def normalize_amount(value):
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)
    if isinstance(value, float):
        value = repr(value)
    s = str(value).strip()
    if not s:
        return None
    s = s.replace(" ", "").replace("R$", "")
    # With both separators present the right-most one marks the decimals:
    # "1.234,56" (pt-BR) and "1,234.56" both read as 1234.56.
    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    else:
        s = s.replace(",", ".")
    try:
        return Decimal(s).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None


def as_amount(value):
    return float(Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


def format_currency(value):
    """Formats a value as Brazilian reais, e.g. R$ 1.234,56."""
    amount = Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):,.2f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {text}"


def due_date_label(value):
    d = parse_date(value)
    if d is None:
        return ""
    return f"{d.day:02d} de {_MONTHS_PT[d.month - 1]}"
