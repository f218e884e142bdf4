INCOME = "income"
EXPENSE = "expense"

PENDING = "pending"
PAID = "paid"
LATE = "late"
CANCELED = "canceled"

ONCE = "once"
MONTHLY = "monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"
RECURRING = [MONTHLY, QUARTERLY, YEARLY]

# Months added per recurrence period.
RECURRENCE_MONTHS = {MONTHLY: 1, QUARTERLY: 3, YEARLY: 12}

PROJECTION_HORIZONS = [15, 30, 60, 90]
PERIODS = ["week", "month", "quarter", "year"]

UNCATEGORIZED = "Sem categoria"

STATUS_LABELS = {
    PAID: "Pago",
    PENDING: "Pendente",
    LATE: "Atrasado",
    CANCELED: "Cancelado",
}

CHART_COLORS = [
    "#0088FE",
    "#00C49F",
    "#FFBB28",
    "#FF8042",
    "#8884D8",
    "#82CA9D",
    "#A4DE6C",
    "#D0ED57",
]
