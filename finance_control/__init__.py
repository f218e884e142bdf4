"""Financial control service: recurring transactions and cash-flow projection."""

__version__ = "1.0.0"
