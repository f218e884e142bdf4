class FinanceControlError(Exception):
    """Base class for errors raised by the finance control core."""


class InvalidTransactionError(FinanceControlError):
    def __init__(self, transaction_id, reason):
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(f"Invalid transaction {transaction_id or '<new>'}: {reason}")


class StoreError(FinanceControlError):
    """The persistence collaborator failed to read or write."""


class TransactionNotFound(StoreError):
    def __init__(self, transaction_id):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class CategoryNotFound(StoreError):
    def __init__(self, category_id):
        self.category_id = category_id
        super().__init__(f"Category {category_id} not found")


class CategoryInUse(FinanceControlError):
    def __init__(self, category_id, count):
        self.category_id = category_id
        self.count = count
        super().__init__(f"Category {category_id} is used by {count} transactions")
