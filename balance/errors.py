"""Domain errors surfaced to API callers as user-facing messages."""


class BalanceError(Exception):
    """Base class for all application errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransactionNotFoundError(BalanceError):
    status_code = 404

    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction {transaction_id} not found")
        self.transaction_id = transaction_id


class BackupNotFoundError(BalanceError):
    status_code = 404


class InvalidImportError(BalanceError):
    status_code = 400


class DuplicateTransactionError(BalanceError):
    status_code = 409


class AuthError(BalanceError):
    status_code = 401


class HostedBackendError(BalanceError):
    """A call to the hosted database failed."""

    status_code = 502


class InvalidTransactionError(BalanceError):
    """A change would leave a transaction breaking a validation rule."""

    status_code = 422
