from typing import Optional

from pydantic import ValidationError


class TxScopeException(Exception):
    """Base exception for all tx_scope errors."""

    pass


class ContextShapeMismatch(TxScopeException):
    """Exception raised when the current execution context fails validation against a declared shape.

    The underlying pydantic ValidationError is kept on `cause` and chained as `__cause__`.
    """

    def __init__(self, message: str, cause: Optional[ValidationError] = None):
        super().__init__(message)
        self.cause = cause


class DanglingTransactionReference(TxScopeException):
    """Exception raised when the context carries a transaction id with no registered handle."""

    def __init__(self, transaction_id: str):
        super().__init__(f"No transaction handle registered for transaction id '{transaction_id}'")
        self.transaction_id = transaction_id


class TxScopeDBException(TxScopeException):
    """Base exception for database bootstrap errors."""

    pass


class TxScopeDBConfigurationError(TxScopeDBException):
    """Exception raised when a database configuration is invalid or missing required variables."""

    pass


class TxScopeDBConnectionError(TxScopeDBException):
    """Exception raised when a database engine cannot be created."""

    pass
