from __future__ import annotations


class TransactionValidationError(ValueError):
    """Raised when a transaction payload breaks an amount/category/date rule."""

    def __init__(self, message: str, fields: dict[str, str] | None = None):
        super().__init__(message)
        self.fields = fields or {}


class TransactionNotFoundError(LookupError):
    """Raised when a transaction is absent or not owned by the caller."""


class AuthenticationError(PermissionError):
    pass


class DuplicateUserError(ValueError):
    pass


class StoreError(RuntimeError):
    pass


class DocumentError(ValueError):
    """Raised when an uploaded file cannot be turned into text."""
