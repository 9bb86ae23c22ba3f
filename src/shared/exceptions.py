"""Custom exceptions for the expense ledger application."""

from typing import Optional


class ExpenseTrackerException(Exception):
    """Base exception for all expense ledger errors."""

    def __init__(self, message: str, error_code: str = "ERROR"):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class ValidationError(ExpenseTrackerException):
    """Raised when input validation fails."""

    def __init__(self, message: str):
        super().__init__(message, error_code="VALIDATION_ERROR")


class AuthenticationError(ExpenseTrackerException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, error_code="UNAUTHORIZED")


class NotFoundError(ExpenseTrackerException):
    """Raised when a resource is not found."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, error_code="NOT_FOUND")


class ModeTransitionError(ExpenseTrackerException):
    """Raised when a session mode change is not allowed."""

    def __init__(self, message: str = "Mode transition not allowed"):
        super().__init__(message, error_code="INVALID_TRANSITION")


class ConnectivityError(ExpenseTrackerException):
    """Raised when a remote service cannot be reached."""

    def __init__(self, message: str = "Backend unreachable"):
        super().__init__(message, error_code="BACKEND_UNREACHABLE")


class ExtractionError(ExpenseTrackerException):
    """Raised when receipt extraction fails."""

    def __init__(self, message: str = "Receipt extraction failed"):
        super().__init__(message, error_code="EXTRACTION_ERROR")


class StorageError(ExpenseTrackerException):
    """Raised when object storage operations fail."""

    def __init__(self, message: str = "Storage operation failed"):
        super().__init__(message, error_code="STORAGE_ERROR")


class DatabaseError(ExpenseTrackerException):
    """Raised when database operations fail."""

    def __init__(self, message: str = "Database operation failed", error_code: str = "DATABASE_ERROR"):
        super().__init__(message, error_code=error_code)


class SchemaError(DatabaseError):
    """Raised when a remote table rejects an attribute it should accept."""

    def __init__(self, message: str = "Remote schema mismatch", attribute: Optional[str] = None):
        self.attribute = attribute
        super().__init__(message, error_code="SCHEMA_ERROR")
