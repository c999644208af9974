"""Core exceptions for sqlaccess."""

from typing import Any, Dict, Optional


class SQLAccessError(Exception):
    """Base exception for all sqlaccess errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(SQLAccessError):
    """Raised when there's an error in configuration parsing or validation."""
    pass


class DatabaseError(SQLAccessError):
    """Raised when an engine group cannot be built or a driver is unusable."""

    def __init__(
        self,
        message: str,
        driver: Optional[str] = None,
        dsn: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.driver = driver
        self.dsn = dsn


class TransactionError(SQLAccessError):
    """Raised when a transaction executor is used outside its lifecycle."""
    pass


class ContextCancelledError(SQLAccessError):
    """Raised when an execution context was cancelled or passed its deadline."""

    def __init__(
        self,
        message: str,
        trace_id: Optional[str] = None,
        expired: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.trace_id = trace_id
        self.expired = expired
