"""
Custom exceptions for the database module.
"""
from typing import Optional, Dict, Any


class DatabaseError(Exception):
    """Base exception for all database-related errors."""

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ) -> None:
        super().__init__(message)
        self.context = context or {}
        self.original_exception = original_exception


class ConnectionError(DatabaseError):
    """Raised when there are issues connecting to the database."""
    pass


class ConflictError(DatabaseError):
    """Raised when a write violates a uniqueness constraint."""
    pass
