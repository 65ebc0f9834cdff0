"""
Ordering Error Taxonomy

Every failure the ordering core reports to a caller is one of these.
Each class carries the HTTP status the API layer answers with, so
route handlers never translate errors by hand.

Author: Khalil Bannouri
Version: 1.0.0
"""

from typing import Optional


class OrderingError(Exception):
    """Base class for all ordering errors."""

    status_code: int = 500
    error: str = "Ordering error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.error
        super().__init__(self.message)


class ValidationError(OrderingError):
    """Malformed or incomplete submission (user-correctable)."""

    status_code = 400
    error = "Validation failed"


class InvalidTransitionError(OrderingError):
    """Requested status change is not a permitted edge."""

    status_code = 400
    error = "Invalid status transition"

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(
            message or f"Cannot move order from '{current}' to '{target}'"
        )


class AuthenticationError(OrderingError):
    """Missing, invalid or expired staff credential."""

    status_code = 401
    error = "Not authenticated"


class NotFoundError(OrderingError):
    status_code = 404
    error = "Not found"


class ConflictError(OrderingError):
    """Duplicate order identifier; points at a broken id generator."""

    status_code = 409
    error = "Conflict"


class UnavailableError(OrderingError):
    """Store unreachable or too slow. Safe to retry."""

    status_code = 503
    error = "Service unavailable"
