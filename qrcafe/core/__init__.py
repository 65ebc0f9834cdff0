"""
Core module initialization.
Exports configuration, logging and error utilities.
"""

from qrcafe.core.config import get_settings, Settings, EnvironmentMode
from qrcafe.core.exceptions import (
    OrderingError,
    ValidationError,
    InvalidTransitionError,
    AuthenticationError,
    NotFoundError,
    ConflictError,
    UnavailableError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "OrderingError",
    "ValidationError",
    "InvalidTransitionError",
    "AuthenticationError",
    "NotFoundError",
    "ConflictError",
    "UnavailableError",
]
