"""
Shared business exceptions for the Marketplace Platform.
"""

from __future__ import annotations

# ===============================================================================
# COMMON EXCEPTIONS
# ===============================================================================

class BusinessError(Exception):
    """Base exception for business logic errors"""


class ValidationError(BusinessError):
    """Validation error with field information"""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(message)


class NotFoundError(BusinessError):
    """Requested aggregate does not exist"""


class ConflictError(BusinessError):
    """Aggregate changed between read and write; safe to retry"""
