"""
Errors raised by account operations, each carrying the HTTP status it maps to.
"""

from typing import List, Optional


class AccountError(Exception):
    """Base class for account failures."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ValidationFailed(AccountError):
    status_code = 400


class NotFound(AccountError):
    status_code = 404


class Unauthorized(AccountError):
    status_code = 401
