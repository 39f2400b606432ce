# Overview: Error taxonomy shared by services and the HTTP boundary.

"""
Ledger error kinds.

Services raise a LedgerError subclass; the HTTP layer translates it once,
by kind, in a single error handler (see retail_ledger/__init__.py).

KINDS:
- VALIDATION (400): malformed input, rejected before any mutation
- FORBIDDEN (403): role or tenant context does not permit the operation
- NOT_FOUND (404): absent, or outside the caller's scope (indistinguishable)
- CONFLICT (409): already returned / already reconciled / illegal transition
- INSUFFICIENT_STOCK (400): a stock decrement could not be satisfied
- INTERNAL (500): store or unexpected failure
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION_ERROR"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    INTERNAL = "INTERNAL_ERROR"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INSUFFICIENT_STOCK: 400,
    ErrorKind.INTERNAL: 500,
}


class LedgerError(Exception):
    """Base error carrying a kind, a caller-safe message and optional details."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.kind.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LedgerError):
    """400-level input problem."""
    kind = ErrorKind.VALIDATION


class ForbiddenError(LedgerError):
    kind = ErrorKind.FORBIDDEN


class NotFoundError(LedgerError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(LedgerError):
    """409-level business rule conflict (e.g., sale already returned)."""
    kind = ErrorKind.CONFLICT


class InsufficientStockError(LedgerError):
    kind = ErrorKind.INSUFFICIENT_STOCK
