# domain/errors.py
from __future__ import annotations

from typing import Any, Dict


class EngineError(Exception):
    """
    Base error for the cart / loyalty core.
    - message: safe to show to a user (no internal ids)
    - details: extra context for logs and API payloads
    """

    kind = "engine_error"
    retryable = False

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "retryable": self.retryable,
            **self.details,
        }


class ValidationError(EngineError, ValueError):
    """points below minimum, points above balance, non-positive quantity"""

    kind = "validation_error"


class MalformedDataError(EngineError):
    """A persisted topping/modifier blob could not be read."""

    kind = "malformed_data"


class CommitConflictError(EngineError):
    """
    The balance moved between validation and commit, so the clamped debit differs
    from the requested one. The commit itself went through.
    """

    kind = "commit_conflict"
    retryable = True


class LedgerWriteError(EngineError):
    kind = "ledger_write_failed"
    retryable = True


class CustomerNotFoundError(EngineError):
    kind = "customer_not_found"
