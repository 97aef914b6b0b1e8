# core/exceptions.py
from typing import Any, Optional


class PaydashError(Exception):
    """Base class for errors the API knows how to report."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(PaydashError):
    """Bad creation input. Surfaced to the caller verbatim."""

    status_code = 422


class NotFoundError(PaydashError):
    status_code = 404


class StoreUnavailable(PaydashError):
    """The payment store could not be reached or did not answer in time."""

    status_code = 503


class DuplicateTransaction(PaydashError):
    """A payment with the same transaction id already exists in the store."""

    status_code = 409

    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction id already exists: {transaction_id}")
        self.transaction_id = transaction_id


class BroadcastFailure(PaydashError):
    """Real-time delivery failed. Logged, never returned to API callers."""
