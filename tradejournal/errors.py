"""
Error taxonomy for the trade journal.

Validation errors are caller-correctable and carry enough context for a
user-facing message: the offending field, its current value, the violated
constraint and, where one exists, a suggested remediation.  Transaction
errors are kept distinct so callers can tell "you asked for something
invalid" apart from "the store failed to commit".
"""

from typing import Any, Dict, List, Optional


class TradeJournalError(Exception):
    """Base class for every error raised by the trade journal."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message}


class ValidationError(TradeJournalError):
    """Raised when caller input violates a business rule. Nothing is persisted."""

    status_code = 422

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        constraint: Optional[str] = None,
        remediation: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ):
        self.field = field
        self.value = value
        self.constraint = constraint
        self.remediation = remediation
        self.errors = errors or [message]
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body.update({
            "field": self.field,
            "value": self.value if _is_jsonable(self.value) else str(self.value),
            "constraint": self.constraint,
            "remediation": self.remediation,
            "errors": self.errors,
        })
        return body


class NotFoundError(TradeJournalError):
    """Raised when a referenced position, trade or event does not exist."""

    status_code = 404


class DataIntegrityError(TradeJournalError):
    """Raised when stored data breaks an invariant that correct callers never violate."""

    status_code = 500


class TransactionError(TradeJournalError):
    """Raised when an atomic multi-record commit fails and was rolled back."""

    status_code = 409

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


def _is_jsonable(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))
