"""Error taxonomy shared by the collections and the credit ledger."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class BackofficeError(Exception):
    """Base class for storage and ledger failures."""


class NotFound(BackofficeError, LookupError):
    """Raised when a record identifier is absent from its collection."""

    def __init__(self, kind: str, record_id: int) -> None:
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class InsufficientBalance(BackofficeError):
    """Raised when a deduction or allocation exceeds the available credits."""

    def __init__(self, scope: str, requested: int, available: int) -> None:
        super().__init__(f"Insufficient {scope} credits: requested {requested}, available {available}")
        self.scope = scope
        self.requested = requested
        self.available = available


class InvalidAmount(BackofficeError, ValueError):
    """Raised for non-integer, non-positive or negative credit amounts."""


class PersistenceFailure(BackofficeError, OSError):
    """Raised in strict mode when a snapshot could not be written."""

    def __init__(self, path: Path, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Failed to persist {path}: {cause}")
        self.path = path
        self.cause = cause
