"""Ledger error taxonomy.

Validation errors reject an entry before it enters the ledger and derive from
`ValueError`. Defect errors signal a broken entry stream or classifier and
derive from `RuntimeError`; they are fatal for the affected group and never
retried.
"""

from __future__ import annotations

from decimal import Decimal


class LedgerError(Exception):
    """Base ledger error carrying a stable machine-readable code."""

    code = "LEDGER_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class LedgerValidationError(LedgerError, ValueError):
    """Raised when a candidate entry is rejected at validation time."""

    code = "INVALID_ENTRY"


class InvalidAmountError(LedgerValidationError):
    """Raised when an entry amount is zero, negative or not a finite number."""

    code = "INVALID_AMOUNT"


class SelfTransferError(LedgerValidationError):
    """Raised when an entry moves currency from an account to itself."""

    code = "SELF_TRANSFER"


class InsufficientBalanceError(LedgerValidationError):
    """Raised when the source account cannot cover a movement."""

    code = "INSUFFICIENT_BALANCE"

    def __init__(self, account_id: str, required: Decimal, available: Decimal):
        self.account_id = account_id
        self.required = required
        self.available = available
        super().__init__(
            f"insufficient balance for account_id={account_id}: required={required} available={available}"
        )


class LedgerDefectError(LedgerError, RuntimeError):
    """Raised when projected state reveals a defect instead of bad input."""

    code = "LEDGER_DEFECT"


class MalformedEntryError(LedgerDefectError):
    """Raised when the projector meets an entry that validation should have rejected."""

    code = "MALFORMED_ENTRY"

    def __init__(self, message: str, entry_id: str | None = None):
        self.entry_id = entry_id
        if entry_id is not None:
            message = f"{message} (entry_id={entry_id})"
        super().__init__(message)


class ConservationViolationError(LedgerDefectError):
    """Raised when projected balances break the conservation invariant.

    Attributes:
        expected: Value the invariant requires.
        actual: Value observed in projected balances.
        delta: `actual - expected`.
    """

    code = "CONSERVATION_VIOLATION"

    def __init__(self, message: str, expected: Decimal, actual: Decimal):
        self.expected = expected
        self.actual = actual
        self.delta = actual - expected
        super().__init__(f"{message}: expected={expected} actual={actual} delta={self.delta}")
