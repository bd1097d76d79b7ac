"""Immutable ledger entry contract and deterministic ordering helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable


class EntryKind(str, Enum):
    """Declared kind of a point movement."""

    ISSUANCE = "issuance"
    TRANSFER = "transfer"
    LOAN = "loan"
    WIN = "win"
    BUY_IN = "buy_in"
    CASH_OUT = "cash_out"
    RETURN = "return"


@dataclass(frozen=True)
class LedgerEntry:
    """One immutable recorded movement of currency between two accounts.

    Attributes:
        entry_id: Unique entry identifier.
        group_id: Group scope of both accounts.
        source_account_id: Account debited by the movement.
        dest_account_id: Account credited by the movement.
        amount: Positive amount in currency units.
        kind: Declared entry kind.
        created_at: Offset-aware append timestamp.
        related_entry_id: Entry closed by a `RETURN`.
        settlement_id: Settlement plan that produced a committed transfer.
        description: Optional free-text note.
    """

    entry_id: str
    group_id: str
    source_account_id: str
    dest_account_id: str
    amount: Decimal
    kind: EntryKind
    created_at: datetime
    related_entry_id: str | None = None
    settlement_id: str | None = None
    description: str | None = None


def ledger_entry_sort_key(entry: LedgerEntry) -> tuple[datetime, str]:
    """Return the total-order key for one entry.

    Args:
        entry: Ledger entry.

    Returns:
        tuple[datetime, str]: `(created_at, entry_id)` ordering key.

    Raises:
        AttributeError: Raised when entry does not expose ordering fields.
    """

    return entry.created_at, entry.entry_id


def ledger_sort_entries(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    """Return entries in deterministic ledger order."""

    return sorted(entries, key=ledger_entry_sort_key)
