"""Typed interfaces for ledger persistence collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Protocol

from .entries import EntryKind, LedgerEntry


@dataclass(frozen=True)
class LedgerEntryAppendRequest:
    """Candidate entry before the append path assigns identity and time.

    Attributes:
        group_id: Group scope of both accounts.
        source_account_id: Account debited by the movement.
        dest_account_id: Account credited by the movement.
        amount: Positive amount in currency units.
        kind: Declared entry kind.
        related_entry_id: Loan closed by a `RETURN`.
        settlement_id: Settlement plan that produced a committed transfer.
        description: Optional free-text note.
    """

    group_id: str
    source_account_id: str
    dest_account_id: str
    amount: Decimal
    kind: EntryKind
    related_entry_id: str | None = None
    settlement_id: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class SettlementRecord:
    """Persisted summary of one committed settlement plan.

    Attributes:
        settlement_id: Settlement identifier shared by its committed transfers.
        group_id: Settled group.
        initiator_account_id: Account that requested the commit.
        transfer_count: Number of committed transfers.
        total_amount: Sum of committed transfer amounts.
        raw_transaction_count: Net-result-bearing entries the plan replaced.
        reduction_rate: Plan reduction rate.
        net_amounts: Net result per open account at plan time.
        created_at: Commit timestamp, assigned by persistence.
    """

    settlement_id: str
    group_id: str
    initiator_account_id: str | None
    transfer_count: int
    total_amount: Decimal
    raw_transaction_count: int
    reduction_rate: Decimal
    net_amounts: dict[str, Decimal] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass(frozen=True)
class SettlementCommitDraft:
    """Transfers and history record that one settlement commit writes together."""

    requests: list[LedgerEntryAppendRequest]
    record: SettlementRecord


AppendRequestBuilder = Callable[[list[LedgerEntry]], list[LedgerEntryAppendRequest]]
SettlementCommitBuilder = Callable[[list[LedgerEntry]], SettlementCommitDraft]


class LedgerEntryRepositoryPort(Protocol):
    """Port definition for the append-only entry store."""

    def db_ledger_entry_list_for_group(self, group_id: str) -> list[LedgerEntry]:
        """Return every entry of one group in ledger order.

        Args:
            group_id: Group identifier.

        Returns:
            list[LedgerEntry]: Entries ordered by `(created_at, entry_id)`.

        Raises:
            RuntimeError: Raised when persistence read fails.
        """

    def db_ledger_entry_append_locked(
        self,
        group_id: str,
        build_requests: AppendRequestBuilder,
    ) -> list[LedgerEntry]:
        """Append entries of one group under the group's single-writer lock.

        The builder receives the group's history as read inside the lock and
        returns the validated requests to append. Nothing is written when the
        builder raises.

        Args:
            group_id: Group identifier.
            build_requests: Callback producing validated requests from locked history.

        Returns:
            list[LedgerEntry]: Stored entries with assigned identity and time.

        Raises:
            ValueError: Raised when a request targets another group.
            RuntimeError: Raised when persistence write fails.
        """

    def db_settlement_commit_locked(
        self,
        group_id: str,
        build_commit: SettlementCommitBuilder,
    ) -> tuple[list[LedgerEntry], SettlementRecord]:
        """Append settlement transfers and their record in one locked transaction.

        The builder receives the group's history as read inside the lock. The
        transfers and the settlement record are committed together or not at all.

        Args:
            group_id: Group identifier.
            build_commit: Callback producing transfers and record from locked history.

        Returns:
            tuple[list[LedgerEntry], SettlementRecord]: Stored transfers and stored record.

        Raises:
            ValueError: Raised when a request or record targets another group.
            RuntimeError: Raised when persistence write fails.
        """
