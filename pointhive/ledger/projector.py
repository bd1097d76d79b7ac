"""Balance projection folding ledger entries into per-account positions."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .classifier import ledger_classify_entry
from .entries import EntryKind, LedgerEntry, ledger_sort_entries
from .errors import MalformedEntryError


@dataclass(frozen=True)
class NetPosition:
    """Derived balances for one account, valid only for the entries it came from.

    Attributes:
        account_id: Account identifier.
        custodial_balance: Currency currently held by the account.
        net_result: Cumulative profit or loss from net-result-bearing movements.
    """

    account_id: str
    custodial_balance: Decimal
    net_result: Decimal


@dataclass
class _RunningTotals:
    """Mutable per-account accumulator used during one projection pass."""

    custodial_balance: Decimal
    net_result: Decimal


def ledger_project_positions(
    group_id: str,
    entries: Iterable[LedgerEntry],
    issuer_account_id: str,
) -> dict[str, NetPosition]:
    """Fold one group's entries into per-account net positions.

    Entries are ordered by `(created_at, entry_id)` before folding, and every
    call recomputes from the full sequence.

    Args:
        group_id: Group whose entries are projected.
        entries: Validated entries of the group, in any order.
        issuer_account_id: Reserved issuer account excluded from positions.

    Returns:
        dict[str, NetPosition]: Positions keyed by account id in ascending id order.

    Raises:
        MalformedEntryError: Raised when an entry should never have passed validation.
    """

    running_totals: dict[str, _RunningTotals] = {}

    for entry in ledger_sort_entries(entries):
        amount = ledger_require_projectable(entry, group_id=group_id, issuer_account_id=issuer_account_id)
        effect = ledger_classify_entry(entry)
        net_amount = -amount if effect.closes_net_result else amount

        if entry.source_account_id != issuer_account_id:
            source_totals = running_totals.setdefault(
                entry.source_account_id, _RunningTotals(Decimal("0"), Decimal("0"))
            )
            if effect.debits_source_custody:
                source_totals.custodial_balance -= amount
            if effect.moves_net_result:
                source_totals.net_result -= net_amount

        dest_totals = running_totals.setdefault(entry.dest_account_id, _RunningTotals(Decimal("0"), Decimal("0")))
        if effect.credits_dest_custody:
            dest_totals.custodial_balance += amount
        if effect.moves_net_result:
            dest_totals.net_result += net_amount

    return {
        account_id: NetPosition(
            account_id=account_id,
            custodial_balance=running_totals[account_id].custodial_balance,
            net_result=running_totals[account_id].net_result,
        )
        for account_id in sorted(running_totals)
    }


def ledger_count_net_result_entries(entries: Iterable[LedgerEntry]) -> int:
    """Count entries that open net result.

    This is the raw transaction count a settlement plan replaces. Committed
    settlement transfers close net result and are not counted.
    """

    count = 0
    for entry in entries:
        effect = ledger_classify_entry(entry)
        if effect.moves_net_result and not effect.closes_net_result:
            count += 1
    return count


def ledger_require_projectable(entry: LedgerEntry, group_id: str, issuer_account_id: str) -> Decimal:
    """Fail fast on an entry that upstream validation should have rejected.

    Args:
        entry: Candidate entry inside a projection pass.
        group_id: Group being projected.
        issuer_account_id: Reserved issuer account.

    Returns:
        Decimal: The entry amount.

    Raises:
        MalformedEntryError: Raised when the entry is structurally invalid.
    """

    if entry.group_id != group_id:
        raise MalformedEntryError(
            f"entry group_id={entry.group_id} does not belong to group_id={group_id}",
            entry_id=entry.entry_id,
        )
    if isinstance(entry.amount, bool) or not isinstance(entry.amount, (Decimal, int)):
        raise MalformedEntryError(f"unsupported amount type={type(entry.amount).__name__}", entry_id=entry.entry_id)

    amount = Decimal(entry.amount)
    if not amount.is_finite() or amount <= Decimal("0"):
        raise MalformedEntryError(f"non-positive amount={entry.amount}", entry_id=entry.entry_id)
    if entry.source_account_id == entry.dest_account_id:
        raise MalformedEntryError("source and destination accounts are equal", entry_id=entry.entry_id)

    is_issuance = entry.kind == EntryKind.ISSUANCE
    if is_issuance and entry.source_account_id != issuer_account_id:
        raise MalformedEntryError("issuance must originate from the issuer account", entry_id=entry.entry_id)
    if not is_issuance and issuer_account_id in (entry.source_account_id, entry.dest_account_id):
        raise MalformedEntryError("only issuance entries may involve the issuer account", entry_id=entry.entry_id)

    return amount
