"""Entry classification policy mapping entry kinds to balance effects."""

from __future__ import annotations

from dataclasses import dataclass

from .entries import EntryKind, LedgerEntry
from .errors import MalformedEntryError


@dataclass(frozen=True)
class EffectSet:
    """Balance effects produced by one entry.

    Attributes:
        debits_source_custody: Source custodial balance decreases by the amount.
        credits_dest_custody: Destination custodial balance increases by the amount.
        moves_net_result: Source net result decreases and destination net result increases.
        closes_net_result: Net result moves the opposite way, so a debtor paying a
            creditor closes both open results.
    """

    debits_source_custody: bool
    credits_dest_custody: bool
    moves_net_result: bool
    closes_net_result: bool = False


CUSTODY_ONLY = EffectSet(debits_source_custody=True, credits_dest_custody=True, moves_net_result=False)
CUSTODY_AND_NET = EffectSet(debits_source_custody=True, credits_dest_custody=True, moves_net_result=True)
ISSUANCE_EFFECT = EffectSet(debits_source_custody=False, credits_dest_custody=True, moves_net_result=False)

ENTRY_EFFECT_POLICY: dict[EntryKind, EffectSet] = {
    EntryKind.ISSUANCE: ISSUANCE_EFFECT,
    EntryKind.TRANSFER: CUSTODY_ONLY,
    EntryKind.LOAN: CUSTODY_AND_NET,
    EntryKind.WIN: CUSTODY_AND_NET,
    EntryKind.BUY_IN: CUSTODY_ONLY,
    EntryKind.CASH_OUT: CUSTODY_ONLY,
    EntryKind.RETURN: CUSTODY_ONLY,
}

# Transfers committed from a settlement plan close net-result obligations.
SETTLEMENT_TRANSFER_EFFECT = EffectSet(
    debits_source_custody=True,
    credits_dest_custody=True,
    moves_net_result=True,
    closes_net_result=True,
)


def ledger_classify_entry(entry: LedgerEntry) -> EffectSet:
    """Map one entry to the balance effects it produces.

    Args:
        entry: Ledger entry to classify.

    Returns:
        EffectSet: Custodial and net-result effects of the entry.

    Raises:
        MalformedEntryError: Raised when the entry kind is not a declared kind.
    """

    try:
        kind = EntryKind(entry.kind)
    except ValueError as error:
        raise MalformedEntryError(f"unknown entry kind={entry.kind!r}", entry_id=entry.entry_id) from error

    if kind is EntryKind.TRANSFER and entry.settlement_id is not None:
        return SETTLEMENT_TRANSFER_EFFECT
    return ENTRY_EFFECT_POLICY[kind]
