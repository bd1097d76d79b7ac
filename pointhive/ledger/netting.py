"""Greedy settlement netting over projected net results."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping

from .auditor import DEFAULT_EPSILON, ledger_audit_net_zero_sum
from .errors import ConservationViolationError
from .projector import NetPosition

logger = logging.getLogger(__name__)

SETTLEMENT_REASON = "net settlement"
REDUCTION_RATE_QUANTUM = Decimal("0.0001")
# Matches the NUMERIC(20, 4) scale of stored entry amounts.
AMOUNT_QUANTUM = Decimal("0.0001")


@dataclass(frozen=True)
class SettlementTransfer:
    """One payment that closes part of a debtor's net loss.

    Attributes:
        from_account_id: Debtor paying the amount.
        to_account_id: Creditor receiving the amount.
        amount: Positive payment amount.
        reason: Human-readable purpose of the payment.
    """

    from_account_id: str
    to_account_id: str
    amount: Decimal
    reason: str = SETTLEMENT_REASON


@dataclass(frozen=True)
class SettlementSummary:
    """Aggregate figures describing one settlement plan.

    Attributes:
        transfer_count: Number of planned transfers.
        total_amount: Sum of planned transfer amounts.
        raw_transaction_count: Net-result-bearing entries the plan replaces.
        reduction_rate: `1 - transfer_count / raw_transaction_count`, zero without raw entries.
    """

    transfer_count: int
    total_amount: Decimal
    raw_transaction_count: int
    reduction_rate: Decimal


@dataclass(frozen=True)
class SettlementPlan:
    """Ordered settlement transfers and the positions they were computed from."""

    transfers: tuple[SettlementTransfer, ...]
    positions: tuple[NetPosition, ...]
    summary: SettlementSummary


@dataclass
class _OpenBalance:
    """Mutable remaining balance for one side of the sweep."""

    account_id: str
    remaining: Decimal


def ledger_plan_settlement(
    positions: Mapping[str, NetPosition],
    raw_transaction_count: int = 0,
    epsilon: Decimal = DEFAULT_EPSILON,
) -> SettlementPlan:
    """Build the greedy-by-magnitude settlement plan for one group.

    Accounts within epsilon of zero are treated as settled. Creditors are
    matched largest first against debtors largest first, ties broken by
    ascending account id, so equal input always yields the same plan. Open
    balances are rounded half-up to four places before matching, so every
    transfer amount fits the stored amount scale.

    Args:
        positions: Projected positions keyed by account id.
        raw_transaction_count: Net-result-bearing entries the plan replaces.
        epsilon: Absolute tolerance under which a balance counts as settled.

    Returns:
        SettlementPlan: Ordered transfers plus summary.

    Raises:
        ValueError: Raised when raw_transaction_count is negative.
        ConservationViolationError: Raised when net results cannot balance.
    """

    if raw_transaction_count < 0:
        raise ValueError("raw_transaction_count must be >= 0")

    ordered_positions = tuple(positions[account_id] for account_id in sorted(positions))
    ledger_audit_net_zero_sum(positions, epsilon=epsilon)

    open_positions = [position for position in ordered_positions if abs(position.net_result) > epsilon]
    if len(open_positions) == 1:
        lone_position = open_positions[0]
        logger.error("Settlement rejected: lone open account_id=%s", lone_position.account_id)
        raise ConservationViolationError(
            f"account_id={lone_position.account_id} is the only unsettled account",
            expected=Decimal("0"),
            actual=lone_position.net_result,
        )

    creditors = sorted(
        _ledger_open_balances(open_positions, creditors=True),
        key=lambda balance: (-balance.remaining, balance.account_id),
    )
    debtors = sorted(
        _ledger_open_balances(open_positions, creditors=False),
        key=lambda balance: (balance.remaining, balance.account_id),
    )

    transfers: list[SettlementTransfer] = []
    creditor_index = 0
    debtor_index = 0
    while creditor_index < len(creditors) and debtor_index < len(debtors):
        creditor = creditors[creditor_index]
        debtor = debtors[debtor_index]
        amount = min(creditor.remaining, -debtor.remaining)

        transfers.append(
            SettlementTransfer(
                from_account_id=debtor.account_id,
                to_account_id=creditor.account_id,
                amount=amount,
            )
        )
        creditor.remaining -= amount
        debtor.remaining += amount

        if creditor.remaining <= epsilon:
            creditor_index += 1
        if -debtor.remaining <= epsilon:
            debtor_index += 1

    logger.debug(
        "Planned settlement: open_accounts=%d transfers=%d raw_transactions=%d",
        len(open_positions),
        len(transfers),
        raw_transaction_count,
    )

    return SettlementPlan(
        transfers=tuple(transfers),
        positions=ordered_positions,
        summary=SettlementSummary(
            transfer_count=len(transfers),
            total_amount=sum((transfer.amount for transfer in transfers), Decimal("0")),
            raw_transaction_count=raw_transaction_count,
            reduction_rate=ledger_reduction_rate(len(transfers), raw_transaction_count),
        ),
    )


def ledger_reduction_rate(transfer_count: int, raw_transaction_count: int) -> Decimal:
    """Return `1 - transfer_count / raw_transaction_count` rounded to four places.

    Args:
        transfer_count: Number of planned transfers.
        raw_transaction_count: Number of raw entries replaced.

    Returns:
        Decimal: Reduction rate, or zero when there are no raw entries.

    Raises:
        ValueError: Raised when either count is negative.
    """

    if transfer_count < 0 or raw_transaction_count < 0:
        raise ValueError("counts must be >= 0")
    if raw_transaction_count == 0:
        return Decimal("0")
    rate = Decimal("1") - Decimal(transfer_count) / Decimal(raw_transaction_count)
    return rate.quantize(REDUCTION_RATE_QUANTUM, rounding=ROUND_HALF_UP)


def _ledger_open_balances(open_positions: list[NetPosition], creditors: bool) -> list[_OpenBalance]:
    """Quantize one side of the sweep to stored amount scale, dropping balances that round to zero."""

    balances: list[_OpenBalance] = []
    for position in open_positions:
        remaining = position.net_result.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)
        if (remaining > Decimal("0")) if creditors else (remaining < Decimal("0")):
            balances.append(_OpenBalance(account_id=position.account_id, remaining=remaining))
    return balances
