"""Conservation checks over projected balances."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping

from .entries import EntryKind, LedgerEntry
from .errors import ConservationViolationError
from .projector import NetPosition

logger = logging.getLogger(__name__)

DEFAULT_EPSILON = Decimal("0.01")


@dataclass(frozen=True)
class ConservationAuditResult:
    """Outcome of a passed conservation audit.

    Attributes:
        issued_total: Sum of issuance amounts in the raw entries.
        custodial_total: Sum of custodial balances over projected accounts.
        delta: `custodial_total - issued_total`, within tolerance.
    """

    issued_total: Decimal
    custodial_total: Decimal
    delta: Decimal


def ledger_audit_conservation(
    entries: Iterable[LedgerEntry],
    positions: Mapping[str, NetPosition],
    issuer_account_id: str,
    epsilon: Decimal = DEFAULT_EPSILON,
) -> ConservationAuditResult:
    """Verify that projected custody equals issued currency.

    Args:
        entries: Raw entries the positions were projected from.
        positions: Projected positions keyed by account id.
        issuer_account_id: Reserved issuer account excluded from the custodial side.
        epsilon: Absolute tolerance for the comparison.

    Returns:
        ConservationAuditResult: Totals observed by the audit.

    Raises:
        ConservationViolationError: Raised when totals differ by more than epsilon.
    """

    issued_total = sum(
        (Decimal(entry.amount) for entry in entries if entry.kind == EntryKind.ISSUANCE),
        Decimal("0"),
    )
    custodial_total = sum(
        (
            position.custodial_balance
            for account_id, position in positions.items()
            if account_id != issuer_account_id
        ),
        Decimal("0"),
    )

    delta = custodial_total - issued_total
    if abs(delta) > epsilon:
        error = ConservationViolationError(
            "custodial balances do not match issued currency",
            expected=issued_total,
            actual=custodial_total,
        )
        logger.error("Conservation audit failed: %s", error.message)
        raise error

    return ConservationAuditResult(issued_total=issued_total, custodial_total=custodial_total, delta=delta)


def ledger_audit_net_zero_sum(
    positions: Mapping[str, NetPosition],
    epsilon: Decimal = DEFAULT_EPSILON,
) -> Decimal:
    """Verify that net results across all accounts sum to zero.

    Args:
        positions: Projected positions keyed by account id.
        epsilon: Absolute tolerance for the comparison.

    Returns:
        Decimal: Observed net-result sum.

    Raises:
        ConservationViolationError: Raised when the sum exceeds epsilon.
    """

    net_total = sum((position.net_result for position in positions.values()), Decimal("0"))
    if abs(net_total) > epsilon:
        error = ConservationViolationError("net results do not sum to zero", expected=Decimal("0"), actual=net_total)
        logger.error("Net zero-sum audit failed: %s", error.message)
        raise error
    return net_total
