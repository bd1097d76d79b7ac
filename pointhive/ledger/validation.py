"""Caller-time validation applied before an entry enters the ledger."""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping, Sequence

from .activity import ledger_project_outstanding_obligations
from .entries import EntryKind, LedgerEntry
from .errors import InsufficientBalanceError, InvalidAmountError, LedgerValidationError, SelfTransferError
from .interfaces import LedgerEntryAppendRequest
from .projector import NetPosition, ledger_project_positions


def ledger_validate_amount(amount: object) -> Decimal:
    """Return a validated positive finite amount.

    Args:
        amount: Candidate amount.

    Returns:
        Decimal: Validated amount.

    Raises:
        InvalidAmountError: Raised when amount is not a positive finite number.
    """

    if isinstance(amount, bool) or not isinstance(amount, (Decimal, int, str)):
        raise InvalidAmountError(f"unsupported amount={amount!r}")
    try:
        normalized_amount = Decimal(amount)
    except ArithmeticError as error:
        raise InvalidAmountError(f"unsupported amount={amount!r}") from error
    if not normalized_amount.is_finite() or normalized_amount <= Decimal("0"):
        raise InvalidAmountError(f"amount must be positive, got {amount}")
    return normalized_amount


def ledger_check_affordability(positions: Mapping[str, NetPosition], account_id: str, amount: Decimal) -> None:
    """Reject a movement the source account cannot cover.

    Args:
        positions: Current projected positions of the group.
        account_id: Paying account.
        amount: Amount to move.

    Returns:
        None: Returns when the balance covers the amount.

    Raises:
        InsufficientBalanceError: Raised when custodial balance is below amount.
    """

    position = positions.get(account_id)
    available = position.custodial_balance if position is not None else Decimal("0")
    if available < amount:
        raise InsufficientBalanceError(account_id=account_id, required=amount, available=available)


def ledger_validate_append_request(
    request: LedgerEntryAppendRequest,
    history: Sequence[LedgerEntry],
    issuer_account_id: str,
    enforce_sufficient_balance: bool = True,
) -> LedgerEntryAppendRequest:
    """Validate one candidate entry against the group's current history.

    Args:
        request: Candidate entry.
        history: Existing entries of the same group.
        issuer_account_id: Reserved issuer account.
        enforce_sufficient_balance: Whether the source must cover non-issuance amounts.

    Returns:
        LedgerEntryAppendRequest: Normalized request safe to append.

    Raises:
        InvalidAmountError: Raised when amount is not positive.
        SelfTransferError: Raised when source equals destination.
        InsufficientBalanceError: Raised when the source cannot cover the amount.
        LedgerValidationError: Raised for any other rejected shape.
    """

    group_id = _ledger_require_text(request.group_id, "group_id")
    source_account_id = _ledger_require_text(request.source_account_id, "source_account_id")
    dest_account_id = _ledger_require_text(request.dest_account_id, "dest_account_id")
    try:
        kind = EntryKind(request.kind)
    except ValueError as error:
        raise LedgerValidationError(f"unsupported kind={request.kind!r}") from error

    amount = ledger_validate_amount(request.amount)
    if source_account_id == dest_account_id:
        raise SelfTransferError(f"account_id={source_account_id} cannot move currency to itself")

    if kind is EntryKind.ISSUANCE:
        if source_account_id != issuer_account_id:
            raise LedgerValidationError("issuance must originate from the issuer account")
    elif issuer_account_id in (source_account_id, dest_account_id):
        raise LedgerValidationError("only issuance entries may involve the issuer account")

    if request.settlement_id is not None and kind is not EntryKind.TRANSFER:
        raise LedgerValidationError("settlement_id is only allowed on transfer entries")
    if kind is not EntryKind.RETURN and request.related_entry_id is not None:
        raise LedgerValidationError("related_entry_id is only allowed on return entries")

    if any(entry.group_id != group_id for entry in history):
        raise LedgerValidationError(f"history contains entries outside group_id={group_id}")

    if kind is EntryKind.RETURN:
        _ledger_validate_return(
            request=request,
            history=history,
            issuer_account_id=issuer_account_id,
            amount=amount,
        )

    if enforce_sufficient_balance and kind is not EntryKind.ISSUANCE:
        positions = ledger_project_positions(group_id, history, issuer_account_id=issuer_account_id)
        ledger_check_affordability(positions, account_id=source_account_id, amount=amount)

    return LedgerEntryAppendRequest(
        group_id=group_id,
        source_account_id=source_account_id,
        dest_account_id=dest_account_id,
        amount=amount,
        kind=kind,
        related_entry_id=None if request.related_entry_id is None else request.related_entry_id.strip(),
        settlement_id=request.settlement_id,
        description=request.description,
    )


def _ledger_validate_return(
    request: LedgerEntryAppendRequest,
    history: Sequence[LedgerEntry],
    issuer_account_id: str,
    amount: Decimal,
) -> None:
    """Validate that a return closes part of an open loan in the reverse direction."""

    related_entry_id = (request.related_entry_id or "").strip()
    if not related_entry_id:
        raise LedgerValidationError("return entries must reference the loan they close")

    related_entry = next((entry for entry in history if entry.entry_id == related_entry_id), None)
    if related_entry is None:
        raise LedgerValidationError(f"related_entry_id={related_entry_id} not found in group")
    if related_entry.kind != EntryKind.LOAN:
        raise LedgerValidationError(f"related_entry_id={related_entry_id} is not a loan")
    if (
        request.source_account_id.strip() != related_entry.dest_account_id
        or request.dest_account_id.strip() != related_entry.source_account_id
    ):
        raise LedgerValidationError("return must flow from borrower back to lender")

    obligations = ledger_project_outstanding_obligations(
        request.group_id.strip(),
        history,
        issuer_account_id=issuer_account_id,
    )
    outstanding_amount = next(
        (obligation.outstanding_amount for obligation in obligations if obligation.loan_entry_id == related_entry_id),
        Decimal("0"),
    )
    if amount > outstanding_amount:
        raise LedgerValidationError(
            f"return amount={amount} exceeds outstanding amount={outstanding_amount} for loan {related_entry_id}"
        )


def _ledger_require_text(value: str, field_name: str) -> str:
    """Validate required text input and return stripped value."""

    if not isinstance(value, str) or not value.strip():
        raise LedgerValidationError(f"{field_name} must not be blank")
    return value.strip()
