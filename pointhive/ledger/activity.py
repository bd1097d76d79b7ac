"""Per-account balance history and outstanding loan projections."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from .entries import EntryKind, LedgerEntry, ledger_sort_entries
from .errors import MalformedEntryError
from .projector import ledger_require_projectable


@dataclass(frozen=True)
class AccountHistoryRow:
    """One entry as seen from a single account.

    Attributes:
        entry_id: Ledger entry identifier.
        created_at: Entry timestamp.
        kind: Entry kind.
        category: `issuance`, `income`, `expense` or `return`.
        counterparty_account_id: The other side of the movement.
        signed_amount: Positive when received, negative when sent.
        running_balance: Custodial balance after this entry.
        description: Optional entry note.
    """

    entry_id: str
    created_at: datetime
    kind: EntryKind
    category: str
    counterparty_account_id: str
    signed_amount: Decimal
    running_balance: Decimal
    description: str | None


@dataclass(frozen=True)
class AccountActivitySummary:
    """Totals over one account's history.

    Attributes:
        current_balance: Custodial balance after the last entry.
        total_issued: Currency received from the issuer.
        total_income: Currency received from other accounts.
        total_expense: Currency sent to other accounts, returns excluded.
        total_returned: Currency sent back against loans.
    """

    current_balance: Decimal
    total_issued: Decimal
    total_income: Decimal
    total_expense: Decimal
    total_returned: Decimal


@dataclass(frozen=True)
class AccountHistory:
    """Chronological history and totals for one account."""

    account_id: str
    rows: tuple[AccountHistoryRow, ...]
    summary: AccountActivitySummary


@dataclass(frozen=True)
class OutstandingObligation:
    """A loan that has not been fully returned.

    Attributes:
        loan_entry_id: Loan entry identifier.
        lender_account_id: Account that lent the currency.
        borrower_account_id: Account that owes the currency back.
        original_amount: Loan amount.
        returned_amount: Sum of returns referencing the loan.
        outstanding_amount: `original_amount - returned_amount`.
        created_at: Loan timestamp.
    """

    loan_entry_id: str
    lender_account_id: str
    borrower_account_id: str
    original_amount: Decimal
    returned_amount: Decimal
    outstanding_amount: Decimal
    created_at: datetime


def ledger_project_account_history(
    group_id: str,
    entries: Iterable[LedgerEntry],
    account_id: str,
    issuer_account_id: str,
) -> AccountHistory:
    """Build the running custodial balance history for one account.

    Args:
        group_id: Group whose entries are projected.
        entries: Group entries in any order.
        account_id: Account to report on.
        issuer_account_id: Reserved issuer account.

    Returns:
        AccountHistory: Oldest-first rows plus activity totals.

    Raises:
        ValueError: Raised when account_id is blank or is the issuer.
        MalformedEntryError: Raised when an entry is structurally invalid.
    """

    normalized_account_id = account_id.strip()
    if not normalized_account_id:
        raise ValueError("account_id must not be blank")
    if normalized_account_id == issuer_account_id:
        raise ValueError("issuer account has no custodial history")

    rows: list[AccountHistoryRow] = []
    running_balance = Decimal("0")
    totals = {"issuance": Decimal("0"), "income": Decimal("0"), "expense": Decimal("0"), "return": Decimal("0")}

    for entry in ledger_sort_entries(entries):
        amount = ledger_require_projectable(entry, group_id=group_id, issuer_account_id=issuer_account_id)
        if entry.dest_account_id == normalized_account_id:
            category = "issuance" if entry.kind == EntryKind.ISSUANCE else "income"
            signed_amount = amount
            counterparty_account_id = entry.source_account_id
        elif entry.source_account_id == normalized_account_id:
            category = "return" if entry.kind == EntryKind.RETURN else "expense"
            signed_amount = -amount
            counterparty_account_id = entry.dest_account_id
        else:
            continue

        running_balance += signed_amount
        totals[category] += amount
        rows.append(
            AccountHistoryRow(
                entry_id=entry.entry_id,
                created_at=entry.created_at,
                kind=EntryKind(entry.kind),
                category=category,
                counterparty_account_id=counterparty_account_id,
                signed_amount=signed_amount,
                running_balance=running_balance,
                description=entry.description,
            )
        )

    return AccountHistory(
        account_id=normalized_account_id,
        rows=tuple(rows),
        summary=AccountActivitySummary(
            current_balance=running_balance,
            total_issued=totals["issuance"],
            total_income=totals["income"],
            total_expense=totals["expense"],
            total_returned=totals["return"],
        ),
    )


def ledger_project_outstanding_obligations(
    group_id: str,
    entries: Iterable[LedgerEntry],
    issuer_account_id: str,
) -> list[OutstandingObligation]:
    """List loans of one group that still have an unreturned amount.

    Args:
        group_id: Group whose entries are projected.
        entries: Group entries in any order.
        issuer_account_id: Reserved issuer account.

    Returns:
        list[OutstandingObligation]: Open loans in ledger order.

    Raises:
        MalformedEntryError: Raised when a return does not close a known loan of this group.
    """

    loans: dict[str, LedgerEntry] = {}
    returned_by_loan: dict[str, Decimal] = {}

    for entry in ledger_sort_entries(entries):
        amount = ledger_require_projectable(entry, group_id=group_id, issuer_account_id=issuer_account_id)
        if entry.kind == EntryKind.LOAN:
            loans[entry.entry_id] = entry
            returned_by_loan[entry.entry_id] = Decimal("0")
            continue
        if entry.kind != EntryKind.RETURN:
            continue

        loan = loans.get(entry.related_entry_id or "")
        if loan is None:
            raise MalformedEntryError(
                f"return references unknown loan related_entry_id={entry.related_entry_id}",
                entry_id=entry.entry_id,
            )
        returned_by_loan[loan.entry_id] += amount

    obligations: list[OutstandingObligation] = []
    for loan_entry_id, loan in loans.items():
        original_amount = Decimal(loan.amount)
        returned_amount = returned_by_loan[loan_entry_id]
        outstanding_amount = original_amount - returned_amount
        if outstanding_amount <= Decimal("0"):
            continue
        obligations.append(
            OutstandingObligation(
                loan_entry_id=loan_entry_id,
                lender_account_id=loan.source_account_id,
                borrower_account_id=loan.dest_account_id,
                original_amount=original_amount,
                returned_amount=returned_amount,
                outstanding_amount=outstanding_amount,
                created_at=loan.created_at,
            )
        )
    return obligations
