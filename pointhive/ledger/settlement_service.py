"""Group ledger service wiring projection, audit, netting and commit-back."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from .activity import (
    AccountHistory,
    OutstandingObligation,
    ledger_project_account_history,
    ledger_project_outstanding_obligations,
)
from .auditor import DEFAULT_EPSILON, ConservationAuditResult, ledger_audit_conservation
from .entries import EntryKind, LedgerEntry
from .errors import LedgerValidationError
from .interfaces import LedgerEntryAppendRequest, LedgerEntryRepositoryPort, SettlementCommitDraft, SettlementRecord
from .netting import SettlementPlan, ledger_plan_settlement
from .projector import NetPosition, ledger_count_net_result_entries, ledger_project_positions
from .validation import ledger_check_affordability, ledger_validate_append_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupBalanceView:
    """Audited positions for one group.

    Attributes:
        group_id: Group identifier.
        positions: Positions keyed by account id.
        audit: Conservation audit totals.
        entry_count: Number of entries the view was computed from.
    """

    group_id: str
    positions: dict[str, NetPosition]
    audit: ConservationAuditResult
    entry_count: int


@dataclass(frozen=True)
class SettlementCommitResult:
    """Outcome of committing a settlement plan back to the ledger.

    Attributes:
        settlement_id: Identifier shared by the committed transfers.
        plan: Plan computed from the locked history.
        entries: Committed transfer entries.
        record: Persisted settlement history record.
    """

    settlement_id: str
    plan: SettlementPlan
    entries: tuple[LedgerEntry, ...]
    record: SettlementRecord


class GroupLedgerService:
    """Serve balances and settlement plans for groups from the entry store."""

    def __init__(
        self,
        repository: LedgerEntryRepositoryPort,
        issuer_account_id: str,
        epsilon: Decimal = DEFAULT_EPSILON,
        enforce_sufficient_balance: bool = True,
    ):
        """Initialize service dependencies.

        Args:
            repository: Append-only entry store.
            issuer_account_id: Reserved issuer account.
            epsilon: Settlement and audit tolerance.
            enforce_sufficient_balance: Whether appends must be covered by the source balance.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies are invalid.
        """

        if repository is None:
            raise ValueError("repository must not be None")
        if not issuer_account_id.strip():
            raise ValueError("issuer_account_id must not be blank")
        if epsilon <= Decimal("0"):
            raise ValueError("epsilon must be positive")

        self._repository = repository
        self._issuer_account_id = issuer_account_id.strip()
        self._epsilon = epsilon
        self._enforce_sufficient_balance = enforce_sufficient_balance

    def ledger_group_balances(self, group_id: str) -> GroupBalanceView:
        """Project and audit current positions for one group.

        Args:
            group_id: Group identifier.

        Returns:
            GroupBalanceView: Audited positions.

        Raises:
            ValueError: Raised when group_id is blank.
            MalformedEntryError: Raised when stored entries are structurally invalid.
            ConservationViolationError: Raised when the conservation audit fails.
        """

        normalized_group_id = self._require_group_id(group_id)
        entries = self._repository.db_ledger_entry_list_for_group(group_id=normalized_group_id)
        positions = ledger_project_positions(normalized_group_id, entries, issuer_account_id=self._issuer_account_id)
        audit = ledger_audit_conservation(
            entries,
            positions,
            issuer_account_id=self._issuer_account_id,
            epsilon=self._epsilon,
        )
        return GroupBalanceView(
            group_id=normalized_group_id,
            positions=positions,
            audit=audit,
            entry_count=len(entries),
        )

    def ledger_group_account_history(self, group_id: str, account_id: str) -> AccountHistory:
        """Return running balance history for one account of a group."""

        normalized_group_id = self._require_group_id(group_id)
        entries = self._repository.db_ledger_entry_list_for_group(group_id=normalized_group_id)
        return ledger_project_account_history(
            normalized_group_id,
            entries,
            account_id=account_id,
            issuer_account_id=self._issuer_account_id,
        )

    def ledger_group_outstanding_obligations(self, group_id: str) -> list[OutstandingObligation]:
        """Return open loans of one group."""

        normalized_group_id = self._require_group_id(group_id)
        entries = self._repository.db_ledger_entry_list_for_group(group_id=normalized_group_id)
        return ledger_project_outstanding_obligations(
            normalized_group_id,
            entries,
            issuer_account_id=self._issuer_account_id,
        )

    def ledger_append_entry(self, request: LedgerEntryAppendRequest) -> LedgerEntry:
        """Validate one entry against locked history and append it.

        Args:
            request: Candidate entry.

        Returns:
            LedgerEntry: Stored entry.

        Raises:
            LedgerValidationError: Raised when validation rejects the entry.
            RuntimeError: Raised when persistence fails.
        """

        normalized_group_id = self._require_group_id(request.group_id)

        def _build_requests(history: list[LedgerEntry]) -> list[LedgerEntryAppendRequest]:
            return [
                ledger_validate_append_request(
                    request,
                    history,
                    issuer_account_id=self._issuer_account_id,
                    enforce_sufficient_balance=self._enforce_sufficient_balance,
                )
            ]

        stored_entries = self._repository.db_ledger_entry_append_locked(
            group_id=normalized_group_id,
            build_requests=_build_requests,
        )
        stored_entry = stored_entries[0]
        logger.info(
            "Appended entry_id=%s group_id=%s kind=%s amount=%s",
            stored_entry.entry_id,
            normalized_group_id,
            EntryKind(stored_entry.kind).value,
            stored_entry.amount,
        )
        return stored_entry

    def ledger_group_settlement_plan(self, group_id: str) -> SettlementPlan:
        """Compute the settlement plan for the current history of one group.

        Args:
            group_id: Group identifier.

        Returns:
            SettlementPlan: Greedy settlement plan.

        Raises:
            ValueError: Raised when group_id is blank.
            MalformedEntryError: Raised when stored entries are structurally invalid.
            ConservationViolationError: Raised when audits fail; settlement must halt.
        """

        normalized_group_id = self._require_group_id(group_id)
        entries = self._repository.db_ledger_entry_list_for_group(group_id=normalized_group_id)
        return self._plan_for_entries(normalized_group_id, entries)

    def ledger_group_settlement_commit(
        self,
        group_id: str,
        initiator_account_id: str | None = None,
    ) -> SettlementCommitResult:
        """Compute a plan under the group writer lock and append its transfers.

        Transfers and the settlement record are written in one transaction.

        Args:
            group_id: Group identifier.
            initiator_account_id: Optional account requesting the settlement.

        Returns:
            SettlementCommitResult: Committed entries and history record.

        Raises:
            LedgerValidationError: Raised when the group has nothing to settle.
            InsufficientBalanceError: Raised when balance enforcement is on and a
                debtor cannot cover its planned payments.
            ConservationViolationError: Raised when audits fail; nothing is written.
            RuntimeError: Raised when persistence fails.
        """

        normalized_group_id = self._require_group_id(group_id)
        settlement_id = str(uuid4())
        planned: list[SettlementPlan] = []

        def _build_commit(history: list[LedgerEntry]) -> SettlementCommitDraft:
            plan = self._plan_for_entries(normalized_group_id, history)
            if not plan.transfers:
                raise LedgerValidationError(f"group_id={normalized_group_id} has no open net results to settle")
            if self._enforce_sufficient_balance:
                self._require_debtors_can_pay(plan)
            planned.append(plan)
            return SettlementCommitDraft(
                requests=[
                    LedgerEntryAppendRequest(
                        group_id=normalized_group_id,
                        source_account_id=transfer.from_account_id,
                        dest_account_id=transfer.to_account_id,
                        amount=transfer.amount,
                        kind=EntryKind.TRANSFER,
                        settlement_id=settlement_id,
                        description=transfer.reason,
                    )
                    for transfer in plan.transfers
                ],
                record=SettlementRecord(
                    settlement_id=settlement_id,
                    group_id=normalized_group_id,
                    initiator_account_id=initiator_account_id,
                    transfer_count=plan.summary.transfer_count,
                    total_amount=plan.summary.total_amount,
                    raw_transaction_count=plan.summary.raw_transaction_count,
                    reduction_rate=plan.summary.reduction_rate,
                    net_amounts={
                        position.account_id: position.net_result
                        for position in plan.positions
                        if abs(position.net_result) > self._epsilon
                    },
                ),
            )

        stored_entries, record = self._repository.db_settlement_commit_locked(
            group_id=normalized_group_id,
            build_commit=_build_commit,
        )
        plan = planned[-1]
        logger.info(
            "Committed settlement_id=%s group_id=%s transfers=%d total_amount=%s",
            settlement_id,
            normalized_group_id,
            plan.summary.transfer_count,
            plan.summary.total_amount,
        )
        return SettlementCommitResult(
            settlement_id=settlement_id,
            plan=plan,
            entries=tuple(stored_entries),
            record=record,
        )

    def ledger_group_settlement_history(self, group_id: str, limit: int, offset: int) -> list[SettlementRecord]:
        """Return committed settlement records for one group, newest first."""

        normalized_group_id = self._require_group_id(group_id)
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")
        return self._repository.db_settlement_record_list_for_group(
            group_id=normalized_group_id,
            limit=limit,
            offset=offset,
        )

    def _plan_for_entries(self, group_id: str, entries: list[LedgerEntry]) -> SettlementPlan:
        """Project, audit and plan one group's entries."""

        positions = ledger_project_positions(group_id, entries, issuer_account_id=self._issuer_account_id)
        ledger_audit_conservation(entries, positions, issuer_account_id=self._issuer_account_id, epsilon=self._epsilon)
        return ledger_plan_settlement(
            positions,
            raw_transaction_count=ledger_count_net_result_entries(entries),
            epsilon=self._epsilon,
        )

    def _require_debtors_can_pay(self, plan: SettlementPlan) -> None:
        """Reject a plan that would drive a paying debtor below zero custody.

        Args:
            plan: Plan computed from locked history.

        Returns:
            None: Returns when every debtor covers its planned payments.

        Raises:
            InsufficientBalanceError: Raised when a debtor's custody is below its payments.
        """

        positions = {position.account_id: position for position in plan.positions}
        payments: dict[str, Decimal] = {}
        for transfer in plan.transfers:
            payments[transfer.from_account_id] = payments.get(transfer.from_account_id, Decimal("0")) + transfer.amount
        for account_id in sorted(payments):
            ledger_check_affordability(positions, account_id, payments[account_id])

    def _require_group_id(self, group_id: str) -> str:
        """Validate group id and return stripped value."""

        if not isinstance(group_id, str) or not group_id.strip():
            raise ValueError("group_id must not be blank")
        return group_id.strip()
