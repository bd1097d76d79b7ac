"""Ledger layer package for balance projection and settlement netting."""

from .activity import (
	AccountActivitySummary,
	AccountHistory,
	AccountHistoryRow,
	OutstandingObligation,
	ledger_project_account_history,
	ledger_project_outstanding_obligations,
)
from .auditor import ConservationAuditResult, ledger_audit_conservation, ledger_audit_net_zero_sum
from .classifier import EffectSet, ledger_classify_entry
from .entries import EntryKind, LedgerEntry, ledger_entry_sort_key, ledger_sort_entries
from .errors import (
	ConservationViolationError,
	InsufficientBalanceError,
	InvalidAmountError,
	LedgerDefectError,
	LedgerError,
	LedgerValidationError,
	MalformedEntryError,
	SelfTransferError,
)
from .interfaces import (
	LedgerEntryAppendRequest,
	LedgerEntryRepositoryPort,
	SettlementCommitDraft,
	SettlementRecord,
)
from .netting import SettlementPlan, SettlementSummary, SettlementTransfer, ledger_plan_settlement
from .projector import NetPosition, ledger_count_net_result_entries, ledger_project_positions
from .settlement_service import GroupBalanceView, GroupLedgerService, SettlementCommitResult
from .validation import ledger_check_affordability, ledger_validate_amount, ledger_validate_append_request

__all__ = [
	"AccountActivitySummary",
	"AccountHistory",
	"AccountHistoryRow",
	"OutstandingObligation",
	"ledger_project_account_history",
	"ledger_project_outstanding_obligations",
	"ConservationAuditResult",
	"ledger_audit_conservation",
	"ledger_audit_net_zero_sum",
	"EffectSet",
	"ledger_classify_entry",
	"EntryKind",
	"LedgerEntry",
	"ledger_entry_sort_key",
	"ledger_sort_entries",
	"ConservationViolationError",
	"InsufficientBalanceError",
	"InvalidAmountError",
	"LedgerDefectError",
	"LedgerError",
	"LedgerValidationError",
	"MalformedEntryError",
	"SelfTransferError",
	"LedgerEntryAppendRequest",
	"LedgerEntryRepositoryPort",
	"SettlementCommitDraft",
	"SettlementRecord",
	"SettlementPlan",
	"SettlementSummary",
	"SettlementTransfer",
	"ledger_plan_settlement",
	"NetPosition",
	"ledger_count_net_result_entries",
	"ledger_project_positions",
	"GroupBalanceView",
	"GroupLedgerService",
	"SettlementCommitResult",
	"ledger_check_affordability",
	"ledger_validate_amount",
	"ledger_validate_append_request",
]
