"""Ledger API router composition for balances, entries and settlements."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from pointhive.config import AppSettings
from pointhive.ledger import (
    AccountHistory,
    GroupLedgerService,
    LedgerDefectError,
    LedgerEntry,
    LedgerEntryAppendRequest,
    LedgerError,
    LedgerValidationError,
    OutstandingObligation,
    SettlementPlan,
    SettlementRecord,
)


class LedgerEntryCreateBody(BaseModel):
    """Request body for appending one entry to a group ledger."""

    source_account_id: str
    dest_account_id: str
    amount: Decimal
    kind: str
    related_entry_id: str | None = None
    description: str | None = Field(default=None, max_length=500)


class SettlementCommitBody(BaseModel):
    """Optional request body for committing a settlement plan."""

    initiator_account_id: str | None = None


def api_create_ledger_router(settings: AppSettings, ledger_service: GroupLedgerService) -> APIRouter:
    """Create ledger router exposing group balance and settlement endpoints.

    Args:
        settings: Runtime settings used for pagination defaults.
        ledger_service: Group ledger service.

    Returns:
        APIRouter: Router exposing `/groups/{group_id}/...` endpoints.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if ledger_service is None:
        raise ValueError("ledger_service must not be None")

    router = APIRouter(prefix="/groups", tags=["ledger"])

    @router.get("/{group_id}/balances")
    def api_group_balances(group_id: str) -> JSONResponse:
        """Return audited custodial balances and net results for one group.

        Args:
            group_id: Group identifier.

        Returns:
            JSONResponse: Balance payload, or an error payload when the audit fails.

        Raises:
            RuntimeError: Raised when repository read fails.
        """

        try:
            balance_view = ledger_service.ledger_group_balances(group_id=group_id)
        except (LedgerError, ValueError) as error:
            return api_ledger_error_response(error)

        payload = {
            "group_id": balance_view.group_id,
            "entry_count": balance_view.entry_count,
            "accounts": [
                {
                    "account_id": position.account_id,
                    "custodial_balance": str(position.custodial_balance),
                    "net_result": str(position.net_result),
                }
                for position in balance_view.positions.values()
            ],
            "audit": {
                "issued_total": str(balance_view.audit.issued_total),
                "custodial_total": str(balance_view.audit.custodial_total),
                "delta": str(balance_view.audit.delta),
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/{group_id}/accounts/{account_id}/history")
    def api_group_account_history(group_id: str, account_id: str) -> JSONResponse:
        """Return running balance history for one account.

        Args:
            group_id: Group identifier.
            account_id: Account identifier.

        Returns:
            JSONResponse: Account history payload.

        Raises:
            RuntimeError: Raised when repository read fails.
        """

        try:
            account_history = ledger_service.ledger_group_account_history(group_id=group_id, account_id=account_id)
        except (LedgerError, ValueError) as error:
            return api_ledger_error_response(error)

        return JSONResponse(
            content=api_serialize_account_history(account_history),
            status_code=status.HTTP_200_OK,
        )

    @router.get("/{group_id}/obligations")
    def api_group_obligations(group_id: str) -> JSONResponse:
        """Return loans of one group that are not fully returned."""

        try:
            obligations = ledger_service.ledger_group_outstanding_obligations(group_id=group_id)
        except (LedgerError, ValueError) as error:
            return api_ledger_error_response(error)

        payload = {
            "group_id": group_id,
            "items": [api_serialize_outstanding_obligation(obligation) for obligation in obligations],
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.post("/{group_id}/entries")
    def api_group_entry_create(group_id: str, request_body: LedgerEntryCreateBody) -> JSONResponse:
        """Validate and append one entry to a group ledger.

        Args:
            group_id: Group identifier.
            request_body: Candidate entry fields.

        Returns:
            JSONResponse: Stored entry payload with 201, or an error payload.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        request = LedgerEntryAppendRequest(
            group_id=group_id,
            source_account_id=request_body.source_account_id,
            dest_account_id=request_body.dest_account_id,
            amount=request_body.amount,
            kind=request_body.kind.strip().lower(),
            related_entry_id=request_body.related_entry_id,
            description=request_body.description,
        )
        try:
            stored_entry = ledger_service.ledger_append_entry(request)
        except (LedgerError, ValueError) as error:
            return api_ledger_error_response(error)

        return JSONResponse(
            content=api_serialize_ledger_entry(stored_entry),
            status_code=status.HTTP_201_CREATED,
        )

    @router.get("/{group_id}/settlement-plan")
    def api_group_settlement_plan(group_id: str) -> JSONResponse:
        """Return the minimal-transfer settlement plan without committing it."""

        try:
            plan = ledger_service.ledger_group_settlement_plan(group_id=group_id)
        except (LedgerError, ValueError) as error:
            return api_ledger_error_response(error)

        payload = {"group_id": group_id, **api_serialize_settlement_plan(plan)}
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.post("/{group_id}/settlements")
    def api_group_settlement_commit(group_id: str, request_body: SettlementCommitBody | None = None) -> JSONResponse:
        """Commit the current settlement plan as transfers sharing one settlement id.

        Args:
            group_id: Group identifier.
            request_body: Optional initiator details.

        Returns:
            JSONResponse: Committed settlement payload with 201, or an error payload.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        initiator_account_id = None if request_body is None else request_body.initiator_account_id
        try:
            commit_result = ledger_service.ledger_group_settlement_commit(
                group_id=group_id,
                initiator_account_id=initiator_account_id,
            )
        except (LedgerError, ValueError) as error:
            return api_ledger_error_response(error)

        payload = {
            "settlement_id": commit_result.settlement_id,
            "group_id": group_id,
            **api_serialize_settlement_plan(commit_result.plan),
            "entries": [api_serialize_ledger_entry(entry) for entry in commit_result.entries],
            "record": api_serialize_settlement_record(commit_result.record),
        }
        return JSONResponse(content=payload, status_code=status.HTTP_201_CREATED)

    @router.get("/{group_id}/settlements")
    def api_group_settlement_list(
        group_id: str,
        limit: int = Query(default=settings.api_default_limit, ge=1),
        offset: int = Query(default=0, ge=0),
    ) -> JSONResponse:
        """Return committed settlements of one group, newest first.

        Args:
            group_id: Group identifier.
            limit: Max rows to return.
            offset: Rows to skip.

        Returns:
            JSONResponse: Settlement list envelope payload.

        Raises:
            RuntimeError: Raised when repository read fails.
        """

        applied_limit = min(limit, settings.api_max_limit)
        try:
            records = ledger_service.ledger_group_settlement_history(
                group_id=group_id,
                limit=applied_limit,
                offset=offset,
            )
        except ValueError as error:
            return api_ledger_error_response(error)

        payload = {
            "items": [api_serialize_settlement_record(record) for record in records],
            "page": {
                "limit": limit,
                "applied_limit": applied_limit,
                "offset": offset,
                "returned": len(records),
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router


def api_ledger_error_response(error: Exception) -> JSONResponse:
    """Map ledger and input errors to the shared error envelope.

    Args:
        error: Raised error.

    Returns:
        JSONResponse: `422` for rejected entries, `409` for ledger defects, `400` otherwise.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    if isinstance(error, LedgerValidationError):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        code = error.code
    elif isinstance(error, LedgerDefectError):
        status_code = status.HTTP_409_CONFLICT
        code = error.code
    else:
        status_code = status.HTTP_400_BAD_REQUEST
        code = "INVALID_REQUEST"

    payload = {
        "status": "error",
        "code": code,
        "message": str(error),
    }
    return JSONResponse(content=payload, status_code=status_code)


def api_serialize_ledger_entry(entry: LedgerEntry) -> dict[str, object]:
    """Serialize one typed ledger entry to JSON payload."""

    return {
        "entry_id": entry.entry_id,
        "group_id": entry.group_id,
        "source_account_id": entry.source_account_id,
        "dest_account_id": entry.dest_account_id,
        "amount": str(entry.amount),
        "kind": entry.kind.value,
        "related_entry_id": entry.related_entry_id,
        "settlement_id": entry.settlement_id,
        "description": entry.description,
        "created_at_utc": entry.created_at.isoformat(),
    }


def api_serialize_settlement_plan(plan: SettlementPlan) -> dict[str, object]:
    """Serialize a settlement plan to JSON payload.

    Args:
        plan: Typed settlement plan.

    Returns:
        dict[str, object]: Transfers, per-account net amounts and summary.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "transfers": [
            {
                "from_account_id": transfer.from_account_id,
                "to_account_id": transfer.to_account_id,
                "amount": str(transfer.amount),
                "reason": transfer.reason,
            }
            for transfer in plan.transfers
        ],
        "net_amounts": [
            {"account_id": position.account_id, "net_result": str(position.net_result)}
            for position in plan.positions
        ],
        "summary": {
            "transfer_count": plan.summary.transfer_count,
            "total_amount": str(plan.summary.total_amount),
            "raw_transaction_count": plan.summary.raw_transaction_count,
            "reduction_rate": str(plan.summary.reduction_rate),
        },
    }


def api_serialize_settlement_record(record: SettlementRecord) -> dict[str, object]:
    """Serialize one settlement history record to JSON payload."""

    return {
        "settlement_id": record.settlement_id,
        "group_id": record.group_id,
        "initiator_account_id": record.initiator_account_id,
        "transfer_count": record.transfer_count,
        "total_amount": str(record.total_amount),
        "raw_transaction_count": record.raw_transaction_count,
        "reduction_rate": str(record.reduction_rate),
        "net_amounts": {account_id: str(amount) for account_id, amount in sorted(record.net_amounts.items())},
        "created_at_utc": None if record.created_at is None else record.created_at.isoformat(),
    }


def api_serialize_account_history(account_history: AccountHistory) -> dict[str, object]:
    """Serialize account history rows and summary to JSON payload."""

    return {
        "account_id": account_history.account_id,
        "rows": [
            {
                "entry_id": row.entry_id,
                "created_at_utc": row.created_at.isoformat(),
                "kind": row.kind.value,
                "category": row.category,
                "counterparty_account_id": row.counterparty_account_id,
                "signed_amount": str(row.signed_amount),
                "running_balance": str(row.running_balance),
                "description": row.description,
            }
            for row in account_history.rows
        ],
        "summary": {
            "current_balance": str(account_history.summary.current_balance),
            "total_issued": str(account_history.summary.total_issued),
            "total_income": str(account_history.summary.total_income),
            "total_expense": str(account_history.summary.total_expense),
            "total_returned": str(account_history.summary.total_returned),
        },
    }


def api_serialize_outstanding_obligation(obligation: OutstandingObligation) -> dict[str, object]:
    """Serialize one open loan to JSON payload."""

    return {
        "loan_entry_id": obligation.loan_entry_id,
        "lender_account_id": obligation.lender_account_id,
        "borrower_account_id": obligation.borrower_account_id,
        "original_amount": str(obligation.original_amount),
        "returned_amount": str(obligation.returned_amount),
        "outstanding_amount": str(obligation.outstanding_amount),
        "created_at_utc": obligation.created_at.isoformat(),
    }


__all__ = [
    "LedgerEntryCreateBody",
    "SettlementCommitBody",
    "api_create_ledger_router",
    "api_ledger_error_response",
    "api_serialize_ledger_entry",
    "api_serialize_settlement_plan",
    "api_serialize_settlement_record",
]
