"""Tests for ledger API endpoints over an in-memory entry store."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fastapi.testclient import TestClient

from pointhive.api.application import create_api_application
from pointhive.config import AppSettings
from pointhive.db import HealthStatus
from pointhive.ledger import EntryKind, GroupLedgerService, LedgerEntry, SettlementRecord

ISSUER = "issuer"
_BASE_TIME = datetime(2026, 10, 1, tzinfo=timezone.utc)


class _HealthyDatabaseService:
    """Test double that simulates a healthy database target."""

    def db_connection_label(self) -> str:
        """Return deterministic target label."""

        return "postgresql://test"

    def db_check_health(self) -> HealthStatus:
        """Return healthy database result."""

        return HealthStatus(status="ok", detail="ledger store reachable")


class _InMemoryLedgerRepository:
    """Entry store double that assigns sequential ids and timestamps."""

    def __init__(self) -> None:
        """Initialize empty store state."""

        self.entries: list[LedgerEntry] = []
        self.records: list[SettlementRecord] = []

    def db_ledger_entry_list_for_group(self, group_id: str) -> list[LedgerEntry]:
        """Return stored entries of one group."""

        return [entry for entry in self.entries if entry.group_id == group_id]

    def db_ledger_entry_append_locked(self, group_id: str, build_requests) -> list[LedgerEntry]:
        """Append entries built from the current history.

        Args:
            group_id: Group identifier.
            build_requests: Callback producing requests from history.

        Returns:
            list[LedgerEntry]: Stored entries.

        Raises:
            LedgerError: Propagated from the builder; nothing is stored.
        """

        return self._store(build_requests(self.db_ledger_entry_list_for_group(group_id)))

    def db_settlement_commit_locked(self, group_id: str, build_commit) -> tuple[list[LedgerEntry], SettlementRecord]:
        """Store settlement transfers and their record together."""

        draft = build_commit(self.db_ledger_entry_list_for_group(group_id))
        stored_entries = self._store(draft.requests)
        stored_record = replace(draft.record, created_at=_BASE_TIME + timedelta(days=len(self.records) + 1))
        self.records.append(stored_record)
        return stored_entries, stored_record

    def _store(self, requests) -> list[LedgerEntry]:
        """Assign ids and timestamps to requests and keep them."""

        stored_entries = []
        for request in requests:
            sequence = len(self.entries) + 1
            stored_entry = LedgerEntry(
                entry_id=f"e{sequence:03d}",
                group_id=request.group_id,
                source_account_id=request.source_account_id,
                dest_account_id=request.dest_account_id,
                amount=Decimal(request.amount),
                kind=EntryKind(request.kind),
                created_at=_BASE_TIME + timedelta(seconds=sequence),
                related_entry_id=request.related_entry_id,
                settlement_id=request.settlement_id,
                description=request.description,
            )
            self.entries.append(stored_entry)
            stored_entries.append(stored_entry)
        return stored_entries

    def db_settlement_record_list_for_group(self, group_id: str, limit: int, offset: int) -> list[SettlementRecord]:
        """Return stored records newest first."""

        matching = [record for record in reversed(self.records) if record.group_id == group_id]
        return matching[offset : offset + limit]


def _build_client(repository: _InMemoryLedgerRepository | None = None) -> tuple[TestClient, _InMemoryLedgerRepository]:
    """Create a test client and its backing store.

    Args:
        repository: Optional preloaded store.

    Returns:
        tuple[TestClient, _InMemoryLedgerRepository]: Client and store.

    Raises:
        ValueError: Raised by AppSettings when values are invalid.
    """

    resolved_repository = repository or _InMemoryLedgerRepository()
    settings = AppSettings(
        _env_file=None,
        environment_name="test",
        issuer_account_id=ISSUER,
        api_default_limit=2,
        api_max_limit=5,
    )
    ledger_service = GroupLedgerService(repository=resolved_repository, issuer_account_id=ISSUER)
    application = create_api_application(settings, _HealthyDatabaseService(), ledger_service)
    return TestClient(application), resolved_repository


def _post_entry(client: TestClient, source: str, dest: str, amount: str, kind: str, **extra):
    """Post one entry to group `g1`."""

    body = {"source_account_id": source, "dest_account_id": dest, "amount": amount, "kind": kind, **extra}
    return client.post("/groups/g1/entries", json=body)


def _seed_scenario(client: TestClient) -> None:
    """Append the three-account win cycle through the API."""

    for account_id in ("A", "B", "C"):
        assert _post_entry(client, ISSUER, account_id, "1000", "issuance").status_code == 201
    assert _post_entry(client, "A", "B", "300", "win").status_code == 201
    assert _post_entry(client, "B", "C", "500", "win").status_code == 201
    assert _post_entry(client, "C", "A", "100", "win").status_code == 201


def test_api_group_entry_create_returns_stored_entry() -> None:
    """Return 201 with the stored entry payload.

    Returns:
        None: Assertions validate response payload.

    Raises:
        AssertionError: Raised when payload diverges.
    """

    client, repository = _build_client()

    response = _post_entry(client, ISSUER, "A", "1000", "Issuance", description="seed")

    assert response.status_code == 201
    payload = response.json()
    assert payload["entry_id"] == "e001"
    assert payload["kind"] == "issuance"
    assert Decimal(payload["amount"]) == Decimal("1000")
    assert payload["description"] == "seed"
    assert len(repository.entries) == 1


def test_api_group_balances_returns_positions_and_audit() -> None:
    """Return balances and net results for the scenario group."""

    client, _ = _build_client()
    _seed_scenario(client)

    response = client.get("/groups/g1/balances")

    assert response.status_code == 200
    payload = response.json()
    assert payload["entry_count"] == 6
    assert {row["account_id"]: Decimal(row["net_result"]) for row in payload["accounts"]} == {
        "A": Decimal("-200"),
        "B": Decimal("-200"),
        "C": Decimal("400"),
    }
    assert Decimal(payload["audit"]["delta"]) == Decimal("0")


def test_api_group_settlement_plan_returns_minimal_transfers() -> None:
    """Return the two-transfer plan with its reduction rate."""

    client, repository = _build_client()
    _seed_scenario(client)

    response = client.get("/groups/g1/settlement-plan")

    assert response.status_code == 200
    payload = response.json()
    assert [(row["from_account_id"], row["to_account_id"], row["amount"]) for row in payload["transfers"]] == [
        ("A", "C", "200.0000"),
        ("B", "C", "200.0000"),
    ]
    assert payload["summary"]["transfer_count"] == 2
    assert payload["summary"]["raw_transaction_count"] == 3
    assert payload["summary"]["reduction_rate"] == "0.3333"
    assert len(repository.entries) == 6


def test_api_group_settlement_commit_and_list() -> None:
    """Commit a settlement, zero net results and list it in history.

    Returns:
        None: Assertions validate commit and history payloads.

    Raises:
        AssertionError: Raised when commit behavior diverges.
    """

    client, _ = _build_client()
    _seed_scenario(client)

    commit_response = client.post("/groups/g1/settlements", json={"initiator_account_id": "C"})

    assert commit_response.status_code == 201
    commit_payload = commit_response.json()
    assert len(commit_payload["entries"]) == 2
    assert {entry["settlement_id"] for entry in commit_payload["entries"]} == {commit_payload["settlement_id"]}
    assert commit_payload["record"]["initiator_account_id"] == "C"

    balances = client.get("/groups/g1/balances").json()
    assert all(Decimal(row["net_result"]) == Decimal("0") for row in balances["accounts"])

    list_response = client.get("/groups/g1/settlements", params={"limit": 50})
    assert list_response.status_code == 200
    list_payload = list_response.json()
    assert list_payload["page"]["applied_limit"] == 5
    assert [item["settlement_id"] for item in list_payload["items"]] == [commit_payload["settlement_id"]]


def test_api_group_settlement_commit_rejects_settled_group() -> None:
    """Return 422 when there is nothing to settle."""

    client, _ = _build_client()

    response = client.post("/groups/g1/settlements")

    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_ENTRY"


def test_api_group_entry_create_maps_validation_errors() -> None:
    """Return 422 with stable codes for rejected entries."""

    client, repository = _build_client()
    _post_entry(client, ISSUER, "A", "100", "issuance")

    overdraft = _post_entry(client, "A", "B", "101", "win")
    self_transfer = _post_entry(client, "A", "A", "1", "transfer")
    zero_amount = _post_entry(client, "A", "B", "0", "win")

    assert overdraft.status_code == 422
    assert overdraft.json()["code"] == "INSUFFICIENT_BALANCE"
    assert self_transfer.json()["code"] == "SELF_TRANSFER"
    assert zero_amount.json()["code"] == "INVALID_AMOUNT"
    assert zero_amount.json()["status"] == "error"
    assert len(repository.entries) == 1


def test_api_group_entry_create_rejects_missing_fields() -> None:
    """Reject bodies without required fields before reaching the ledger."""

    client, _ = _build_client()

    response = client.post("/groups/g1/entries", json={"source_account_id": "A"})

    assert response.status_code == 422


def test_api_group_balances_maps_malformed_stream_to_conflict() -> None:
    """Return 409 when the stored stream contains a defect."""

    repository = _InMemoryLedgerRepository()
    repository.entries.append(
        LedgerEntry(
            entry_id="bad",
            group_id="g1",
            source_account_id="A",
            dest_account_id="B",
            amount=Decimal("5"),
            kind=EntryKind.ISSUANCE,
            created_at=_BASE_TIME,
        )
    )
    client, _ = _build_client(repository)

    response = client.get("/groups/g1/balances")

    assert response.status_code == 409
    assert response.json()["code"] == "MALFORMED_ENTRY"


def test_api_group_account_history_and_obligations() -> None:
    """Return account history rows and open loans."""

    client, _ = _build_client()
    _post_entry(client, ISSUER, "A", "100", "issuance")
    _post_entry(client, ISSUER, "B", "100", "issuance")
    loan = _post_entry(client, "A", "B", "40", "loan").json()
    _post_entry(client, "B", "A", "10", "return", related_entry_id=loan["entry_id"])

    history_response = client.get("/groups/g1/accounts/B/history")
    obligations_response = client.get("/groups/g1/obligations")

    assert history_response.status_code == 200
    assert [row["category"] for row in history_response.json()["rows"]] == ["issuance", "income", "return"]
    assert history_response.json()["summary"]["current_balance"] == "130"
    assert obligations_response.status_code == 200
    assert obligations_response.json()["items"][0]["outstanding_amount"] == "30"


def test_api_group_account_history_rejects_issuer_account() -> None:
    """Return 400 for the issuer account history."""

    client, _ = _build_client()

    response = client.get(f"/groups/g1/accounts/{ISSUER}/history")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"
