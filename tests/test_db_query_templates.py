"""Regression tests for fixed SQL templates in the ledger entry store."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from pointhive.db.ledger_entries import SQLAlchemyLedgerEntryService
from pointhive.ledger import (
    EntryKind,
    LedgerEntryAppendRequest,
    LedgerValidationError,
    SettlementCommitDraft,
    SettlementRecord,
)


class _MappingResultStub:
    """Stub mapping result wrapper for SQLAlchemy-like query responses."""

    def __init__(self, rows: list[dict]):
        """Initialize mapping result rows.

        Args:
            rows: Row mappings returned by a query.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: This stub does not raise value errors.
        """

        self._rows = rows

    def mappings(self) -> _MappingResultStub:
        """Return self to emulate SQLAlchemy mappings chain."""

        return self

    def all(self) -> list[dict]:
        """Return all row mappings."""

        return self._rows

    def one(self) -> dict:
        """Return the single row mapping."""

        return self._rows[0]


class _ConnectionStub:
    """Connection stub capturing executed SQL and returning queued results."""

    def __init__(
        self,
        results: list[list[dict]],
        failure: Exception | None = None,
        failure_on_call: int | None = None,
    ):
        """Initialize connection capture state.

        Args:
            results: Rows returned by successive execute() calls.
            failure: Optional error raised by execute() calls.
            failure_on_call: Zero-based call index that fails; every call fails when None.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: This stub does not raise value errors.
        """

        self._results = list(results)
        self._failure = failure
        self._failure_on_call = failure_on_call
        self.executed_queries: list[str] = []
        self.executed_parameters: list[dict] = []

    def __enter__(self) -> _ConnectionStub:
        """Enter context manager."""

        return self

    def __exit__(self, exc_type, exc, traceback) -> bool:
        """Exit context manager without suppressing errors."""

        _ = (exc_type, exc, traceback)
        return False

    def execute(self, statement, parameters: dict):
        """Capture execute input and return the next queued result.

        Args:
            statement: SQLAlchemy text clause or raw string.
            parameters: Bound query parameters.

        Returns:
            _MappingResultStub: Query result stub.

        Raises:
            Exception: The configured failure, when present.
        """

        statement_text = getattr(statement, "text", str(statement))
        call_index = len(self.executed_queries)
        self.executed_queries.append(statement_text)
        self.executed_parameters.append(parameters)
        if self._failure is not None and self._failure_on_call in (None, call_index):
            raise self._failure
        rows = self._results.pop(0) if self._results else []
        return _MappingResultStub(rows=rows)


class _EngineStub:
    """Engine stub that returns a predefined connection object."""

    def __init__(self, connection: _ConnectionStub):
        """Initialize engine with a deterministic connection stub."""

        self._connection = connection
        self.begin_calls = 0

    def connect(self) -> _ConnectionStub:
        """Return connection stub."""

        return self._connection

    def begin(self) -> _ConnectionStub:
        """Return connection stub for begin-context compatibility."""

        self.begin_calls += 1
        return self._connection


def _build_entry_row(kind: str = "issuance", source: str = "issuer", dest: str = "A") -> dict:
    """Build one ledger_entry row mapping.

    Args:
        kind: Stored kind value.
        source: Source account.
        dest: Destination account.

    Returns:
        dict: Mapping row with required columns.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "entry_id": uuid4(),
        "group_id": "g1",
        "source_account_id": source,
        "dest_account_id": dest,
        "amount": Decimal("100.0000"),
        "kind": kind,
        "related_entry_id": None,
        "settlement_id": None,
        "description": None,
        "created_at_utc": datetime(2026, 10, 1, tzinfo=timezone.utc),
    }


def test_db_ledger_entry_list_for_group_uses_ledger_order_template() -> None:
    """Select group entries ordered by creation time then entry id.

    Returns:
        None: Assertions validate SQL template and mapping.

    Raises:
        AssertionError: Raised when selected SQL diverges from policy.
    """

    connection = _ConnectionStub(results=[[_build_entry_row()]])
    service = SQLAlchemyLedgerEntryService(engine=_EngineStub(connection=connection))

    entries = service.db_ledger_entry_list_for_group(group_id=" g1 ")

    executed_query = connection.executed_queries[0]
    assert "WHERE group_id = :group_id" in executed_query
    assert "ORDER BY created_at_utc ASC, entry_id ASC" in executed_query
    assert connection.executed_parameters[0] == {"group_id": "g1"}
    assert entries[0].kind is EntryKind.ISSUANCE
    assert isinstance(entries[0].entry_id, str)


def test_db_ledger_entry_append_locked_takes_group_lock_before_reading() -> None:
    """Lock the group, read history, then insert built requests.

    Returns:
        None: Assertions validate statement order and parameters.

    Raises:
        AssertionError: Raised when lock or insert template diverges.
    """

    history_row = _build_entry_row()
    inserted_row = _build_entry_row(kind="win", source="A", dest="B")
    connection = _ConnectionStub(results=[[], [history_row], [inserted_row]])
    service = SQLAlchemyLedgerEntryService(engine=_EngineStub(connection=connection))
    seen_history: list[int] = []

    def _build_requests(history):
        seen_history.append(len(history))
        return [
            LedgerEntryAppendRequest(
                group_id="g1",
                source_account_id="A",
                dest_account_id="B",
                amount=Decimal("100"),
                kind=EntryKind.WIN,
            )
        ]

    stored_entries = service.db_ledger_entry_append_locked(group_id="g1", build_requests=_build_requests)

    assert "pg_advisory_xact_lock(:key_1, :key_2)" in connection.executed_queries[0]
    assert "FROM ledger_entry" in connection.executed_queries[1]
    assert "INSERT INTO ledger_entry" in connection.executed_queries[2]
    assert "clock_timestamp()" in connection.executed_queries[2]
    assert connection.executed_parameters[2]["kind"] == "win"
    assert seen_history == [1]
    assert stored_entries[0].kind is EntryKind.WIN


def test_db_ledger_entry_append_locked_uses_stable_lock_keys_per_group() -> None:
    """Derive identical signed int32 lock keys for the same group."""

    first_connection = _ConnectionStub(results=[])
    second_connection = _ConnectionStub(results=[])

    for connection in (first_connection, second_connection):
        service = SQLAlchemyLedgerEntryService(engine=_EngineStub(connection=connection))
        service.db_ledger_entry_append_locked(group_id="g1", build_requests=lambda history: [])

    assert first_connection.executed_parameters[0] == second_connection.executed_parameters[0]
    for key in first_connection.executed_parameters[0].values():
        assert -(2**31) <= key < 2**31


def test_db_ledger_entry_append_locked_propagates_builder_rejection() -> None:
    """Propagate validation errors from the builder without inserting."""

    connection = _ConnectionStub(results=[[], []])
    service = SQLAlchemyLedgerEntryService(engine=_EngineStub(connection=connection))

    def _reject(_history):
        raise LedgerValidationError("rejected")

    with pytest.raises(LedgerValidationError):
        service.db_ledger_entry_append_locked(group_id="g1", build_requests=_reject)

    assert not any("INSERT" in query for query in connection.executed_queries)


def test_db_ledger_entry_append_locked_rejects_foreign_group_request() -> None:
    """Reject requests targeting a group other than the locked one."""

    connection = _ConnectionStub(results=[[], []])
    service = SQLAlchemyLedgerEntryService(engine=_EngineStub(connection=connection))

    def _foreign(_history):
        return [
            LedgerEntryAppendRequest(
                group_id="g2",
                source_account_id="A",
                dest_account_id="B",
                amount=Decimal("1"),
                kind=EntryKind.WIN,
            )
        ]

    with pytest.raises(ValueError):
        service.db_ledger_entry_append_locked(group_id="g1", build_requests=_foreign)


def test_db_ledger_entry_list_wraps_sqlalchemy_errors() -> None:
    """Wrap SQLAlchemy failures in RuntimeError."""

    connection = _ConnectionStub(results=[], failure=OperationalError("SELECT", {}, Exception("down")))
    service = SQLAlchemyLedgerEntryService(engine=_EngineStub(connection=connection))

    with pytest.raises(RuntimeError):
        service.db_ledger_entry_list_for_group(group_id="g1")


def _build_settlement_row(settlement_id: str) -> dict:
    """Build one settlement_record row mapping."""

    return {
        "settlement_id": settlement_id,
        "group_id": "g1",
        "initiator_account_id": None,
        "transfer_count": 1,
        "total_amount": Decimal("100.0000"),
        "raw_transaction_count": 3,
        "reduction_rate": Decimal("0.6667"),
        "net_amounts": {"A": "100", "B": "-100"},
        "created_at_utc": datetime(2026, 10, 1, tzinfo=timezone.utc),
    }


def _build_settlement_draft(settlement_id: str, group_id: str = "g1") -> SettlementCommitDraft:
    """Build a one-transfer settlement draft."""

    return SettlementCommitDraft(
        requests=[
            LedgerEntryAppendRequest(
                group_id="g1",
                source_account_id="B",
                dest_account_id="A",
                amount=Decimal("100"),
                kind=EntryKind.TRANSFER,
                settlement_id=settlement_id,
            )
        ],
        record=SettlementRecord(
            settlement_id=settlement_id,
            group_id=group_id,
            initiator_account_id=None,
            transfer_count=1,
            total_amount=Decimal("100"),
            raw_transaction_count=3,
            reduction_rate=Decimal("0.6667"),
            net_amounts={"B": Decimal("-100"), "A": Decimal("100")},
        ),
    )


def test_db_settlement_commit_locked_writes_transfers_and_record_in_one_transaction() -> None:
    """Lock, read, insert transfers and insert the record on one transaction.

    Returns:
        None: Assertions validate statement order and JSON serialization.

    Raises:
        AssertionError: Raised when the commit spans more than one transaction.
    """

    settlement_id = str(uuid4())
    transfer_row = _build_entry_row(kind="transfer", source="B", dest="A")
    transfer_row["settlement_id"] = settlement_id
    connection = _ConnectionStub(
        results=[[], [_build_entry_row()], [transfer_row], [_build_settlement_row(settlement_id)]],
    )
    engine = _EngineStub(connection=connection)
    service = SQLAlchemyLedgerEntryService(engine=engine)

    stored_entries, record = service.db_settlement_commit_locked(
        group_id="g1",
        build_commit=lambda history: _build_settlement_draft(settlement_id),
    )

    assert engine.begin_calls == 1
    assert "pg_advisory_xact_lock(:key_1, :key_2)" in connection.executed_queries[0]
    assert "INSERT INTO ledger_entry" in connection.executed_queries[2]
    assert "INSERT INTO settlement_record" in connection.executed_queries[3]
    assert "CAST(:net_amounts AS jsonb)" in connection.executed_queries[3]
    assert json.loads(connection.executed_parameters[3]["net_amounts"]) == {"A": "100", "B": "-100"}
    assert stored_entries[0].settlement_id == settlement_id
    assert record.net_amounts == {"A": Decimal("100"), "B": Decimal("-100")}
    assert record.created_at is not None


def test_db_settlement_commit_locked_wraps_record_insert_failure() -> None:
    """Fail the whole commit when the record insert fails after the transfers."""

    settlement_id = str(uuid4())
    connection = _ConnectionStub(
        results=[[], [], [_build_entry_row(kind="transfer", source="B", dest="A")]],
        failure=OperationalError("INSERT", {}, Exception("down")),
        failure_on_call=3,
    )
    engine = _EngineStub(connection=connection)
    service = SQLAlchemyLedgerEntryService(engine=engine)

    with pytest.raises(RuntimeError):
        service.db_settlement_commit_locked(
            group_id="g1",
            build_commit=lambda history: _build_settlement_draft(settlement_id),
        )

    assert engine.begin_calls == 1
    assert "INSERT INTO settlement_record" in connection.executed_queries[3]


def test_db_settlement_commit_locked_rejects_foreign_group_record() -> None:
    """Reject a record targeting a group other than the locked one before inserting."""

    connection = _ConnectionStub(results=[[], []])
    service = SQLAlchemyLedgerEntryService(engine=_EngineStub(connection=connection))

    with pytest.raises(ValueError):
        service.db_settlement_commit_locked(
            group_id="g1",
            build_commit=lambda history: _build_settlement_draft(str(uuid4()), group_id="g2"),
        )

    assert not any("INSERT" in query for query in connection.executed_queries)


def test_db_settlement_record_list_uses_newest_first_template() -> None:
    """List settlement records newest first with bound paging."""

    connection = _ConnectionStub(results=[[]])
    service = SQLAlchemyLedgerEntryService(engine=_EngineStub(connection=connection))

    service.db_settlement_record_list_for_group(group_id="g1", limit=10, offset=5)

    executed_query = connection.executed_queries[0]
    assert "ORDER BY created_at_utc DESC, settlement_id DESC" in executed_query
    assert connection.executed_parameters[0] == {"group_id": "g1", "limit": 10, "offset": 5}
