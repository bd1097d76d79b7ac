"""Database service for append-only ledger entries and settlement history."""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from typing import Any

from sqlalchemy import Connection, Engine, text
from sqlalchemy.exc import SQLAlchemyError

from pointhive.ledger.entries import EntryKind, LedgerEntry
from pointhive.ledger.interfaces import (
    AppendRequestBuilder,
    LedgerEntryAppendRequest,
    LedgerEntryRepositoryPort,
    SettlementCommitBuilder,
    SettlementRecord,
)


class SQLAlchemyLedgerEntryService(LedgerEntryRepositoryPort):
    """SQLAlchemy-backed entry store.

    Appends for one group are serialized with a transaction-scoped PostgreSQL
    advisory lock keyed by the group id. Reads take no lock. Settlement
    transfers and their history record commit in the same transaction.
    """

    _ENTRY_SELECT_COLUMNS = (
        "SELECT "
        "entry_id, group_id, source_account_id, dest_account_id, amount, kind, "
        "related_entry_id, settlement_id, description, created_at_utc "
        "FROM ledger_entry "
    )
    _ENTRY_LIST_FOR_GROUP_QUERY = (
        _ENTRY_SELECT_COLUMNS + "WHERE group_id = :group_id ORDER BY created_at_utc ASC, entry_id ASC"
    )
    _ENTRY_INSERT_QUERY = (
        "INSERT INTO ledger_entry ("
        "group_id, source_account_id, dest_account_id, amount, kind, "
        "related_entry_id, settlement_id, description, created_at_utc"
        ") VALUES ("
        ":group_id, :source_account_id, :dest_account_id, :amount, :kind, "
        "CAST(:related_entry_id AS uuid), CAST(:settlement_id AS uuid), :description, clock_timestamp()"
        ") "
        "RETURNING entry_id, group_id, source_account_id, dest_account_id, amount, kind, "
        "related_entry_id, settlement_id, description, created_at_utc"
    )
    _SETTLEMENT_SELECT_COLUMNS = (
        "SELECT "
        "settlement_id, group_id, initiator_account_id, transfer_count, total_amount, "
        "raw_transaction_count, reduction_rate, net_amounts, created_at_utc "
        "FROM settlement_record "
    )
    _SETTLEMENT_INSERT_QUERY = (
        "INSERT INTO settlement_record ("
        "settlement_id, group_id, initiator_account_id, transfer_count, total_amount, "
        "raw_transaction_count, reduction_rate, net_amounts"
        ") VALUES ("
        "CAST(:settlement_id AS uuid), :group_id, :initiator_account_id, :transfer_count, "
        ":total_amount, :raw_transaction_count, :reduction_rate, CAST(:net_amounts AS jsonb)"
        ") "
        "RETURNING settlement_id, group_id, initiator_account_id, transfer_count, total_amount, "
        "raw_transaction_count, reduction_rate, net_amounts, created_at_utc"
    )

    def __init__(self, engine: Engine):
        """Initialize entry store service.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Returns:
            None: This initializer does not return a value.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_ledger_entry_list_for_group(self, group_id: str) -> list[LedgerEntry]:
        """Return every entry of one group in ledger order.

        Args:
            group_id: Group identifier.

        Returns:
            list[LedgerEntry]: Entries ordered by `(created_at, entry_id)`.

        Raises:
            ValueError: Raised when group_id is blank.
            RuntimeError: Raised when database read fails.
        """

        normalized_group_id = self._validate_non_empty_text(group_id, "group_id")
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(self._ENTRY_LIST_FOR_GROUP_QUERY),
                    {"group_id": normalized_group_id},
                ).mappings().all()
                return [self._map_ledger_entry(row) for row in rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list ledger entries for group") from error

    def db_ledger_entry_append_locked(
        self,
        group_id: str,
        build_requests: AppendRequestBuilder,
    ) -> list[LedgerEntry]:
        """Append entries of one group under the group's single-writer lock.

        Args:
            group_id: Group identifier.
            build_requests: Callback producing validated requests from locked history.

        Returns:
            list[LedgerEntry]: Stored entries in insertion order.

        Raises:
            ValueError: Raised when group_id is blank or a request targets another group.
            RuntimeError: Raised when persistence fails.
        """

        normalized_group_id = self._validate_non_empty_text(group_id, "group_id")

        try:
            with self._engine.begin() as connection:
                history = self._lock_group_and_read_history(connection, normalized_group_id)
                return self._insert_entries(connection, normalized_group_id, build_requests(history))
        except SQLAlchemyError as error:
            raise RuntimeError("failed to append ledger entries") from error

    def db_settlement_commit_locked(
        self,
        group_id: str,
        build_commit: SettlementCommitBuilder,
    ) -> tuple[list[LedgerEntry], SettlementRecord]:
        """Append settlement transfers and their record in one locked transaction.

        Args:
            group_id: Group identifier.
            build_commit: Callback producing transfers and record from locked history.

        Returns:
            tuple[list[LedgerEntry], SettlementRecord]: Stored transfers and stored record.

        Raises:
            ValueError: Raised when a request or the record targets another group.
            RuntimeError: Raised when persistence fails; nothing is committed.
        """

        normalized_group_id = self._validate_non_empty_text(group_id, "group_id")

        try:
            with self._engine.begin() as connection:
                history = self._lock_group_and_read_history(connection, normalized_group_id)
                draft = build_commit(history)
                if draft.record.group_id != normalized_group_id:
                    raise ValueError(f"record group_id={draft.record.group_id} does not match locked group")
                stored_entries = self._insert_entries(connection, normalized_group_id, draft.requests)
                stored_record = self._insert_settlement_record(connection, draft.record)
                return stored_entries, stored_record
        except SQLAlchemyError as error:
            raise RuntimeError("failed to commit settlement") from error

    def db_settlement_record_list_for_group(self, group_id: str, limit: int, offset: int) -> list[SettlementRecord]:
        """List settlement records of one group, newest first.

        Args:
            group_id: Group identifier.
            limit: Maximum number of rows.
            offset: Number of rows to skip.

        Returns:
            list[SettlementRecord]: Ordered settlement records.

        Raises:
            ValueError: Raised when arguments are invalid.
            RuntimeError: Raised when database read fails.
        """

        normalized_group_id = self._validate_non_empty_text(group_id, "group_id")
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        self._SETTLEMENT_SELECT_COLUMNS
                        + "WHERE group_id = :group_id "
                        + "ORDER BY created_at_utc DESC, settlement_id DESC "
                        + "LIMIT :limit OFFSET :offset"
                    ),
                    {"group_id": normalized_group_id, "limit": limit, "offset": offset},
                ).mappings().all()
                return [self._map_settlement_record(row) for row in rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list settlement records") from error

    def _lock_group_and_read_history(self, connection: Connection, group_id: str) -> list[LedgerEntry]:
        """Take the group writer lock and read the group's history inside it."""

        advisory_key_1, advisory_key_2 = self._build_advisory_lock_keys(group_id)
        connection.execute(
            text("SELECT pg_advisory_xact_lock(:key_1, :key_2)"),
            {"key_1": advisory_key_1, "key_2": advisory_key_2},
        )
        history_rows = connection.execute(
            text(self._ENTRY_LIST_FOR_GROUP_QUERY),
            {"group_id": group_id},
        ).mappings().all()
        return [self._map_ledger_entry(row) for row in history_rows]

    def _insert_entries(
        self,
        connection: Connection,
        group_id: str,
        requests: list[LedgerEntryAppendRequest],
    ) -> list[LedgerEntry]:
        """Insert requests of the locked group and return stored entries.

        Args:
            connection: Connection holding the group lock.
            group_id: Locked group identifier.
            requests: Validated requests in insertion order.

        Returns:
            list[LedgerEntry]: Stored entries in insertion order.

        Raises:
            ValueError: Raised when a request targets another group.
        """

        stored_entries: list[LedgerEntry] = []
        for request in requests:
            if request.group_id != group_id:
                raise ValueError(f"request group_id={request.group_id} does not match locked group")
            created_row = connection.execute(
                text(self._ENTRY_INSERT_QUERY),
                {
                    "group_id": request.group_id,
                    "source_account_id": request.source_account_id,
                    "dest_account_id": request.dest_account_id,
                    "amount": Decimal(request.amount),
                    "kind": EntryKind(request.kind).value,
                    "related_entry_id": request.related_entry_id,
                    "settlement_id": request.settlement_id,
                    "description": request.description,
                },
            ).mappings().one()
            stored_entries.append(self._map_ledger_entry(created_row))
        return stored_entries

    def _insert_settlement_record(self, connection: Connection, record: SettlementRecord) -> SettlementRecord:
        """Insert one settlement record on the given connection."""

        created_row = connection.execute(
            text(self._SETTLEMENT_INSERT_QUERY),
            {
                "settlement_id": record.settlement_id,
                "group_id": record.group_id,
                "initiator_account_id": record.initiator_account_id,
                "transfer_count": record.transfer_count,
                "total_amount": record.total_amount,
                "raw_transaction_count": record.raw_transaction_count,
                "reduction_rate": record.reduction_rate,
                "net_amounts": json.dumps(
                    {account_id: str(amount) for account_id, amount in sorted(record.net_amounts.items())}
                ),
            },
        ).mappings().one()
        return self._map_settlement_record(created_row)

    def _map_ledger_entry(self, row: Any) -> LedgerEntry:
        """Map SQLAlchemy row mapping to a typed ledger entry.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            LedgerEntry: Typed entry.

        Raises:
            ValueError: Raised when the stored kind is unknown.
        """

        related_entry_id = row["related_entry_id"]
        settlement_id = row["settlement_id"]
        return LedgerEntry(
            entry_id=str(row["entry_id"]),
            group_id=row["group_id"],
            source_account_id=row["source_account_id"],
            dest_account_id=row["dest_account_id"],
            amount=Decimal(row["amount"]),
            kind=EntryKind(row["kind"]),
            created_at=row["created_at_utc"],
            related_entry_id=None if related_entry_id is None else str(related_entry_id),
            settlement_id=None if settlement_id is None else str(settlement_id),
            description=row["description"],
        )

    def _map_settlement_record(self, row: Any) -> SettlementRecord:
        """Map SQLAlchemy row mapping to a typed settlement record.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            SettlementRecord: Typed record.

        Raises:
            TypeError: Raised when stored net amounts are not a JSON object.
        """

        net_amounts_value = row["net_amounts"]
        if isinstance(net_amounts_value, str):
            net_amounts_value = json.loads(net_amounts_value)
        if not isinstance(net_amounts_value, dict):
            raise TypeError("settlement_record.net_amounts must be a JSON object")

        return SettlementRecord(
            settlement_id=str(row["settlement_id"]),
            group_id=row["group_id"],
            initiator_account_id=row["initiator_account_id"],
            transfer_count=int(row["transfer_count"]),
            total_amount=Decimal(row["total_amount"]),
            raw_transaction_count=int(row["raw_transaction_count"]),
            reduction_rate=Decimal(row["reduction_rate"]),
            net_amounts={account_id: Decimal(str(amount)) for account_id, amount in net_amounts_value.items()},
            created_at=row["created_at_utc"],
        )

    def _build_advisory_lock_keys(self, group_id: str) -> tuple[int, int]:
        """Create deterministic advisory lock keys for the group writer lock.

        Args:
            group_id: Group identifier.

        Returns:
            tuple[int, int]: Two signed int32 lock keys for PostgreSQL advisory lock.

        Raises:
            ValueError: Raised when group_id is blank.
        """

        normalized_group_id = self._validate_non_empty_text(group_id, "group_id")
        digest = hashlib.sha256(f"ledger_entry:{normalized_group_id}".encode("utf-8")).digest()
        key_1 = int.from_bytes(digest[0:4], byteorder="big", signed=True)
        key_2 = int.from_bytes(digest[4:8], byteorder="big", signed=True)
        return key_1, key_2

    def _validate_non_empty_text(self, value: str, field_name: str) -> str:
        """Validate required text input and return stripped value."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{field_name} must not be blank")
        return value.strip()
