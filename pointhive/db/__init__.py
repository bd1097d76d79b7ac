"""Database layer package for all SQL and persistence boundaries."""

from .health import SQLAlchemyDatabaseHealthService
from .interfaces import DatabaseHealthPort, HealthStatus
from .ledger_entries import SQLAlchemyLedgerEntryService
from .session import db_create_engine

__all__ = [
	"DatabaseHealthPort",
	"HealthStatus",
	"SQLAlchemyDatabaseHealthService",
	"SQLAlchemyLedgerEntryService",
	"db_create_engine",
]
