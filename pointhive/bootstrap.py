"""Application bootstrap wiring for startup validation and dependency assembly."""

from fastapi import FastAPI

from pointhive.api import create_api_application
from pointhive.config import AppSettings, config_load_settings
from pointhive.db import SQLAlchemyDatabaseHealthService, SQLAlchemyLedgerEntryService, db_create_engine
from pointhive.ledger import GroupLedgerService


def bootstrap_create_application(settings: AppSettings | None = None) -> FastAPI:
    """Assemble the runtime application after validating startup configuration.

    Args:
        settings: Optional preloaded settings; loaded from the environment when omitted.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    resolved_settings = settings or config_load_settings()
    engine = db_create_engine(database_url=resolved_settings.database_url)
    db_health_service = SQLAlchemyDatabaseHealthService(engine=engine)
    ledger_service = GroupLedgerService(
        repository=SQLAlchemyLedgerEntryService(engine=engine),
        issuer_account_id=resolved_settings.issuer_account_id,
        epsilon=resolved_settings.settlement_epsilon,
        enforce_sufficient_balance=resolved_settings.enforce_sufficient_balance,
    )
    return create_api_application(
        settings=resolved_settings,
        db_health_service=db_health_service,
        ledger_service=ledger_service,
    )


def bootstrap_create_ledger_service(settings: AppSettings | None = None) -> GroupLedgerService:
    """Build the group ledger service for non-HTTP surfaces.

    Args:
        settings: Optional preloaded settings; loaded from the environment when omitted.

    Returns:
        GroupLedgerService: Fully wired ledger service instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    resolved_settings = settings or config_load_settings()
    engine = db_create_engine(database_url=resolved_settings.database_url)
    return GroupLedgerService(
        repository=SQLAlchemyLedgerEntryService(engine=engine),
        issuer_account_id=resolved_settings.issuer_account_id,
        epsilon=resolved_settings.settlement_epsilon,
        enforce_sufficient_balance=resolved_settings.enforce_sufficient_balance,
    )
