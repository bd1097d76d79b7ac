"""FastAPI application factory for the group ledger service.

This module defines API application composition used by the runtime.
"""

from fastapi import FastAPI

from pointhive.config import AppSettings
from pointhive.db import DatabaseHealthPort
from pointhive.ledger import GroupLedgerService

from .routers import api_create_health_router, api_create_ledger_router


def create_api_application(
    settings: AppSettings,
    db_health_service: DatabaseHealthPort,
    ledger_service: GroupLedgerService,
) -> FastAPI:
    """Create the FastAPI application instance for the service.

    Args:
        settings: Validated application settings used for runtime metadata.
        db_health_service: Database health service used by health endpoints.
        ledger_service: Group ledger service backing balance and settlement endpoints.

    Returns:
        FastAPI: Framework application instance.

    Raises:
        ValueError: Raised when a dependency is missing.
    """
    application = FastAPI(title="Pointhive Ledger")

    @application.get("/", tags=["foundation"])
    def foundation_index() -> dict[str, str]:
        """Return a minimal service descriptor for bootstrap verification."""

        return {
            "service": "pointhive-ledger",
            "status": "ready",
            "environment": settings.environment_name,
        }

    application.include_router(api_create_health_router(db_health_service=db_health_service))
    application.include_router(api_create_ledger_router(settings=settings, ledger_service=ledger_service))

    return application
