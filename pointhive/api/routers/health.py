"""Health endpoint router reporting application and ledger store status."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from pointhive.db import DatabaseHealthPort


def api_create_health_router(db_health_service: DatabaseHealthPort) -> APIRouter:
    """Create health-check router probing the ledger store.

    Args:
        db_health_service: DB-layer health service interface.

    Returns:
        APIRouter: Router exposing `/health` endpoint.

    Raises:
        ValueError: Raised when db_health_service is invalid.
    """

    if db_health_service is None:
        raise ValueError("db_health_service must not be None")

    router = APIRouter(tags=["health"])

    @router.get("/health")
    def api_health_status() -> JSONResponse:
        """Return `200` when the ledger store answers and `503` otherwise."""

        target = db_health_service.db_connection_label()
        try:
            db_health = db_health_service.db_check_health()
        except ConnectionError as error:
            return _api_health_response("degraded", "down", str(error), target, status.HTTP_503_SERVICE_UNAVAILABLE)
        return _api_health_response("ok", db_health.status, db_health.detail, target, status.HTTP_200_OK)

    return router


def _api_health_response(
    overall_status: str,
    database_status: str,
    detail: str,
    target: str,
    status_code: int,
) -> JSONResponse:
    """Build the health payload shared by healthy and degraded responses."""

    payload = {
        "status": overall_status,
        "app": "up",
        "database": database_status,
        "detail": detail,
        "target": target,
    }
    return JSONResponse(content=payload, status_code=status_code)
