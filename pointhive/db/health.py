"""Database health service for connectivity checks."""

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from .interfaces import DatabaseHealthPort, HealthStatus


class SQLAlchemyDatabaseHealthService(DatabaseHealthPort):
    """Database health service backed by a lightweight SQLAlchemy query."""

    def __init__(self, engine: Engine):
        """Initialize database health service.

        Args:
            engine: SQLAlchemy engine used for connectivity checks.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_connection_label(self) -> str:
        """Return the target database URL with the password masked."""

        return self._engine.url.render_as_string(hide_password=True)

    def db_check_health(self) -> HealthStatus:
        """Probe the database and report whether the ledger tables are reachable.

        Returns:
            HealthStatus: Health payload with status and diagnostic detail.

        Raises:
            ConnectionError: Raised when connectivity check fails.
        """

        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1 FROM ledger_entry LIMIT 1"))
            return HealthStatus(status="ok", detail="ledger store reachable")
        except SQLAlchemyError as error:
            raise ConnectionError("ledger store connectivity check failed") from error
