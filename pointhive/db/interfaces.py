"""Typed interfaces for database-layer services.

All SQL access must remain in the db package and its submodules. Ledger
persistence ports live in `pointhive.ledger.interfaces` so the ledger layer
never imports the db layer.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class HealthStatus:
    """Result of one ledger store connectivity check.

    Attributes:
        status: Probe outcome label.
        detail: Operational diagnostic message.
    """

    status: str
    detail: str


class DatabaseHealthPort(Protocol):
    """Port definition for database connectivity verification."""

    def db_connection_label(self) -> str:
        """Return a stable label for the active database connection target.

        Returns:
            str: Database target label for diagnostics.

        Raises:
            RuntimeError: Raised when connection metadata is unavailable.
        """

    def db_check_health(self) -> HealthStatus:
        """Check database connectivity and return deterministic health payload.

        Returns:
            HealthStatus: Database health status payload.

        Raises:
            ConnectionError: Raised when database cannot be reached.
        """
