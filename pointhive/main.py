"""Main module entrypoint for local runtime execution.

This module validates startup configuration and launches the FastAPI service
or runs one ledger command against a group.
"""

import argparse
import logging

import uvicorn

from pointhive.bootstrap import bootstrap_create_application, bootstrap_create_ledger_service
from pointhive.config import config_load_settings
from pointhive.ledger import LedgerDefectError

logger = logging.getLogger(__name__)


def main() -> None:
    """Run selected runtime command with validated startup configuration.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SettingsLoadError: Raised when configuration validation fails.
        SystemExit: Raised with code 1 when a ledger command finds a defect.
    """

    argument_parser = argparse.ArgumentParser(description="Pointhive ledger runtime entrypoint")
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="api",
        choices=("api", "audit-group", "plan-group"),
        help="Runtime command: `api` starts server, `audit-group` prints audited balances for one group, "
        "`plan-group` prints the settlement plan for one group",
        type=str,
    )
    argument_parser.add_argument(
        "--group-id",
        dest="group_id",
        type=str,
        help="Group identifier, required for `audit-group` and `plan-group`",
    )
    parsed_arguments = argument_parser.parse_args()

    settings = config_load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if parsed_arguments.command in ("audit-group", "plan-group"):
        if not (parsed_arguments.group_id or "").strip():
            argument_parser.error(f"--group-id is required for `{parsed_arguments.command}`")
        ledger_service = bootstrap_create_ledger_service(settings=settings)
        try:
            if parsed_arguments.command == "audit-group":
                main_print_group_audit(ledger_service, parsed_arguments.group_id)
            else:
                main_print_group_plan(ledger_service, parsed_arguments.group_id)
        except LedgerDefectError as error:
            logger.error("Ledger command failed code=%s message=%s", error.code, error.message)
            raise SystemExit(1) from error
        return

    application = bootstrap_create_application(settings=settings)
    uvicorn.run(
        application,
        host=settings.application_host,
        port=settings.application_port,
    )


def main_print_group_audit(ledger_service, group_id: str) -> None:
    """Print audited custodial balances and net results of one group.

    Args:
        ledger_service: Group ledger service.
        group_id: Group identifier.

    Returns:
        None: Prints balances to stdout as side effect.

    Raises:
        LedgerDefectError: Raised when projection or audit fails.
    """

    balance_view = ledger_service.ledger_group_balances(group_id=group_id)
    for position in balance_view.positions.values():
        print(f"{position.account_id}\tbalance={position.custodial_balance}\tnet={position.net_result}")
    print(
        f"issued_total={balance_view.audit.issued_total} "
        f"custodial_total={balance_view.audit.custodial_total} delta={balance_view.audit.delta}"
    )


def main_print_group_plan(ledger_service, group_id: str) -> None:
    """Print the settlement plan of one group without committing it.

    Args:
        ledger_service: Group ledger service.
        group_id: Group identifier.

    Returns:
        None: Prints transfers to stdout as side effect.

    Raises:
        LedgerDefectError: Raised when projection or audit fails.
    """

    plan = ledger_service.ledger_group_settlement_plan(group_id=group_id)
    for transfer in plan.transfers:
        print(f"{transfer.from_account_id} -> {transfer.to_account_id}\t{transfer.amount}")
    print(
        f"transfers={plan.summary.transfer_count} total_amount={plan.summary.total_amount} "
        f"raw_transactions={plan.summary.raw_transaction_count} reduction_rate={plan.summary.reduction_rate}"
    )


if __name__ == "__main__":
    main()
