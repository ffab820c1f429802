from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from renewsync.app import (
    RenewalJobRequest,
    list_recent_executions,
    run_scheduled_renewal,
    run_subscription_renewal,
)
from renewsync.config import ConfigurationError, configure_logging
from renewsync.domain.model import TriggerSource

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from renewsync.app import RenewalJobResponse

log = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Not an integer: {value}") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"Must be positive: {value}")
    return parsed


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile subscription renewals")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the subscription renewal job now")
    run.add_argument(
        "--tenant-id",
        type=str,
        help="Only reconcile this tenant (default: every tenant)",
    )
    run.add_argument(
        "--subscription-id",
        dest="external_subscription_id",
        type=str,
        help="Reconcile exactly this provider subscription id, bypassing all filters",
    )
    run.add_argument(
        "--batch-size",
        type=_positive_int,
        help="Number of records committed per chunk (defaults to config)",
    )
    run.add_argument(
        "--max-records",
        type=_positive_int,
        help="Maximum number of candidates read per tenant (defaults to config)",
    )

    subparsers.add_parser(
        "scheduled",
        help="Run the job as the scheduler would (honours RENEWAL_SCHEDULE_ENABLED)",
    )

    executions = subparsers.add_parser("executions", help="List recent job executions")
    executions.add_argument(
        "--limit",
        type=_positive_int,
        default=20,
        help="Number of executions to list (default: %(default)s)",
    )

    return parser.parse_args(list(argv))


def _log_response(response: RenewalJobResponse) -> None:
    log.info(
        "%s (execution=%s, processed=%s, succeeded=%s, failed=%s, duration_ms=%s)",
        response.message,
        response.execution_id,
        response.processed_count,
        response.success_count,
        response.failed_count,
        response.duration_ms,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.command == "run":
            request = RenewalJobRequest(
                tenant_id=parsed_args.tenant_id,
                external_subscription_id=parsed_args.external_subscription_id,
                batch_size=parsed_args.batch_size,
                max_records=parsed_args.max_records,
            )
            response = run_subscription_renewal(request, triggered_by=TriggerSource.MANUAL)
            _log_response(response)
            if not response.success:
                sys.exit(1)
        elif parsed_args.command == "scheduled":
            response = run_scheduled_renewal()
            if response is None:
                return
            _log_response(response)
            if not response.success:
                sys.exit(1)
        elif parsed_args.command == "executions":
            for record in list_recent_executions(limit=parsed_args.limit):
                log.info(
                    "#%s %s %s tenant=%s started=%s duration_ms=%s processed=%s "
                    "succeeded=%s failed=%s%s",
                    record.id,
                    record.job_name,
                    record.status,
                    record.tenant_id or "*",
                    record.started_at.isoformat(),
                    record.duration_ms,
                    record.processed_count,
                    record.success_count,
                    record.failed_count,
                    f" error={record.error_message}" if record.error_message else "",
                )
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except ConfigurationError:
        log.exception("Invalid configuration")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during subscription renewal")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
