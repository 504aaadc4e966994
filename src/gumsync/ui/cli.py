# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from gumsync.app import (
    PURGE_CONFIRMATION,
    build_service,
    list_products,
    run_reconciliation_pass,
    serve,
    verify_credential,
)
from gumsync.common import configure_logging
from gumsync.config.reconciliation import read_settings_file
from gumsync.domain.ports import AccountFilter

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile Gumroad sales with local accounts")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Run one reconciliation pass now")
    subparsers.add_parser("serve", help="Poll Gumroad on the configured interval")

    verify = subparsers.add_parser("verify", help="Check the Gumroad access token")
    verify.add_argument("--token", type=str, help="Token to check instead of the configured one")

    products = subparsers.add_parser("products", help="List Gumroad products")
    products.add_argument("--token", type=str, help="Token to use instead of the configured one")

    logs = subparsers.add_parser("logs", help="Audit log commands")
    logs_sub = logs.add_subparsers(dest="logs_command", required=True)
    logs_list = logs_sub.add_parser("list", help="Show audit log entries, newest first")
    _add_paging(logs_list)
    logs_sub.add_parser("clear", help="Delete every audit log entry")

    accounts = subparsers.add_parser("accounts", help="Provisioned account commands")
    accounts_sub = accounts.add_subparsers(dest="accounts_command", required=True)
    accounts_list = accounts_sub.add_parser("list", help="Show provisioned accounts")
    accounts_list.add_argument("--email", type=str, help="Email substring")
    accounts_list.add_argument("--product", type=str, help="Product id or name substring")
    accounts_list.add_argument("--sale-id", type=str, help="Sale id substring")
    accounts_list.add_argument("--role", type=str, help="Exact role name")
    accounts_list.add_argument(
        "--from",
        dest="created_from",
        type=str,
        help="ISO-8601 timestamp (UTC); only records created at or after it",
    )
    accounts_list.add_argument(
        "--to",
        dest="created_to",
        type=str,
        help="ISO-8601 timestamp (UTC); only records created at or before it",
    )
    _add_paging(accounts_list)

    settings = subparsers.add_parser("settings", help="Reconciliation settings")
    settings_sub = settings.add_subparsers(dest="settings_command", required=True)
    settings_sub.add_parser("show", help="Print the stored settings")
    settings_import = settings_sub.add_parser("import", help="Replace settings from a TOML file")
    settings_import.add_argument("path", type=Path, help="TOML file with the settings keys")

    purge = subparsers.add_parser(
        "purge",
        help="Delete the ledger, audit log, settings and provisioning records (keeps accounts)",
    )
    purge.add_argument(
        "--confirm",
        type=str,
        required=True,
        help=f"Must be exactly {PURGE_CONFIRMATION!r}",
    )

    return parser.parse_args(list(argv))


def _add_paging(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--page", type=int, default=1, help="Page number (default: %(default)s)")
    parser.add_argument(
        "--per-page",
        type=int,
        default=20,
        help="Entries per page (default: %(default)s)",
    )


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _build_account_filter(args: argparse.Namespace) -> AccountFilter:
    created_from = _parse_iso_datetime(args.created_from) if args.created_from else None
    created_to = _parse_iso_datetime(args.created_to) if args.created_to else None
    if created_from and created_to and created_from > created_to:
        raise ValueError("--from must be before --to")
    return AccountFilter(
        email=args.email,
        product=args.product,
        sale_id=args.sale_id,
        created_from=created_from,
        created_to=created_to,
        role=args.role,
    )


def _mask(token: str) -> str:
    if not token:
        return "(not set)"
    return f"{token[:4]}{'*' * max(len(token) - 4, 4)}"


def _run_command(args: argparse.Namespace) -> None:  # noqa: C901, PLR0912
    if args.command == "run":
        summary = run_reconciliation_pass()
        if summary is None:
            log.info("A pass is already running")
        elif summary.fetch_error:
            raise RuntimeError(f"Pass aborted: {summary.fetch_error}")
        else:
            log.info("Pass finished: %s", summary.as_payload())
    elif args.command == "serve":
        serve()
    elif args.command == "verify":
        name = verify_credential(args.token)
        print(f"Connected to Gumroad as {name}")
    elif args.command == "products":
        for product in list_products(args.token):
            state = "published" if product.published else "unpublished"
            print(f"{product.id}\t{product.name}\t{state}")
    elif args.command == "logs" and args.logs_command == "list":
        page = build_service().read_audit_log(page=args.page, per_page=args.per_page)
        for entry in page.items:
            print(f"{entry.created_at.isoformat()}\t{entry.event_type}\t{entry.payload}")
        print(f"-- page {page.page}/{page.pages}, {page.total} entries")
    elif args.command == "logs" and args.logs_command == "clear":
        removed = build_service().clear_audit_log()
        log.info("Removed %s audit log entries", removed)
    elif args.command == "accounts" and args.accounts_command == "list":
        page = build_service().read_provisioned_accounts(
            _build_account_filter(args), page=args.page, per_page=args.per_page
        )
        for account in page.items:
            record = account.provisioning
            sale = record.origin_sale_id if record else ""
            product = record.origin_product_name if record else ""
            print(f"{account.email}\t{','.join(account.roles)}\t{product}\t{sale}")
        print(f"-- page {page.page}/{page.pages}, {page.total} accounts")
    elif args.command == "settings" and args.settings_command == "show":
        document = build_service().load_settings()
        shown = document.model_dump(mode="json", exclude={"email_template"})
        shown["access_token"] = _mask(document.access_token)
        for key, value in shown.items():
            print(f"{key} = {value}")
    elif args.command == "settings" and args.settings_command == "import":
        build_service().save_settings(read_settings_file(args.path))
        log.info("Imported settings from %s", args.path)
    elif args.command == "purge":
        result = build_service().purge_plugin_state(args.confirm)
        log.info(
            "Purged %s ledger entries, %s audit entries, %s provisioning records",
            result.ledger_entries,
            result.audit_entries,
            result.provisioning_records,
        )
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        if parsed_args.command == "accounts":
            _build_account_filter(parsed_args)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    try:
        _run_command(parsed_args)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
