"""CLI entry point and argument parsing"""

import argparse
import sys
from pathlib import Path

from rich.console import Console

import settings
from accounts.store import AccountStore
from cli import handlers
from cli.logging_setup import setup_logging


console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codex-accounts",
        description="Log in to multiple Codex accounts and keep their tokens fresh",
    )
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", default=None, help="Also append log records to this file")
    parser.add_argument(
        "--accounts-file",
        default=None,
        help="Accounts file (default: from config)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Log in a new account through the browser")
    login.add_argument("--name", default=None, help="Display name (default: account email)")
    login.add_argument("--no-browser", action="store_true", help="Print the URL instead of opening a browser")
    login.add_argument("--timeout", type=float, default=None, help="Seconds to wait for the browser redirect")

    subparsers.add_parser("list", help="Show stored accounts")

    refresh = subparsers.add_parser("refresh", help="Refresh expiring tokens now")
    refresh.add_argument("--account", default=None, help="Force refresh of one account (ID, name or email)")

    remove = subparsers.add_parser("remove", help="Delete a stored account")
    remove.add_argument("account", help="Account ID, name or email")

    subparsers.add_parser("daemon", help="Keep refreshing tokens in the foreground")

    return parser


def main(argv=None):
    """Entry point for the CLI"""
    args = build_parser().parse_args(argv)
    setup_logging(settings.LOG_LEVEL, debug=args.debug, log_file=args.log_file)

    store = AccountStore(Path(args.accounts_file or settings.ACCOUNTS_FILE))

    try:
        if args.command == "login":
            code = handlers.run_login(
                store,
                console,
                name=args.name,
                open_browser=not args.no_browser,
                timeout=args.timeout,
            )
        elif args.command == "list":
            code = handlers.show_accounts(store, console)
        elif args.command == "refresh":
            code = handlers.run_refresh(store, console, args.account)
        elif args.command == "remove":
            code = handlers.remove_account(store, console, args.account)
        else:
            code = handlers.run_daemon(store, console)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        code = 130

    sys.exit(code)


if __name__ == "__main__":
    main()
