"""
Command-line entry point for the Journal Portal client.

Provides account and browsing commands on top of the session-aware API
client, suitable for scripting against a portal deployment.
"""

import sys
import json
import asyncio
import argparse
import getpass
import logging
from typing import Any, Optional

from journal_client.api_client import JournalAPIClient
from journal_client.auth.failure_classifier import FailureKind
from journal_client.auth_session import AuthSession
from journal_client.config import ClientConfiguration
from journal_client.services import JournalPortal
from journal_shared.exceptions import (
    APIResponseError, ConfigurationError, JournalClientError, NetworkError,
    ServiceUnavailableError,
)
from journal_shared.logging_config import LogFormat, LogLevel, setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_API_ERROR = 1
EXIT_UNREACHABLE = 2
EXIT_SESSION_EXPIRED = 3


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="journal-client",
        description="Journal Portal command-line client",
        epilog="""
Examples:
  %(prog)s login --email reader@example.org
  %(prog)s whoami --json
  %(prog)s journals --page 2 --limit 20
  %(prog)s my-journals --status PENDING
  %(prog)s logout

Exit codes:
  0 - Success
  1 - The API rejected the request
  2 - Backend unreachable or unavailable
  3 - Session expired, log in again
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    config_group = parser.add_argument_group('Configuration')
    config_group.add_argument("--config", type=str, metavar="FILE",
                              help="Configuration file path")
    config_group.add_argument("--api-url", type=str, metavar="URL",
                              help="Portal API base URL")
    config_group.add_argument("--timeout", type=float, metavar="SECONDS",
                              help="Request timeout in seconds")

    output_group = parser.add_argument_group('Output')
    output_group.add_argument("--json", action="store_true",
                              help="Print raw JSON payloads")
    output_group.add_argument("--verbose", "-v", action="store_true",
                              help="Enable informational logging")

    debug_group = parser.add_argument_group('Debug')
    debug_group.add_argument("--debug", action="store_true",
                             help="Enable debug logging")
    debug_group.add_argument("--log-file", type=str, metavar="FILE",
                             help="Write logs to a file")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    login_parser = subparsers.add_parser("login", help="Sign in and store the session")
    login_parser.add_argument("--email", required=True, help="Account email")
    login_parser.add_argument("--password", help="Account password (prompted if omitted)")

    subparsers.add_parser("logout", help="Sign out and forget stored credentials")
    subparsers.add_parser("whoami", help="Show the signed-in user")

    journals_parser = subparsers.add_parser("journals", help="List published journals")
    journals_parser.add_argument("--all", action="store_true", dest="all_journals",
                                 help="List every journal visible to the account")
    journals_parser.add_argument("--search", help="Search term")
    journals_parser.add_argument("--page", type=int, default=1)
    journals_parser.add_argument("--limit", type=int, default=10)

    mine_parser = subparsers.add_parser("my-journals", help="List journals you submitted")
    mine_parser.add_argument("--status", help="Filter by review status")
    mine_parser.add_argument("--page", type=int, default=1)
    mine_parser.add_argument("--limit", type=int, default=10)

    subparsers.add_parser("cart", help="Show the shopping cart")

    return parser.parse_args(argv)


def configure_logging(args, config: ClientConfiguration) -> None:
    """Configure logging from configuration and command line flags."""
    if args.debug:
        level = LogLevel.DEBUG
    elif args.verbose:
        level = LogLevel.INFO
    elif args.json:
        # Keep stderr quiet when output is piped to another tool
        level = LogLevel.ERROR
    else:
        try:
            level = LogLevel(config.get_log_level())
        except ValueError:
            level = LogLevel.WARNING

    try:
        log_format = LogFormat(config.get_log_format())
    except ValueError:
        log_format = LogFormat.STANDARD

    setup_logging(
        log_level=level,
        log_format=log_format,
        log_file=args.log_file or config.get_log_file(),
    )


def _print_result(args, payload: Any, lines) -> None:
    if args.json:
        print(json.dumps(payload, indent=2, default=str))
        return
    for line in lines:
        print(line)


def _journal_lines(payload: Any):
    journals = []
    if isinstance(payload, dict):
        journals = payload.get('journals') or payload.get('items') or []
    elif isinstance(payload, list):
        journals = payload

    if not journals:
        yield "No journals found"
        return
    for journal in journals:
        status = journal.get('reviewStatus') or journal.get('status') or ''
        yield f"{journal.get('id', '?'):>6}  {journal.get('title', '(untitled)')}  {status}".rstrip()


async def run_command(args, portal: JournalPortal) -> int:
    """Execute the selected subcommand."""
    session = AuthSession(portal)

    if args.command == "login":
        password = args.password or getpass.getpass("Password: ")
        user = await session.login(args.email, password)
        info = session.session_info()
        lines = [f"Logged in as {user.email} ({user.role.value})"]
        if session.requires_profile_completion:
            lines.append("Profile incomplete: finish it before submitting journals")
        _print_result(args, info, lines)
        return EXIT_OK

    if args.command == "logout":
        await session.logout()
        _print_result(args, {'logged_out': True}, ["Logged out"])
        return EXIT_OK

    if args.command == "whoami":
        response = await portal.auth.get_current_user()
        payload = response.payload or {}
        _print_result(args, payload, [
            payload.get('name') or payload.get('email', ''),
            f"Email: {payload.get('email')}",
            f"Role:  {payload.get('role')}",
        ])
        return EXIT_OK

    if args.command == "journals":
        filters = {'search': args.search} if args.search else None
        if args.all_journals:
            response = await portal.journals.get_all_journals(args.page, args.limit, filters)
        else:
            response = await portal.journals.get_public_journals(args.page, args.limit, filters)
        _print_result(args, response.payload, _journal_lines(response.payload))
        return EXIT_OK

    if args.command == "my-journals":
        response = await portal.journals.get_user_journals(args.page, args.limit, args.status)
        _print_result(args, response.payload, _journal_lines(response.payload))
        return EXIT_OK

    if args.command == "cart":
        response = await portal.cart.get_cart()
        payload = response.payload or {}
        items = payload.get('items', []) if isinstance(payload, dict) else []
        lines = [f"{item.get('id', '?'):>6}  {item.get('journal', {}).get('title', '')}" for item in items]
        lines.append(f"{len(items)} item(s), total {payload.get('total', 0) if isinstance(payload, dict) else 0}")
        _print_result(args, payload, lines)
        return EXIT_OK

    raise ValueError(f"Unknown command: {args.command}")


def exit_code_for(error: JournalClientError) -> int:
    """Map a client error to the process exit code."""
    if isinstance(error, (NetworkError, ServiceUnavailableError)):
        return EXIT_UNREACHABLE
    if isinstance(error, APIResponseError) and error.kind is FailureKind.AUTH_EXPIRED:
        return EXIT_SESSION_EXPIRED
    return EXIT_API_ERROR


async def _run(args, config: ClientConfiguration) -> int:
    client = JournalAPIClient.from_config(config)
    async with JournalPortal(client) as portal:
        return await run_command(args, portal)


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the client."""
    args = parse_arguments(argv)

    try:
        config = ClientConfiguration(args.config)
        if args.api_url:
            config.set_override('server.url', args.api_url)
        if args.timeout is not None:
            config.set_override('server.timeout', args.timeout)

        configure_logging(args, config)
        return asyncio.run(_run(args, config))

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_API_ERROR
    except JournalClientError as e:
        code = exit_code_for(e)
        if code == EXIT_SESSION_EXPIRED:
            print("Session expired, please log in again", file=sys.stderr)
        else:
            print(f"Error: {e.user_message}", file=sys.stderr)
        logger.debug(f"Command failed: {e.to_dict()}")
        return code


if __name__ == "__main__":
    sys.exit(main())
