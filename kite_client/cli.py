"""
Kite Client - CLI.

============================================================
RESPONSIBILITY
============================================================
Small command-line front end over KiteConnect.

- Credentials come from the environment (or a .env file)
- Results are printed as JSON on stdout
- Logs go to stderr

============================================================
USAGE
============================================================
python -m kite_client.cli login-url
python -m kite_client.cli session --request-token <token>
python -m kite_client.cli holdings
python -m kite_client.cli instruments --exchange NSE

ENVIRONMENT:
KITE_API_KEY, KITE_API_SECRET, KITE_ACCESS_TOKEN
plus every KITE_* setting read by ClientConfig.from_env()

============================================================
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import os
import sys
from typing import Any, List, Optional

from .config import ClientConfig
from .connect import KiteConnect
from .errors import KiteError
from .logging_utils import setup_logging


logger = logging.getLogger(__name__)


COMMANDS = ["login-url", "session", "holdings", "positions", "orders", "instruments"]


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kite-client",
        description="Kite Connect v3 command-line client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  login-url     - Print the login page URL
  session       - Exchange a request token for an access token
  holdings      - List holdings
  positions     - List net and day positions
  orders        - List today's orders
  instruments   - Dump instruments (all, or one exchange)

Examples:
  %(prog)s login-url
  %(prog)s session --request-token abc123
  %(prog)s instruments --exchange NSE
        """
    )

    parser.add_argument(
        "command",
        choices=COMMANDS,
        help="Command to run",
    )

    # --------------------------------------------------------
    # Command Options
    # --------------------------------------------------------
    command_group = parser.add_argument_group("Command Options")

    command_group.add_argument(
        "--request-token",
        type=str,
        help="Request token from the login redirect (session)",
    )

    command_group.add_argument(
        "--exchange",
        type=str,
        help="Exchange filter (instruments)",
    )

    # --------------------------------------------------------
    # Connection Options
    # --------------------------------------------------------
    connection_group = parser.add_argument_group("Connection Options")

    connection_group.add_argument(
        "--env-file",
        type=str,
        metavar="PATH",
        help="Path to a .env file",
    )

    connection_group.add_argument(
        "--target",
        type=str,
        choices=["native", "sandbox"],
        help="Execution target (default: KITE_TARGET or native)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="text",
        help="Logging format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 0.3.0",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments against the environment.

    Returns:
        List of validation errors
    """
    errors = []

    if not os.environ.get("KITE_API_KEY"):
        errors.append("KITE_API_KEY is not set")

    if args.command == "session":
        if not args.request_token:
            errors.append("--request-token is required for session")
        if not os.environ.get("KITE_API_SECRET"):
            errors.append("KITE_API_SECRET is required for session")
    elif args.command != "login-url" and not os.environ.get("KITE_ACCESS_TOKEN"):
        errors.append(f"KITE_ACCESS_TOKEN is required for {args.command}")

    return errors


# ============================================================
# OUTPUT
# ============================================================

def to_jsonable(value: Any) -> Any:
    """Convert typed records to plain JSON values, dropping `raw`."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if f.name != "raw"
        }
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def print_result(result: Any) -> None:
    if isinstance(result, str):
        print(result)
        return
    print(json.dumps(to_jsonable(result), indent=2, default=str))


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def run_command(kite: KiteConnect, args: argparse.Namespace) -> Any:
    """Dispatch one command and return its result."""
    if args.command == "login-url":
        return kite.login_url()
    if args.command == "session":
        return await kite.generate_session(
            args.request_token,
            os.environ["KITE_API_SECRET"],
        )
    if args.command == "holdings":
        return await kite.holdings()
    if args.command == "positions":
        return await kite.positions()
    if args.command == "orders":
        return await kite.orders()
    if args.command == "instruments":
        return await kite.instruments(args.exchange)
    raise ValueError(f"Unknown command: {args.command}")


async def async_main(args: argparse.Namespace, config: ClientConfig) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    kite = KiteConnect(
        api_key=os.environ["KITE_API_KEY"],
        access_token=os.environ.get("KITE_ACCESS_TOKEN", ""),
        config=config,
    )

    try:
        result = await run_command(kite, args)
    except KiteError as e:
        logger.error(f"{args.command} failed: {e}")
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1
    finally:
        await kite.close()

    print_result(result)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_format)

    # Loads .env into the environment before validation
    config = ClientConfig.from_env(args.env_file)
    if args.target:
        config.target = args.target

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    return asyncio.run(async_main(args, config))


if __name__ == "__main__":
    sys.exit(main())
