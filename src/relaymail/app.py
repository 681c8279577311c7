# =============================================================================
# Relaymail Command Line
# =============================================================================
# Operator entry point for sending mail through the configured relay.
#
# Commands:
#   send          Send one HTML email
#   notify        Send a task/member notification from a JSON payload
#   init-config   Write a config.toml with the given relay settings
#   set-password  Store the relay password in the system keyring
#
# Exit codes:
#   0  sent (or command succeeded)
#   1  send failed / error
#   2  skipped (SMTP not configured) or bad usage
# =============================================================================

import argparse
import asyncio
import getpass
import json
import logging
import sys
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from relaymail import __app_name__, __version__
from relaymail.config import Config, ConfigError, print_paths, store_password
from relaymail.notify import DeliveryStatus, NotificationSender
from relaymail.smtp import SMTPConfigurationError, SMTPError, SMTPMailer

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_SKIPPED = 2


# =============================================================================
# CLI Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    """
    Build the command-line parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="Relaymail: send HTML email through an implicit-TLS SMTP relay",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--paths",
        action="store_true",
        help="Print configuration paths and exit",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        help="Load SMTP_* variables from this .env file (default: ./.env if present)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (logs the SMTP dialogue, without credentials)",
    )

    commands = parser.add_subparsers(dest="command")

    send = commands.add_parser("send", help="Send one HTML email")
    send.add_argument("--to", required=True, help="Recipient address")
    send.add_argument("--subject", required=True, help="Subject line")
    body = send.add_mutually_exclusive_group(required=True)
    body.add_argument("--body", help="HTML body")
    body.add_argument("--body-file", type=Path, help="File containing the HTML body")

    notify = commands.add_parser("notify", help="Send a notification from a JSON payload")
    notify.add_argument("kind", choices=NotificationSender.KINDS, help="Notification type")
    notify.add_argument(
        "--payload-file",
        required=True,
        help="JSON payload file ('-' for stdin)",
    )

    init = commands.add_parser("init-config", help="Write a config file")
    init.add_argument("--host", default="", help="SMTP relay hostname")
    init.add_argument("--port", type=int, default=465, help="SMTP port (default: 465)")
    init.add_argument("--username", default="", help="SMTP username / sender address")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")

    password = commands.add_parser("set-password", help="Store the SMTP password in the keyring")
    password.add_argument("--host", help="Relay host (default: from config)")
    password.add_argument("--username", help="SMTP username (default: from config)")

    return parser


def configure_logging(level: str, debug: bool = False) -> None:
    """Set up root logging for command-line use."""
    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


# =============================================================================
# Commands
# =============================================================================

async def run_send(mailer: SMTPMailer, to: str, subject: str, html_body: str) -> int:
    """Send one email and map the outcome to an exit code."""
    try:
        await mailer.send(to, subject, html_body)
    except SMTPConfigurationError as e:
        print(f"Skipped: {e}", file=sys.stderr)
        return EXIT_SKIPPED
    except SMTPError as e:
        print(f"Send failed: {e}", file=sys.stderr)
        return EXIT_FAILED

    print(f"Sent to {to}")
    return EXIT_OK


async def run_notify(sender: NotificationSender, kind: str, payload: dict) -> int:
    """Send a notification and map its status to an exit code."""
    status = await sender.notify_payload(kind, payload)
    print(f"Notification {status.value}")
    return {
        DeliveryStatus.SENT: EXIT_OK,
        DeliveryStatus.SKIPPED: EXIT_SKIPPED,
        DeliveryStatus.FAILED: EXIT_FAILED,
    }[status]


def _read_payload(source: str) -> dict:
    if source == "-":
        return json.load(sys.stdin)
    with open(source, encoding="utf-8") as f:
        return json.load(f)


def _init_config(args: argparse.Namespace, config_path: Path) -> int:
    if config_path.exists() and not args.force:
        print(f"Config file already exists: {config_path} (use --force)", file=sys.stderr)
        return EXIT_FAILED

    config = Config()
    config.smtp.host = args.host
    config.smtp.port = args.port
    config.smtp.username = args.username
    written = config.save(config_path)
    print(f"Wrote {written}")
    return EXIT_OK


def _set_password(args: argparse.Namespace, config: Config) -> int:
    host = args.host or config.smtp.host
    username = args.username or config.smtp.username
    if not host or not username:
        print("Host and username are required (flags or config file)", file=sys.stderr)
        return EXIT_SKIPPED

    password = getpass.getpass(f"Password for {username} at {host}: ")
    store_password(host, username, password)
    print(f"Stored password for {username} at {host}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for Relaymail.

    This function:
        1. Parses command-line arguments
        2. Handles special flags (--paths, --version)
        3. Loads .env, config file and logging settings
        4. Runs the selected command

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.paths:
        print_paths()
        return EXIT_OK

    if args.command is None:
        parser.print_help()
        return EXIT_SKIPPED

    config_path = args.config or Config.config_file_path()

    if args.command == "init-config":
        return _init_config(args, config_path)

    # Real environment variables win over the .env file
    load_dotenv(args.env_file or find_dotenv(usecwd=True))

    try:
        config = Config.load(config_path)
        configure_logging(config.logging.level, args.debug)
        logger.debug(f"Using config file {config_path}")

        if args.command == "set-password":
            return _set_password(args, config)

        mailer = SMTPMailer(config.mailer_config())
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return EXIT_FAILED

    if args.command == "send":
        html_body = args.body
        if args.body_file:
            try:
                html_body = args.body_file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                print(f"Could not read body file: {e}", file=sys.stderr)
                return EXIT_FAILED
        return asyncio.run(run_send(mailer, args.to, args.subject, html_body))

    try:
        payload = _read_payload(args.payload_file)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Could not read payload: {e}", file=sys.stderr)
        return EXIT_FAILED
    return asyncio.run(run_notify(NotificationSender(mailer), args.kind, payload))


if __name__ == "__main__":
    sys.exit(main())
