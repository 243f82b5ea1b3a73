# SPDX-License-Identifier: MIT
"""Command-line interface for allocating procedure references."""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import platform
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Callable, Sequence

import logfire
from pydantic import TypeAdapter
from pydantic_core import to_json

from core import AllocationError, ReferenceAllocator
from core.history import default_export_name
from io_utils.persistence import atomic_write
from io_utils.store import JSONAllocationStore
from models import HistoryEntry
from observability import telemetry
from observability.monitoring import init_logfire
from runtime.settings import Settings, load_settings
from utils import ConsoleErrorHandler, ErrorHandler

LOG_LEVELS = ["fatal", "error", "warn", "notice", "info", "debug", "trace"]
LOG_LEVEL_ALIASES = {"warning": "warn", "critical": "fatal"}

HISTORY_COLUMNS = ("ID", "Type", "Date", "Jurisdiction", "Channel", "Created")

# Module logger for CLI diagnostics mirroring
logger = logging.getLogger(__name__)

CommandHandler = Callable[[argparse.Namespace, Settings], int]


def _print_version() -> None:
    """Print the installed package version."""
    try:
        pkg_version = version("hexref")
    except PackageNotFoundError:  # pragma: no cover - fallback for editable installs
        pkg_version = "unknown"
    line = f"hexref {pkg_version}"
    print(line)
    logger.info(line)


def _print_diagnostics() -> None:
    """Output basic environment information for health checks."""
    _print_version()
    print(f"Python {platform.python_version()}")
    print(f"Platform {platform.platform()}")
    store_dir = os.getenv("HEXREF_STORE_DIR")
    print(f"Store directory: {store_dir or 'default'}")
    # Never echo the secret itself.
    present = "present" if os.getenv("HEXREF_SECRET") else "missing"
    print(f"HEXREF_SECRET {present}")


def _base_log_index(log_level: str) -> int:
    """Return the position of ``log_level`` in :data:`LOG_LEVELS`."""
    level = log_level.strip().lower()
    level = LOG_LEVEL_ALIASES.get(level, level)
    if level not in LOG_LEVELS:
        logger.warning("Unknown log level %r, using 'warn'", log_level)
        return LOG_LEVELS.index("warn")
    return LOG_LEVELS.index(level)


def _configure_logging(args: argparse.Namespace, settings: Settings) -> None:
    """Configure Logfire from the configured level shifted by ``-v``/``-q``."""
    index = _base_log_index(settings.log_level) + args.verbose - args.quiet
    index = max(0, min(len(LOG_LEVELS) - 1, index))
    init_logfire(settings.logfire_token, LOG_LEVELS[index])  # type: ignore[arg-type]


def _open_allocator(settings: Settings, handler: ErrorHandler) -> ReferenceAllocator:
    """Return an allocator over the store configured in ``settings``."""
    store = JSONAllocationStore(settings.store_path, error_handler=handler)
    return ReferenceAllocator(store)


def _resolve_secret(args: argparse.Namespace, settings: Settings) -> str | None:
    """Return the secret from flags, environment or an interactive prompt."""
    if args.secret:
        return args.secret
    if settings.secret is not None:
        return settings.secret.get_secret_value()
    if sys.stdin.isatty():
        return getpass.getpass("Secret: ")
    return None


def _cmd_allocate(args: argparse.Namespace, settings: Settings) -> int:
    """Allocate a reference and print it."""
    allocator = _open_allocator(settings, args.error_handler)
    secret = _resolve_secret(args, settings)
    allocation = allocator.allocate_detailed(
        args.type,
        args.date,
        args.jurisdiction,
        args.channel,
        secret=secret,
    )
    if args.json:
        payload = {
            "id": allocation.id,
            **allocation.attributes.model_dump(mode="json"),
            "reused": allocation.reused,
        }
        print(to_json(payload, indent=2).decode("utf-8"))
    else:
        print(allocation.id)
    return 0


def _format_history_table(entries: Sequence[HistoryEntry]) -> list[str]:
    """Return aligned text rows describing ``entries``."""
    rows = [HISTORY_COLUMNS] + [
        (
            entry.id,
            f"{entry.type.value} {entry.type.label}",
            entry.date,
            entry.jurisdiction or "-",
            entry.channel,
            entry.created_at.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
        )
        for entry in entries
    ]
    widths = [max(len(row[i]) for row in rows) for i in range(len(HISTORY_COLUMNS))]
    return [
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()
        for row in rows
    ]


def _cmd_history(args: argparse.Namespace, settings: Settings) -> int:
    """Print the activity log, newest first."""
    allocator = _open_allocator(settings, args.error_handler)
    entries = allocator.list_history()
    if args.limit is not None:
        entries = entries[: args.limit]
    if args.json:
        adapter = TypeAdapter(list[HistoryEntry])
        print(adapter.dump_json(entries, indent=2).decode("utf-8"))
        return 0
    if not entries:
        print("No references allocated yet.")
        return 0
    for line in _format_history_table(entries):
        print(line)
    return 0


def _cmd_export(args: argparse.Namespace, settings: Settings) -> int:
    """Write the activity log as delimited text."""
    allocator = _open_allocator(settings, args.error_handler)
    text = allocator.export_history()
    target = args.output_file or default_export_name()
    if target == "-":
        print(text)
        return 0
    atomic_write(Path(target), text.encode("utf-8"), mode=0o644)
    logfire.info("Exported history", path=target)
    print(target)
    return 0


def _cmd_verify(args: argparse.Namespace, settings: Settings) -> int:
    """Check store invariants and report every violation."""
    allocator = _open_allocator(settings, args.error_handler)
    issues = allocator.store.verify()
    for issue in issues:
        print(issue)
    if issues:
        logfire.warning("Store verification failed", issues=len(issues))
        return 1
    print("Store is consistent.")
    return 0


def _positive_int(value: str) -> int:
    """Parse ``value`` as an integer greater than zero."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {value!r}")
    return number


def _add_common_args(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Add CLI options shared across subcommands.

    Parameters
    ----------
    parser:
        Parser to augment with common arguments.

    Returns:
    -------
    argparse.ArgumentParser
        The parser instance with added arguments.
    """
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--store-dir",
        type=str,
        default=None,
        help=(
            "Directory holding the allocation store. Can also be set via the "
            "HEXREF_STORE_DIR env variable."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Raise the configured log level by one step per flag",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Lower the configured log level by one step per flag",
    )
    return parser


def _add_allocate_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    common: argparse.ArgumentParser,
) -> argparse.ArgumentParser:
    """Create the ``allocate`` subcommand parser."""
    parser = subparsers.add_parser(
        "allocate",
        parents=[common],
        help="Derive a reference for a procedure",
        description=(
            "Derive the reference for a procedure, reusing the existing one when "
            "the same type, date, jurisdiction and channel were allocated before"
        ),
    )
    parser.add_argument(
        "--type",
        required=True,
        help="Procedure type: C civil, M medical, S succession, I real estate, "
        "A academic",
    )
    parser.add_argument(
        "--date",
        default=None,
        help="Procedure date as YYYY-MM-DD (defaults to today)",
    )
    parser.add_argument(
        "--jurisdiction", default=None, help="Jurisdiction code, e.g. CH-BL"
    )
    parser.add_argument(
        "--channel", default=None, help="Intake channel code (defaults to WEB)"
    )
    parser.add_argument(
        "--secret",
        default=None,
        help=(
            "Key material for the derivation. Prefer the HEXREF_SECRET env "
            "variable; prompted for when omitted on a terminal."
        ),
    )
    parser.add_argument(
        "--json", action="store_true", help="Print the result as JSON"
    )
    parser.set_defaults(func=_cmd_allocate)
    return parser


def _add_history_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    common: argparse.ArgumentParser,
) -> argparse.ArgumentParser:
    """Create the ``history`` subcommand parser."""
    parser = subparsers.add_parser(
        "history",
        parents=[common],
        help="List recently allocated references",
    )
    parser.add_argument(
        "--limit",
        type=_positive_int,
        default=None,
        help="Show at most this many entries",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print the entries as JSON"
    )
    parser.set_defaults(func=_cmd_history)
    return parser


def _add_export_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    common: argparse.ArgumentParser,
) -> argparse.ArgumentParser:
    """Create the ``export`` subcommand parser."""
    parser = subparsers.add_parser(
        "export",
        parents=[common],
        help="Export the history as CSV",
    )
    parser.add_argument(
        "--output-file",
        type=str,
        default=None,
        help="File to write (defaults to hexref_history_<date>.csv, '-' for stdout)",
    )
    parser.set_defaults(func=_cmd_export)
    return parser


def _add_verify_subparser(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    common: argparse.ArgumentParser,
) -> argparse.ArgumentParser:
    """Create the ``verify`` subcommand parser."""
    parser = subparsers.add_parser(
        "verify",
        parents=[common],
        help="Check the allocation store for inconsistencies",
    )
    parser.set_defaults(func=_cmd_verify)
    return parser


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser configured with subcommands."""
    parser = argparse.ArgumentParser(
        prog="hexref",
        description=(
            "Derive compact, non-revealing procedure references of the form "
            "7 hex digits + type letter, unique within a local store."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the hexref version and exit.",
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Print environment diagnostics and exit.",
    )
    common = _add_common_args(argparse.ArgumentParser(add_help=False))
    subparsers = parser.add_subparsers(dest="command")
    _add_allocate_subparser(subparsers, common)
    _add_history_subparser(subparsers, common)
    _add_export_subparser(subparsers, common)
    _add_verify_subparser(subparsers, common)
    return parser


def _apply_args_to_settings(args: argparse.Namespace, settings: Settings) -> None:
    """Override settings fields based on CLI arguments."""
    if args.store_dir is not None:
        settings.store_dir = Path(args.store_dir).expanduser()


def _execute_subcommand(
    args: argparse.Namespace, settings: Settings, handler: ErrorHandler
) -> int:
    """Initialise logging and dispatch to the chosen subcommand."""
    _configure_logging(args, settings)
    telemetry.reset()
    args.error_handler = handler
    func: CommandHandler = args.func
    try:
        return func(args, settings)
    except AllocationError as exc:
        handler.handle("Allocation failed", exc)
        return 1
    finally:
        if args.command == "allocate" and args.verbose:
            telemetry.print_summary()
        logfire.force_flush()


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments and dispatch to the requested subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.version:
        _print_version()
        return
    if args.diagnostics:
        _print_diagnostics()
        return
    if args.command is None:
        parser.print_help()
        raise SystemExit(1)
    handler = ConsoleErrorHandler()
    try:
        settings = load_settings(args.config)
        _apply_args_to_settings(args, settings)
        code = _execute_subcommand(args, settings, handler)
    except RuntimeError as exc:
        handler.handle("Command failed", exc)
        raise SystemExit(1) from exc
    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    # Allow module to be executed as a standalone script
    main()
