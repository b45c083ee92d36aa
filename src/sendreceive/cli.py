"""Command-line entry point: ``send-receive``.

Runs one send/receive for a project folder and prints a report.  Progress
text goes to stderr; the report goes to stdout.

Exit codes: 0 on success, 1 on error, 2 when cancelled.
"""

import argparse
import json
import logging
import sys
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import load_settings
from .config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
)
from .config_schema import build_config
from .logger import setup_logging
from .sync.control import SyncControlModel
from .sync.models import SyncResults
from .sync.progress import ConsoleProgress
from .sync.reporter import format_sync_results, results_to_json

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 2

# Seconds between checks for Ctrl-C while a run is in flight
_POLL_SECONDS = 0.2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="send-receive",
        description="Commit a project folder and exchange changes with its repositories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Use .sendreceive/config.yml in the current folder
  send-receive

  # Sync a folder with a shared directory
  send-receive --folder ~/Dictionaries/tok --include "*.lift" \\
      --repo shared=/mnt/share/tok

  # Commit only, never touch a remote
  send-receive --local-only -m "Before the workshop"

  # Write a starter config file
  send-receive --init-config

Press Ctrl-C during a run to cancel it at the next safe point.
        """,
    )
    parser.add_argument(
        "--folder",
        help="Project folder (takes precedence over SENDRECEIVE_FOLDER and config files)",
    )
    parser.add_argument(
        "--repo",
        action="append",
        metavar="ALIAS=URI",
        help="Repository to synchronize with; repeatable. "
        "When given, only these repositories are used for this run.",
    )
    parser.add_argument(
        "--include",
        action="append",
        metavar="PATTERN",
        help="Extra include pattern; repeatable",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        metavar="PATTERN",
        help="Extra exclude pattern; repeatable",
    )
    parser.add_argument(
        "--local-only",
        action="store_true",
        help="Commit local changes without pulling or pushing",
    )
    parser.add_argument("-m", "--message", help="Commit message")
    parser.add_argument(
        "--user",
        help="Commit author (takes precedence over SENDRECEIVE_USER)",
    )
    parser.add_argument("--log-file", help="Also write log output to this file")
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Create a starter config file if none exists, then exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"send-receive version {__version__}",
    )
    return parser


def _wait_for_results(
    model: SyncControlModel, future: Future[SyncResults]
) -> SyncResults:
    """Wait for the run, turning Ctrl-C into a cancellation request."""
    while True:
        try:
            return future.result(timeout=_POLL_SECONDS)
        except FutureTimeoutError:
            continue
        except KeyboardInterrupt:
            print("\nCancelling...", file=sys.stderr, flush=True)
            model.cancel()


def _exit_code(results: SyncResults) -> int:
    if results.succeeded:
        return EXIT_OK
    if results.cancelled:
        return EXIT_CANCELLED
    return EXIT_ERROR


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run one send/receive and return the exit code."""
    args = build_parser().parse_args(argv)

    # .env before YAML so ${VAR} interpolation sees its values
    load_dotenv()

    project_folder = Path(args.folder).expanduser() if args.folder else None

    if args.init_config:
        setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)
        path = ensure_config(project_folder=project_folder)
        print(path)
        return EXIT_OK

    try:
        raw = load_hierarchical_config(project_folder)
        unified = build_config(raw)
    except (ValueError, OSError, yaml.YAMLError) as exc:
        print(f"Error: could not load configuration: {exc}", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        default_level=unified.logging.level,
    )
    config_files = discover_config_files(project_folder)
    if config_files:
        logger.info("Using config file: %s", config_files[0])

    try:
        settings = load_settings(
            folder=args.folder,
            repos=args.repo,
            local_only=args.local_only,
            message=args.message,
            user=args.user,
            include=args.include,
            exclude=args.exclude,
            unified=unified,
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    model = SyncControlModel(
        settings.project,
        settings.repositories,
        user_name=settings.user_name,
    )
    model.sync_options = settings.options
    model.add_progress_display(ConsoleProgress())

    # Local-only options carry no addresses; keep them as they are
    future = model.sync(use_targets_as_specified=settings.local_only)
    results = _wait_for_results(model, future)

    if args.json:
        print(json.dumps(results_to_json(results), indent=2))
    else:
        print(
            format_sync_results(
                results, settings.project.project_name, include_log=False
            )
        )
    return _exit_code(results)


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
