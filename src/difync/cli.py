"""Command-line entry point for difync.

Subcommands:

- ``sync`` (default): reconcile the DSL directory with Dify using the app map.
- ``init``: build the app map from the Dify app list and download DSL files.

Exit status is 0 on success and 1 on configuration errors, login failures,
a missing or malformed app map, any per-app error, or a failure to save the
updated app map.
"""

import argparse
import json
import logging
import sys

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import Config, ForceDirection, SyncMode, load_config
from .config_loader import load_hierarchical_config
from .config_schema import build_config
from .core.client import DifyClient
from .errors import (
    DifyAPIError,
    DifyncError,
    MappingNotFoundError,
)
from .logger import setup_logging
from .sync import SyncEngine, format_sync_report, report_to_json

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="difync",
        description="Difync - Dify.AI DSL Synchronizer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create app_map.json and download every app's DSL
  difync init

  # Preview what a sync would do
  difync --dry-run

  # Sync in both directions based on modification times
  difync --mode bidirectional

  # Push every local DSL file to Dify regardless of timestamps
  difync --force upload

Credentials are read from DIFY_EMAIL and DIFY_PASSWORD (environment or .env).
        """,
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=("sync", "init"),
        default="sync",
        help="Command to run (default: sync)",
    )
    parser.add_argument(
        "--base-url",
        help="Dify API base URL (overrides env: DIFY_BASE_URL)",
    )
    parser.add_argument(
        "--dsl-dir",
        help="Directory containing DSL files (overrides env: DSL_DIRECTORY, default: dsl)",
    )
    parser.add_argument(
        "--app-map",
        help="Path to app mapping file (overrides env: APP_MAP_FILE, default: app_map.json)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Perform a dry run without making any changes",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in SyncMode],
        help="Sync mode (overrides env: DIFYNC_MODE, default: download)",
    )
    parser.add_argument(
        "--force",
        dest="force_direction",
        choices=[d.value for d in ForceDirection],
        help="Always sync in this direction, ignoring timestamps",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="init: replace an existing app map file",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the sync report as JSON on stdout",
    )
    parser.add_argument(
        "--log-file",
        help="Also append log records to this file",
    )
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log record format on stderr (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"difync version {__version__}",
    )
    return parser


def print_info(config: Config) -> None:
    """Print information about the sync operation."""
    print("Difync - Dify.AI DSL Synchronizer")
    print("----------------------------")
    print(f"DSL Directory: {config.dsl_directory}")
    print(f"App Map File: {config.app_map_file}")
    if config.dry_run:
        print("Mode: DRY RUN (no changes will be made)")
    elif config.force_direction != ForceDirection.NONE:
        print(f"Mode: forced {config.force_direction.value}")
    else:
        print(f"Mode: {config.mode.value}")
    print()


def run_init(engine: SyncEngine, config: Config, overwrite: bool) -> int:
    """Initialize the app map file."""
    print("Initializing app map file...")
    app_map = engine.initialize(overwrite=overwrite)
    print(
        f"Successfully initialized app map file with {len(app_map.apps)} applications"
    )
    print(f"App map file: {config.app_map_file}")
    print(f"DSL directory: {config.dsl_directory}")
    return 0


def run_sync(engine: SyncEngine, config: Config, as_json: bool) -> int:
    """Run one reconciliation pass and print the report."""
    if not as_json:
        print_info(config)
        print("Starting sync...")

    try:
        stats, _ = engine.sync_all()
    except MappingNotFoundError as exc:
        logger.error("%s", exc)
        print(
            "\nerror: App map file not found.\n\n"
            "Please run initialization first:\n\n"
            "difync init\n\n"
            "Then you can run the sync command",
            file=sys.stderr,
        )
        return 1

    if as_json:
        print(json.dumps(report_to_json(stats), indent=2, ensure_ascii=False))
    else:
        print()
        print(format_sync_report(stats))

    return 1 if stats.failed else 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    try:
        file_config = build_config(load_hierarchical_config())
        config = load_config(
            base_url=args.base_url,
            dsl_dir=args.dsl_dir,
            app_map=args.app_map,
            dry_run=args.dry_run,
            mode=args.mode,
            force_direction=args.force_direction,
            verbose=args.verbose,
            insecure=args.insecure,
            file_config=file_config,
        )
        setup_logging(
            verbose=config.verbose,
            log_file=args.log_file or file_config.logging.file,
            log_format=args.log_format,
        )
    except (ValueError, OSError, yaml.YAMLError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    client = DifyClient(config)
    try:
        client.login()
    except DifyAPIError as exc:
        logger.error("Failed to login to Dify API: %s", exc)
        return 1

    engine = SyncEngine(client, config)
    try:
        if args.command == "init":
            return run_init(engine, config, args.overwrite)
        return run_sync(engine, config, args.json)
    except DifyncError as exc:
        logger.error("%s", exc)
        return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
