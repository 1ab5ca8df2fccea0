# src/ghupgrade/cli.py

import argparse
import importlib.metadata
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from ghupgrade import log_utils
from ghupgrade.config import load_config
from ghupgrade.exceptions import ConfigurationError, TransportError
from ghupgrade.upgrade import ReleaseRecord, UpgradeManager


def get_version() -> str:
    """
    Return the installed ghupgrade version, or "unknown" when running from a source checkout.
    """
    try:
        return importlib.metadata.version("ghupgrade")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _load_config_or_none(config_path: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Load configuration, logging the failure instead of raising.

    Returns:
        dict[str, Any] | None: The merged configuration, or None if it could not be loaded or validated.
    """
    try:
        return load_config(config_path)
    except ConfigurationError as error:
        log_utils.logger.error(f"Failed to load configuration: {error}")
        return None


def _apply_logging_config(config: Dict[str, Any], cli_level: Optional[str]) -> None:
    """
    Apply LOG_LEVEL and LOG_DIR from the configuration.

    A level given on the command line wins over the configured one.
    """
    if config.get("LOG_LEVEL") and not cli_level:
        log_utils.set_log_level(config["LOG_LEVEL"])
    if config.get("LOG_DIR"):
        log_utils.add_file_logging(
            Path(config["LOG_DIR"]), cli_level or config.get("LOG_LEVEL") or "INFO"
        )


def _log_records(records: List[ReleaseRecord]) -> None:
    """Log one line per release record, followed by its changelog entries."""
    if not records:
        log_utils.logger.info("No module releases found.")
        return
    for record in records:
        log_utils.logger.info(f"{record.module_name} {record.version_available}")
        if not record.changelog:
            continue
        for entry in record.changelog.get(record.version_available, []):
            if entry:
                log_utils.logger.info(f"  - {entry}")


def _handle_check(manager: UpgradeManager) -> int:
    try:
        records = manager.check_for_updates()
    except TransportError as error:
        log_utils.logger.error(str(error))
        return 1
    _log_records(records)
    return 0


def _handle_list(manager: UpgradeManager) -> int:
    _log_records(manager.read_snapshot())
    return 0


def _handle_download(manager: UpgradeManager, module_name: str) -> int:
    """
    Download one module and report the outcome.

    Returns:
        int: 0 on success or when the module has nothing pending, 1 on failure.
    """
    try:
        result = manager.download(module_name)
    except TransportError as error:
        # Only raised when DEBUG_MODE is enabled
        log_utils.logger.error(str(error))
        return 1

    if result.was_skipped:
        log_utils.logger.info(
            f"{module_name} is not in the last listing; run 'ghupgrade check' first."
        )
        return 0
    if not result.success:
        log_utils.logger.error(
            f"Download of {module_name} failed ({result.error_type}): {result.error_message}"
        )
        return 1
    return 0


def _handle_cache(manager: UpgradeManager) -> int:
    if manager.clear_cache():
        log_utils.logger.info("Caches cleared.")
        return 0
    log_utils.logger.error("Failed to clear caches.")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ghupgrade",
        description="ghupgrade - GitHub release upgrade manager for modules",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Configuration file to use instead of the default location",
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        help="Console log level (DEBUG, INFO, WARNING, ERROR)",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser(
        "check",
        help="Resolve the latest release of every configured module",
        description="Query GitHub for each configured repository and save the listing.",
    )
    subparsers.add_parser(
        "list",
        help="Show the last saved listing",
        description="Print the listing saved by the last 'check' without any network access.",
    )

    download_parser = subparsers.add_parser(
        "download",
        help="Download and install one module",
        description="Download the archive of a module from the last listing and install it.",
    )
    download_parser.add_argument("module", metavar="MODULE", help="Module name")

    cache_parser = subparsers.add_parser(
        "cache",
        help="Manage cached data",
        description="Clear cached GitHub API responses.",
    )
    cache_subparsers = cache_parser.add_subparsers(dest="cache_command", required=True)
    cache_subparsers.add_parser(
        "clear",
        help="Clear cached API responses",
        description="Delete every cached GitHub API response.",
    )

    subparsers.add_parser("version", help="Display ghupgrade version")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the ghupgrade command-line interface.

    Parses arguments and dispatches the check, list, download, cache and
    version subcommands. Exits with status 1 when the configuration cannot be
    loaded or a download fails.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        log_utils.set_log_level(args.log_level)

    if args.command == "version":
        log_utils.logger.info(f"ghupgrade v{get_version()}")
        return
    if args.command is None:
        parser.print_help()
        return

    config = _load_config_or_none(args.config)
    if config is None:
        sys.exit(1)
    _apply_logging_config(config, args.log_level)

    manager = UpgradeManager(config)
    try:
        if args.command == "check":
            exit_code = _handle_check(manager)
        elif args.command == "list":
            exit_code = _handle_list(manager)
        elif args.command == "download":
            exit_code = _handle_download(manager, args.module)
        elif args.command == "cache":
            exit_code = _handle_cache(manager)
        else:
            parser.print_help()
            exit_code = 0
    finally:
        manager.close()

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
