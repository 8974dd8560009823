#!/usr/bin/env python3
"""
rulebook command line interface

Commands:
  rulebook settings     Open the repository settings screen (default)
  rulebook list         Print the configured repositories
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from rulebook import __version__
from rulebook.config import Config, Registry


logging.getLogger().setLevel(logging.ERROR)

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "rulebook.log"


def _configured_level() -> int:
    name = (Config.get("rulebook_log_level") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(debug: bool = False) -> Path | None:
    """Send the package log to a file; the terminal belongs to the UI."""
    level = logging.DEBUG if debug else _configured_level()
    package_logger = logging.getLogger("rulebook")
    package_logger.setLevel(level)

    log_path = Config.log_dir() / LOG_FILE_NAME
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        logger.exception("Failed to create log directory at %s", log_path.parent)
        return None

    resolved = str(log_path.resolve())
    for handler in package_logger.handlers:
        if isinstance(handler, logging.FileHandler) and getattr(handler, "baseFilename", None) == resolved:
            return log_path

    try:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        logger.exception("Failed to attach log handler at %s", log_path)
        return None
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    package_logger.addHandler(file_handler)
    package_logger.propagate = False
    return log_path


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rulebook",
        description="rulebook - manage local and GitHub rule repositories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rulebook                      # open the settings screen
  rulebook settings --debug     # same, with debug logging
  rulebook list                 # print configured repositories
  rulebook --config ./alt.json list
        """,
    )
    parser.add_argument("--config", type=str, help="Path to custom config file")
    parser.add_argument("--debug", action="store_true", help="Write debug output to the log file")
    parser.add_argument("-v", "--version", action="version", version=f"rulebook {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("settings", help="Open the repository settings screen")
    subparsers.add_parser("list", help="Print the configured repositories")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "settings"
    return args


def print_repositories(registry: Registry, console: Console) -> None:
    if not len(registry):
        console.print("[dim]No repositories configured. Run [cyan]rulebook settings[/] to add one.[/]")
        return

    table = Table(show_header=True, header_style="bold", show_lines=False, pad_edge=False)
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Path", style="white")
    table.add_column("Remote", style="white")
    table.add_column("Branch", style="dim")
    for entry in registry:
        table.add_row(
            entry.name,
            entry.type.display_name,
            entry.path,
            entry.remote_url or "",
            entry.branch or ("default" if entry.is_remote else ""),
        )
    console.print(table)


def main(argv: list[str] | None = None) -> None:
    args = parse_arguments(argv)
    console = Console()

    if args.config:
        Config.set_config_file(args.config)

    log_path = configure_logging(debug=args.debug)
    logger.info("rulebook %s started (%s), log at %s", __version__, args.command, log_path)

    registry = Registry.load()

    if args.command == "list":
        print_repositories(registry, console)
        return

    from rulebook.interface.settings.app import run_settings

    try:
        run_settings(registry)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
