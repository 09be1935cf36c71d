"""CLI entry point for incremental Flickr backups."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from flickr_backr.backup_engine import BackupEngine
from flickr_backr.config import LOG_FILENAME, Settings, load_credentials
from flickr_backr.errors import ConfigError, FatalError
from flickr_backr.flickr_client import FlickrClient
from flickr_backr.models import RunResult


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flickr-backr",
        description="Incrementally back up a directory tree of photos and videos to Flickr photosets.",
    )
    parser.add_argument(
        "-d", "--directory",
        default=".",
        help="Directory to back up (default: current directory)",
    )
    parser.add_argument(
        "-t",
        dest="minutes",
        type=float,
        default=1,
        help="Minutes allowed for new uploads (default: 1)",
    )
    parser.add_argument(
        "-x",
        dest="dry_run",
        action="store_true",
        help="Dry run: log what would be uploaded without touching Flickr",
    )
    parser.add_argument(
        "-s",
        dest="single",
        action="store_true",
        help="Back up the directory itself as one photoset instead of one per subdirectory",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    return parser


def _setup_logging(verbose: bool, console: Console, log_filename: str) -> None:
    """Configure dual logging: rich console + plain-text log file (appended)."""
    log_level = logging.DEBUG if verbose else logging.INFO
    plain_format = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"

    root = logging.getLogger()
    root.setLevel(log_level)

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(log_level)
    root.addHandler(rich_handler)

    file_handler = logging.FileHandler(log_filename, mode="a", encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(plain_format, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(file_handler)

    logging.getLogger("flickrapi").setLevel(logging.WARNING)


def _print_summary(console: Console, result: RunResult, elapsed: float, dry_run: bool) -> None:
    """Print a rich summary panel at the end of a run."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Photosets", str(len(result.collections)))
    table.add_row("Scanned", str(result.scanned))
    table.add_row("Already on Flickr", str(result.skipped))
    table.add_row("Unsupported", str(result.unsupported))
    table.add_row("Would upload" if dry_run else "Submitted", str(result.submitted))
    table.add_row("Uploaded", f"[green]{result.uploaded}[/green]")
    failed_style = "red bold" if result.failed else "green"
    table.add_row("Failed", f"[{failed_style}]{len(result.failed)}[/{failed_style}]")
    table.add_row("Elapsed", f"{elapsed:.1f}s")

    panel_style = "green" if result.all_ok else "red"
    title = "Backup Complete" if result.all_ok else "Backup Complete (with failures)"
    if result.out_of_time:
        title += " – time budget reached"
    console.print()
    console.print(Panel(table, title=title, border_style=panel_style, padding=(1, 2)))

    if result.failed:
        console.print()
        console.print(Text("Failed files (skipped on future runs):", style="red bold"))
        for f in result.failed:
            console.print(f"  - {f}", style="red")


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _build_parser().parse_args(argv)

    use_color = sys.stdout.isatty() and not args.no_color and not os.getenv("NO_COLOR")
    console = Console(force_terminal=use_color, no_color=not use_color)
    _setup_logging(args.verbose, console, LOG_FILENAME)

    settings = Settings(time_budget_minutes=args.minutes, dry_run=args.dry_run)
    if args.dry_run:
        logging.info("Dry-run mode: nothing will be uploaded.")

    try:
        client = FlickrClient(load_credentials())
    except ConfigError as e:
        logging.error("%s", e)
        return 1

    engine = BackupEngine(client, settings)
    start = time.monotonic()
    try:
        result = engine.run(args.directory, single=args.single)
    except FatalError as e:
        logging.error("Aborting: %s", e)
        return 1
    elapsed = time.monotonic() - start

    _print_summary(console, result, elapsed, args.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
