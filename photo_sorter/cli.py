"""CLI with subcommands: organize, scan, test-exif, formats."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Optional

from .core.config import (
    AVAILABLE_DATE_FORMATS,
    DEFAULT_DATE_FORMAT,
    DEFAULT_VIDEO_EXTENSIONS,
    ConfigurationError,
    DuplicateStrategy,
    OrganizerConfig,
    format_date,
    load_config,
)
from .logging.rich_logger import QuietProgressReporter, RichProgressReporter, configure_logging


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="photo-sorter",
        description="Organize photos and videos into date-based folders.",
    )

    # Global options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Configuration file (default: search config.yaml locations)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ============ ORGANIZE command ============
    organize_parser = subparsers.add_parser(
        "organize",
        help="Move or copy media files into date-based folders",
    )
    organize_parser.add_argument(
        "-s", "--source",
        type=Path,
        default=None,
        help="Source directory (overrides config)",
    )
    organize_parser.add_argument(
        "-t", "--target",
        type=Path,
        default=None,
        help="Target directory (default: organize in place)",
    )
    organize_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without touching any file",
    )
    mode = organize_parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--copy",
        dest="move_files",
        action="store_const",
        const=False,
        default=None,
        help="Copy files, leaving the originals",
    )
    mode.add_argument(
        "--move",
        dest="move_files",
        action="store_const",
        const=True,
        help="Move files (default)",
    )
    organize_parser.add_argument(
        "--duplicates",
        type=str,
        choices=[s.value for s in DuplicateStrategy],
        default=None,
        help="How to handle an occupied destination (default: rename)",
    )
    organize_parser.add_argument(
        "--date-format",
        type=str,
        default=None,
        help=f"Directory pattern (default: {DEFAULT_DATE_FORMAT}, see 'formats')",
    )
    organize_parser.add_argument(
        "-w", "-j", "--workers",
        dest="workers",
        type=int,
        default=None,
        help="Number of worker threads (default: 4)",
    )
    organize_parser.add_argument(
        "--max-files",
        type=int,
        default=None,
        help="Stop after this many files (0 = unlimited)",
    )
    organize_parser.add_argument(
        "--backup",
        action="store_true",
        help="Leave a FILE.backup copy before moving",
    )

    # ============ SCAN command ============
    scan_parser = subparsers.add_parser(
        "scan",
        help="Dry run: show what organize would do",
    )
    scan_parser.add_argument(
        "directory",
        type=Path,
        nargs="?",
        help="Directory to scan (default: configured source)",
    )

    # ============ TEST-EXIF command ============
    exif_parser = subparsers.add_parser(
        "test-exif",
        help="Show the date tags of a file and the date it resolves to",
    )
    exif_parser.add_argument(
        "file",
        type=Path,
        help="Image file to inspect",
    )

    # ============ FORMATS command ============
    subparsers.add_parser(
        "formats",
        help="List the predefined date formats",
    )

    return parser


# ============ Helpers ============

def build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Translate organize flags into a nested config override dict.

    Flags that were not given map to None and are ignored by load_config.
    """
    return {
        "source_directory": args.source,
        "target_directory": args.target,
        "date_format": args.date_format,
        "processing": {
            "move_files": args.move_files,
            "duplicate_handling": args.duplicates,
            "create_backups": True if args.backup else None,
        },
        "performance": {
            "worker_threads": args.workers,
        },
        "security": {
            "dry_run": True if args.dry_run else None,
            "max_files_per_run": args.max_files,
        },
    }


def setup_logging(args: argparse.Namespace, config: OrganizerConfig, reporter) -> None:
    if args.verbose:
        level = "debug"
    elif args.quiet:
        level = "error"
    else:
        level = config.logging.level
    console = getattr(reporter, "console", None)
    configure_logging(level, config.logging.file_path, console=console)


def describe_config(config: OrganizerConfig) -> dict[str, Any]:
    return {
        "Source": str(config.source_directory),
        "Target": str(config.target_root) + (" (in place)" if config.is_in_place else ""),
        "Date Format": config.date_format,
        "Mode": "move" if config.processing.move_files else "copy",
        "Duplicates": config.processing.duplicate_handling.value,
        "Workers": config.performance.worker_threads,
        "Dry Run": config.security.dry_run,
    }


def run_organizer(config: OrganizerConfig, args: argparse.Namespace, reporter, simulate: bool) -> int:
    from .services.processor import FileOrganizer

    progress = reporter if config.performance.show_progress else None
    organizer = FileOrganizer(config, progress=progress, on_outcome=reporter.print_outcome)
    stats = organizer.simulate() if simulate else organizer.organize()

    reporter.print_stats(stats)
    if args.verbose:
        reporter.print_file_types(stats)
    reporter.print_errors(stats)

    # Per-file failures are reported, not fatal
    return 0


# ============ Command Handlers ============

def cmd_organize(args: argparse.Namespace, reporter) -> int:
    """Handle the organize command."""
    try:
        config = load_config(args.config, overrides=build_overrides(args))
    except ConfigurationError as e:
        reporter.error(f"Configuration error: {e}")
        return 1

    setup_logging(args, config, reporter)

    reporter.print_header("photo-sorter organize")
    reporter.print_config(describe_config(config))

    return run_organizer(config, args, reporter, simulate=config.security.dry_run)


def cmd_scan(args: argparse.Namespace, reporter) -> int:
    """Handle the scan command."""
    overrides = {
        "source_directory": args.directory,
        "security": {"dry_run": True},
    }
    try:
        config = load_config(args.config, overrides=overrides)
    except ConfigurationError as e:
        reporter.error(f"Configuration error: {e}")
        return 1

    setup_logging(args, config, reporter)

    reporter.print_header("photo-sorter scan")
    reporter.print_config(describe_config(config))

    return run_organizer(config, args, reporter, simulate=True)


def cmd_test_exif(args: argparse.Namespace, reporter) -> int:
    """Handle the test-exif command."""
    from .engines.metadata import DateResolutionError, DateResolver, ExifDateExtractor

    path: Path = args.file
    if not path.is_file():
        reporter.error(f"File not found: {path}")
        return 1

    configure_logging("debug" if args.verbose else "warn", console=getattr(reporter, "console", None))

    extractor = ExifDateExtractor()
    reporter.print_header(f"File: {path.name}")

    try:
        tags = extractor.read_tags(path)
    except OSError as e:
        reporter.warning(f"No readable EXIF data: {e}")
        tags = {}

    if tags:
        reporter.print_config(tags, title="EXIF Date Tags")
    else:
        reporter.info("No EXIF date tags found")

    resolver = DateResolver(extractor=extractor, video_extensions=DEFAULT_VIDEO_EXTENSIONS)
    try:
        resolved = resolver.resolve(path)
    except DateResolutionError as e:
        reporter.error(f"Could not resolve date: {e.reason}")
        return 1

    reporter.print_config({
        "Date": resolved.value.isoformat(sep=" "),
        "Source": resolved.source.value + (f" ({resolved.tag})" if resolved.tag else ""),
        "Folder": format_date(resolved.value, DEFAULT_DATE_FORMAT),
    }, title="Resolved Date")
    return 0


def cmd_formats(args: argparse.Namespace, reporter) -> int:
    """Handle the formats command."""
    reporter.print_config(
        {
            option.pattern: f"{option.name}: {option.description} (e.g. {option.example})"
            for option in AVAILABLE_DATE_FORMATS
        },
        title="Date Formats",
    )
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Create reporter
    if getattr(args, "quiet", False):
        reporter = QuietProgressReporter()
    else:
        reporter = RichProgressReporter(verbose=getattr(args, "verbose", False))

    # No command specified - show help
    if not args.command:
        parser.print_help()
        return 0

    # Dispatch to command handler
    try:
        match args.command:
            case "organize":
                return cmd_organize(args, reporter)
            case "scan":
                return cmd_scan(args, reporter)
            case "test-exif":
                return cmd_test_exif(args, reporter)
            case "formats":
                return cmd_formats(args, reporter)
            case _:
                reporter.error(f"Unknown command: {args.command}")
                return 1

    except KeyboardInterrupt:
        # Clean exit on Ctrl+C - no stack trace
        return 130
    except Exception as e:
        reporter.error(f"Error: {e}")
        if getattr(args, "verbose", False):
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
