"""Command line interface for the offline image audit tool."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, TextIO

from colorama import Fore, Style, just_fix_windows_console

from .accounts import AccountPolicy
from .config import DEFAULT_MANIFEST, DEFAULT_MAX_WORKERS, AuditConfig, load_manifest, parse_start_date
from .core import collect_audit_results
from .errors import ConfigurationError
from .report import ConsoleReporter, export_findings_to_excel, export_findings_to_json
from .timestamps import ScanMode

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
EXIT_INTERRUPTED = 130


class ColorFormatter(logging.Formatter):
    """Formatter that wraps each record in a colour matching its level."""

    LEVEL_COLORS = {
        logging.DEBUG: Style.DIM,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        return f"{color}{message}{Style.RESET_ALL}" if color else message


def setup_logging(
    *, debug: bool = False, output: Optional[TextIO] = None, color: bool = True
) -> logging.Logger:
    """Configure the package logger for console use, mirroring to *output*."""

    logger = logging.getLogger("linux_image_audit")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False

    console = logging.StreamHandler(sys.stderr)
    formatter_cls = ColorFormatter if color else logging.Formatter
    console.setFormatter(formatter_cls(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(console)

    if output is not None:
        mirror = logging.StreamHandler(output)
        mirror.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger.addHandler(mirror)
    return logger


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Return parsed command line arguments."""

    parser = argparse.ArgumentParser(
        description=(
            "Audit a mounted or extracted Linux filesystem image for account "
            "tampering and persistence artifacts."
        ),
        epilog=(
            "Example: %(prog)s -d /mnt/root -o timestamps.txt\n"
            "         %(prog)s -d /mnt/root -s '2024-01-01 15:30:00'"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-d", "--directory", required=True, dest="root", help="Target directory to analyze"
    )
    parser.add_argument("-o", "--output", help="Save results to file")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show a content preview and file type for every reported file",
    )
    parser.add_argument(
        "-s",
        "--start-date",
        help="Show files modified after this date/time. Format: 'YYYY-MM-DD HH:MM:SS'",
    )
    parser.add_argument(
        "--anomalies-only",
        action="store_true",
        help="Only report files that are modified today or future-dated",
    )
    parser.add_argument(
        "--exempt-root",
        action="store_true",
        help="Do not report the canonical 'root' account as a suspicious UID 0 account",
    )
    parser.add_argument("--manifest", help="File of 'path:label' lines replacing the built-in path list")
    parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help=f"Maximum concurrent path walks (default: {DEFAULT_MAX_WORKERS})",
    )
    parser.add_argument("--json", dest="json_path", help="Optional path to export findings as JSON")
    parser.add_argument(
        "--excel",
        dest="excel_path",
        help="Optional path to export findings as an Excel workbook (.xlsx)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point used by ``python -m linux_image_audit``."""

    args = parse_args(argv)
    just_fix_windows_console()

    try:
        start_date = parse_start_date(args.start_date) if args.start_date else None
        manifest = load_manifest(args.manifest) if args.manifest else DEFAULT_MANIFEST
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    config = AuditConfig(
        root=args.root,
        manifest=manifest,
        start_date=start_date,
        mode=ScanMode.ANOMALIES_ONLY if args.anomalies_only else ScanMode.ALL,
        max_workers=args.workers,
        account_policy=AccountPolicy(exempt_superuser=args.exempt_root),
    )
    try:
        config.validate()
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        output = (
            open(args.output, "w", encoding="utf-8", errors="backslashreplace")
            if args.output
            else None
        )
    except OSError as exc:
        print(f"Error: Unable to open {args.output}: {exc.strerror or exc}", file=sys.stderr)
        return 1

    logger = setup_logging(debug=args.debug, output=output, color=sys.stderr.isatty())
    try:
        results = collect_audit_results(config)
        reporter = ConsoleReporter(
            sys.stdout, output, verbose=args.verbose, color=sys.stdout.isatty()
        )
        reporter.render(results)
        if args.output:
            logger.info("Results saved to %s", args.output)
    finally:
        if output is not None:
            for handler in list(logger.handlers):
                if getattr(handler, "stream", None) is output:
                    logger.removeHandler(handler)
            output.close()

    if args.json_path:
        export_findings_to_json(results, args.json_path)
        print(f"Findings exported to {args.json_path}")

    if args.excel_path:
        try:
            path = export_findings_to_excel(results, args.excel_path)
        except RuntimeError as exc:
            print(f"Failed to export Excel report: {exc}", file=sys.stderr)
        else:
            print(f"Excel report written to {path}")

    if results.errors:
        return 1
    if results.cancelled:
        return EXIT_INTERRUPTED
    return 0


__all__ = ["ColorFormatter", "main", "parse_args", "setup_logging"]
