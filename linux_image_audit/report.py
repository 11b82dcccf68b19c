"""Rendering and export of audit findings."""
from __future__ import annotations

import json
import sys
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence, TextIO, Tuple

from colorama import Fore, Style

from .core import AuditResults, sort_account_findings
from .findings import AccountFinding, AccountFindingKind, TimestampFinding, TimestampFlag

PREVIEW_LINE_COUNT = 3

FLAG_WARNINGS = {
    TimestampFlag.MODIFIED_TODAY: ("Warning: Modified today", Fore.YELLOW),
    TimestampFlag.FUTURE_TIMESTAMP: ("Warning: Future timestamp detected", Fore.RED),
}

ACCOUNT_LABELS = {
    AccountFindingKind.SUSPICIOUS_UID0: "Suspicious UID 0 account",
    AccountFindingKind.UNEXPECTED_INTERACTIVE_SHELL: "Interactive shell for user",
    AccountFindingKind.NON_STANDARD_HOME: "Non-standard home directory",
    AccountFindingKind.DUPLICATE_UID: "Duplicate UID found",
    AccountFindingKind.DUPLICATE_GID: "Duplicate GID found",
}


def printable(text: str) -> str:
    """Escape undecodable filename bytes so *text* can be written as UTF-8."""

    return text.encode("utf-8", "backslashreplace").decode("utf-8")


def preview_lines(path: str, count: int = PREVIEW_LINE_COUNT) -> List[str]:
    """Return up to *count* leading lines of *path*; unreadable files give ``[]``."""

    lines: List[str] = []
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            for line in fh:
                lines.append(line.rstrip("\r\n"))
                if len(lines) >= count:
                    break
    except OSError:
        return []
    return lines


def describe_file_type(path: str) -> str:
    """Return a ``file(1)`` style description of *path* using :mod:`magic`."""

    try:
        import magic
    except ImportError as exc:  # pragma: no cover - dependency missing during tests
        raise RuntimeError(
            "The 'python-magic' package (and libmagic) is required to classify "
            "file types. Install it with 'pip install python-magic'."
        ) from exc

    try:
        return magic.from_file(path)
    except (OSError, magic.MagicException) as exc:
        raise RuntimeError(f"Unable to classify {path}: {exc}") from exc


class ConsoleReporter:
    """Render :class:`AuditResults` as text on a stream and an optional file.

    The output file receives the same lines without colour codes.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        output: Optional[TextIO] = None,
        *,
        verbose: bool = False,
        color: bool = True,
    ) -> None:
        self.stream = stream or sys.stdout
        self.output = output
        self.verbose = verbose
        self.color = color

    def emit(self, text: str = "", color: Optional[str] = None) -> None:
        text = printable(text)
        if color and self.color:
            self.stream.write(f"{color}{text}{Style.RESET_ALL}\n")
        else:
            self.stream.write(f"{text}\n")
        if self.output is not None:
            self.output.write(f"{text}\n")

    def render(self, results: AuditResults) -> None:
        self.render_header(results)
        self.render_accounts(results)
        self.render_timestamps(results)
        self.render_summary(results)

    def render_header(self, results: AuditResults) -> None:
        self.emit("=== Offline Image Audit Report ===", Fore.GREEN)
        self.emit(f"Target Directory: {results.root}")
        self.emit(f"Date: {results.started_at:%Y-%m-%d %H:%M:%S}")
        if results.start_date is not None:
            self.emit(f"Showing files modified after: {results.start_date:%Y-%m-%d %H:%M:%S}")
        self.emit()

    def render_accounts(self, results: AuditResults) -> None:
        self.emit("=== Suspicious User Accounts ===", Fore.GREEN)
        report = results.accounts
        if report is None:
            self.emit("Account check did not run.", Fore.RED)
            self.emit()
            return
        findings = sort_account_findings(report.findings)
        if not findings:
            self.emit("No account anomalies detected.")
        for finding in findings:
            self.emit(self.format_account_finding(finding), self._severity_color(finding.severity))
        if report.database is not None:
            self.emit(
                f"Account database {report.database.path} last modified "
                f"{report.database.modified_at:%Y-%m-%d %H:%M:%S}"
            )
        self.emit()

    @staticmethod
    def format_account_finding(finding: AccountFinding) -> str:
        label = ACCOUNT_LABELS[finding.kind]
        users = ", ".join(finding.subject_usernames)
        if finding.kind in {AccountFindingKind.DUPLICATE_UID, AccountFindingKind.DUPLICATE_GID}:
            return f"[{finding.severity}] {label}: {finding.detail} (accounts: {users})"
        if finding.kind is AccountFindingKind.SUSPICIOUS_UID0:
            return f"[{finding.severity}] {label}: {users}"
        return f"[{finding.severity}] {label}: {users} ({finding.detail})"

    def render_timestamps(self, results: AuditResults) -> None:
        report = results.timestamps
        if report is None:
            self.emit("Timestamp check did not run.", Fore.RED)
            self.emit()
            return
        for entry in report.entries:
            if not entry.findings:
                continue
            self.emit(f"Checking timestamps for {entry.entry.category_label}...", Fore.GREEN)
            for finding in entry.findings:
                self.render_timestamp_finding(finding)

    def render_timestamp_finding(self, finding: TimestampFinding) -> None:
        self.emit(f"File: {finding.path}")
        self.emit(f"  Modified: {finding.modified_at:%Y-%m-%d %H:%M:%S}")
        self.emit(f"  Days since modification: {finding.days_since_modification}")
        for flag in (TimestampFlag.MODIFIED_TODAY, TimestampFlag.FUTURE_TIMESTAMP):
            if flag in finding.flags:
                message, color = FLAG_WARNINGS[flag]
                self.emit(f"  {message}", color)
        if self.verbose:
            try:
                file_type = describe_file_type(finding.path)
            except RuntimeError as exc:
                file_type = f"unavailable ({exc})"
            self.emit(f"  File type: {file_type}")
            self.emit(f"  Preview (first {PREVIEW_LINE_COUNT} lines):")
            for line in preview_lines(finding.path):
                self.emit(f"    {line}")
        self.emit()

    def render_summary(self, results: AuditResults) -> None:
        self.emit("=== Summary ===", Fore.GREEN)
        kinds = Counter(finding.kind.value for finding in results.account_findings)
        for kind, count in sorted(kinds.items()):
            self.emit(f"{kind}: {count}")
        timestamp_findings = results.timestamp_findings
        anomalies = [finding for finding in timestamp_findings if finding.is_anomalous]
        self.emit(f"Timestamp findings: {len(timestamp_findings)} ({len(anomalies)} anomalous)")
        if results.soft_errors:
            self.emit(f"Unreadable paths skipped: {len(results.soft_errors)}", Fore.YELLOW)
        for error in results.errors:
            self.emit(f"Error: {error}", Fore.RED)
        if results.cancelled:
            self.emit("Scan interrupted; results are partial.", Fore.YELLOW)

    @staticmethod
    def _severity_color(severity: str) -> Optional[str]:
        if severity in {"CRITICAL", "HIGH"}:
            return Fore.RED
        if severity == "MEDIUM":
            return Fore.YELLOW
        return None


def findings_to_dict(results: AuditResults) -> Dict[str, Any]:
    """Return a JSON-serialisable view of *results*."""

    return {
        "root": results.root,
        "started_at": results.started_at.isoformat(sep=" "),
        "start_date": results.start_date.isoformat(sep=" ") if results.start_date else None,
        "cancelled": results.cancelled,
        "errors": [str(error) for error in results.errors],
        "account_findings": [finding.to_dict() for finding in results.account_findings],
        "timestamp_findings": [finding.to_dict() for finding in results.timestamp_findings],
        "soft_errors": [{"path": error.path, "message": error.message} for error in results.soft_errors],
    }


def export_findings_to_json(results: AuditResults, path: str) -> str:
    """Write *results* as JSON to *path*."""

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(findings_to_dict(results), fh, indent=2, default=str)
    return path


def export_findings_to_excel(results: AuditResults, path: str) -> str:
    """Write account and timestamp findings to an Excel workbook at *path*."""

    account_rows = (
        (finding.kind.value, finding.severity, ", ".join(finding.subject_usernames), finding.detail)
        for finding in sort_account_findings(results.account_findings)
    )
    timestamp_rows = (
        (
            finding.category_label,
            printable(finding.path),
            finding.modified_at.strftime("%Y-%m-%d %H:%M:%S"),
            finding.days_since_modification,
            finding.severity,
            ", ".join(sorted(flag.value for flag in finding.flags)),
        )
        for finding in results.timestamp_findings
    )
    sheets = [
        ("Accounts", ("Kind", "Severity", "Accounts", "Detail"), account_rows),
        (
            "Timestamps",
            ("Category", "Path", "Modified", "Days Since Modification", "Severity", "Flags"),
            timestamp_rows,
        ),
    ]
    return _export_sheets_to_excel(sheets, path, purpose="findings")


def _export_sheets_to_excel(
    sheets: Sequence[Tuple[str, Sequence[str], Iterable[Sequence[object]]]],
    path: str,
    *,
    purpose: str,
) -> str:
    """Write each ``(title, headers, rows)`` sheet using :mod:`openpyxl`."""

    try:
        from openpyxl import Workbook
        from openpyxl.utils import get_column_letter
    except ImportError as exc:  # pragma: no cover - dependency missing during tests
        raise RuntimeError(
            "The 'openpyxl' package is required to export "
            f"{purpose} to Excel. Install it with 'pip install openpyxl'."
        ) from exc

    workbook = Workbook()
    workbook.remove(workbook.active)

    for title, headers, rows in sheets:
        sheet = workbook.create_sheet(title=title)
        sheet.append(list(headers))
        column_widths = [len(header) for header in headers]

        for row in rows:
            values = list(row)
            sheet.append(values)
            for idx, value in enumerate(values):
                column_widths[idx] = max(column_widths[idx], len(str(value)))

        for idx, width in enumerate(column_widths, start=1):
            column_letter = get_column_letter(idx)
            sheet.column_dimensions[column_letter].width = min(width + 2, 60)

    workbook.save(path)
    return path


__all__ = [
    "ConsoleReporter",
    "describe_file_type",
    "export_findings_to_excel",
    "export_findings_to_json",
    "findings_to_dict",
    "preview_lines",
    "printable",
]
