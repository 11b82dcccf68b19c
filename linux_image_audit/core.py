"""Core orchestration for the offline image audit."""
from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Union

from .accounts import AccountAuditReport, audit_accounts
from .config import DEFAULT_MANIFEST, DEFAULT_MAX_WORKERS, AuditConfig
from .errors import ConfigurationError
from .findings import SEVERITY_ORDER, AccountFinding, PathManifestEntry, SoftError, TimestampFinding
from .timestamps import EntryReport, ScanMode, analyze_entry

logger = logging.getLogger(__name__)


def _account_sort_key(finding: AccountFinding) -> tuple[int, str, str, str]:
    """Return a tuple used to order account findings consistently."""

    severity_rank = SEVERITY_ORDER.get(finding.severity, len(SEVERITY_ORDER))
    return (severity_rank, finding.kind.value, ",".join(finding.subject_usernames), finding.detail)


def _timestamp_sort_key(finding: TimestampFinding) -> tuple[int, str]:
    severity_rank = SEVERITY_ORDER.get(finding.severity, len(SEVERITY_ORDER))
    return (severity_rank, finding.path)


def sort_account_findings(findings: Iterable[AccountFinding]) -> List[AccountFinding]:
    return sorted(findings, key=_account_sort_key)


def sort_timestamp_findings(findings: Iterable[TimestampFinding]) -> List[TimestampFinding]:
    return sorted(findings, key=_timestamp_sort_key)


@dataclass
class TimestampAuditReport:
    """Per-entry results of the persistence timestamp check.

    ``entries`` only holds entries whose walk ran to completion, in manifest
    order. ``soft_errors`` covers every entry that was started.
    """

    entries: List[EntryReport]
    soft_errors: List[SoftError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def findings(self) -> List[TimestampFinding]:
        return [finding for entry in self.entries for finding in entry.findings]

    @property
    def anomalies(self) -> List[TimestampFinding]:
        return [finding for finding in self.findings if finding.is_anomalous]


@dataclass
class AuditResults:
    """Aggregated output of both analysers for one image."""

    root: str
    started_at: datetime
    start_date: Optional[datetime] = None
    accounts: Optional[AccountAuditReport] = None
    timestamps: Optional[TimestampAuditReport] = None
    errors: List[Exception] = field(default_factory=list)
    cancelled: bool = False

    @property
    def account_findings(self) -> List[AccountFinding]:
        return self.accounts.findings if self.accounts else []

    @property
    def timestamp_findings(self) -> List[TimestampFinding]:
        return self.timestamps.findings if self.timestamps else []

    @property
    def soft_errors(self) -> List[SoftError]:
        return self.timestamps.soft_errors if self.timestamps else []


def run_timestamp_audit(
    root: str,
    manifest: Sequence[PathManifestEntry] = DEFAULT_MANIFEST,
    *,
    now: Optional[datetime] = None,
    cutoff: Optional[datetime] = None,
    mode: ScanMode = ScanMode.ALL,
    max_workers: int = DEFAULT_MAX_WORKERS,
    cancel: Optional[threading.Event] = None,
) -> TimestampAuditReport:
    """Walk every manifest entry on a bounded thread pool and analyse each file.

    Each entry is buffered by its own worker and merged only once its walk
    completes. When *cancel* is set (or the caller is interrupted) in-flight
    walks stop at the next file, pending entries are dropped and the entries
    finished so far are returned with ``cancelled=True``.
    """

    if max_workers < 1:
        raise ConfigurationError("max_workers must be at least 1")
    if not os.path.isdir(root):
        raise ConfigurationError(f"Directory {root} does not exist")

    now = now or datetime.now()
    cancel = cancel or threading.Event()
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="image-walk")
    futures: Dict[Future, int] = {
        executor.submit(analyze_entry, root, entry, now, cutoff, mode, cancel): index
        for index, entry in enumerate(manifest)
    }
    try:
        for future in as_completed(futures):
            future.result()
    except KeyboardInterrupt:
        logger.warning("Interrupted; stopping timestamp analysis")
        cancel.set()
    finally:
        executor.shutdown(wait=True, cancel_futures=True)

    reports: List[EntryReport] = []
    soft_errors: List[SoftError] = []
    for future, _ in sorted(futures.items(), key=lambda item: item[1]):
        if future.cancelled():
            continue
        report = future.result()
        soft_errors.extend(report.soft_errors)
        if report.completed:
            reports.append(report)

    return TimestampAuditReport(entries=reports, soft_errors=soft_errors, cancelled=cancel.is_set())


def collect_audit_results(
    config: AuditConfig, cancel: Optional[threading.Event] = None
) -> AuditResults:
    """Run the account and timestamp analysers in parallel.

    A missing root raises :class:`ConfigurationError` before anything is
    scanned. A fatal error in one analyser is recorded in
    :attr:`AuditResults.errors` and never stops the other one.
    """

    config.validate()
    now = config.now or datetime.now()
    cancel = cancel or threading.Event()
    results = AuditResults(root=config.root, started_at=now, start_date=config.start_date)
    logger.info("Starting audit of %s", config.root)

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="image-audit") as executor:
        account_future = executor.submit(audit_accounts, config.root, config.account_policy)
        timestamp_future = executor.submit(
            run_timestamp_audit,
            config.root,
            config.manifest,
            now=now,
            cutoff=config.start_date,
            mode=config.mode,
            max_workers=config.max_workers,
            cancel=cancel,
        )
        pending = {account_future, timestamp_future}
        while pending:
            try:
                _, pending = wait(pending)
            except KeyboardInterrupt:
                logger.warning("Interrupted; waiting for running checks to stop")
                cancel.set()

    try:
        results.accounts = account_future.result()
    except (ConfigurationError, OSError) as exc:
        logger.error("Account check failed: %s", exc)
        results.errors.append(exc)

    try:
        results.timestamps = timestamp_future.result()
    except (ConfigurationError, OSError) as exc:
        logger.error("Timestamp check failed: %s", exc)
        results.errors.append(exc)

    results.cancelled = cancel.is_set()
    logger.info(
        "Audit complete: %d account finding(s), %d timestamp finding(s), %d soft error(s)",
        len(results.account_findings),
        len(results.timestamp_findings),
        len(results.soft_errors),
    )
    return results


def collect_findings(config: AuditConfig) -> List[Union[AccountFinding, TimestampFinding]]:
    """Run the audit and return every finding, account findings first."""

    results = collect_audit_results(config)
    return [
        *sort_account_findings(results.account_findings),
        *sort_timestamp_findings(results.timestamp_findings),
    ]


__all__ = [
    "AuditResults",
    "TimestampAuditReport",
    "collect_audit_results",
    "collect_findings",
    "run_timestamp_audit",
    "sort_account_findings",
    "sort_timestamp_findings",
]
