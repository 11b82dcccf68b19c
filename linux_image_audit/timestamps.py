"""Timestamp anomaly detection for files found under manifest entries."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from .findings import FileArtifact, PathManifestEntry, SoftError, TimestampFinding, TimestampFlag
from .rules import RuleRegistry
from .walker import walk_files

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class ScanMode(str, Enum):
    """Which timestamp findings are returned to the caller."""

    ALL = "all"
    ANOMALIES_ONLY = "anomalies-only"


@dataclass
class EntryReport:
    """Findings gathered from walking one manifest entry."""

    entry: PathManifestEntry
    findings: List[TimestampFinding] = field(default_factory=list)
    soft_errors: List[SoftError] = field(default_factory=list)
    completed: bool = True


TimestampRule = Callable[[datetime, datetime, int], bool]

TIMESTAMP_RULES: RuleRegistry[TimestampRule] = RuleRegistry("timestamp")
timestamp_rule = TIMESTAMP_RULES.register


def days_since_modification(modified_at: datetime, now: datetime) -> int:
    """Whole days elapsed between *modified_at* and *now*, truncated toward zero.

    Both values are compared as epoch seconds, so a daylight saving change
    between them does not shift the count. A file stamped less than a day in
    the future counts as day 0.
    """

    return int((now.timestamp() - modified_at.timestamp()) / SECONDS_PER_DAY)


@timestamp_rule(TimestampFlag.MODIFIED_TODAY)
def modified_today(modified_at: datetime, now: datetime, days: int) -> bool:
    return days == 0


@timestamp_rule(TimestampFlag.FUTURE_TIMESTAMP)
def future_timestamp(modified_at: datetime, now: datetime, days: int) -> bool:
    # year granularity only
    return modified_at.year > now.year


def analyze_artifact(
    artifact: FileArtifact,
    now: datetime,
    category_label: str,
    cutoff: Optional[datetime] = None,
    mode: ScanMode = ScanMode.ALL,
) -> Optional[TimestampFinding]:
    """Return a finding for *artifact*, or ``None`` when it is filtered out.

    Files modified at or before *cutoff* are suppressed entirely. In
    :attr:`ScanMode.ANOMALIES_ONLY` files without any flag are suppressed too.
    """

    modified_at = artifact.modified_at
    if cutoff is not None and modified_at <= cutoff:
        return None
    days = days_since_modification(modified_at, now)
    flags = frozenset(flag for flag, rule in TIMESTAMP_RULES.items() if rule(modified_at, now, days))
    if mode is ScanMode.ANOMALIES_ONLY and not flags:
        return None
    return TimestampFinding(
        path=artifact.path,
        modified_at=modified_at,
        days_since_modification=days,
        category_label=category_label,
        flags=flags,
    )


def analyze_entry(
    root: str,
    entry: PathManifestEntry,
    now: datetime,
    cutoff: Optional[datetime] = None,
    mode: ScanMode = ScanMode.ALL,
    cancel: Optional[threading.Event] = None,
) -> EntryReport:
    """Walk one manifest entry and analyse every file found beneath it."""

    report = EntryReport(entry=entry)
    for artifact in walk_files(root, entry.relative_path, errors=report.soft_errors, cancel=cancel):
        finding = analyze_artifact(artifact, now, entry.category_label, cutoff, mode)
        if finding is not None:
            report.findings.append(finding)
    if cancel is not None and cancel.is_set():
        report.completed = False
    logger.debug(
        "Checked %s (%s): %d finding(s), %d soft error(s)",
        entry.relative_path,
        entry.category_label,
        len(report.findings),
        len(report.soft_errors),
    )
    return report


__all__ = [
    "EntryReport",
    "ScanMode",
    "TIMESTAMP_RULES",
    "TimestampRule",
    "analyze_artifact",
    "analyze_entry",
    "days_since_modification",
    "future_timestamp",
    "modified_today",
    "timestamp_rule",
]
