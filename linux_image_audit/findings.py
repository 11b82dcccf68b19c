"""Data models for offline image audit records and findings."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Tuple


SEVERITY_ORDER = {
    "CRITICAL": 0,
    "ERROR": 1,
    "HIGH": 2,
    "MEDIUM": 3,
    "LOW": 4,
    "WARNING": 5,
    "INFO": 6,
}


class AccountFindingKind(str, Enum):
    """Rules evaluated by the account anomaly detector."""

    DUPLICATE_UID = "DuplicateUID"
    DUPLICATE_GID = "DuplicateGID"
    SUSPICIOUS_UID0 = "SuspiciousUID0"
    UNEXPECTED_INTERACTIVE_SHELL = "UnexpectedInteractiveShell"
    NON_STANDARD_HOME = "NonStandardHome"


class TimestampFlag(str, Enum):
    """Anomaly markers attached to a :class:`TimestampFinding`."""

    MODIFIED_TODAY = "ModifiedToday"
    FUTURE_TIMESTAMP = "FutureTimestamp"


ACCOUNT_SEVERITY = {
    AccountFindingKind.SUSPICIOUS_UID0: "CRITICAL",
    AccountFindingKind.DUPLICATE_UID: "HIGH",
    AccountFindingKind.UNEXPECTED_INTERACTIVE_SHELL: "MEDIUM",
    AccountFindingKind.DUPLICATE_GID: "LOW",
    AccountFindingKind.NON_STANDARD_HOME: "LOW",
}


@dataclass(frozen=True)
class AccountRecord:
    """One parsed line of an ``/etc/passwd`` style account database."""

    username: str
    password: str
    uid: int
    gid: int
    comment: str
    home_directory: str
    shell: str
    line_number: int = 0


@dataclass(frozen=True)
class AccountFinding:
    """A structural anomaly detected in the account database."""

    kind: AccountFindingKind
    subject_usernames: Tuple[str, ...]
    detail: str

    @property
    def severity(self) -> str:
        return ACCOUNT_SEVERITY[self.kind]

    def key(self) -> str:
        """Stable identifier used to de-duplicate and compare findings."""

        return f"{self.kind.value}:{','.join(self.subject_usernames)}:{self.detail}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "severity": self.severity,
            "subject_usernames": list(self.subject_usernames),
            "detail": self.detail,
        }


@dataclass(frozen=True)
class FileArtifact:
    """A regular file discovered beneath the scanned root."""

    path: str
    modified_at: datetime


@dataclass(frozen=True)
class TimestampFinding:
    """Modification metadata for a file found under a manifest entry."""

    path: str
    modified_at: datetime
    days_since_modification: int
    category_label: str
    flags: FrozenSet[TimestampFlag] = field(default_factory=frozenset)

    @property
    def is_anomalous(self) -> bool:
        return bool(self.flags)

    @property
    def severity(self) -> str:
        if TimestampFlag.FUTURE_TIMESTAMP in self.flags:
            return "HIGH"
        if TimestampFlag.MODIFIED_TODAY in self.flags:
            return "MEDIUM"
        return "INFO"

    def key(self) -> str:
        return f"{self.category_label}:{self.path}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "modified_at": self.modified_at.isoformat(sep=" "),
            "days_since_modification": self.days_since_modification,
            "category_label": self.category_label,
            "severity": self.severity,
            "flags": sorted(flag.value for flag in self.flags),
        }


@dataclass(frozen=True)
class PathManifestEntry:
    """A security-relevant path inspected for persistence artifacts."""

    relative_path: str
    category_label: str


@dataclass(frozen=True)
class SoftError:
    """A recoverable I/O failure recorded while walking the image."""

    path: str
    message: str


__all__ = [
    "ACCOUNT_SEVERITY",
    "AccountFinding",
    "AccountFindingKind",
    "AccountRecord",
    "FileArtifact",
    "PathManifestEntry",
    "SEVERITY_ORDER",
    "SoftError",
    "TimestampFinding",
    "TimestampFlag",
]
