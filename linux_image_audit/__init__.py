"""Offline auditing of Linux filesystem images for tampering and persistence."""

from __future__ import annotations

from .accounts import AccountPolicy, audit_accounts, detect_account_anomalies
from .config import DEFAULT_MANIFEST, AuditConfig
from .core import AuditResults, collect_audit_results, collect_findings, run_timestamp_audit
from .errors import AccountDatabaseNotFound, AccountDatabaseUnreadable, ConfigurationError, InvalidStartDate
from .findings import (
    AccountFinding,
    AccountFindingKind,
    AccountRecord,
    FileArtifact,
    PathManifestEntry,
    SoftError,
    TimestampFinding,
    TimestampFlag,
)
from .passwd import load_passwd, parse_passwd
from .timestamps import ScanMode, analyze_artifact
from .walker import walk_files

__all__ = [
    "AccountDatabaseNotFound",
    "AccountDatabaseUnreadable",
    "AccountFinding",
    "AccountFindingKind",
    "AccountPolicy",
    "AccountRecord",
    "AuditConfig",
    "AuditResults",
    "ConfigurationError",
    "DEFAULT_MANIFEST",
    "FileArtifact",
    "InvalidStartDate",
    "PathManifestEntry",
    "ScanMode",
    "SoftError",
    "TimestampFinding",
    "TimestampFlag",
    "analyze_artifact",
    "audit_accounts",
    "collect_audit_results",
    "collect_findings",
    "detect_account_anomalies",
    "load_passwd",
    "parse_passwd",
    "run_timestamp_audit",
    "walk_files",
]
