"""Account anomaly detection over a parsed ``/etc/passwd`` database."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .findings import AccountFinding, AccountFindingKind, AccountRecord, FileArtifact
from .passwd import load_passwd, passwd_path
from .rules import RuleRegistry
from .walker import artifact_from_stat

logger = logging.getLogger(__name__)

INTERACTIVE_SHELL_PATTERN = re.compile(r"bash|sh")
SHELL_ALLOWED_PREFIXES = ("root", "admin", "user")
STANDARD_HOME_PREFIX = "/home/"
SUPERUSER_HOME = "/root"


@dataclass(frozen=True)
class AccountPolicy:
    """Tunable policy choices for the account rules.

    ``exempt_superuser`` defaults to ``False`` so that every UID 0 account,
    including the canonical superuser, is reported.
    """

    exempt_superuser: bool = False
    superuser_name: str = "root"


@dataclass
class AccountAuditReport:
    """Parsed records, findings and database metadata from one account audit."""

    records: List[AccountRecord]
    findings: List[AccountFinding]
    database: Optional[FileArtifact] = None


AccountRule = Callable[[Sequence[AccountRecord], AccountPolicy], List[AccountFinding]]

ACCOUNT_RULES: RuleRegistry[AccountRule] = RuleRegistry("account")
account_rule = ACCOUNT_RULES.register


def is_interactive_shell(shell: str) -> bool:
    return bool(INTERACTIVE_SHELL_PATTERN.search(shell))


def is_shell_exempt(username: str) -> bool:
    return username.startswith(SHELL_ALLOWED_PREFIXES)


def is_standard_home(home: str) -> bool:
    return home.startswith(STANDARD_HOME_PREFIX) or home == SUPERUSER_HOME


@account_rule(AccountFindingKind.SUSPICIOUS_UID0)
def find_uid0_accounts(
    records: Sequence[AccountRecord], policy: AccountPolicy
) -> List[AccountFinding]:
    """Flag accounts sharing the superuser UID."""

    findings: List[AccountFinding] = []
    for record in records:
        if record.uid != 0:
            continue
        if policy.exempt_superuser and record.username == policy.superuser_name:
            continue
        findings.append(
            AccountFinding(
                kind=AccountFindingKind.SUSPICIOUS_UID0,
                subject_usernames=(record.username,),
                detail=str(record.uid),
            )
        )
    return findings


@account_rule(AccountFindingKind.UNEXPECTED_INTERACTIVE_SHELL)
def find_unexpected_shells(
    records: Sequence[AccountRecord], policy: AccountPolicy
) -> List[AccountFinding]:
    """Flag login shells on accounts outside the allow-listed name prefixes."""

    return [
        AccountFinding(
            kind=AccountFindingKind.UNEXPECTED_INTERACTIVE_SHELL,
            subject_usernames=(record.username,),
            detail=record.shell,
        )
        for record in records
        if is_interactive_shell(record.shell) and not is_shell_exempt(record.username)
    ]


@account_rule(AccountFindingKind.NON_STANDARD_HOME)
def find_non_standard_homes(
    records: Sequence[AccountRecord], policy: AccountPolicy
) -> List[AccountFinding]:
    return [
        AccountFinding(
            kind=AccountFindingKind.NON_STANDARD_HOME,
            subject_usernames=(record.username,),
            detail=record.home_directory,
        )
        for record in records
        if not is_standard_home(record.home_directory)
    ]


def _duplicates(
    records: Sequence[AccountRecord],
    kind: AccountFindingKind,
    value: Callable[[AccountRecord], int],
) -> List[AccountFinding]:
    # dicts keep first-appearance order for both the groups and their members
    groups: Dict[int, List[str]] = {}
    for record in records:
        groups.setdefault(value(record), []).append(record.username)
    return [
        AccountFinding(kind=kind, subject_usernames=tuple(usernames), detail=str(shared))
        for shared, usernames in groups.items()
        if len(usernames) >= 2
    ]


@account_rule(AccountFindingKind.DUPLICATE_UID)
def find_duplicate_uids(
    records: Sequence[AccountRecord], policy: AccountPolicy
) -> List[AccountFinding]:
    return _duplicates(records, AccountFindingKind.DUPLICATE_UID, lambda record: record.uid)


@account_rule(AccountFindingKind.DUPLICATE_GID)
def find_duplicate_gids(
    records: Sequence[AccountRecord], policy: AccountPolicy
) -> List[AccountFinding]:
    return _duplicates(records, AccountFindingKind.DUPLICATE_GID, lambda record: record.gid)


def detect_account_anomalies(
    records: Sequence[AccountRecord], policy: Optional[AccountPolicy] = None
) -> List[AccountFinding]:
    """Evaluate every registered account rule independently over *records*."""

    policy = policy or AccountPolicy()
    records = list(records)
    findings: List[AccountFinding] = []
    for kind, rule in ACCOUNT_RULES.items():
        rule_findings = rule(records, policy)
        logger.debug("Account rule %s produced %d finding(s)", kind.value, len(rule_findings))
        findings.extend(rule_findings)
    return findings


def audit_accounts(root: str, policy: Optional[AccountPolicy] = None) -> AccountAuditReport:
    """Load the account database beneath *root* and evaluate it.

    Raises :class:`~linux_image_audit.errors.AccountDatabaseNotFound` when the
    database is missing.
    """

    records = load_passwd(root)
    findings = detect_account_anomalies(records, policy)
    path = passwd_path(root)
    try:
        database: Optional[FileArtifact] = artifact_from_stat(path, os.stat(path))
    except OSError as exc:
        logger.warning("Unable to stat %s: %s", path, exc)
        database = None
    logger.info(
        "Evaluated %d account record(s) from %s: %d finding(s)",
        len(records),
        path,
        len(findings),
    )
    return AccountAuditReport(records=records, findings=findings, database=database)


__all__ = [
    "ACCOUNT_RULES",
    "AccountAuditReport",
    "AccountPolicy",
    "AccountRule",
    "account_rule",
    "audit_accounts",
    "detect_account_anomalies",
    "find_duplicate_gids",
    "find_duplicate_uids",
    "find_non_standard_homes",
    "find_uid0_accounts",
    "find_unexpected_shells",
    "is_interactive_shell",
    "is_shell_exempt",
    "is_standard_home",
]
