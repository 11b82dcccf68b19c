"""Configuration: the path manifest, start-date cutoff and run settings."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from .accounts import AccountPolicy
from .errors import ConfigurationError, InvalidStartDate
from .findings import PathManifestEntry
from .timestamps import ScanMode

START_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_WORKERS = 4

# Security-relevant locations checked for persistence artifacts, relative to the
# image root.
DEFAULT_MANIFEST: Tuple[PathManifestEntry, ...] = (
    PathManifestEntry("/etc/cron.d", "System cron jobs"),
    PathManifestEntry("/etc/cron.daily", "Daily cron jobs"),
    PathManifestEntry("/etc/cron.hourly", "Hourly cron jobs"),
    PathManifestEntry("/etc/cron.weekly", "Weekly cron jobs"),
    PathManifestEntry("/etc/cron.monthly", "Monthly cron jobs"),
    PathManifestEntry("/etc/crontab", "System crontab"),
    PathManifestEntry("/var/spool/cron", "User crontabs"),
    PathManifestEntry("/etc/init.d", "Init scripts"),
    PathManifestEntry("/etc/systemd/system", "Systemd services"),
    PathManifestEntry("/etc/rc.local", "RC local script"),
    PathManifestEntry("/root/.ssh", "Root SSH directory"),
    PathManifestEntry("/root/.bashrc", "Root bash configuration"),
    PathManifestEntry("/root/.bash_profile", "Root bash profile"),
    PathManifestEntry("/etc/passwd", "Password file"),
    PathManifestEntry("/etc/shadow", "Shadow password file"),
    PathManifestEntry("/etc/group", "Group file"),
    PathManifestEntry("/etc/sudoers", "Sudoers file"),
    PathManifestEntry("/etc/sudoers.d", "Sudoers directory"),
)


def parse_manifest(text: str) -> Tuple[PathManifestEntry, ...]:
    """Parse ``path:label`` lines into manifest entries.

    Blank lines and ``#`` comments are ignored; a line without a label uses the
    path itself. Paths must be absolute within the image.
    """

    entries = []
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        path, _, label = line.partition(":")
        path = path.strip()
        label = label.strip() or path
        if not path.startswith("/"):
            raise ConfigurationError(
                f"Manifest line {line_number}: path '{path}' must be absolute within the image"
            )
        entries.append(PathManifestEntry(path, label))
    if not entries:
        raise ConfigurationError("Manifest does not contain any paths")
    return tuple(entries)


def load_manifest(path: str) -> Tuple[PathManifestEntry, ...]:
    """Read a manifest override file."""

    try:
        with open(path, "r", encoding="utf-8") as fh:
            text = fh.read()
    except OSError as exc:
        raise ConfigurationError(f"Unable to read manifest {path}: {exc}") from exc
    return parse_manifest(text)


def parse_start_date(text: str) -> datetime:
    """Parse a ``YYYY-MM-DD HH:MM:SS`` cutoff into a naive local datetime."""

    try:
        return datetime.strptime(text.strip(), START_DATE_FORMAT)
    except ValueError as exc:
        raise InvalidStartDate(
            f"Invalid date format '{text}'. Use 'YYYY-MM-DD HH:MM:SS'"
        ) from exc


@dataclass(frozen=True)
class AuditConfig:
    """Settings for a single audit run."""

    root: str
    manifest: Tuple[PathManifestEntry, ...] = DEFAULT_MANIFEST
    start_date: Optional[datetime] = None
    mode: ScanMode = ScanMode.ALL
    max_workers: int = DEFAULT_MAX_WORKERS
    account_policy: AccountPolicy = field(default_factory=AccountPolicy)
    now: Optional[datetime] = None

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` for settings that cannot be scanned."""

        if not os.path.isdir(self.root):
            raise ConfigurationError(f"Directory {self.root} does not exist")
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")


__all__ = [
    "AuditConfig",
    "DEFAULT_MANIFEST",
    "DEFAULT_MAX_WORKERS",
    "START_DATE_FORMAT",
    "load_manifest",
    "parse_manifest",
    "parse_start_date",
]
