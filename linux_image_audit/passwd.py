"""Parser for colon-delimited ``/etc/passwd`` account databases."""
from __future__ import annotations

import logging
import os
from typing import List, Optional

from .errors import AccountDatabaseNotFound, AccountDatabaseUnreadable
from .findings import AccountRecord

logger = logging.getLogger(__name__)

PASSWD_RELATIVE_PATH = "/etc/passwd"
FIELD_SEPARATOR = ":"
FIELD_COUNT = 7


def passwd_path(root: str) -> str:
    """Return the location of the account database inside *root*."""

    return os.path.join(root, PASSWD_RELATIVE_PATH.lstrip("/"))


def parse_line(line: str, line_number: int = 0) -> Optional[AccountRecord]:
    """Parse a single database line, returning ``None`` when it is malformed."""

    fields = line.split(FIELD_SEPARATOR)
    if len(fields) != FIELD_COUNT:
        return None
    username, password, uid, gid, comment, home, shell = fields
    try:
        uid_value = int(uid)
        gid_value = int(gid)
    except ValueError:
        return None
    return AccountRecord(
        username=username,
        password=password,
        uid=uid_value,
        gid=gid_value,
        comment=comment,
        home_directory=home,
        shell=shell,
        line_number=line_number,
    )


def parse_passwd(text: str) -> List[AccountRecord]:
    """Return the records in *text* in file order.

    Empty lines are ignored. Lines that do not split into exactly seven fields,
    or whose uid/gid are not integers, are skipped rather than treated as fatal.
    """

    records: List[AccountRecord] = []
    for line_number, raw in enumerate(text.splitlines(), start=1):
        if not raw.strip():
            continue
        record = parse_line(raw, line_number)
        if record is None:
            logger.debug("Skipping malformed account line %d: %r", line_number, raw)
            continue
        records.append(record)
    return records


def load_passwd(root: str) -> List[AccountRecord]:
    """Read and parse the account database beneath *root*.

    Raises :class:`AccountDatabaseNotFound` when the file does not exist and
    :class:`AccountDatabaseUnreadable` when it cannot be read.
    """

    path = passwd_path(root)
    if not os.path.isfile(path):
        raise AccountDatabaseNotFound(path)
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            text = fh.read()
    except OSError as exc:
        raise AccountDatabaseUnreadable(path, exc.strerror or str(exc)) from exc
    return parse_passwd(text)


__all__ = [
    "FIELD_COUNT",
    "PASSWD_RELATIVE_PATH",
    "load_passwd",
    "parse_line",
    "parse_passwd",
    "passwd_path",
]
