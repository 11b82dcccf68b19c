"""Read-only enumeration of regular files beneath an image root."""
from __future__ import annotations

import logging
import os
import stat
import threading
from datetime import datetime
from typing import Iterator, List, Optional

from .findings import FileArtifact, SoftError

logger = logging.getLogger(__name__)


def resolve_under_root(root: str, relative_path: str) -> str:
    """Join *relative_path* onto *root*, treating a leading ``/`` as root-relative."""

    return os.path.normpath(os.path.join(os.path.abspath(root), relative_path.lstrip("/")))


def artifact_from_stat(path: str, st: os.stat_result) -> FileArtifact:
    """Build a :class:`FileArtifact` with second-resolution modification time."""

    return FileArtifact(path=path, modified_at=datetime.fromtimestamp(int(st.st_mtime)))


def _parents_are_directories(root: str, relative_path: str) -> bool:
    """Return whether every component above the target is a real directory.

    Components that are symbolic links, or a path that climbs out of *root*
    with ``..``, count as missing.
    """

    parts = os.path.normpath(relative_path.lstrip("/")).split(os.sep)
    if parts[0] == os.pardir:
        return False
    current = os.path.abspath(root)
    for part in parts[:-1]:
        current = os.path.join(current, part)
        if not stat.S_ISDIR(os.lstat(current).st_mode):
            logger.debug("Not descending through non-directory %s", current)
            return False
    return True


def _record(errors: Optional[List[SoftError]], path: str, exc: OSError) -> None:
    message = exc.strerror or str(exc)
    logger.warning("Unable to read %s: %s", path, message)
    if errors is not None:
        errors.append(SoftError(path=path, message=message))


def _walk_directory(
    path: str,
    errors: Optional[List[SoftError]],
    cancel: Optional[threading.Event],
) -> Iterator[FileArtifact]:
    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        _record(errors, path, exc)
        return

    for entry in entries:
        if cancel is not None and cancel.is_set():
            return
        try:
            st = entry.stat(follow_symlinks=False)
        except OSError as exc:
            _record(errors, entry.path, exc)
            continue
        if stat.S_ISDIR(st.st_mode):
            yield from _walk_directory(entry.path, errors, cancel)
        elif stat.S_ISREG(st.st_mode):
            yield artifact_from_stat(entry.path, st)


def walk_files(
    root: str,
    relative_path: str,
    *,
    errors: Optional[List[SoftError]] = None,
    cancel: Optional[threading.Event] = None,
) -> Iterator[FileArtifact]:
    """Lazily yield every regular file at or beneath *relative_path* under *root*.

    A missing path yields nothing. Symbolic links are never followed, whether
    they are *relative_path* itself or one of its parent directories, so the
    walk cannot escape *root* or loop. Directory entries are visited in lexical
    order. Items that cannot be inspected are appended to *errors* as
    :class:`SoftError` and skipped.
    """

    target = resolve_under_root(root, relative_path)
    if cancel is not None and cancel.is_set():
        return
    try:
        if not _parents_are_directories(root, relative_path):
            return
        st = os.lstat(target)
    except (FileNotFoundError, NotADirectoryError):
        return
    except OSError as exc:
        _record(errors, target, exc)
        return

    if stat.S_ISREG(st.st_mode):
        yield artifact_from_stat(target, st)
    elif stat.S_ISDIR(st.st_mode):
        yield from _walk_directory(target, errors, cancel)
    else:
        logger.debug("Ignoring non-regular path %s", target)


__all__ = ["artifact_from_stat", "resolve_under_root", "walk_files"]
