"""Tests for the read-only filesystem walker."""

from __future__ import annotations

import os
import threading
from datetime import datetime

import pytest

from linux_image_audit.walker import resolve_under_root, walk_files


def test_missing_path_yields_nothing(image_root) -> None:
    errors = []

    assert list(walk_files(str(image_root), "/etc/cron.d", errors=errors)) == []
    assert errors == []


def test_path_below_a_file_yields_nothing(image_root) -> None:
    assert list(walk_files(str(image_root), "/etc/passwd/nested")) == []


def test_single_file_entry(image_root) -> None:
    artifacts = list(walk_files(str(image_root), "/etc/passwd"))

    assert [artifact.path for artifact in artifacts] == [str(image_root / "etc" / "passwd")]


def test_directory_walk_is_recursive_and_lexical(image_root, make_file) -> None:
    make_file("etc/cron.d/zeta")
    make_file("etc/cron.d/alpha")
    make_file("etc/cron.d/sub/beta")
    make_file("etc/cron.d/sub/deeper/gamma")

    paths = [artifact.path for artifact in walk_files(str(image_root), "/etc/cron.d")]

    base = str(image_root / "etc" / "cron.d")
    assert paths == [
        os.path.join(base, "alpha"),
        os.path.join(base, "sub", "beta"),
        os.path.join(base, "sub", "deeper", "gamma"),
        os.path.join(base, "zeta"),
    ]


def test_modification_time_has_second_resolution(image_root, make_file) -> None:
    path = make_file("root/.bashrc")
    os.utime(path, (1700000000.75, 1700000000.75))

    (artifact,) = walk_files(str(image_root), "/root/.bashrc")

    assert artifact.modified_at == datetime.fromtimestamp(1700000000)


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlinks_are_not_followed(image_root, make_file, tmp_path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret").write_text("x", encoding="utf-8")
    make_file("etc/init.d/real")
    os.symlink(outside, image_root / "etc" / "init.d" / "escape")
    os.symlink(image_root / "etc" / "init.d" / "real", image_root / "etc" / "init.d" / "link")
    os.symlink(image_root / "etc" / "init.d", image_root / "etc" / "loop")

    paths = [artifact.path for artifact in walk_files(str(image_root), "/etc/init.d")]

    assert paths == [str(image_root / "etc" / "init.d" / "real")]
    assert list(walk_files(str(image_root), "/etc/loop")) == []


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_linked_parent_directory_is_not_followed(image_root, tmp_path) -> None:
    host_root = tmp_path / "host_root"
    (host_root / ".ssh").mkdir(parents=True)
    (host_root / ".ssh" / "authorized_keys").write_text("ssh-ed25519 AAAA\n", encoding="utf-8")
    os.symlink(host_root, image_root / "root")
    errors = []

    assert list(walk_files(str(image_root), "/root/.ssh", errors=errors)) == []
    assert list(walk_files(str(image_root), "/root/.ssh/authorized_keys")) == []
    assert errors == []


def test_path_climbing_out_of_root_yields_nothing(image_root, tmp_path) -> None:
    (tmp_path / "outside").write_text("x", encoding="utf-8")

    assert list(walk_files(str(image_root), "/../outside")) == []
    assert list(walk_files(str(image_root), "etc/../../outside")) == []


@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="requires unprivileged POSIX user")
def test_unreadable_directory_is_a_soft_error(image_root, make_file) -> None:
    make_file("etc/sudoers.d/ok")
    locked = image_root / "etc" / "sudoers.d" / "locked"
    locked.mkdir()
    (locked / "hidden").write_text("x", encoding="utf-8")
    locked.chmod(0)
    errors = []
    try:
        paths = [a.path for a in walk_files(str(image_root), "/etc/sudoers.d", errors=errors)]
    finally:
        locked.chmod(0o755)

    assert paths == [str(image_root / "etc" / "sudoers.d" / "ok")]
    assert [error.path for error in errors] == [str(locked)]


def test_scandir_failure_is_recorded_and_walk_continues(image_root, make_file, monkeypatch) -> None:
    make_file("etc/sudoers.d/ok")
    make_file("etc/sudoers.d/locked/hidden")
    locked = str(image_root / "etc" / "sudoers.d" / "locked")
    real_scandir = os.scandir

    def scandir(path):
        if os.fspath(path) == locked:
            raise PermissionError(13, "Permission denied", path)
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)
    errors = []

    paths = [a.path for a in walk_files(str(image_root), "/etc/sudoers.d", errors=errors)]

    assert paths == [str(image_root / "etc" / "sudoers.d" / "ok")]
    assert [(error.path, error.message) for error in errors] == [(locked, "Permission denied")]


def test_cancel_stops_walk(image_root, make_file) -> None:
    for name in ("a", "b", "c"):
        make_file(f"var/spool/cron/{name}")
    cancel = threading.Event()

    walker = walk_files(str(image_root), "/var/spool/cron", cancel=cancel)
    first = next(walker)
    cancel.set()

    assert first.path.endswith("a")
    assert list(walker) == []


def test_resolve_under_root_strips_leading_slash(tmp_path) -> None:
    assert resolve_under_root(str(tmp_path), "/etc/shadow") == os.path.join(str(tmp_path), "etc", "shadow")
