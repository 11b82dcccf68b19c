"""Tests for the account database parser."""

from __future__ import annotations

import pytest

from linux_image_audit import passwd
from linux_image_audit.errors import AccountDatabaseNotFound, AccountDatabaseUnreadable, ConfigurationError
from linux_image_audit.passwd import load_passwd, parse_line, parse_passwd


def test_parse_passwd_preserves_file_order() -> None:
    records = parse_passwd(
        "root:x:0:0:root:/root:/bin/bash\n"
        "bob:x:1001:1001:Bob:/home/bob:\n"
        "alice:x:1000:1000:Alice:/home/alice:/bin/zsh\n"
    )

    assert [record.username for record in records] == ["root", "bob", "alice"]
    assert records[0].uid == 0
    assert records[1].shell == ""
    assert records[2].home_directory == "/home/alice"
    assert records[2].line_number == 3


def test_parse_passwd_skips_malformed_and_empty_lines() -> None:
    text = (
        "\n"
        "short:x:1:1\n"
        "too:many:2:2:a:b:c:d\n"
        "baduid:x:abc:1::/home/x:/bin/sh\n"
        "good:x:5:5::/home/good:/bin/sh\n"
        "   \n"
    )

    records = parse_passwd(text)

    assert [record.username for record in records] == ["good"]


def test_parse_line_handles_crlf_via_splitlines() -> None:
    records = parse_passwd("svc:x:10:10::/srv:/bin/false\r\n")

    assert records[0].shell == "/bin/false"


def test_parse_line_rejects_wrong_field_count() -> None:
    assert parse_line("a:b:c") is None


def test_load_passwd_missing_file_is_fatal(tmp_path) -> None:
    with pytest.raises(AccountDatabaseNotFound) as excinfo:
        load_passwd(str(tmp_path))

    assert isinstance(excinfo.value, ConfigurationError)
    assert isinstance(excinfo.value, FileNotFoundError)
    assert excinfo.value.path.endswith("etc/passwd")


def test_load_passwd_reads_image(image_root) -> None:
    records = load_passwd(str(image_root))

    assert [record.username for record in records] == ["root", "daemon", "alice"]


def test_load_passwd_read_failure_is_a_configuration_error(image_root, monkeypatch) -> None:
    def denied(path, *args, **kwargs):
        raise PermissionError(13, "Permission denied", path)

    monkeypatch.setattr(passwd, "open", denied, raising=False)

    with pytest.raises(AccountDatabaseUnreadable) as excinfo:
        load_passwd(str(image_root))

    assert isinstance(excinfo.value, ConfigurationError)
    assert "Permission denied" in str(excinfo.value)
    assert excinfo.value.path.endswith("passwd")
