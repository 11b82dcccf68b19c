"""Shared fixtures that build fake filesystem images."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, Optional

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


PASSWD = (
    "root:x:0:0:root:/root:/bin/bash\n"
    "daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin\n"
    "alice:x:1000:1000:Alice:/home/alice:/bin/bash\n"
)


def set_mtime(path: Path, when: datetime) -> None:
    stamp = when.timestamp()
    os.utime(path, (stamp, stamp))


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Drop handlers installed by the CLI so they never outlive a captured stream."""
    logger = logging.getLogger("linux_image_audit")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def image_root(tmp_path: Path) -> Path:
    """An image root containing a minimal ``etc/passwd``."""

    root = tmp_path / "image"
    (root / "etc").mkdir(parents=True)
    (root / "etc" / "passwd").write_text(PASSWD, encoding="utf-8")
    return root


@pytest.fixture
def make_file(image_root: Path) -> Callable[..., Path]:
    """Create a file inside the image with an explicit modification time."""

    def factory(relative: str, when: Optional[datetime] = None, content: str = "data\n") -> Path:
        path = image_root / relative.lstrip("/")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        if when is not None:
            set_mtime(path, when)
        return path

    return factory
