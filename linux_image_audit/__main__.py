"""Module entry-point for ``python -m linux_image_audit``."""
from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
