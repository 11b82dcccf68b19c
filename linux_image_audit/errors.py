"""Error taxonomy for the image auditor."""
from __future__ import annotations


class ConfigurationError(Exception):
    """Fatal problem detected before an analyser starts scanning."""


class AccountDatabaseNotFound(ConfigurationError, FileNotFoundError):
    """The account database is missing from the image."""

    def __init__(self, path: str) -> None:
        super().__init__(f"{path} not found. Please check the directory.")
        self.path = path


class AccountDatabaseUnreadable(ConfigurationError):
    """The account database exists but could not be read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Unable to read {path}: {reason}")
        self.path = path


class InvalidStartDate(ConfigurationError, ValueError):
    """A start-date cutoff could not be parsed."""


__all__ = ["AccountDatabaseNotFound", "AccountDatabaseUnreadable", "ConfigurationError", "InvalidStartDate"]
