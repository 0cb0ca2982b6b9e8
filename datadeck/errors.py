from __future__ import annotations


class DataDeckError(Exception):
    """Base class for failures that originate at the system boundary."""


class DecodeError(DataDeckError):
    """An uploaded file could not be read as a table."""


class BackupError(DataDeckError):
    """A backup document is not valid JSON or not a JSON object."""


class PersistenceError(DataDeckError):
    """The key-value store rejected a read or write."""


class NotFoundError(DataDeckError, KeyError):
    """A page, widget or dataset id does not resolve."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
