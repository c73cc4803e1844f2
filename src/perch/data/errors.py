"""Data layer error hierarchy."""

from perch.errors import PerchError


class DataError(PerchError):
    """Base for all perch.data errors."""


class DriverNotInstalledError(DataError):
    """Raised when the database URL names a driver perch cannot load."""


class QueryError(DataError):
    """Raised when a SQL statement fails."""


class MigrationError(DataError):
    """Raised when migrations cannot be discovered or applied.

    Fatal at startup: the service never starts listening.
    """
