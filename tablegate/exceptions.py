# tablegate/exceptions.py
"""
Exceptions raised by tablegate.

Every error raised by the bulk engines derives from :class:`TableGateError`.
Precondition failures also derive from ``ValueError`` so callers that only
know about builtin exceptions can still catch them.
"""

from typing import Optional


class TableGateError(Exception):
    """Base class for all tablegate errors."""


class ValidationError(TableGateError, ValueError):
    """A row batch or its options failed a precondition. No SQL was sent."""


class ColumnMismatch(ValidationError):
    """Rows in one batch do not share the same column set."""


class MissingJoinColumns(ValidationError):
    """Bulk update called without join columns."""


class InvalidJoinColumns(ValidationError):
    """Join columns are not a subset of the row columns."""


class NoUpdatableColumns(ValidationError):
    """Rows contain nothing besides the join columns."""


class InvalidUpdateColumns(ValidationError):
    """Upsert update columns name a column the rows do not carry."""


class InvalidColumns(ValidationError):
    """Row columns do not exist on the target table."""


class UnsupportedPlatform(TableGateError, NotImplementedError):
    """The connected server is not MySQL or MariaDB."""


class DatabaseError(TableGateError):
    """
    A statement failed on the server or in the driver.

    Attributes:
        sql: The statement that failed
        driver_error: The exception raised by the DB-API driver
    """

    def __init__(self, message: str, sql: Optional[str] = None, driver_error: Optional[BaseException] = None):
        super().__init__(message)
        self.sql = sql
        self.driver_error = driver_error


class StagingCleanupError(DatabaseError):
    """The staging table could not be dropped after a successful update."""
