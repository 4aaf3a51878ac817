"""
db/errors.py
------------
Exceptions raised by the database layer.
Underlying asyncpg errors are always attached as ``__cause__``.
"""

from typing import Optional


class DatabaseError(Exception):
    """Base class for all database layer errors."""


class ConfigurationError(DatabaseError):
    """The connection string is missing or unusable."""


class DatabaseConnectionError(DatabaseError):
    """
    A connection could not be obtained: the pool is not open or already
    closed, or the server refused / could not be reached.
    """


class QueryError(DatabaseError):
    """
    The database rejected a statement.

    Attributes:
        sqlstate: PostgreSQL SQLSTATE code, when the server reported one.
        detail: Server-provided detail message, if any.
    """

    def __init__(
        self,
        message: str,
        sqlstate: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.detail = detail

    @classmethod
    def from_exception(cls, exc: Exception) -> "QueryError":
        """Build a QueryError from an asyncpg exception, keeping its diagnostics."""
        return cls(
            str(exc),
            sqlstate=getattr(exc, "sqlstate", None),
            detail=getattr(exc, "detail", None),
        )


class BootstrapError(DatabaseError):
    """Schema creation failed and its transaction was rolled back."""
