"""
db/connection.py
----------------
Manages the PostgreSQL connection pool.
Uses asyncpg's Pool for connection reuse; every call that touches the
network is a coroutine.

Ways to run SQL:
    - `Database.query()` returns rows; `Database.execute()` returns the
      command tag and affected-row count. Both check a connection out
      and back in for you.
    - `Database.get_connection()` / `release_connection()` (or the
      `connection()` context manager) hand you a connection to keep
      across several statements, e.g. for a transaction.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Sequence, Union

import asyncpg

import config
from db.errors import ConfigurationError, DatabaseConnectionError, QueryError
from db.init_db import create_tables
from db.sql import Query
from utils.logger import get_logger

logger = get_logger(__name__)

# Errors asyncpg (or the socket underneath it) raises when a connection
# cannot be set up or has gone away.
_CONNECT_ERRORS = (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError)
_QUERY_ERRORS = (OSError, asyncpg.PostgresError, asyncpg.InterfaceError)


@dataclass
class QueryResult:
    """
    Outcome of a single statement.

    Attributes:
        rows: Returned records (always empty for `execute()`).
        rowcount: Rows returned by `query()`, or rows affected by
            `execute()` as reported in the command tag (None if the tag
            carries no count, e.g. ``CREATE TABLE``).
        status: PostgreSQL command tag such as ``"UPDATE 3"``; only
            `execute()` sets it.
    """
    rows: list = field(default_factory=list)
    rowcount: Optional[int] = None
    status: Optional[str] = None


def _parse_rowcount(status: Optional[str]) -> Optional[int]:
    """Extract the trailing row count from a command tag like ``UPDATE 3``."""
    if not status:
        return None
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else None


def _split(text_or_query, params) -> tuple:
    if isinstance(text_or_query, tuple):
        if params is not None:
            raise ValueError("params must not be given with a prebuilt query")
        text, values = text_or_query
        return text, values
    return text_or_query, params or ()


async def run_query(conn, text: str, values: Sequence[Any] = ()) -> QueryResult:
    """
    Fetch the rows of one statement on an already checked-out connection.
    Goes through the connection's prepared-statement cache.

    Raises:
        QueryError: If the server rejects the statement, an argument
            cannot be encoded, or the connection drops mid-query.
    """
    try:
        rows = await conn.fetch(text, *values)
    except _QUERY_ERRORS as e:
        raise QueryError.from_exception(e) from e
    return QueryResult(rows=list(rows), rowcount=len(rows))


async def run_execute(conn, text: str, values: Sequence[Any] = ()) -> QueryResult:
    """
    Execute SQL for its effect on an already checked-out connection.
    Without values the text may hold several statements; the status is
    that of the last one.

    Raises:
        QueryError: As for `run_query`.
    """
    try:
        status = await conn.execute(text, *values)
    except _QUERY_ERRORS as e:
        raise QueryError.from_exception(e) from e
    return QueryResult(rowcount=_parse_rowcount(status), status=status)


class Database:
    """
    Owner of one asyncpg connection pool.

    Construct it, `await open()`, use it, `await close()`. Opening also
    schedules the schema bootstrap; await `wait_ready()` before issuing
    queries that depend on the tables.
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        *,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        idle_timeout: Optional[float] = None,
    ):
        """
        Args:
            dsn: PostgreSQL connection string. Defaults to DATABASE_URL.
            min_size: Connections kept open while idle.
            max_size: Hard upper bound on checked-out connections.
            idle_timeout: Seconds an idle connection lives before being closed.

        Raises:
            ConfigurationError: If no dsn is given and DATABASE_URL is unset.
        """
        self.dsn = dsn or config.DATABASE_URL
        if not self.dsn:
            raise ConfigurationError("Missing DATABASE_URL environment variable")
        self.min_size = config.DB_POOL_MIN_SIZE if min_size is None else min_size
        self.max_size = config.DB_POOL_MAX_SIZE if max_size is None else max_size
        self.idle_timeout = config.DB_POOL_IDLE_TIMEOUT if idle_timeout is None else idle_timeout
        self.ready: Optional[asyncio.Task] = None
        self._pool: Optional[asyncpg.Pool] = None
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._pool is not None and not self._closing

    async def open(self, bootstrap: bool = True) -> None:
        """
        Create the pool. Does nothing if it is already open.

        Args:
            bootstrap: Also schedule schema creation as `self.ready`.

        Raises:
            DatabaseConnectionError: If the database is unreachable or
                rejects the credentials, or a close is in progress.
        """
        if self._closing:
            raise DatabaseConnectionError("Database pool is closing.")
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                max_inactive_connection_lifetime=self.idle_timeout,
            )
        except _CONNECT_ERRORS as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise DatabaseConnectionError(f"Failed to initialize database pool: {e}") from e
        logger.info(f"Database connection pool initialized (max_size={self.max_size}).")

        self.ready = None
        if bootstrap:
            self.ready = asyncio.get_running_loop().create_task(create_tables(self))

    async def wait_ready(self) -> None:
        """
        Wait for the schema bootstrap scheduled by `open()` to finish.

        Raises:
            BootstrapError: If schema creation failed.
            DatabaseConnectionError: If the pool was never opened.
        """
        if self.ready is None:
            if self._pool is None:
                raise DatabaseConnectionError("Database pool not initialized. Call open() first.")
            return
        await self.ready

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None or self._closing:
            raise DatabaseConnectionError("Database pool is not open.")
        return self._pool

    async def get_connection(self):
        """
        Check a connection out of the pool, waiting while all are in use.
        The caller must hand it back with `release_connection()`.

        Raises:
            DatabaseConnectionError: If the pool is closed or closing, or
                a new connection cannot be established.
        """
        pool = self._require_pool()
        try:
            return await pool.acquire()
        except _CONNECT_ERRORS as e:
            raise DatabaseConnectionError(f"Could not acquire a database connection: {e}") from e

    async def release_connection(self, conn) -> None:
        """Return a connection to the pool. Still accepted while closing."""
        if self._pool is not None:
            await self._pool.release(conn)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Any]:
        """Scoped checkout: ``async with db.connection() as conn: ...``"""
        conn = await self.get_connection()
        try:
            yield conn
        finally:
            await self.release_connection(conn)

    async def query(
        self,
        text_or_query: Union[str, Query, tuple],
        params: Optional[Sequence[Any]] = None,
    ) -> QueryResult:
        """
        Run one statement on a pooled connection and return its rows.

        Args:
            text_or_query: SQL text, or a ``(text, values)`` pair such as
                the Query built by `db.sql.build_parameterized_query`.
            params: Values for ``$n`` placeholders when passing plain text.

        Raises:
            ValueError: If params are given alongside a prebuilt query.
            DatabaseConnectionError: If no connection could be obtained.
            QueryError: If the statement fails.
        """
        text, values = _split(text_or_query, params)
        async with self.connection() as conn:
            return await run_query(conn, text, values)

    async def execute(
        self,
        text_or_query: Union[str, Query, tuple],
        params: Optional[Sequence[Any]] = None,
    ) -> QueryResult:
        """
        Like `query()`, but for statements run for their effect. Returns
        the command tag and affected-row count instead of rows.
        """
        text, values = _split(text_or_query, params)
        async with self.connection() as conn:
            return await run_execute(conn, text, values)

    async def close(self) -> None:
        """
        Close all pooled connections. Waits for the bootstrap and for
        checked-out connections to come back. Safe to call more than once.
        """
        if self._pool is None or self._closing:
            return
        if self.ready is not None and not self.ready.done():
            # The bootstrap still needs to check out a connection, so let it
            # finish first. Its outcome stays on the task for wait_ready().
            await asyncio.wait([self.ready])
            if self._pool is None or self._closing:
                return
        self._closing = True
        try:
            await self._pool.close()
        finally:
            self._pool = None
            self._closing = False
        logger.info("Database connection pool closed.")


# ── Process-wide default instance ─────────────────────────

_db: Optional[Database] = None


async def init_pool(dsn: Optional[str] = None, bootstrap: bool = True) -> Database:
    """
    Create and open the shared Database. Returns the existing one if
    it is already open.

    Raises:
        ConfigurationError: If DATABASE_URL is missing.
        DatabaseConnectionError: If the database is unreachable.
    """
    global _db
    if _db is not None and _db.is_open:
        return _db
    db = Database(dsn)
    await db.open(bootstrap=bootstrap)
    _db = db
    return db


def get_db() -> Database:
    """
    Return the shared Database.

    Raises:
        DatabaseConnectionError: If `init_pool()` has not run, or the
            shared Database has been closed (by `close_pool()` or directly).
    """
    if _db is None or not _db.is_open:
        raise DatabaseConnectionError("Database pool not initialized. Call init_pool() first.")
    return _db


async def query(
    text_or_query: Union[str, Query, tuple],
    params: Optional[Sequence[Any]] = None,
) -> QueryResult:
    """Fetch rows on the shared pool. See `Database.query`."""
    return await get_db().query(text_or_query, params)


async def execute(
    text_or_query: Union[str, Query, tuple],
    params: Optional[Sequence[Any]] = None,
) -> QueryResult:
    """Run a statement for its effect on the shared pool. See `Database.execute`."""
    return await get_db().execute(text_or_query, params)


async def get_connection():
    """Check a connection out of the shared pool. Caller must release it."""
    return await get_db().get_connection()


async def release_connection(conn) -> None:
    """Return a connection to the shared pool."""
    if _db is not None:
        await _db.release_connection(conn)


async def close_pool() -> None:
    """Close the shared pool."""
    global _db
    if _db is not None:
        await _db.close()
        _db = None
