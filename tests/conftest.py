"""Pytest configuration and shared fixtures.

Unit tests run against an in-memory stand-in for asyncpg's pool, patched
over ``asyncpg.create_pool``. Tests that need a real server read
TEST_DATABASE_URL and are skipped without it.
"""

import asyncio
import os
import sys
from pathlib import Path

import asyncpg
import pytest

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


class FakeServer:
    """Shared state behind every fake connection: statements run and tables committed."""

    def __init__(self):
        self.pools = []
        self.executed = []
        self.committed = []
        self.rollbacks = 0
        self.fail_on = None
        self.connect_error = None
        self.rows = []
        self.status = "SELECT 0"

    def check(self, text):
        if self.fail_on and self.fail_on in text:
            raise asyncpg.exceptions.InsufficientPrivilegeError(f"permission denied: {self.fail_on}")


class FakeTransaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        self.conn.pending = []
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.conn.server.committed.extend(self.conn.pending)
        else:
            self.conn.server.rollbacks += 1
        self.conn.pending = None
        return False


class FakeConnection:
    def __init__(self, server):
        self.server = server
        self.pending = None

    def transaction(self):
        return FakeTransaction(self)

    async def fetch(self, text, *args):
        self.server.check(text)
        self.server.executed.append((text, args))
        return list(self.server.rows)

    async def execute(self, statement, *args):
        self.server.check(statement)
        self.server.executed.append((statement, args))
        if self.pending is not None:
            self.pending.append(statement)
        else:
            self.server.committed.append(statement)
        return self.server.status


class FakePool:
    """Mirrors asyncpg: close() waits until every checked-out connection is released."""

    def __init__(self, server, dsn, **kwargs):
        self.server = server
        self.dsn = dsn
        self.kwargs = kwargs
        self.checked_out = []
        self.released = []
        self.closing = False
        self.closed = False

    async def acquire(self):
        if self.closing or self.closed:
            raise asyncpg.InterfaceError("pool is closing")
        if self.server.connect_error is not None:
            raise self.server.connect_error
        conn = FakeConnection(self.server)
        self.checked_out.append(conn)
        return conn

    async def release(self, conn):
        self.checked_out.remove(conn)
        self.released.append(conn)

    async def close(self):
        self.closing = True
        while self.checked_out:
            await asyncio.sleep(0.01)
        self.closed = True


@pytest.fixture
def fake_pg(monkeypatch):
    """Replace asyncpg.create_pool with a fake; returns the FakeServer."""
    server = FakeServer()

    async def fake_create_pool(dsn, **kwargs):
        if server.connect_error is not None:
            raise server.connect_error
        pool = FakePool(server, dsn, **kwargs)
        server.pools.append(pool)
        return pool

    monkeypatch.setattr(asyncpg, "create_pool", fake_create_pool)
    return server


@pytest.fixture(autouse=True)
def _reset_default_db():
    # Isolation: never leak the shared Database between tests
    import db.connection
    db.connection._db = None
    yield
    db.connection._db = None


@pytest.fixture
def live_dsn():
    dsn = os.environ.get("TEST_DATABASE_URL")
    if not dsn:
        pytest.skip("TEST_DATABASE_URL not set")
    return dsn
