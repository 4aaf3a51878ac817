"""
db/init_db.py
-------------
Creates the database schema (tables) if they do not already exist.
Run this module directly to initialize a fresh database:
    python -m db.init_db
"""

import asyncio
import sys

import asyncpg

from db.errors import BootstrapError, DatabaseError
from utils.logger import get_logger

logger = get_logger(__name__)

# Executed in order inside one transaction. Never drops or alters.
SCHEMA_STATEMENTS: tuple = (
    # gen_random_uuid()
    "CREATE EXTENSION IF NOT EXISTS pgcrypto",
    # Users: one row per account
    """
    CREATE TABLE IF NOT EXISTS users (
        id              uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        name            text,
        email           text UNIQUE,
        email_verified  timestamptz,
        image           text,
        created_at      timestamptz NOT NULL DEFAULT now(),
        updated_at      timestamptz NOT NULL DEFAULT now()
    )
    """,
    # Sessions: login sessions, removed with their user
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id              uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id         uuid REFERENCES users(id) ON DELETE CASCADE,
        session_token   text UNIQUE,
        access_token    text UNIQUE,
        expires         timestamptz,
        created_at      timestamptz NOT NULL DEFAULT now(),
        updated_at      timestamptz NOT NULL DEFAULT now()
    )
    """,
    # Verification tokens: one-time email sign-in tokens
    """
    CREATE TABLE IF NOT EXISTS verification_tokens (
        id              uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        identifier      text NOT NULL,
        token           text NOT NULL UNIQUE,
        expires         timestamptz NOT NULL,
        created_at      timestamptz NOT NULL DEFAULT now()
    )
    """,
    # Chat sessions: conversation history per user
    """
    CREATE TABLE IF NOT EXISTS chat_sessions (
        id              uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id         uuid REFERENCES users(id) ON DELETE CASCADE,
        title           text,
        metadata        jsonb,
        messages        jsonb DEFAULT '[]'::jsonb,
        created_at      timestamptz NOT NULL DEFAULT now(),
        updated_at      timestamptz NOT NULL DEFAULT now()
    )
    """,
    # Indexes for faster lookups
    "CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_chat_user_id ON chat_sessions(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_verification_identifier ON verification_tokens(identifier)",
)

TABLES = ("users", "sessions", "verification_tokens", "chat_sessions")
INDEXES = ("idx_sessions_user_id", "idx_chat_user_id", "idx_verification_identifier")


async def create_tables(db) -> None:
    """
    Execute the schema statements in a single transaction.
    Safe to call multiple times (uses IF NOT EXISTS).

    Args:
        db: An open `db.connection.Database`.

    Raises:
        BootstrapError: If any statement fails; nothing is kept.
        DatabaseConnectionError: If no connection could be obtained.
    """
    conn = await db.get_connection()
    try:
        # Commits on success, rolls back if any statement raises.
        async with conn.transaction():
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info(f"Database schema initialized ({', '.join(TABLES)}).")
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.error(f"Failed to initialize schema: {e}", exc_info=True)
        raise BootstrapError(f"Failed to initialize schema: {e}") from e
    finally:
        await db.release_connection(conn)


async def _main() -> None:
    from db.connection import Database

    db = Database()
    await db.open(bootstrap=False)
    try:
        await create_tables(db)
    finally:
        await db.close()


if __name__ == "__main__":
    try:
        asyncio.run(_main())
    except DatabaseError as e:
        logger.error(f"Schema initialization aborted: {e}")
        sys.exit(1)
    print("✅ Database schema created successfully.")
