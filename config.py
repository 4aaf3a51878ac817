"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()


# ── PostgreSQL ────────────────────────────────────────────
# Mandatory for db.connection.Database; left empty here so the module
# itself always imports.
DATABASE_URL: str = os.getenv("DATABASE_URL", "")

# ── Connection Pool ───────────────────────────────────────
# Serverless Postgres (e.g. Neon) penalizes many concurrent connections
# and drops idle ones early, so the pool stays small and idles long.
DB_POOL_MIN_SIZE: int = int(os.getenv("DB_POOL_MIN_SIZE", "0"))
DB_POOL_MAX_SIZE: int = int(os.getenv("DB_POOL_MAX_SIZE", "2"))
DB_POOL_IDLE_TIMEOUT: float = float(os.getenv("DB_POOL_IDLE_TIMEOUT", "30"))

# ── Logging ───────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
# Level for the asyncpg driver's own logger.
DRIVER_LOG_LEVEL: str = os.getenv("DRIVER_LOG_LEVEL", "WARNING")
