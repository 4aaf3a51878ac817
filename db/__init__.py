"""
db/ - Database Layer
====================
Handles the PostgreSQL connection pool, schema initialization, and raw SQL
execution for users, sessions, verification tokens and chat sessions.
This layer is the lowest in the architecture and has no dependencies on other layers.

Modules:
    connection - `Database` pool owner and the process-wide default instance
    sql        - positional-parameter query builder
    init_db    - schema bootstrap
    errors     - exception types
"""
