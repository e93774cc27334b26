"""
Database schema definitions for photovault application.

DuckDB has no ON DELETE CASCADE and no row-level security, so ownership
columns are plain TEXT references; cascades and policies live in the
identity subsystem and the access control layer.
"""

from typing import List

AUTH_USERS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS auth_users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL
);
"""

PROFILES_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL UNIQUE,
    email TEXT,
    created_at TIMESTAMP NOT NULL
);
"""

PHOTOS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS photos (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    file_name TEXT NOT NULL,
    file_path TEXT NOT NULL,
    file_size BIGINT,
    created_at TIMESTAMP NOT NULL
);
"""

PHOTOS_TABLE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_photos_user_created ON photos(user_id, created_at);",
]

ALL_SCHEMA_STATEMENTS = [
    AUTH_USERS_TABLE_SCHEMA,
    PROFILES_TABLE_SCHEMA,
    PHOTOS_TABLE_SCHEMA,
] + PHOTOS_TABLE_INDEXES

REQUIRED_COLUMNS = {
    "auth_users": {"id", "email", "password_hash", "created_at"},
    "profiles": {"id", "user_id", "email", "created_at"},
    "photos": {"id", "user_id", "file_name", "file_path", "file_size", "created_at"},
}


def get_schema_statements() -> List[str]:
    """
    Get all database schema creation statements.

    Returns:
        List of SQL statements to create tables and indexes
    """
    return ALL_SCHEMA_STATEMENTS


def get_required_columns() -> dict[str, set[str]]:
    """Get the columns every table must expose, keyed by table name."""
    return REQUIRED_COLUMNS
