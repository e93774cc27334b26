"""
Database initialization and management for photovault application.

This module provides functions to initialize the DuckDB database and manage
a shared, lock-guarded connection.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import duckdb

from ..logging_config import get_logger
from .schema import get_required_columns, get_schema_statements

logger = get_logger(__name__)


def to_db_timestamp(value: datetime) -> datetime:
    """Convert a datetime to the naive UTC form stored in TIMESTAMP columns."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value


def from_db_timestamp(value: Any) -> datetime:
    """Convert a TIMESTAMP column value back to an aware UTC datetime."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


class DatabaseManager:
    """
    Manages the DuckDB connection and schema.

    One connection is shared by all services. Statements and transactions are
    serialized through a re-entrant lock; a transaction keeps the lock until it
    commits or rolls back.
    """

    def __init__(self, db_path: str):
        """
        Initialize DatabaseManager.

        Args:
            db_path: Path to the DuckDB database file (or ":memory:")
        """
        self.db_path = db_path
        self._connection: duckdb.DuckDBPyConnection | None = None
        self._lock = threading.RLock()

    def connect(self) -> duckdb.DuckDBPyConnection:
        """
        Get or create a database connection.

        Returns:
            DuckDB connection object
        """
        with self._lock:
            if self._connection is None:
                self._connection = duckdb.connect(self.db_path)
                logger.info("database_connected", db_path=self.db_path)

            return self._connection

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.info("database_closed", db_path=self.db_path)

    def initialize_schema(self) -> None:
        """
        Create all tables and indexes if they don't exist.

        Raises:
            duckdb.Error: If database operations fail
        """
        with self._lock:
            conn = self.connect()
            try:
                for statement in get_schema_statements():
                    logger.debug("executing_schema_statement", statement=statement.strip().splitlines()[0])
                    conn.execute(statement)
                logger.info("database_schema_initialized", db_path=self.db_path)
            except duckdb.Error as e:
                logger.error("database_schema_initialization_failed", error=str(e))
                raise

    def verify_schema(self) -> bool:
        """
        Verify that every table exists with its required columns.

        Returns:
            True if schema is valid, False otherwise
        """
        try:
            for table, required in get_required_columns().items():
                rows = self.execute_query(
                    "SELECT column_name FROM information_schema.columns WHERE table_name = ?", (table,)
                )
                column_names = {row[0] for row in rows}

                if not column_names:
                    logger.warning("table_missing", table=table)
                    return False

                missing_columns = required - column_names
                if missing_columns:
                    logger.warning("table_columns_missing", table=table, missing=sorted(missing_columns))
                    return False

            logger.info("database_schema_verified")
            return True

        except duckdb.Error as e:
            logger.error("schema_verification_failed", error=str(e))
            return False

    def execute_query(self, query: str, parameters: tuple | None = None) -> list[tuple]:
        """
        Execute a SQL query and return results.

        Raises:
            duckdb.Error: If query execution fails
        """
        with self._lock:
            conn = self.connect()
            try:
                if parameters:
                    result = conn.execute(query, parameters)
                else:
                    result = conn.execute(query)

                return result.fetchall()

            except duckdb.Error as e:
                logger.error("query_execution_failed", query=" ".join(query.split()), error=str(e))
                raise

    def fetch_dicts(self, query: str, parameters: tuple | None = None) -> list[dict[str, Any]]:
        """Execute a query and return rows as dictionaries keyed by column name."""
        with self._lock:
            conn = self.connect()
            try:
                cursor = conn.execute(query, parameters) if parameters else conn.execute(query)
                columns = [column[0] for column in cursor.description]
                return [dict(zip(columns, row, strict=True)) for row in cursor.fetchall()]
            except duckdb.Error as e:
                logger.error("query_execution_failed", query=" ".join(query.split()), error=str(e))
                raise

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Run a block inside a single transaction.

        Commits when the block exits normally and rolls back on any exception,
        which is then re-raised.
        """
        with self._lock:
            conn = self.connect()
            conn.begin()
            try:
                yield conn
            except BaseException:
                conn.rollback()
                logger.warning("transaction_rolled_back", db_path=self.db_path)
                raise
            else:
                conn.commit()

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def create_database(db_path: str) -> DatabaseManager:
    """
    Create and initialize a DuckDB database.

    Args:
        db_path: Path where the database file should be created

    Returns:
        Initialized DatabaseManager instance

    Raises:
        RuntimeError: If database creation fails
    """
    try:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        db_manager = DatabaseManager(db_path)
        db_manager.initialize_schema()

        if not db_manager.verify_schema():
            raise RuntimeError("Schema verification failed after creation")

        logger.info("database_created", db_path=db_path)
        return db_manager

    except Exception as e:
        logger.error("database_creation_failed", db_path=db_path, error=str(e))
        raise RuntimeError(f"Database creation failed: {e}") from e


_database_manager: DatabaseManager | None = None
_database_lock = threading.Lock()


def get_database_manager(db_path: str | None = None) -> DatabaseManager:
    """
    Get the shared DatabaseManager, creating and initializing it on first use.

    Args:
        db_path: Database path (defaults to DATABASE_PATH configuration)
    """
    global _database_manager
    with _database_lock:
        if _database_manager is None:
            from ..config import get_database_path

            _database_manager = create_database(db_path or get_database_path())
        return _database_manager


def reset_database_manager() -> None:
    """Close and forget the shared DatabaseManager."""
    global _database_manager
    with _database_lock:
        if _database_manager is not None:
            _database_manager.close()
            _database_manager = None
