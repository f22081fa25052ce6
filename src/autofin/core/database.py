"""
SQLite database initialization and connection management.

Provides the autofin schema (currencies, wordlist, statement files and
calculations) and a singleton connection manager.

Thread Safety Notes:
- Uses check_same_thread=False for multi-threaded access
- WAL mode is enabled for better concurrent read performance
- Use the transaction() context manager for atomic operations
- transaction() holds a per-connection lock, so threads sharing the
  connection run their write transactions one at a time
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from autofin.core.exceptions import DatabaseError


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS currency (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT UNIQUE NOT NULL,
    exchange_rate TEXT NOT NULL DEFAULT '1',
    created_by TEXT NOT NULL DEFAULT '',
    updated_by TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS income_wordlist (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    word TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL CHECK(category IN ('SALARY', 'ALLOWANCE', 'COMMISSION')),
    created_by TEXT NOT NULL DEFAULT '',
    updated_by TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS statement_file (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    original_file_name TEXT NOT NULL,
    file_name TEXT UNIQUE NOT NULL,
    location TEXT NOT NULL,
    sha256 TEXT NOT NULL DEFAULT '',
    created_by TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS statement_file_analysis (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    number TEXT UNIQUE NOT NULL,
    statement_file_name TEXT NOT NULL,
    product TEXT NOT NULL CHECK(product IN ('SA', 'SF', 'PL')),
    account_number TEXT NOT NULL DEFAULT '',
    account_display_name TEXT NOT NULL DEFAULT '',
    account_currency TEXT NOT NULL DEFAULT '',
    exchange_rate TEXT NOT NULL DEFAULT '1',
    declared_interview_salary TEXT,
    total_income TEXT NOT NULL DEFAULT '0',
    total_basic_salary TEXT NOT NULL DEFAULT '0',
    total_other_income TEXT NOT NULL DEFAULT '0',
    monthly_average_income TEXT NOT NULL DEFAULT '0',
    monthly_net_income TEXT NOT NULL DEFAULT '0',
    period_in_month TEXT NOT NULL DEFAULT '0',
    started_at DATE,
    ended_at DATE,
    status TEXT NOT NULL CHECK(status IN ('PENDING', 'COMPLETED')),
    source_income TEXT NOT NULL DEFAULT '{}',
    monthly_salary TEXT NOT NULL DEFAULT '{}',
    allowance TEXT NOT NULL DEFAULT '{}',
    commission TEXT NOT NULL DEFAULT '{}',
    created_by TEXT NOT NULL DEFAULT '',
    updated_by TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_wordlist_created ON income_wordlist(created_at);
CREATE INDEX IF NOT EXISTS idx_wordlist_category ON income_wordlist(category);
CREATE INDEX IF NOT EXISTS idx_analysis_product ON statement_file_analysis(product);
CREATE INDEX IF NOT EXISTS idx_analysis_created ON statement_file_analysis(created_at);
"""


class DatabaseManager:
    """
    Singleton manager for SQLite database connections.

    Usage:
        db = DatabaseManager()
        conn = db.init("/path/to/autofin.db")
        # Use connection...
        db.close()
    """

    _instance: Optional["DatabaseManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "DatabaseManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._connection = None
                    cls._instance._db_path = None
        return cls._instance

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the current database connection."""
        if self._connection is None:
            raise DatabaseError("Database not initialized. Call init() first.")
        return self._connection

    def init(self, db_path: str) -> sqlite3.Connection:
        """
        Initialize database and schema.

        Args:
            db_path: Path to database file or ":memory:" for in-memory database

        Returns:
            Database connection

        Raises:
            DatabaseError: If initialization fails
        """
        try:
            self._db_path = db_path

            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)

            # Transactions are managed explicitly through transaction()
            self._connection = sqlite3.connect(
                db_path, check_same_thread=False, isolation_level=None
            )
            self._connection.row_factory = sqlite3.Row

            if db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

            self._execute_schema()

            return self._connection

        except (sqlite3.Error, OSError) as e:
            raise DatabaseError(f"Failed to initialize database: {e}")

    def _execute_schema(self) -> None:
        """Create all tables if not exist."""
        try:
            self._connection.executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to execute schema: {e}")

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute a SQL statement."""
        return self.connection.execute(sql, params)

    @contextmanager
    def transaction(self):
        """
        Context manager for atomic transactions.

        Usage:
            db = DatabaseManager()
            with db.transaction() as conn:
                conn.execute("INSERT INTO currency ...")
            # Auto-commits on success, auto-rolls back on exception
        """
        with transaction(self.connection) as conn:
            yield conn

    def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            _release_transaction_lock(self._connection)
            self._connection.close()
            self._connection = None
            self._db_path = None

    def get_tables(self) -> list[str]:
        """Get list of all tables in database."""
        cursor = self.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        )
        return [row[0] for row in cursor.fetchall()]

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)."""
        with cls._lock:
            if cls._instance and cls._instance._connection:
                _release_transaction_lock(cls._instance._connection)
                cls._instance._connection.close()
            cls._instance = None


_transaction_locks = {}
_transaction_locks_guard = threading.Lock()


def _transaction_lock(conn: sqlite3.Connection) -> threading.RLock:
    with _transaction_locks_guard:
        return _transaction_locks.setdefault(id(conn), threading.RLock())


def _release_transaction_lock(conn: sqlite3.Connection) -> None:
    with _transaction_locks_guard:
        _transaction_locks.pop(id(conn), None)


@contextmanager
def transaction(conn: sqlite3.Connection):
    """
    Run a block inside BEGIN IMMEDIATE / COMMIT on an autocommit connection.

    Threads sharing the connection wait for each other here. Domain errors
    raised inside the block propagate unchanged after rollback; sqlite
    failures, including a BEGIN that cannot start, are wrapped in
    DatabaseError.
    """
    with _transaction_lock(conn):
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot begin transaction: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            conn.execute("ROLLBACK")
            raise DatabaseError(f"Transaction failed: {e}") from e
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")


def get_connection() -> sqlite3.Connection:
    """Get the current database connection (convenience function)."""
    return DatabaseManager().connection
