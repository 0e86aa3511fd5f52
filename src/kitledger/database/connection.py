"""SQLite connection management for the local backend."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path


class DatabaseConnection:
    """Manages SQLite connections with foreign key enforcement.

    ``":memory:"`` is supported by keeping one shared connection open for
    the lifetime of the object, since every new in-memory connection
    would otherwise start from an empty database.
    """

    MEMORY = ":memory:"

    def __init__(self, db_path: str | Path):
        self._shared = None
        if str(db_path) == self.MEMORY:
            self.db_path = None
            self._shared = self._open(self.MEMORY)
        else:
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _open(target: str) -> sqlite3.Connection:
        conn = sqlite3.connect(target)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def get_connection(self):
        """Yield a connection that auto-commits or rolls back."""
        conn = self._shared or self._open(str(self.db_path))
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if conn is not self._shared:
                conn.close()

    def execute(self, sql: str, params: tuple = ()):
        """Run a single statement and return all fetched rows."""
        with self.get_connection() as conn:
            cursor = conn.execute(sql, params)
            return cursor.fetchall()

    def fetch_dicts(self, sql: str, params: tuple = ()) -> list[dict]:
        """Run a query and return rows as plain dicts."""
        return [dict(r) for r in self.execute(sql, params)]

    def execute_script(self, sql_script: str):
        """Run a multi-statement SQL script."""
        with self.get_connection() as conn:
            conn.executescript(sql_script)

    def close(self):
        """Close the shared in-memory connection, if any."""
        if self._shared is not None:
            self._shared.close()
            self._shared = None
