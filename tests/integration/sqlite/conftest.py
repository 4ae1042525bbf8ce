"""
Fixtures for SQLite-specific integration tests.
"""
import fluentdb as db
import pytest


@pytest.fixture
def sqlite_file_conn(tmp_path):
    """File-based SQLite connection, for checking what other connections see."""
    path = str(tmp_path / 'test.db')
    conn = db.connect({'drivername': 'sqlite', 'database': path})
    db.execute(conn, 'CREATE TABLE test_table (id INTEGER PRIMARY KEY, name TEXT UNIQUE, value INTEGER)')
    db.execute(conn, "INSERT INTO test_table (name, value) VALUES ('Alice', 10), ('Bob', 20)")
    yield conn, path
    conn.close()


@pytest.fixture
def other_conn(sqlite_file_conn):
    """A second connection to the same database file."""
    _, path = sqlite_file_conn
    conn = db.connect({'drivername': 'sqlite', 'database': path})
    yield conn
    conn.close()
