"""
SQLite-specific strategy implementation.

This module implements the DatabaseStrategy interface for SQLite. It handles
SQLite's peculiarities such as:
- `INSERT OR IGNORE` instead of `INSERT IGNORE`
- Unique keys implemented as unique indexes (no ALTER TABLE ADD CONSTRAINT)
- Metadata retrieval using PRAGMA statements and `sqlite_master`
- Math functions missing from many SQLite builds, registered in Python
"""
import logging
import math
import random
import sqlite3
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from fluentdb.strategy.base import DatabaseStrategy, register_strategy
from fluentdb.types import ColumnType

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper
    from fluentdb.options import DatabaseOptions

logger = logging.getLogger(__name__)


def _nullsafe(func: Callable[..., Any]) -> Callable[..., Any]:
    """SQL functions return NULL for NULL input instead of raising."""
    def inner(*args):
        if any(arg is None for arg in args):
            return None
        return func(*args)
    return inner


# name -> (argc, callable)
DETERMINISTIC_FUNCTIONS: dict[str, tuple[int, Callable[..., Any]]] = {
    'ACOS': (1, math.acos),
    'ASIN': (1, math.asin),
    'ATAN': (1, math.atan),
    'CEIL': (1, math.ceil),
    'COS': (1, math.cos),
    'DEGREES': (1, math.degrees),
    'EXP': (1, math.exp),
    'FLOOR': (1, math.floor),
    'LN': (1, math.log),
    'LOG': (2, lambda b, x: math.log(x, b)),
    'LOG10': (1, math.log10),
    'LOG2': (1, math.log2),
    'PI': (0, lambda: math.pi),
    'POW': (2, math.pow),
    'RADIANS': (1, math.radians),
    'SIGN': (1, lambda x: (x > 0) - (x < 0)),
    'SIN': (1, math.sin),
    'SQRT': (1, math.sqrt),
    'TAN': (1, math.tan),
}


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    drivername = 'sqlite'

    unlimited = '-1'

    column_types = {
        ColumnType.INTEGER: 'INTEGER',
        ColumnType.FLOAT: 'REAL',
        ColumnType.BOOLEAN: 'BOOLEAN',
        ColumnType.STRING: 'VARCHAR(255)',
        ColumnType.TEXT: 'TEXT',
        ColumnType.BLOB: 'BLOB',
        ColumnType.DATETIME: 'DATETIME',
        ColumnType.AUTOINCREMENT: 'INTEGER PRIMARY KEY AUTOINCREMENT',
    }

    column_defaults = {
        **DatabaseStrategy.column_defaults,
        ColumnType.BLOB: "X''",
        }

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQLite."""
        return sa.URL.create(drivername='sqlite', database=options.database)

    def configure_connection(self, raw_conn: Any) -> None:
        """Switch to autocommit, enforce foreign keys and register functions.
        """
        raw_conn.isolation_level = None
        raw_conn.execute('PRAGMA foreign_keys = ON')
        for name, (argc, func) in DETERMINISTIC_FUNCTIONS.items():
            raw_conn.create_function(name, argc, _nullsafe(func), deterministic=True)
        raw_conn.create_function('RAND', 0, random.random)
        logger.debug(f'Configured SQLite connection (sqlite {sqlite3.sqlite_version})')

    def standardize_sql(self, sql: str, has_params: bool) -> str:
        return sql

    def slot(self, name: str) -> str:
        return f':{name}'

    def insert_ignore(self, table: str, columns: str, values: str) -> str:
        return f'INSERT OR IGNORE INTO {table} ({columns}) VALUES ({values})'

    def add_unique_key(self, table: str, name: str, columns: list[str]) -> str:
        """SQLite cannot add constraints to existing tables; use a unique index.
        """
        cols = ', '.join(self.quote_identifier(c) for c in columns)
        return (f'CREATE UNIQUE INDEX {self.quote_identifier(name)} '
                f'ON {self.quote_identifier(table)} ({cols})')

    def drop_unique_key(self, table: str, name: str) -> str:
        return f'DROP INDEX {self.quote_identifier(name)}'

    def get_columns(self, cn: 'ConnectionWrapper', table: str) -> list[str]:
        """Get column names using PRAGMA table_info.
        """
        sql = f'PRAGMA table_info({self.quote_identifier(table)})'
        return [row['name'] for row in cn.query(sql)]

    def get_tables(self, cn: 'ConnectionWrapper') -> list[str]:
        """Get user table names, excluding SQLite's internal tables.
        """
        sql = ("SELECT name FROM sqlite_master WHERE type = 'table' "
               "AND name NOT LIKE 'sqlite_%' ORDER BY name")
        return cn.query(sql).fetch_column()
