"""
PostgreSQL-specific strategy implementation.

This module implements the DatabaseStrategy interface for PostgreSQL. It
handles PostgreSQL's features such as:
- `ON CONFLICT DO NOTHING` for insert-or-ignore
- `RETURNING` for generated keys (psycopg has no usable `lastrowid`)
- `SERIAL` autoincrement columns
"""
import logging
from typing import TYPE_CHECKING, Any

from fluentdb.strategy.base import DatabaseStrategy, register_strategy
from fluentdb.types import ColumnType

if TYPE_CHECKING:
    from fluentdb.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations.
    """

    drivername = 'postgresql+psycopg'

    column_types = {
        ColumnType.INTEGER: 'INTEGER',
        ColumnType.FLOAT: 'DOUBLE PRECISION',
        ColumnType.BOOLEAN: 'SMALLINT',
        ColumnType.STRING: 'VARCHAR(255)',
        ColumnType.TEXT: 'TEXT',
        ColumnType.BLOB: 'BYTEA',
        ColumnType.DATETIME: 'TIMESTAMP',
        ColumnType.AUTOINCREMENT: 'SERIAL PRIMARY KEY',
    }

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Pass timeout and application name through to psycopg."""
        kwargs = super().get_engine_kwargs(options)
        connect_args = kwargs['connect_args']
        if options.timeout:
            connect_args.setdefault('connect_timeout', options.timeout)
        if options.appname:
            connect_args.setdefault('application_name', options.appname)
        return kwargs

    def configure_connection(self, raw_conn: Any) -> None:
        """Hand transaction control to the connection wrapper.
        """
        raw_conn.autocommit = True

    def insert_ignore(self, table: str, columns: str, values: str) -> str:
        return f'INSERT INTO {table} ({columns}) VALUES ({values}) ON CONFLICT DO NOTHING'

    def returning(self, column: str) -> str:
        return f' RETURNING {self.quote_identifier(column)}'

    def drop_unique_key(self, table: str, name: str) -> str:
        return (f'ALTER TABLE {self.quote_identifier(table)} '
                f'DROP CONSTRAINT {self.quote_identifier(name)}')
