"""
Base strategy interface for dialect-specific behavior.

Defines the abstract base class that all dialect strategies inherit from.
Everything that differs between SQL dialects and is not an expression leaf
lives here: literal and identifier quoting, parameter slots, insert-or-ignore
rendering, column DDL, constraint DDL, table reflection and the native
connection setup. Expression nodes carry their own per-dialect templates and
consult `dialect_name` only.
"""
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from fluentdb.exceptions import ConfigurationError
from fluentdb.types import ColumnType

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper
    from fluentdb.options import DatabaseOptions

# A lone percent sign, neither escaped nor opening a `%(name)s` slot
_UNESCAPED_PERCENT = re.compile(r'(?<!%)%(?![%(])')

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class DatabaseStrategy(ABC):
    """Base class for dialect-specific operations.
    """

    #: DDL for each base column kind.
    column_types: dict[ColumnType, str] = {}

    #: SQLAlchemy driver name used in the connection URL.
    drivername: str = ''

    begin_sql = 'BEGIN'
    commit_sql = 'COMMIT'
    rollback_sql = 'ROLLBACK'

    #: SQL yielding the schema searched by reflection queries.
    current_schema_sql = 'CURRENT_SCHEMA()'

    #: LIMIT count meaning no limit, for an OFFSET without a LIMIT.
    unlimited = 'ALL'

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier."""

    def __str__(self) -> str:
        return self.dialect_name

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.

        Returns
            List of field names that must have non-None/non-zero values
        """

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Raises
            ConfigurationError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ConfigurationError(f'field {field} cannot be None or 0')

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL.
        """
        return sa.URL.create(
            drivername=self.drivername,
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            )

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs.

        `driver_options` from the profile are passed to the DBAPI `connect()`.
        """
        return {'connect_args': dict(options.driver_options or {})}

    @abstractmethod
    def configure_connection(self, raw_conn: Any) -> None:
        """Prepare a raw DBAPI connection for use.

        Implementations must leave the driver in autocommit mode: the
        connection wrapper issues BEGIN/COMMIT/SAVEPOINT itself.
        """

    def cursor(self, raw_conn: Any) -> Any:
        """Open a DBAPI cursor on a raw connection."""
        return raw_conn.cursor()

    # Quoting

    def quote_identifier(self, identifier: str) -> str:
        """Quote a database identifier using standard double-quote escaping.
        """
        return '"' + identifier.replace('"', '""') + '"'

    def quote_string(self, value: str) -> str:
        """Quote a string literal using standard single-quote doubling.
        """
        return "'" + value.replace("'", "''") + "'"

    def slot(self, name: str) -> str:
        """Return the named parameter placeholder for this driver."""
        return f'%({name})s'

    # Statements

    def standardize_sql(self, sql: str, has_params: bool) -> str:
        """Escape literal percent signs for pyformat drivers.

        Drivers using `%(name)s` placeholders only interpret `%` when
        parameters are passed, so SQL without parameters is left alone.
        """
        if not has_params:
            return sql
        return _UNESCAPED_PERCENT.sub('%%', sql)

    def insert_ignore(self, table: str, columns: str, values: str) -> str:
        """Render an insert that silently skips rows violating a unique key.

        Args:
            table: Rendered table name
            columns: Rendered, comma-separated column list
            values: Rendered, comma-separated value list
        """
        return f'INSERT IGNORE INTO {table} ({columns}) VALUES ({values})'

    def returning(self, column: str) -> str:
        """Suffix that makes an INSERT return the generated key, if supported."""
        return ''

    def savepoint(self, depth: int) -> str:
        return f'SAVEPOINT SAVEPOINT_{depth}'

    def release_savepoint(self, depth: int) -> str:
        return f'RELEASE SAVEPOINT SAVEPOINT_{depth}'

    def rollback_to_savepoint(self, depth: int) -> str:
        return f'ROLLBACK TO SAVEPOINT SAVEPOINT_{depth}'

    # DDL

    #: Literal defaults given to NOT NULL columns added to existing tables.
    column_defaults: dict[ColumnType, str] = {
        ColumnType.INTEGER: '0',
        ColumnType.FLOAT: '0',
        ColumnType.BOOLEAN: '0',
        ColumnType.STRING: "''",
        ColumnType.TEXT: "''",
        ColumnType.BLOB: "''",
        ColumnType.DATETIME: "'1970-01-01 00:00:00'",
        }

    def column_definition(self, ctype: ColumnType, with_default: bool = False) -> str:
        """Render the type portion of a column declaration.

        Args:
            ctype: Column type, a base kind optionally or-ed with flags
            with_default: add a DEFAULT for NOT NULL kinds that have one

        Returns
            str: DDL such as `VARCHAR(255) NOT NULL`
        """
        ddl = self.column_types[ctype.kind]
        if ctype.kind == ColumnType.AUTOINCREMENT:
            return ddl
        ddl += ' NULL' if ctype.is_nullable else ' NOT NULL'
        if with_default and not ctype.is_nullable and ctype.kind in self.column_defaults:
            ddl += f' DEFAULT {self.column_defaults[ctype.kind]}'
        if ctype.is_unique:
            ddl += ' UNIQUE'
        return ddl

    def foreign_key(self, table: str, column: str, ref_table: str, ref_column: str) -> str:
        """Render a named foreign-key table constraint.
        """
        name = self.quote_identifier(f'FK_{table}__{column}')
        return (f'CONSTRAINT {name} FOREIGN KEY ({self.quote_identifier(column)}) '
                f'REFERENCES {self.quote_identifier(ref_table)} ({self.quote_identifier(ref_column)}) '
                'ON UPDATE CASCADE ON DELETE CASCADE')

    def add_unique_key(self, table: str, name: str, columns: list[str]) -> str:
        cols = ', '.join(self.quote_identifier(c) for c in columns)
        return (f'ALTER TABLE {self.quote_identifier(table)} '
                f'ADD CONSTRAINT {self.quote_identifier(name)} UNIQUE ({cols})')

    @abstractmethod
    def drop_unique_key(self, table: str, name: str) -> str:
        """Render the statement dropping a unique key added by `add_unique_key`."""

    # Reflection

    def get_columns(self, cn: 'ConnectionWrapper', table: str) -> list[str]:
        """Get the column names of a table in ordinal order.

        Returns an empty list when the table does not exist.
        """
        sql = ('SELECT column_name FROM information_schema.columns '
               f'WHERE table_name = {self.quote_string(table)} '
               f'AND table_schema = {self.current_schema_sql} '
               'ORDER BY ordinal_position')
        return cn.query(sql).fetch_column()

    def get_tables(self, cn: 'ConnectionWrapper') -> list[str]:
        """Get all user table names, sorted."""
        sql = ('SELECT table_name FROM information_schema.tables '
               f'WHERE table_schema = {self.current_schema_sql} '
               "AND table_type = 'BASE TABLE' ORDER BY table_name")
        return cn.query(sql).fetch_column()
