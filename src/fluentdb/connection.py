"""
Database connection handling with SQLAlchemy.

This module provides:
1. The `connect()` function for creating new database connections
2. The `ConnectionWrapper` class, the entry point to everything else

SQLAlchemy creates the engine and opens the DBAPI connection. From then on
the wrapper talks to the driver directly: the driver is put in autocommit
mode and the wrapper issues BEGIN, COMMIT and SAVEPOINT itself, so nested
transactions behave the same on every dialect.

The ConnectionWrapper provides, among others:
- execute(sql, args) - Execute SQL and return the affected row count
- query(sql, args) - Execute SQL and return a lazy `Result`
- prepare(sql) - Prepare a reusable `Statement`
- cn['table'] - Reflect a table, usable in the fluent query builders
- begin(), commit(), rollback(), new_transaction(), transact(work)
- get_record(cls), save(entity) - Entity persistence
"""
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import fields
from typing import TYPE_CHECKING, Any, Self, TypeVar

import sqlalchemy as sa
from fluentdb.exceptions import ConfigurationError, ImmutableTableAccess
from fluentdb.exceptions import InvariantViolation
from fluentdb.expression import Numeric, Predicate, match, quote, quote_list
from fluentdb.junction import Junction
from fluentdb.options import DatabaseOptions
from fluentdb.record import Record
from fluentdb.statement import Result, Statement, dumpsql
from fluentdb.strategy import DatabaseStrategy, get_strategy
from fluentdb.table import Table
from fluentdb.transaction import Transaction
from sqlalchemy.pool import NullPool

from libb import load_options

if TYPE_CHECKING:
    from fluentdb.migrator import Migrator
    from fluentdb.schema import Schema

__all__ = [
    'ConnectionWrapper',
    'connect',
    'configure_connection',
    'from_config',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _silent(sql: str) -> None:
    """Default logging hook."""


class ConnectionWrapper:
    """Wraps a DBAPI connection to run statements, transactions and mappers.

    This class:
    1. Tracks query execution counts and timing
    2. Hands every SQL string to a logging hook before it runs
    3. Keeps a transaction depth counter mapped onto native savepoints
    4. Caches reflected tables and entity/junction mappers
    5. Supports the context manager protocol for explicit resource management
    """

    table_class: type[Table] = Table
    record_class: type[Record] = Record
    junction_class: type[Junction] = Junction

    def __init__(self, sa_connection: sa.engine.Connection | None = None,
                 options: DatabaseOptions | None = None, *,
                 dbapi_connection: Any = None, dialect: str | None = None) -> None:
        """Initialize a connection wrapper

        Args:
            sa_connection: An open SQLAlchemy connection, as made by `connect()`
            options: The connection profile
            dbapi_connection: A raw DBAPI connection, used when no SQLAlchemy
                connection is given
            dialect: Dialect name, required with `dbapi_connection`
        """
        self.sa_connection = sa_connection
        self.engine = sa_connection.engine if sa_connection is not None else None
        self.options = options
        if sa_connection is not None:
            self.dbapi_connection = sa_connection.connection.driver_connection
            self._dialect = sa_connection.dialect.name
        else:
            self.dbapi_connection = dbapi_connection
            self._dialect = dialect or (options.drivername if options is not None else None)
        if self._dialect is None:
            raise ConfigurationError('Cannot determine the dialect of the connection')
        self.strategy: DatabaseStrategy = get_strategy(self._dialect)
        self.logger: Callable[[str], None] = _silent
        if options is not None and options.logger:
            self.logger = options.logger
        self.calls = 0
        self.time = 0
        self._depth = 0
        self._tables: dict[str, Table] = {}
        self._records: dict[type, Record] = {}
        self._junctions: dict[type, Junction] = {}

    def __enter__(self) -> Self:
        """Support for context manager protocol
        """
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __str__(self) -> str:
        return self._dialect

    def __repr__(self) -> str:
        return f'ConnectionWrapper({self._dialect!r}, depth={self._depth})'

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    @property
    def dialect(self) -> str:
        """Return the dialect name ('sqlite', 'postgresql' or 'mysql')."""
        return self._dialect

    @property
    def is_sqlite(self) -> bool:
        return self._dialect == 'sqlite'

    @property
    def is_mysql(self) -> bool:
        return self._dialect == 'mysql'

    @property
    def is_postgresql(self) -> bool:
        return self._dialect == 'postgresql'

    def set_logger(self, logger: Callable[[str], None] | None) -> Self:
        """Install the hook receiving every SQL string before it runs."""
        self.logger = logger or _silent
        return self

    def close(self) -> None:
        """Roll back anything left open and close the connection.
        """
        if self._depth:
            logger.warning(f'Closing connection with {self._depth} open transaction level(s), rolling back')
            self._run(self.strategy.rollback_sql)
            self._depth = 0
        if self.sa_connection is not None:
            if not self.sa_connection.closed:
                self.sa_connection.close()
            self.engine.dispose()
        elif self.dbapi_connection is not None:
            self.dbapi_connection.close()
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s '
                     f'(avg: {self.time/max(1, self.calls):.3f}s per query)')

    # Statements

    @dumpsql
    def _cursor(self, sql: str, params: Mapping[str, Any] | None = None) -> Any:
        cursor = self.strategy.cursor(self.dbapi_connection)
        sql = self.strategy.standardize_sql(sql, bool(params))
        try:
            if params:
                cursor.execute(sql, dict(params))
            else:
                cursor.execute(sql)
        except Exception:
            cursor.close()
            raise
        return cursor

    def execute(self, sql: str, args: Mapping[str, Any] | None = None) -> int:
        """Execute a statement and return the affected row count.
        """
        cursor = self._cursor(sql, args)
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    def query(self, sql: str, args: Mapping[str, Any] | None = None) -> Result:
        """Execute a statement and return its rows as a lazy `Result`.
        """
        return Result(self._cursor(sql, args))

    def prepare(self, sql: str) -> Statement:
        """Prepare a statement with named slots for repeated execution."""
        return Statement(self, sql)

    def select(self, sql: str, args: Mapping[str, Any] | None = None, **kwargs: Any) -> Any:
        """Execute a query and convert all rows with the profile's data loader.
        """
        result = self.query(sql, args)
        rows = result.fetch_all()
        data_loader = self.options.data_loader if self.options is not None else None
        if data_loader is None:
            return rows
        return data_loader(rows, result.columns, **kwargs)

    def _run(self, sql: str) -> None:
        self.execute(sql)

    # Quoting

    def quote(self, value: Any) -> str:
        """Render a value as a SQL literal for this dialect."""
        return quote(value, self.strategy)

    def quote_list(self, values: Iterable[Any]) -> str:
        return quote_list(values, self.strategy)

    def quote_identifier(self, name: str) -> str:
        return self.strategy.quote_identifier(name)

    def match(self, a: Any, b: Any) -> Predicate:
        """Build a predicate from mixed arguments, see `fluentdb.expression.match`."""
        return match(self, a, b)

    def pi(self) -> Numeric:
        return Numeric.pi()

    def rand(self) -> Numeric:
        return Numeric.rand()

    # Transactions

    @property
    def transaction_depth(self) -> int:
        return self._depth

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def begin(self) -> None:
        """Open a transaction, or a savepoint inside the open one.
        """
        if self._depth == 0:
            self._run(self.strategy.begin_sql)
        else:
            self._run(self.strategy.savepoint(self._depth))
        self._depth += 1

    def commit(self) -> None:
        """Commit the innermost transaction level.

        Raises
            InvariantViolation: If no transaction is open
        """
        if self._depth == 0:
            raise InvariantViolation('commit() without an open transaction')
        if self._depth == 1:
            self._run(self.strategy.commit_sql)
        else:
            self._run(self.strategy.release_savepoint(self._depth - 1))
        self._depth -= 1

    def rollback(self) -> None:
        """Roll back the innermost transaction level.

        Raises
            InvariantViolation: If no transaction is open
        """
        if self._depth == 0:
            raise InvariantViolation('rollback() without an open transaction')
        if self._depth == 1:
            self._run(self.strategy.rollback_sql)
        else:
            self._run(self.strategy.rollback_to_savepoint(self._depth - 1))
        self._depth -= 1

    def new_transaction(self) -> Transaction:
        """Return a transaction scope; commit it explicitly or it rolls back.

        Examples
            with cn.new_transaction() as tx:
                tx.execute('DELETE FROM tags')
                tx.commit()
        """
        return Transaction(self)

    def transact(self, work: Callable[['ConnectionWrapper'], T]) -> T:
        """Run `work(cn)` in a transaction level.

        Commits if `work` returns, rolls back and re-raises if it raises.
        """
        self.begin()
        try:
            value = work(self)
        except BaseException:
            self.rollback()
            raise
        self.commit()
        return value

    # Tables

    def get_table(self, name: str) -> Table | None:
        """Reflect a table, caching it. Returns None if it does not exist.
        """
        if name not in self._tables:
            columns = self.strategy.get_columns(self, name)
            if not columns:
                return None
            self._tables[name] = self.table_class(self, name, columns)
        return self._tables[name]

    def get_tables(self) -> list[str]:
        return self.strategy.get_tables(self)

    def forget_table(self, name: str) -> None:
        """Drop a table from the reflection cache after its structure changed."""
        self._tables.pop(name, None)
        for cls, record in list(self._records.items()):
            if name in (record.name, *(table.name for table in record.eav.values())):
                del self._records[cls]
        for cls, junction in list(self._junctions.items()):
            if junction.name == name:
                del self._junctions[cls]

    def forget_tables(self) -> None:
        """Empty the reflection and mapper caches."""
        self._tables.clear()
        self._records.clear()
        self._junctions.clear()

    def __getitem__(self, name: str) -> Table | None:
        return self.get_table(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get_table(name) is not None

    def __setitem__(self, name: str, value: Any) -> None:
        raise ImmutableTableAccess('Tables cannot be assigned, use the schema to create them')

    def __delitem__(self, name: str) -> None:
        raise ImmutableTableAccess('Tables cannot be deleted, use the schema to drop them')

    def get_schema(self) -> 'Schema':
        from fluentdb.schema import Schema
        return Schema(self)

    def get_migrator(self, directory: str | None = None) -> 'Migrator':
        """Return a migrator for `directory`, by default the profile's `migrations`."""
        from fluentdb.migrator import Migrator
        if directory is None and self.options is not None:
            directory = self.options.migrations
        if not directory:
            raise ConfigurationError('No migrations directory configured')
        return Migrator(self, directory)

    # Entities

    def get_record(self, entity: Any) -> Record:
        """Return the mapper of an entity class (or of an entity's class).
        """
        cls = entity if isinstance(entity, type) else type(entity)
        if cls not in self._records:
            self._records[cls] = self.record_class.from_class(self, cls)
        return self._records[cls]

    def set_record(self, cls: type, record: Record) -> None:
        self._records[cls] = record

    def get_junction(self, cls: type) -> Junction:
        """Return the mapper of a junction class."""
        if cls not in self._junctions:
            self._junctions[cls] = self.junction_class.from_class(self, cls)
        return self._junctions[cls]

    def set_junction(self, cls: type, junction: Junction) -> None:
        self._junctions[cls] = junction

    def save(self, entity: Any) -> Any:
        """Insert or update an entity. Returns its key."""
        return self.get_record(entity).save(entity)


def configure_connection(sa_connection: sa.engine.Connection, strategy: DatabaseStrategy) -> None:
    """Configure a SQLAlchemy connection with database-specific settings.
    """
    strategy.configure_connection(sa_connection.connection.driver_connection)


@load_options(cls=DatabaseOptions)
def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> ConnectionWrapper:
    """Connect to a database using SQLAlchemy for connection management

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        ConnectionWrapper object for connecting to the database
    """
    if isinstance(options, DatabaseOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    cls = options.connection_class or ConnectionWrapper
    if not (isinstance(cls, type) and issubclass(cls, ConnectionWrapper)):
        raise ConfigurationError(f'connection_class must subclass ConnectionWrapper, got {cls!r}')

    strategy = get_strategy(options.drivername)
    engine = sa.create_engine(strategy.build_connection_url(options), poolclass=NullPool,
                              **strategy.get_engine_kwargs(options))
    sa_connection = engine.connect()
    configure_connection(sa_connection, strategy)
    logger.debug(f'Connected to {strategy} database {options.database}')

    return cls(sa_connection, options)


def from_config(config: Any, name: str = 'default', **kw: Any) -> ConnectionWrapper:
    """Connect using the profile `name` of a configuration object.

    Examples
        # config.py
        default = Setting()
        default.drivername = 'sqlite'
        default.database = 'app.db'

        cn = from_config(config)
    """
    return connect(name, config, **kw)
