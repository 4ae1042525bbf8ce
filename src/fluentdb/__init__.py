"""
Database access layer with a fluent query builder, for SQLite, PostgreSQL
and MySQL.

All statement operations can be called either as:
- Module functions: db.execute(cn, sql, args)
- ConnectionWrapper methods: cn.execute(sql, args)

The module functions are facades over the connection methods.
"""
__version__ = '0.1.0'

from collections.abc import Mapping
from typing import Any

from fluentdb.connection import ConnectionWrapper, connect, from_config
from fluentdb.exceptions import ConfigurationError, DatabaseError
from fluentdb.exceptions import DbConnectionError, DriverError
from fluentdb.exceptions import ImmutableTableAccess, IntegrityError
from fluentdb.exceptions import InvariantViolation, ProgrammingError
from fluentdb.expression import DateTime, Numeric, Predicate, Text, Value
from fluentdb.expression import all_, any_
from fluentdb.junction import Junction, junction
from fluentdb.migrator import Migration, Migrator
from fluentdb.options import DatabaseOptions
from fluentdb.query import Delete, Insert, Select, Update
from fluentdb.record import Record, record
from fluentdb.schema import Schema
from fluentdb.statement import Result, Statement
from fluentdb.table import Column, Table
from fluentdb.transaction import Transaction as transaction
from fluentdb.types import ColumnType


def execute(cn: ConnectionWrapper, sql: str, args: Mapping[str, Any] | None = None) -> int:
    """Execute a SQL statement and return affected row count.
    """
    return cn.execute(sql, args)


delete = execute
insert = execute
update = execute


def query(cn: ConnectionWrapper, sql: str, args: Mapping[str, Any] | None = None) -> Result:
    """Execute a SQL statement and return its rows lazily.
    """
    return cn.query(sql, args)


def select(cn: ConnectionWrapper, sql: str, args: Mapping[str, Any] | None = None,
           **kwargs: Any) -> Any:
    """Execute a query and load all rows with the connection's data loader.
    """
    return cn.select(sql, args, **kwargs)


def select_scalar(cn: ConnectionWrapper, sql: str, args: Mapping[str, Any] | None = None) -> Any:
    """Execute a query and return the first column of the first row, or None.
    """
    return cn.query(sql, args).fetch_scalar()


def select_column(cn: ConnectionWrapper, sql: str,
                  args: Mapping[str, Any] | None = None) -> list[Any]:
    """Execute a query and return the first column as a list.
    """
    return cn.query(sql, args).fetch_column()


def migrate(cn: ConnectionWrapper, to: str | None = None) -> list[str]:
    """Apply the pending migrations of the connection's migrations directory.
    """
    return cn.get_migrator().up(to)


__all__ = [
    'connect',
    'from_config',
    'ConnectionWrapper',
    'transaction',
    'DatabaseOptions',
    'execute',
    'delete',
    'insert',
    'update',
    'query',
    'select',
    'select_scalar',
    'select_column',
    'migrate',
    'Column',
    'ColumnType',
    'DateTime',
    'Delete',
    'Insert',
    'Junction',
    'junction',
    'Migration',
    'Migrator',
    'Numeric',
    'Predicate',
    'Record',
    'record',
    'Result',
    'Schema',
    'Select',
    'Statement',
    'Table',
    'Text',
    'Update',
    'Value',
    'all_',
    'any_',
    'ConfigurationError',
    'DatabaseError',
    'DbConnectionError',
    'DriverError',
    'ImmutableTableAccess',
    'IntegrityError',
    'InvariantViolation',
    'ProgrammingError',
]
