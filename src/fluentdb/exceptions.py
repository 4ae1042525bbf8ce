"""
Database-specific exception classes.

Native driver errors are never wrapped or retried by this package; they
propagate unchanged. The tuples below group the native classes of every
supported driver so callers can catch a kind of failure regardless of dialect.
"""
import sqlite3

import mysql.connector
import psycopg


class DatabaseError(Exception):
    """Base class for all fluentdb errors.
    """


class ConfigurationError(DatabaseError, ValueError):
    """Malformed connection profile or entity/junction binding.
    """


class InvariantViolation(DatabaseError, RuntimeError):
    """A caller broke an invariant of the connection, e.g. committing at depth 0.
    """


class ImmutableTableAccess(InvariantViolation, TypeError):
    """Raised when schema mutation is attempted through the table accessor.
    """


DriverError = (
    sqlite3.Error,
    psycopg.Error,
    mysql.connector.Error,
    )

DbConnectionError = (
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    psycopg.OperationalError,
    psycopg.InterfaceError,
    mysql.connector.OperationalError,
    mysql.connector.InterfaceError,
    )

IntegrityError = (
    sqlite3.IntegrityError,
    psycopg.IntegrityError,
    mysql.connector.IntegrityError,
    )

ProgrammingError = (
    sqlite3.ProgrammingError,
    psycopg.ProgrammingError,
    mysql.connector.ProgrammingError,
    )
