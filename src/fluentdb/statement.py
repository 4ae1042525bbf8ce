"""
Statement execution and result sets.

`dumpsql` wraps every trip to the driver: it hands the SQL to the
connection's logging hook, logs and times the call, and records it in the
connection's call statistics. `Result` exposes the rows of an executed
statement lazily; `Statement` is SQL prepared once and executed many times
with different parameters.
"""
import logging
import time
from collections.abc import Callable, Iterator, Mapping
from functools import wraps
from typing import TYPE_CHECKING, Any

from libb import attrdict

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper

__all__ = ['Result', 'Statement', 'dumpsql']

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging SQL statements and parameters."""
    @wraps(func)
    def wrapper(self, sql: str, params: Mapping[str, Any] | None = None):
        self.logger(sql)
        start = time.time()
        logger.debug(f'SQL:\n{sql}\nargs: {params}')
        try:
            return func(self, sql, params)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{sql}\nargs: {params}')
            raise
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class Result:
    """Rows of an executed statement, read lazily and forward-only.

    Iterating pulls rows from the driver one at a time as attribute
    dictionaries, or as whatever `hydrator` builds from them. A result can
    be consumed once; re-execute the statement to read the rows again.

    Examples
        for row in cn.query('SELECT id, name FROM authors'):
            print(row.id, row.name)
    """

    def __init__(self, cursor: Any, hydrator: Callable[[attrdict], Any] | None = None) -> None:
        self.cursor = cursor
        self.hydrator = hydrator
        description = cursor.description or ()
        self.columns = [column[0] for column in description]
        self.rowcount = cursor.rowcount
        self.lastrowid = getattr(cursor, 'lastrowid', None)
        self._closed = False
        if not self.columns:
            self.close()

    def __iter__(self) -> Iterator[Any]:
        for row in self._rows():
            yield row if self.hydrator is None else self.hydrator(row)

    def _values(self) -> Iterator[Any]:
        if self._closed:
            return
        try:
            yield from iter(self.cursor.fetchone, None)
        finally:
            self.close()

    def _rows(self) -> Iterator[attrdict]:
        for values in self._values():
            yield attrdict(zip(self.columns, values))

    def hydrate(self, hydrator: Callable[[attrdict], Any] | None) -> 'Result':
        """Set the function turning each row into the value yielded."""
        self.hydrator = hydrator
        return self

    def fetch_all(self) -> list[Any]:
        return list(self)

    def fetch_first(self) -> Any | None:
        """Return the first row, or None for an empty result, and close."""
        try:
            return next(iter(self), None)
        finally:
            self.close()

    def fetch_column(self) -> list[Any]:
        """Return the values of the first column, ignoring the hydrator."""
        return [values[0] for values in self._values()]

    def fetch_scalar(self) -> Any | None:
        """Return the first column of the first row, ignoring the hydrator."""
        try:
            values = next(self._values(), None)
        finally:
            self.close()
        if values is None:
            return None
        return values[0]

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.cursor.close()


class Statement:
    """SQL prepared once, executable many times.

    Parameters are named slots, filled from a mapping or keyword arguments:

        insert = cn.prepare('INSERT INTO tags (name) VALUES (:name)')
        insert(name='python')
        insert({'name': 'sql'})
    """

    def __init__(self, cn: 'ConnectionWrapper', sql: str) -> None:
        self.cn = cn
        self.sql = sql
        cn.logger(sql)

    def __str__(self) -> str:
        return self.sql

    def __repr__(self) -> str:
        return f'Statement({self.sql!r})'

    def execute(self, args: Mapping[str, Any] | None = None, **kwargs: Any) -> Result:
        params = {**(args or {}), **kwargs}
        return self.cn.query(self.sql, params or None)

    __call__ = execute
