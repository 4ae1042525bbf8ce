"""
Tables and their columns as expression nodes.

A `Table` is obtained from a connection (`cn['books']`) and knows its
columns from reflection. Columns are untyped values: every fluent
operation is available on them.

    books = cn['books']
    books.select().where(books['price'].is_less(10)).get_all()
    books.insert({'title': 'Dune', 'price': 9})
    books.update({'price': 8}, {'title': 'Dune'})
"""
import copy
import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fluentdb.expression import DateTimeMixin, Expression, NumericMixin
from fluentdb.expression import TextMixin, ValueMixin, match_all
from fluentdb.query import Delete, Insert, Select, Update
from fluentdb.statement import Statement

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper
    from fluentdb.strategy import DatabaseStrategy

__all__ = ['Column', 'Table']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Column(Expression, ValueMixin, NumericMixin, TextMixin, DateTimeMixin):
    """A column qualified by its table (or the table's alias)."""
    name: str
    table: 'Table'

    def render(self, dialect: 'DatabaseStrategy') -> str:
        return f'{self.table.render(dialect)}.{dialect.quote_identifier(self.name)}'


class Table(Expression):
    """A database table bound to a connection.
    """

    def __init__(self, cn: 'ConnectionWrapper', name: str, columns: list[str],
                 alias: str | None = None) -> None:
        self.cn = cn
        self.name = name
        self.alias_name = alias
        self.columns = {column: Column(column, self) for column in columns}
        self._statements: dict[str, Statement] = {}

    def __repr__(self) -> str:
        if self.alias_name:
            return f'{type(self).__name__}({self.name!r} AS {self.alias_name!r})'
        return f'{type(self).__name__}({self.name!r})'

    def __str__(self) -> str:
        return self.qualifier

    def __getitem__(self, name: str) -> Column:
        try:
            return self.columns[name]
        except KeyError:
            raise KeyError(f'Table {self.name} has no column {name}') from None

    def __contains__(self, name: object) -> bool:
        return name in self.columns

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns.values())

    def __len__(self) -> int:
        return len(self.columns)

    @property
    def qualifier(self) -> str:
        """The name columns are qualified by: the alias, if any."""
        return self.alias_name or self.name

    @property
    def column_names(self) -> list[str]:
        return list(self.columns)

    def get(self, name: str, default: Any = None) -> Column | Any:
        return self.columns.get(name, default)

    def alias(self, name: str | None) -> 'Table':
        """Return a copy of the table under another name, for self-joins.

        Columns of the copy are qualified by the alias.
        """
        aliased = copy.copy(self)
        aliased.alias_name = name
        aliased.columns = {column: Column(column, aliased) for column in self.columns}
        aliased._statements = {}
        return aliased

    def render(self, dialect: 'DatabaseStrategy') -> str:
        return dialect.quote_identifier(self.qualifier)

    def render_source(self, dialect: 'DatabaseStrategy') -> str:
        """Render the table as it appears in FROM and JOIN clauses."""
        sql = dialect.quote_identifier(self.name)
        if self.alias_name:
            sql += f' AS {dialect.quote_identifier(self.alias_name)}'
        return sql

    def resolve(self, name: Any) -> Any:
        """Turn a column name into its column, leaving anything else as-is."""
        if isinstance(name, str):
            return self.columns.get(name, name)
        return name

    def _base(self) -> 'Table':
        """The table without its alias, as data-changing statements need it."""
        return self.alias(None) if self.alias_name else self

    def _criteria(self, match: Any) -> list:
        base = self._base()
        return match_all(self.cn, match, resolve=base.resolve)

    def statement(self, key: str, factory: Callable[[], str]) -> Statement:
        """Prepare the SQL built by `factory` once and cache it under `key`."""
        if key not in self._statements:
            self._statements[key] = self.cn.prepare(factory())
        return self._statements[key]

    # Queries

    def select(self, *columns: Any) -> Select:
        """Start a query on this table, selecting all columns by default."""
        return Select(self.cn, self, columns or tuple(self.columns.values()))

    def count(self, match: Any = None) -> int:
        """Count the rows matching `match`."""
        criteria = match_all(self.cn, match, resolve=self.resolve)
        return self.select('COUNT(*)').where(*criteria).get_scalar()

    def exists(self, match: Any = None) -> bool:
        return self.count(match) > 0

    def insert(self, values: Mapping[str, Any]) -> int:
        """Insert one row. Returns the affected row count.
        """
        return Insert(self.cn, self._base()).values(values).execute()

    def apply(self, values: Mapping[str, Any]) -> int:
        """Insert one row unless it violates a unique key.

        Returns 1 if the row was inserted, 0 if it already existed.
        """
        return Insert(self.cn, self._base()).values(values).ignore().execute()

    def update(self, values: Mapping[str, Any], match: Any) -> int:
        """Update the rows matching `match`. Returns the affected row count.
        """
        criteria = self._criteria(match)
        if not criteria:
            raise ValueError(f'Refusing to update every row of {self.name}')
        return Update(self.cn, self._base()).set(values).where(*criteria).execute()

    def delete(self, match: Any) -> int:
        """Delete the rows matching `match`. Returns the affected row count.
        """
        criteria = self._criteria(match)
        if not criteria:
            raise ValueError(f'Refusing to delete every row of {self.name}')
        return Delete(self.cn, self._base()).where(*criteria).execute()
