"""
Query builders.

Builders are immutable: every method returns a new builder, so a partial
query can be shared and extended freely.

    authors = cn['authors']
    books = cn['books']
    recent = (books.select(books['title'], authors['name'])
              .join(authors, books['author'].is_equal(authors['id']))
              .where(books['published'].is_greater(DateTime.today().sub_years(1)))
              .order(books['title'].asc()))
    for row in recent:
        print(row.title, row.name)
"""
import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from fluentdb.expression import Expression, Fragment, Predicate, as_predicate
from fluentdb.expression import match_all, quote
from fluentdb.statement import Result

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper
    from fluentdb.strategy import DatabaseStrategy

__all__ = ['Select', 'Insert', 'Update', 'Delete']

logger = logging.getLogger(__name__)


def _raw(value: Any) -> Expression:
    """Expressions as-is, anything else as raw SQL text."""
    if isinstance(value, Expression):
        return value
    return Fragment(str(value))


def _source(node: Any, dialect: 'DatabaseStrategy') -> str:
    """Render a FROM or JOIN source: tables with their alias, subqueries aliased."""
    render_source = getattr(node, 'render_source', None)
    if render_source is not None:
        return render_source(dialect)
    return _raw(node).render(dialect)


def _target(node: Any, dialect: 'DatabaseStrategy') -> str:
    """Render the table a data-changing statement writes to."""
    name = getattr(node, 'name', None)
    if isinstance(name, str):
        return dialect.quote_identifier(name)
    return str(node)


def _conjunction(predicates: tuple[Predicate, ...], dialect: 'DatabaseStrategy') -> str:
    if len(predicates) == 1:
        return predicates[0].render(dialect)
    return ' AND '.join(f'({p.render(dialect)})' for p in predicates)


def _lookup(sources: tuple[Any, ...]) -> Callable[[Any], Any]:
    """Resolve a column name against the first source that has it."""
    def resolve(name: Any) -> Any:
        for source in sources:
            get = getattr(source, 'get', None)
            if get is not None and isinstance(name, str) and get(name) is not None:
                return get(name)
        return name
    return resolve


@dataclass(frozen=True)
class Select(Expression):
    """A SELECT statement.

    Iterating a `Select` executes it. It can also be used as an operand:
    `column.is_in(select)` renders it as a subquery.
    """
    cn: 'ConnectionWrapper' = field(repr=False, compare=False)
    source: Any
    projection: tuple[Any, ...] = ()
    joins: tuple[tuple[str, Any, Predicate], ...] = ()
    filters: tuple[Predicate, ...] = ()
    grouping: tuple[Any, ...] = ()
    havings: tuple[Predicate, ...] = ()
    ordering: tuple[Any, ...] = ()
    limit_count: int | None = None
    offset_count: int = 0
    alias: str | None = None
    hydrator: Callable[[Any], Any] | None = field(default=None, repr=False, compare=False)

    def _predicates(self, criteria: tuple[Any, ...]) -> tuple[Predicate, ...]:
        resolve = _lookup((self.source, *(table for _, table, _ in self.joins)))
        predicates = []
        for criterion in criteria:
            if isinstance(criterion, Mapping):
                predicates.extend(match_all(self.cn, criterion, resolve=resolve))
            else:
                predicates.append(as_predicate(criterion))
        return tuple(predicates)

    def columns(self, *columns: Any) -> 'Select':
        """Replace the selected columns."""
        return replace(self, projection=tuple(columns))

    def join(self, table: Any, on: Predicate | str, kind: str = 'INNER') -> 'Select':
        return replace(self, joins=(*self.joins, (kind, table, as_predicate(on))))

    def left_join(self, table: Any, on: Predicate | str) -> 'Select':
        return self.join(table, on, kind='LEFT')

    def where(self, *criteria: Any) -> 'Select':
        """Add conditions, combined with AND.

        Each criterion is a predicate, raw SQL text, or a `{column: value}`
        mapping handled by `match`.
        """
        return replace(self, filters=self.filters + self._predicates(criteria))

    def group(self, *columns: Any) -> 'Select':
        return replace(self, grouping=self.grouping + tuple(columns))

    def having(self, *criteria: Any) -> 'Select':
        return replace(self, havings=self.havings + self._predicates(criteria))

    def order(self, *columns: Any) -> 'Select':
        return replace(self, ordering=self.ordering + tuple(columns))

    def limit(self, count: int | None, offset: int = 0) -> 'Select':
        return replace(self, limit_count=count, offset_count=offset)

    def as_(self, alias: str) -> 'Select':
        """Name the query, for use as a FROM or JOIN source."""
        return replace(self, alias=alias)

    def hydrate(self, hydrator: Callable[[Any], Any] | None) -> 'Select':
        """Build each row into an object with `hydrator` when executed."""
        return replace(self, hydrator=hydrator)

    def render(self, dialect: 'DatabaseStrategy') -> str:
        columns = ', '.join(_raw(c).render(dialect) for c in self.projection) or '*'
        sql = f'SELECT {columns} FROM {_source(self.source, dialect)}'
        for kind, table, on in self.joins:
            sql += f' {kind} JOIN {_source(table, dialect)} ON {on.render(dialect)}'
        if self.filters:
            sql += f' WHERE {_conjunction(self.filters, dialect)}'
        if self.grouping:
            sql += ' GROUP BY ' + ', '.join(_raw(c).render(dialect) for c in self.grouping)
        if self.havings:
            sql += f' HAVING {_conjunction(self.havings, dialect)}'
        if self.ordering:
            sql += ' ORDER BY ' + ', '.join(_raw(c).render(dialect) for c in self.ordering)
        if self.limit_count is not None or self.offset_count:
            count = dialect.unlimited if self.limit_count is None else int(self.limit_count)
            sql += f' LIMIT {count}'
            if self.offset_count:
                sql += f' OFFSET {int(self.offset_count)}'
        return sql

    def render_source(self, dialect: 'DatabaseStrategy') -> str:
        alias = dialect.quote_identifier(self.alias or 'subquery')
        return f'({self.render(dialect)}) AS {alias}'

    def to_sql(self) -> str:
        return self.render(self.cn.strategy)

    def __str__(self) -> str:
        return self.to_sql()

    # Execution

    def execute(self, **args: Any) -> Result:
        """Run the query; `args` fill named slots."""
        return self.cn.query(self.to_sql(), args or None).hydrate(self.hydrator)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.execute())

    def get_all(self, **args: Any) -> list[Any]:
        return self.execute(**args).fetch_all()

    def get_first(self, **args: Any) -> Any | None:
        """Return the first row, or None."""
        return self.limit(1, self.offset_count).execute(**args).fetch_first()

    def get_each(self, **args: Any) -> Iterator[Any]:
        """Yield rows one at a time."""
        yield from self.execute(**args)

    def get_scalar(self, **args: Any) -> Any | None:
        """Return the first column of the first row, or None."""
        return self.execute(**args).fetch_scalar()

    def count(self, **args: Any) -> int:
        """Count the rows this query would return."""
        sql = f'SELECT COUNT(*) FROM ({self.to_sql()}) AS count_source'
        return self.cn.query(sql, args or None).fetch_scalar()

    def is_empty(self) -> Predicate:
        return Predicate.not_exists(self)

    def is_not_empty(self) -> Predicate:
        return Predicate.exists(self)


@dataclass(frozen=True)
class Insert:
    """An INSERT of one row.

    With `ignore()`, a row violating a unique key is silently skipped.
    """
    cn: 'ConnectionWrapper' = field(repr=False, compare=False)
    table: Any
    assignments: tuple[tuple[str, Any], ...] = ()
    ignoring: bool = False
    returning_key: str | None = None

    def values(self, values: Mapping[str, Any]) -> 'Insert':
        return replace(self, assignments=tuple(values.items()))

    def ignore(self) -> 'Insert':
        return replace(self, ignoring=True)

    def returning(self, key: str) -> 'Insert':
        """Return the generated `key` where the dialect supports it."""
        return replace(self, returning_key=key)

    def render(self, dialect: 'DatabaseStrategy') -> str:
        if not self.assignments:
            raise ValueError(f'Nothing to insert into {self.table}')
        table = _target(self.table, dialect)
        columns = ', '.join(dialect.quote_identifier(name) for name, _ in self.assignments)
        values = ', '.join(quote(value, dialect) for _, value in self.assignments)
        if self.ignoring:
            sql = dialect.insert_ignore(table, columns, values)
        else:
            sql = f'INSERT INTO {table} ({columns}) VALUES ({values})'
        if self.returning_key:
            sql += dialect.returning(self.returning_key)
        return sql

    def to_sql(self) -> str:
        return self.render(self.cn.strategy)

    def execute(self, **args: Any) -> int:
        """Run the insert. Returns the affected row count."""
        return self.cn.execute(self.to_sql(), args or None)

    def execute_for_id(self, key: str = 'id', **args: Any) -> Any:
        """Run the insert and return the key generated for the new row."""
        insert = self.returning(key)
        result = self.cn.query(insert.to_sql(), args or None)
        if self.cn.strategy.returning(key):
            return result.fetch_scalar()
        result.close()
        return result.lastrowid


@dataclass(frozen=True)
class Update:
    """An UPDATE of the rows matching its conditions."""
    cn: 'ConnectionWrapper' = field(repr=False, compare=False)
    table: Any
    assignments: tuple[tuple[str, Any], ...] = ()
    filters: tuple[Predicate, ...] = ()

    def set(self, values: Mapping[str, Any]) -> 'Update':
        return replace(self, assignments=self.assignments + tuple(values.items()))

    def where(self, *criteria: Any) -> 'Update':
        predicates = []
        for criterion in criteria:
            if isinstance(criterion, Mapping):
                predicates.extend(match_all(self.cn, criterion, resolve=_lookup((self.table,))))
            else:
                predicates.append(as_predicate(criterion))
        return replace(self, filters=self.filters + tuple(predicates))

    def render(self, dialect: 'DatabaseStrategy') -> str:
        if not self.assignments:
            raise ValueError(f'Nothing to update in {self.table}')
        assignments = ', '.join(f'{dialect.quote_identifier(name)} = {quote(value, dialect)}'
                                for name, value in self.assignments)
        sql = f'UPDATE {_target(self.table, dialect)} SET {assignments}'
        if self.filters:
            sql += f' WHERE {_conjunction(self.filters, dialect)}'
        return sql

    def to_sql(self) -> str:
        return self.render(self.cn.strategy)

    def execute(self, **args: Any) -> int:
        return self.cn.execute(self.to_sql(), args or None)


@dataclass(frozen=True)
class Delete:
    """A DELETE of the rows matching its conditions."""
    cn: 'ConnectionWrapper' = field(repr=False, compare=False)
    table: Any
    filters: tuple[Predicate, ...] = ()

    def where(self, *criteria: Any) -> 'Delete':
        predicates = []
        for criterion in criteria:
            if isinstance(criterion, Mapping):
                predicates.extend(match_all(self.cn, criterion, resolve=_lookup((self.table,))))
            else:
                predicates.append(as_predicate(criterion))
        return replace(self, filters=self.filters + tuple(predicates))

    def render(self, dialect: 'DatabaseStrategy') -> str:
        sql = f'DELETE FROM {_target(self.table, dialect)}'
        if self.filters:
            sql += f' WHERE {_conjunction(self.filters, dialect)}'
        return sql

    def to_sql(self) -> str:
        return self.render(self.cn.strategy)

    def execute(self, **args: Any) -> int:
        return self.cn.execute(self.to_sql(), args or None)
