"""
Typed expression nodes and their fluent operations.

Every operation returns a new node and leaves its operands untouched:

    >>> price = books['price']
    >>> cheap = price.mul(1.2).is_less(10)
    >>> recent = books['published'].is_greater(DateTime.today().sub_days(30))
    >>> books.select().where(cheap & recent)

The typed classes (`Predicate`, `Numeric`, `Text`, `DateTime`) expose the
operations that make sense for their type. `Value` and table columns are
untyped and expose all of them.
"""
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fluentdb.expression.base import Expression, Fragment, Identifier

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper

COMPARISON_OPERATORS = frozenset({'=', '<>', '!=', '<', '<=', '>', '>=', 'LIKE', 'NOT LIKE'})

INTERVAL_UNITS = ('second', 'minute', 'hour', 'day', 'month', 'year')

# strftime code -> MySQL DATE_FORMAT code
_MYSQL_FORMAT = {'%M': '%i', '%S': '%s', '%f': '%f', '%H': '%H', '%d': '%d',
                 '%m': '%m', '%Y': '%Y', '%j': '%j', '%w': '%w', '%%': '%%'}

# strftime code -> PostgreSQL TO_CHAR pattern
_POSTGRES_FORMAT = {'%Y': 'YYYY', '%m': 'MM', '%d': 'DD', '%H': 'HH24', '%M': 'MI',
                    '%S': 'SS', '%f': 'US', '%j': 'DDD', '%w': 'D', '%%': '%'}


def _translate_format(fmt: str, table: Mapping[str, str]) -> str:
    out, i = [], 0
    while i < len(fmt):
        code = fmt[i:i + 2]
        if fmt[i] == '%' and code in table:
            out.append(table[code])
            i += 2
        else:
            out.append(fmt[i])
            i += 1
    return ''.join(out)


def _join(cls, template: str, operands: tuple) -> Fragment:
    """Build a node whose template joins `{0}..{n}` with `template` as separator."""
    slots = template.join(f'{{{i}}}' for i in range(len(operands)))
    return cls(slots, operands)


def as_predicate(value: 'Predicate | Expression | str') -> 'Predicate':
    """Treat raw SQL text or any expression as a predicate."""
    if isinstance(value, Predicate):
        return value
    if isinstance(value, Expression):
        return Predicate('{0}', (value,))
    return Predicate(str(value))


def _subject(value: Any) -> Expression:
    """A match subject: expressions as-is, names as raw SQL text."""
    if isinstance(value, Expression):
        return value
    return Fragment(str(value))


def _in(subject: Any, values: Any, negate: bool = False) -> 'Predicate':
    from fluentdb.query import Select

    keyword = 'NOT IN' if negate else 'IN'
    if isinstance(values, Select):
        return Predicate(f'{{0}} {keyword} ({{1}})', (subject, values))
    values = tuple(values)
    if not values:
        if negate:
            return all_([])
        return Predicate('{0} IN (NULL)', (subject,))
    listed = ','.join(f'{{{i + 1}}}' for i in range(len(values)))
    return Predicate(f'{{0}} {keyword} ({listed})', (subject, *values))


def _to_int(value: Expression) -> 'Numeric':
    return Numeric.build('CAST({0} AS INTEGER)', value, mysql='CAST({0} AS SIGNED)')


def _to_float(value: Expression) -> 'Numeric':
    return Numeric.build('CAST({0} AS DOUBLE PRECISION)', value,
                         sqlite='CAST({0} AS REAL)', mysql='CAST({0} AS DOUBLE)')


def _to_text(value: Expression) -> 'Text':
    return Text.build('CAST({0} AS TEXT)', value, mysql='CAST({0} AS CHAR)')


class ValueMixin:
    """Operations available on every value: comparison, nullity, aggregates.
    """

    def compare(self, op: str, rhs: Any) -> 'Predicate':
        """`self <op> rhs`

        Raises
            ValueError: If `op` is not a comparison operator
        """
        op = op.upper()
        if op not in COMPARISON_OPERATORS:
            raise ValueError(f'Unsupported comparison operator: {op}')
        return Predicate(f'{{0}} {op} {{1}}', (self, rhs))

    def is_equal(self, rhs: Any) -> 'Predicate':
        if rhs is None:
            return self.is_null()
        return self.compare('=', rhs)

    def is_not_equal(self, rhs: Any) -> 'Predicate':
        if rhs is None:
            return self.is_not_null()
        return self.compare('<>', rhs)

    def is_less(self, rhs: Any) -> 'Predicate':
        return self.compare('<', rhs)

    def is_less_or_equal(self, rhs: Any) -> 'Predicate':
        return self.compare('<=', rhs)

    def is_greater(self, rhs: Any) -> 'Predicate':
        return self.compare('>', rhs)

    def is_greater_or_equal(self, rhs: Any) -> 'Predicate':
        return self.compare('>=', rhs)

    def is_between(self, low: Any, high: Any) -> 'Predicate':
        return Predicate('{0} BETWEEN {1} AND {2}', (self, low, high))

    def is_not_between(self, low: Any, high: Any) -> 'Predicate':
        return Predicate('{0} NOT BETWEEN {1} AND {2}', (self, low, high))

    def is_null(self) -> 'Predicate':
        return Predicate('{0} IS NULL', (self,))

    def is_not_null(self) -> 'Predicate':
        return Predicate('{0} IS NOT NULL', (self,))

    def is_in(self, values: Iterable[Any]) -> 'Predicate':
        """`self IN (...)` for a list of values or a `Select`."""
        return _in(self, values)

    def is_not_in(self, values: Iterable[Any]) -> 'Predicate':
        return _in(self, values, negate=True)

    def coalesce(self, *others: Any) -> 'Value':
        return Value('COALESCE(' + ', '.join(f'{{{i}}}' for i in range(len(others) + 1)) + ')',
                     (self, *others))

    def as_(self, alias: str) -> 'Value':
        """`self AS alias`, for projections."""
        return Value('{0} AS {1}', (self, Identifier(alias)))

    def asc(self) -> Fragment:
        return Fragment('{0} ASC', (self,))

    def desc(self) -> Fragment:
        return Fragment('{0} DESC', (self,))

    def count(self, distinct: bool = False) -> 'Numeric':
        if distinct:
            return Numeric('COUNT(DISTINCT {0})', (self,))
        return Numeric('COUNT({0})', (self,))

    def max(self) -> 'Value':
        return Value('MAX({0})', (self,))

    def min(self) -> 'Value':
        return Value('MIN({0})', (self,))


class NumericMixin:
    """Arithmetic, math functions, numeric aggregates and casts.
    """

    def add(self, rhs: Any) -> 'Numeric':
        return Numeric('({0} + {1})', (self, rhs))

    def sub(self, rhs: Any) -> 'Numeric':
        return Numeric('({0} - {1})', (self, rhs))

    def mul(self, rhs: Any) -> 'Numeric':
        return Numeric('({0} * {1})', (self, rhs))

    def div(self, rhs: Any) -> 'Numeric':
        return Numeric('({0} / {1})', (self, rhs))

    def mod(self, rhs: Any) -> 'Numeric':
        return Numeric('({0} % {1})', (self, rhs))

    def neg(self) -> 'Numeric':
        return Numeric('(-{0})', (self,))

    __add__ = add
    __sub__ = sub
    __mul__ = mul
    __truediv__ = div
    __mod__ = mod
    __neg__ = neg

    def __radd__(self, lhs: Any) -> 'Numeric':
        return Numeric('({0} + {1})', (lhs, self))

    def __rsub__(self, lhs: Any) -> 'Numeric':
        return Numeric('({0} - {1})', (lhs, self))

    def __rmul__(self, lhs: Any) -> 'Numeric':
        return Numeric('({0} * {1})', (lhs, self))

    def abs(self) -> 'Numeric':
        return Numeric('ABS({0})', (self,))

    def ceil(self) -> 'Numeric':
        return Numeric('CEIL({0})', (self,))

    def floor(self) -> 'Numeric':
        return Numeric('FLOOR({0})', (self,))

    def round(self, decimals: int = 0) -> 'Numeric':
        return Numeric.build('ROUND({0}, {1})', self, decimals,
                             postgresql='ROUND(CAST({0} AS NUMERIC), {1})')

    def pow(self, exponent: Any) -> 'Numeric':
        return Numeric('POW({0}, {1})', (self, exponent))

    def sqrt(self) -> 'Numeric':
        return Numeric('SQRT({0})', (self,))

    def sign(self) -> 'Numeric':
        return Numeric('SIGN({0})', (self,))

    def avg(self) -> 'Numeric':
        return Numeric('AVG({0})', (self,))

    def sum(self) -> 'Numeric':
        return Numeric('SUM({0})', (self,))

    def to_text(self) -> 'Text':
        """Cast to a character string: `CAST(x AS CHAR)` on MySQL, `TEXT` elsewhere."""
        return _to_text(self)

    def to_int(self) -> 'Numeric':
        return _to_int(self)

    def to_float(self) -> 'Numeric':
        return _to_float(self)


class TextMixin:
    """String functions and pattern matching.
    """

    def concat(self, *others: Any) -> 'Text':
        operands = (self, *others)
        node = _join(Text, ' || ', operands)
        mysql = 'CONCAT(' + ', '.join(f'{{{i}}}' for i in range(len(operands))) + ')'
        return Text('(' + node.template + ')', operands, (('mysql', mysql),))

    def length(self) -> 'Numeric':
        return Numeric.build('LENGTH({0})', self, mysql='CHAR_LENGTH({0})')

    def lower(self) -> 'Text':
        return Text('LOWER({0})', (self,))

    def upper(self) -> 'Text':
        return Text('UPPER({0})', (self,))

    def trim(self) -> 'Text':
        return Text('TRIM({0})', (self,))

    def ltrim(self) -> 'Text':
        return Text('LTRIM({0})', (self,))

    def rtrim(self) -> 'Text':
        return Text('RTRIM({0})', (self,))

    def replace(self, search: Any, replacement: Any) -> 'Text':
        return Text('REPLACE({0}, {1}, {2})', (self, search, replacement))

    def substr(self, start: int, length: int | None = None) -> 'Text':
        """1-based substring."""
        if length is None:
            return Text('SUBSTR({0}, {1})', (self, start))
        return Text('SUBSTR({0}, {1}, {2})', (self, start, length))

    def position(self, needle: Any) -> 'Numeric':
        """1-based position of `needle`, 0 if absent."""
        return Numeric.build('INSTR({0}, {1})', self, needle, postgresql='STRPOS({0}, {1})')

    def like(self, pattern: Any) -> 'Predicate':
        return self.compare('LIKE', pattern)

    def not_like(self, pattern: Any) -> 'Predicate':
        return self.compare('NOT LIKE', pattern)

    def to_int(self) -> 'Numeric':
        return _to_int(self)

    def to_float(self) -> 'Numeric':
        return _to_float(self)

    def to_datetime(self) -> 'DateTime':
        return DateTime.build('CAST({0} AS TIMESTAMP)', self,
                              sqlite='DATETIME({0})', mysql='CAST({0} AS DATETIME)')


class DateTimeMixin:
    """Date arithmetic, component extraction and formatting.
    """

    def _interval(self, amount: int, unit: str) -> 'DateTime':
        amount = int(amount)
        modifier = f'{amount:+d} {unit}s'
        return DateTime(
            "({0} + {1} * INTERVAL '1 " + unit + "')",
            (self, amount, modifier),
            (('mysql', 'DATE_ADD({0}, INTERVAL {1} ' + unit.upper() + ')'),
             ('sqlite', 'DATETIME({0}, {2})')),
            )

    def add_seconds(self, n: int = 1) -> 'DateTime':
        return self._interval(n, 'second')

    def add_minutes(self, n: int = 1) -> 'DateTime':
        return self._interval(n, 'minute')

    def add_hours(self, n: int = 1) -> 'DateTime':
        return self._interval(n, 'hour')

    def add_days(self, n: int = 1) -> 'DateTime':
        return self._interval(n, 'day')

    def add_months(self, n: int = 1) -> 'DateTime':
        return self._interval(n, 'month')

    def add_years(self, n: int = 1) -> 'DateTime':
        return self._interval(n, 'year')

    def sub_seconds(self, n: int = 1) -> 'DateTime':
        return self._interval(-n, 'second')

    def sub_minutes(self, n: int = 1) -> 'DateTime':
        return self._interval(-n, 'minute')

    def sub_hours(self, n: int = 1) -> 'DateTime':
        return self._interval(-n, 'hour')

    def sub_days(self, n: int = 1) -> 'DateTime':
        return self._interval(-n, 'day')

    def sub_months(self, n: int = 1) -> 'DateTime':
        return self._interval(-n, 'month')

    def sub_years(self, n: int = 1) -> 'DateTime':
        return self._interval(-n, 'year')

    def date(self) -> 'DateTime':
        return DateTime.build('CAST({0} AS DATE)', self, sqlite='DATE({0})', mysql='DATE({0})')

    def time(self) -> 'DateTime':
        return DateTime.build('CAST({0} AS TIME)', self, sqlite='TIME({0})', mysql='TIME({0})')

    def _extract(self, code: str, field: str) -> 'Numeric':
        return Numeric.build(f'CAST(EXTRACT({field} FROM {{0}}) AS INTEGER)', self,
                             sqlite=f"CAST(STRFTIME('{code}', {{0}}) AS INTEGER)",
                             mysql=f'{field}({{0}})')

    def year(self) -> 'Numeric':
        return self._extract('%Y', 'YEAR')

    def month(self) -> 'Numeric':
        return self._extract('%m', 'MONTH')

    def day(self) -> 'Numeric':
        return self._extract('%d', 'DAY')

    def hour(self) -> 'Numeric':
        return self._extract('%H', 'HOUR')

    def minute(self) -> 'Numeric':
        return self._extract('%M', 'MINUTE')

    def second(self) -> 'Numeric':
        return self._extract('%S', 'SECOND')

    def format(self, fmt: str) -> 'Text':
        """Format using strftime codes, translated for each dialect."""
        return Text(
            'TO_CHAR({0}, {3})',
            (self, fmt, _translate_format(fmt, _MYSQL_FORMAT), _translate_format(fmt, _POSTGRES_FORMAT)),
            (('mysql', 'DATE_FORMAT({0}, {2})'), ('sqlite', 'STRFTIME({1}, {0})')),
            )

    def to_text(self) -> 'Text':
        return _to_text(self)


@dataclass(frozen=True)
class Predicate(Fragment):
    """A boolean expression, for WHERE, HAVING and JOIN conditions.
    """

    def and_(self, *others: 'Predicate | str') -> 'Predicate':
        return all_((self, *others))

    def or_(self, *others: 'Predicate | str') -> 'Predicate':
        return any_((self, *others))

    def not_(self) -> 'Predicate':
        return Predicate('NOT ({0})', (self,))

    __and__ = and_
    __or__ = or_
    __invert__ = not_

    @classmethod
    def exists(cls, select: Expression) -> 'Predicate':
        return cls('EXISTS ({0})', (select,))

    @classmethod
    def not_exists(cls, select: Expression) -> 'Predicate':
        return cls('NOT EXISTS ({0})', (select,))


def all_(predicates: Iterable['Predicate | str']) -> Predicate:
    """Conjunction of predicates. An empty conjunction is always true."""
    predicates = tuple(as_predicate(p) for p in predicates)
    if not predicates:
        return Predicate('1 = 1')
    if len(predicates) == 1:
        return predicates[0]
    node = _join(Predicate, ' AND ', predicates)
    return Predicate(f'({node.template})', predicates)


def any_(predicates: Iterable['Predicate | str']) -> Predicate:
    """Disjunction of predicates. An empty disjunction is always false."""
    predicates = tuple(as_predicate(p) for p in predicates)
    if not predicates:
        return Predicate('1 = 0')
    if len(predicates) == 1:
        return predicates[0]
    node = _join(Predicate, ' OR ', predicates)
    return Predicate(f'({node.template})', predicates)


@dataclass(frozen=True)
class Value(Fragment, ValueMixin, NumericMixin, TextMixin, DateTimeMixin):
    """An untyped value. Offers every operation.
    """


@dataclass(frozen=True)
class Numeric(Fragment, ValueMixin, NumericMixin):
    """A numeric expression.
    """

    @classmethod
    def pi(cls) -> 'Numeric':
        return cls('PI()')

    @classmethod
    def rand(cls) -> 'Numeric':
        """A float between 0 and 1."""
        return cls.build('RAND()', postgresql='RANDOM()')


@dataclass(frozen=True)
class Text(Fragment, ValueMixin, TextMixin):
    """A character string expression.
    """


@dataclass(frozen=True)
class DateTime(Fragment, ValueMixin, DateTimeMixin):
    """A date-time expression.
    """

    @classmethod
    def now(cls) -> 'DateTime':
        """The current date and time."""
        return cls.build('NOW()', sqlite='DATETIME()')

    @classmethod
    def today(cls) -> 'DateTime':
        """The current date."""
        return cls.build('CURRENT_DATE', sqlite='DATE()', mysql='CURDATE()')

    @classmethod
    def tomorrow(cls) -> 'DateTime':
        return cls.today().add_days(1)

    @classmethod
    def yesterday(cls) -> 'DateTime':
        return cls.today().sub_days(1)


def match(cn: 'ConnectionWrapper', a: Any, b: Any) -> Predicate:
    """Generate a predicate from mixed arguments.

    The first rule that applies wins:

    1. `b` is callable: returns `b(a, cn)`
    2. `a` is an integer (an enumerated item): `b` itself is the predicate
    3. `b` is a list, tuple or set: `a IN (...quoted b)`
    4. `b` is a `Select`: `a IN (b's SQL)`
    5. otherwise: `a = quoted b`

    `a` may be an expression (usually a column) or a name rendered as-is.
    """
    from fluentdb.query import Select

    if callable(b):
        return b(a, cn)
    if isinstance(a, int) and not isinstance(a, bool):
        return as_predicate(b)
    if isinstance(b, (list, tuple, set, frozenset)):
        return _in(_subject(a), b)
    if isinstance(b, Select):
        return _in(_subject(a), b)
    return Predicate('{0} = {1}', (_subject(a), b))


def match_all(cn: 'ConnectionWrapper', criteria: Any,
              resolve: Callable[[Any], Any] | None = None) -> list[Predicate]:
    """Apply `match` to every item of a mapping or to an enumerated sequence.

    Args:
        cn: Connection the predicates are built for
        criteria: `{a: b}` mapping, or a sequence of predicates
        resolve: optional lookup turning a mapping key into an expression
    """
    if criteria is None:
        return []
    if isinstance(criteria, Mapping):
        items = criteria.items()
    elif isinstance(criteria, (Expression, str)):
        items = [(0, criteria)]
    else:
        items = enumerate(criteria)
    predicates = []
    for a, b in items:
        if resolve is not None and isinstance(a, str):
            a = resolve(a)
        predicates.append(match(cn, a, b))
    return predicates
