"""
Expression tree fundamentals: the node base class and literal quoting.

Nodes are immutable. A node renders to SQL text as a pure function of
itself and a dialect strategy:

    node.render(get_strategy('sqlite'))

Literal values embedded in a tree are rendered by `quote()`, which sorts
every value into one of a closed set of kinds with exactly one rule each.
"""
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fluentdb.strategy.base import DatabaseStrategy

_POSITIONAL = re.compile(r'\{\d+\}')


class Expression(ABC):
    """A node of a SQL expression tree.
    """
    __slots__ = ()

    @abstractmethod
    def render(self, dialect: 'DatabaseStrategy') -> str:
        """Render this node to SQL for the given dialect."""


class QuoteKind(Enum):
    """The kinds of value that can be embedded in SQL text."""
    EXPRESSION = auto()
    BOOLEAN = auto()
    INTEGER = auto()
    NULL = auto()
    STRING = auto()


def classify(value: Any) -> QuoteKind:
    """Sort a value into its quoting kind.
    """
    if isinstance(value, Expression):
        return QuoteKind.EXPRESSION
    if isinstance(value, bool):
        return QuoteKind.BOOLEAN
    if isinstance(value, int):
        return QuoteKind.INTEGER
    if value is None:
        return QuoteKind.NULL
    return QuoteKind.STRING


_QUOTE_RULES: dict[QuoteKind, Callable[[Any, 'DatabaseStrategy'], str]] = {
    QuoteKind.EXPRESSION: lambda value, dialect: value.render(dialect),
    QuoteKind.BOOLEAN: lambda value, dialect: str(int(value)),
    QuoteKind.INTEGER: lambda value, dialect: str(int(value)),
    QuoteKind.NULL: lambda value, dialect: 'NULL',
    QuoteKind.STRING: lambda value, dialect: dialect.quote_string(str(value)),
}


def quote(value: Any, dialect: 'DatabaseStrategy') -> str:
    """Render a value as a SQL literal.

    - Expressions render as themselves, unquoted.
    - Booleans and integers render as unquoted integer strings.
    - None renders as NULL.
    - Everything else renders as an escaped, single-quoted string.
    """
    return _QUOTE_RULES[classify(value)](value, dialect)


def quote_list(values: Iterable[Any], dialect: 'DatabaseStrategy') -> str:
    """Quote values and join them with commas."""
    return ','.join(quote(value, dialect) for value in values)


@dataclass(frozen=True)
class Fragment(Expression):
    """A templated node: SQL text with positional operand slots.

    The template uses `{0}`, `{1}`, ... for operands. `dialects` holds
    per-dialect template overrides as `(dialect_name, template)` pairs.
    A template with no operands is emitted verbatim.
    """
    template: str
    operands: tuple[Any, ...] = ()
    dialects: tuple[tuple[str, str], ...] = ()

    @classmethod
    def build(cls, template: str, *operands: Any, **dialects: str):
        """Construct a node, keyword arguments being per-dialect templates."""
        return cls(template, operands, tuple(sorted(dialects.items())))

    def template_for(self, dialect: 'DatabaseStrategy') -> str:
        return dict(self.dialects).get(dialect.dialect_name, self.template)

    def render(self, dialect: 'DatabaseStrategy') -> str:
        template = self.template_for(dialect)
        if not self.operands:
            return template
        rendered = [quote(operand, dialect) for operand in self.operands]
        return _POSITIONAL.sub(lambda m: rendered[int(m.group(0)[1:-1])], template)


@dataclass(frozen=True)
class Identifier(Expression):
    """A bare, quoted identifier such as an alias."""
    name: str

    def render(self, dialect: 'DatabaseStrategy') -> str:
        return dialect.quote_identifier(self.name)


@dataclass(frozen=True)
class Slot(Expression):
    """A named parameter placeholder, filled in at execution time."""
    name: str

    def render(self, dialect: 'DatabaseStrategy') -> str:
        return dialect.slot(self.name)


def slots(names: Iterable[str]) -> tuple[Slot, ...]:
    return tuple(Slot(name) for name in names)
