"""
Many-to-many links between entities.

A junction table holds one foreign key column per linked entity class:

    @junction('authors_to_books', author=Author, book=Book)
    class AuthorsToBooks:
        pass

    authors_to_books = cn.get_junction(AuthorsToBooks)
    authors_to_books.link({'author': ursula.id, 'book': earthsea.id})
    books = authors_to_books.get_collection('book', {'author': ursula.id}).get_all()
"""
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fluentdb.exceptions import ConfigurationError
from fluentdb.expression import slots
from fluentdb.query import Insert, Select
from fluentdb.table import Table

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper

__all__ = ['Junction', 'JunctionSpec', 'junction']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JunctionSpec:
    """A junction table and the entity class behind each of its columns."""
    table: str
    classes: tuple[tuple[str, type], ...]


def junction(table: str, **classes: type):
    """Class decorator binding a marker class to a junction table.

    Keyword arguments map each junction column to the entity class whose
    key it holds.
    """
    if len(classes) < 2:
        raise ConfigurationError(f'Junction {table} must link at least two entity classes')
    spec = JunctionSpec(table, tuple(classes.items()))

    def decorator(cls: type) -> type:
        cls.__junction__ = spec
        return cls
    return decorator


class Junction(Table):
    """A junction table, linking and unlinking entities.
    """

    def __init__(self, cn: 'ConnectionWrapper', name: str, columns: list[str],
                 classes: Mapping[str, type]) -> None:
        super().__init__(cn, name, columns)
        self.classes = dict(classes)

    @classmethod
    def from_class(cls, cn: 'ConnectionWrapper', junction_class: type) -> 'Junction':
        """Build the mapper of a class decorated with `junction`.

        Raises
            ConfigurationError: If the binding is missing or does not match the database
        """
        spec = getattr(junction_class, '__junction__', None)
        if not isinstance(spec, JunctionSpec):
            raise ConfigurationError(f'{junction_class.__name__} is not bound to a table, use @junction')
        table = cn.get_table(spec.table)
        if table is None:
            raise ConfigurationError(f'Junction table {spec.table} does not exist')
        missing = [column for column, _ in spec.classes if column not in table]
        if missing:
            raise ConfigurationError(f'Junction table {spec.table} has no columns {missing}')
        return cls(cn, spec.table, table.column_names, dict(spec.classes))

    def get_collection(self, key: str, match: Mapping[str, Any] | None = None) -> Select:
        """Query the entities of column `key`'s class linked through this table.

        Args:
            key: Junction column whose entities are returned
            match: Junction column -> value conditions, e.g. `{'author': 1}`
        """
        if key not in self.classes:
            raise KeyError(f'Junction {self.name} has no column {key}')
        record = self.cn.get_record(self.classes[key])
        select = record.select().join(self, self[key].is_equal(record[record.key]))
        return select.where(*(self.cn.match(self[column], value)
                              for column, value in (match or {}).items()))

    def _ids(self, ids: Mapping[str, Any]) -> dict[str, Any]:
        if set(ids) != set(self.classes):
            raise ValueError(f'Junction {self.name} needs ids for {sorted(self.classes)}, got {sorted(ids)}')
        return {column: ids[column] for column in self.classes}

    def link(self, ids: Mapping[str, Any]) -> int:
        """Link entities. Returns 1 for a new link, 0 if it already existed."""
        columns = list(self.classes)
        insert = self.statement('link', lambda: Insert(self.cn, self).values(
            dict(zip(columns, slots(columns)))).ignore().to_sql())
        return insert.execute(self._ids(ids)).rowcount

    def unlink(self, ids: Mapping[str, Any]) -> int:
        """Remove a link. Returns the number of rows deleted."""
        return self.delete(self._ids(ids))
