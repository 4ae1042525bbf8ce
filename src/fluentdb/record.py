"""
Entity persistence.

An entity class is bound to a table with the `record` decorator:

    @record('authors', key='id', eav={'attributes': 'authors_eav'})
    @dataclass
    class Author:
        name: str
        id: int = 0
        attributes: dict = field(default_factory=dict)

    author = Author('Ursula')
    cn.save(author)                       # INSERT, assigns author.id
    author = cn.get_record(Author).load(author.id)

Properties named in `eav` are dictionaries kept in a sidecar table with the
columns `entity`, `attribute` and `value`, one row per key.
"""
import dataclasses
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fluentdb.exceptions import ConfigurationError
from fluentdb.expression import match_all, slots
from fluentdb.query import Insert, Select
from fluentdb.table import Table

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper

__all__ = ['EAV_COLUMNS', 'Record', 'RecordSpec', 'record']

logger = logging.getLogger(__name__)

EAV_COLUMNS = ('entity', 'attribute', 'value')


@dataclass(frozen=True)
class RecordSpec:
    """How an entity class maps onto a table."""
    table: str
    key: str = 'id'
    columns: tuple[str, ...] | None = None
    eav: tuple[tuple[str, str], ...] = ()


def record(table: str, key: str = 'id', columns: Iterable[str] | None = None,
           eav: Mapping[str, str] | None = None):
    """Class decorator binding an entity class to `table`.

    Args:
        table: Table the entities are stored in
        key: Column holding the generated primary key
        columns: Properties to persist; by default the dataclass fields
            that exist in the table
        eav: Property name -> sidecar table, for dictionary properties
    """
    spec = RecordSpec(table, key,
                      tuple(columns) if columns is not None else None,
                      tuple((eav or {}).items()))

    def decorator(cls: type) -> type:
        cls.__record__ = spec
        return cls
    return decorator


class Record(Table):
    """The table of an entity class, loading and saving its instances.
    """

    def __init__(self, cn: 'ConnectionWrapper', entity_class: type, name: str,
                 columns: list[str], key: str, properties: list[str],
                 eav: Mapping[str, Table] | None = None) -> None:
        super().__init__(cn, name, columns)
        self.entity_class = entity_class
        self.key = key
        self.properties = list(properties)
        self.eav = dict(eav or {})

    @classmethod
    def from_class(cls, cn: 'ConnectionWrapper', entity_class: type) -> 'Record':
        """Build the mapper of a class decorated with `record`.

        Raises
            ConfigurationError: If the binding is missing or does not match the database
        """
        spec = getattr(entity_class, '__record__', None)
        if not isinstance(spec, RecordSpec):
            raise ConfigurationError(f'{entity_class.__name__} is not bound to a table, use @record')
        table = cn.get_table(spec.table)
        if table is None:
            raise ConfigurationError(f'Table {spec.table} of {entity_class.__name__} does not exist')
        if spec.key not in table:
            raise ConfigurationError(f'Table {spec.table} has no key column {spec.key}')

        if spec.columns is not None:
            missing = [c for c in spec.columns if c not in table]
            if missing:
                raise ConfigurationError(f'Table {spec.table} has no columns {missing}')
            properties = list(spec.columns)
        elif dataclasses.is_dataclass(entity_class):
            properties = [f.name for f in dataclasses.fields(entity_class) if f.name in table]
        else:
            properties = table.column_names
        if spec.key not in properties:
            properties.insert(0, spec.key)

        eav = {}
        for prop, sidecar in spec.eav:
            eav_table = cn.get_table(sidecar)
            if eav_table is None or not all(c in eav_table for c in EAV_COLUMNS):
                raise ConfigurationError(f'{sidecar} must be a table with columns {EAV_COLUMNS}')
            eav[prop] = eav_table
        logger.debug(f'Mapped {entity_class.__name__} to {spec.table}: {properties}')
        return cls(cn, entity_class, spec.table, table.column_names, spec.key, properties, eav)

    # Loading

    def hydrate(self, row: Mapping[str, Any]) -> Any:
        """Build an entity from a row, loading its sidecar properties."""
        kwargs = {prop: row[prop] for prop in self.properties if prop in row}
        for prop in self.eav:
            kwargs[prop] = self.load_eav(prop, row[self.key])
        return self.entity_class(**kwargs)

    def select(self, *columns: Any) -> Select:
        """Query entities. Rows are hydrated into entity instances.
        """
        columns = columns or tuple(self[prop] for prop in self.properties)
        return Select(self.cn, self, columns, hydrator=self.hydrate)

    def load(self, id: Any) -> Any | None:
        """Load the entity with key `id`, or None."""
        return self.select().where({self.key: id}).get_first()

    def load_all(self, ids: Iterable[Any]) -> list[Any]:
        """Load the entities with the given keys, in key order."""
        ids = list(ids)
        if not ids:
            return []
        return self.select().where({self.key: ids}).order(self[self.key]).get_all()

    def find(self, match: Any = None) -> Select:
        """Query the entities matching `match`."""
        return self.select().where(*match_all(self.cn, match, resolve=self.resolve))

    def load_eav(self, prop: str, id: Any) -> dict[str, Any]:
        table = self.eav[prop]
        rows = table.select(table['attribute'], table['value']).where({'entity': id})
        return {row.attribute: row.value for row in rows}

    # Saving

    def save(self, entity: Any) -> Any:
        """Insert the entity when its key is falsy, update it otherwise.

        A new entity gets its generated key assigned. Sidecar properties are
        rewritten in the same transaction.

        Returns
            The entity's key
        """
        values = {prop: getattr(entity, prop) for prop in self.properties if prop != self.key}
        id = getattr(entity, self.key, None)
        with self.cn.new_transaction() as tx:
            if id:
                if values:
                    self.update(values, {self.key: id})
            else:
                id = Insert(self.cn, self).values(values).execute_for_id(self.key)
            for prop in self.eav:
                self.save_eav(prop, id, getattr(entity, prop, None) or {})
            tx.commit()
        setattr(entity, self.key, id)
        return id

    def save_eav(self, prop: str, id: Any, attributes: Mapping[str, Any]) -> None:
        """Replace the sidecar rows of one entity property."""
        table = self.eav[prop]
        table.delete({'entity': id})
        insert = table.statement('insert', lambda: Insert(self.cn, table).values(
            dict(zip(EAV_COLUMNS, slots(EAV_COLUMNS)))).to_sql())
        for attribute, value in attributes.items():
            insert.execute(entity=id, attribute=attribute, value=value)

    def delete(self, entity: Any) -> int:
        """Delete an entity and its sidecar rows.

        Anything that is not an entity is treated as a match, as for tables.
        """
        if not isinstance(entity, self.entity_class):
            return super().delete(entity)
        id = getattr(entity, self.key)
        with self.cn.new_transaction() as tx:
            for table in self.eav.values():
                table.delete({'entity': id})
            count = super().delete({self.key: id})
            tx.commit()
        return count
