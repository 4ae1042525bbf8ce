"""
Schema changes: creating, altering and dropping tables.

    schema = cn.get_schema()
    schema.create_table('authors', {
        'id': ColumnType.AUTOINCREMENT,
        'name': ColumnType.STRING,
        })
    schema.create_table('books', {
        'id': ColumnType.AUTOINCREMENT,
        'author': ColumnType.INTEGER,
        'title': ColumnType.STRING,
        }, {
        Schema.FOREIGN: {'author': schema['authors']['id']},
        Schema.UNIQUE: [['author', 'title']],
        })

Every change drops the affected tables from the connection's reflection
cache, so the next lookup sees the new structure.
"""
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from fluentdb.exceptions import ConfigurationError
from fluentdb.table import Column, Table
from fluentdb.types import ColumnType, validate_column_type

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper

__all__ = ['Schema', 'unique_key_name']

logger = logging.getLogger(__name__)


def unique_key_name(table: str, columns: Iterable[str]) -> str:
    """Name of the unique key over `columns`: `UQ_<table>__<col>__<col>`."""
    return f'UQ_{table}__' + '__'.join(columns)


class Schema:
    """DDL operations on a connection.
    """

    PRIMARY = 'primary'
    FOREIGN = 'foreign'
    UNIQUE = 'unique'

    def __init__(self, cn: 'ConnectionWrapper') -> None:
        self.cn = cn
        self.strategy = cn.strategy

    def __getitem__(self, name: str) -> Table:
        table = self.cn.get_table(name)
        if table is None:
            raise KeyError(f'Table {name} does not exist')
        return table

    def get_table(self, name: str) -> Table | None:
        return self.cn.get_table(name)

    def __contains__(self, name: object) -> bool:
        return name in self.cn

    def get_tables(self) -> list[str]:
        return self.cn.get_tables()

    def _run(self, sql: str, *tables: str) -> 'Schema':
        self.cn.execute(sql)
        for table in tables:
            self.cn.forget_table(table)
        return self

    def _reference(self, table: str, column: str, ref: Any) -> Column:
        """Resolve a foreign key target: a column, or `'table.column'` text."""
        if isinstance(ref, str):
            ref_table, _, ref_column = ref.partition('.')
            target = self.cn.get_table(ref_table)
            if target is None or ref_column not in target:
                raise ConfigurationError(f'Foreign key {table}.{column} references unknown column {ref}')
            return target[ref_column]
        if isinstance(ref, Column):
            return ref
        raise ConfigurationError(f'Foreign key {table}.{column} must reference a column, got {ref!r}')

    def create_table(self, name: str, columns: Mapping[str, int],
                     constraints: Mapping[str, Any] | None = None) -> 'Schema':
        """Create a table.

        Args:
            name: Table name
            columns: Column name -> `ColumnType`, in declaration order
            constraints: Optional table constraints:
                - `Schema.PRIMARY`: column names of a composite primary key
                - `Schema.FOREIGN`: column name -> referenced column
                - `Schema.UNIQUE`: list of column name lists
                - any other key naming a column is a shorthand foreign key

        Raises
            ConfigurationError: For malformed column types or constraints
        """
        q = self.strategy.quote_identifier
        definitions, primary = [], []
        for column, ctype in columns.items():
            ctype = validate_column_type(column, ctype)
            definitions.append(f'{q(column)} {self.strategy.column_definition(ctype)}')
            if ctype & ColumnType.PRIMARY and ctype.kind != ColumnType.AUTOINCREMENT:
                primary.append(column)

        constraints = dict(constraints or {})
        primary += [c for c in constraints.pop(self.PRIMARY, []) if c not in primary]
        unique = constraints.pop(self.UNIQUE, [])
        foreign = dict(constraints.pop(self.FOREIGN, {}))
        for key, ref in constraints.items():
            if key not in columns:
                raise ConfigurationError(f'Unknown constraint {key!r} on table {name}')
            foreign[key] = ref

        for column in [*primary, *foreign, *(c for cols in unique for c in cols)]:
            if column not in columns:
                raise ConfigurationError(f'Constraint on unknown column {name}.{column}')
        if primary:
            definitions.append(f'PRIMARY KEY ({", ".join(q(c) for c in primary)})')
        for cols in unique:
            definitions.append(f'CONSTRAINT {q(unique_key_name(name, cols))} '
                               f'UNIQUE ({", ".join(q(c) for c in cols)})')
        for column, ref in foreign.items():
            target = self._reference(name, column, ref)
            definitions.append(self.strategy.foreign_key(name, column, target.table.name, target.name))

        logger.debug(f'Creating table {name}')
        return self._run(f'CREATE TABLE {q(name)} ({", ".join(definitions)})', name)

    def drop_table(self, name: str) -> 'Schema':
        logger.debug(f'Dropping table {name}')
        return self._run(f'DROP TABLE {self.strategy.quote_identifier(name)}', name)

    def rename_table(self, name: str, new_name: str) -> 'Schema':
        q = self.strategy.quote_identifier
        return self._run(f'ALTER TABLE {q(name)} RENAME TO {q(new_name)}', name, new_name)

    def add_column(self, table: str, name: str, ctype: int) -> 'Schema':
        """Add a column. NOT NULL columns get a zero or empty default where the kind has one."""
        q = self.strategy.quote_identifier
        ctype = validate_column_type(name, ctype)
        definition = self.strategy.column_definition(ctype, with_default=True)
        return self._run(f'ALTER TABLE {q(table)} ADD COLUMN {q(name)} {definition}', table)

    def drop_column(self, table: str, name: str) -> 'Schema':
        q = self.strategy.quote_identifier
        return self._run(f'ALTER TABLE {q(table)} DROP COLUMN {q(name)}', table)

    def rename_column(self, table: str, name: str, new_name: str) -> 'Schema':
        q = self.strategy.quote_identifier
        return self._run(f'ALTER TABLE {q(table)} RENAME COLUMN {q(name)} TO {q(new_name)}', table)

    def add_unique_key_constraint(self, table: str, columns: Iterable[str]) -> 'Schema':
        columns = list(columns)
        sql = self.strategy.add_unique_key(table, unique_key_name(table, columns), columns)
        return self._run(sql, table)

    def drop_unique_key_constraint(self, table: str, columns: Iterable[str]) -> 'Schema':
        sql = self.strategy.drop_unique_key(table, unique_key_name(table, columns))
        return self._run(sql, table)
