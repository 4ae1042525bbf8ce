"""
MySQL-specific strategy implementation.

This module implements the DatabaseStrategy interface for MySQL using
mysql-connector-python. It handles MySQL's differences such as:
- Backtick identifier quoting and backslash escapes in string literals
- `INSERT IGNORE`
- Unique keys dropped as indexes
- Buffered cursors, so a lazily-read result never blocks the next statement
"""
import logging
from typing import TYPE_CHECKING, Any

from fluentdb.strategy.base import DatabaseStrategy, register_strategy
from fluentdb.types import ColumnType

if TYPE_CHECKING:
    from fluentdb.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('mysql')
class MySQLStrategy(DatabaseStrategy):
    """MySQL-specific operations.
    """

    drivername = 'mysql+mysqlconnector'

    begin_sql = 'START TRANSACTION'

    current_schema_sql = 'DATABASE()'

    unlimited = '18446744073709551615'

    column_types = {
        ColumnType.INTEGER: 'INTEGER',
        ColumnType.FLOAT: 'DOUBLE',
        ColumnType.BOOLEAN: 'BOOLEAN',
        ColumnType.STRING: 'VARCHAR(255)',
        ColumnType.TEXT: 'TEXT',
        ColumnType.BLOB: 'BLOB',
        ColumnType.DATETIME: 'DATETIME',
        ColumnType.AUTOINCREMENT: 'INTEGER PRIMARY KEY AUTO_INCREMENT',
    }

    #: TEXT and BLOB columns only take expression defaults.
    column_defaults = {
        **DatabaseStrategy.column_defaults,
        ColumnType.TEXT: "('')",
        ColumnType.BLOB: "('')",
        }

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for MySQL."""
        return 'mysql'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for MySQL connections."""
        return ['hostname', 'username', 'database']

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        kwargs = super().get_engine_kwargs(options)
        if options.timeout:
            kwargs['connect_args'].setdefault('connection_timeout', options.timeout)
        return kwargs

    def configure_connection(self, raw_conn: Any) -> None:
        """Hand transaction control to the connection wrapper.
        """
        raw_conn.autocommit = True

    def cursor(self, raw_conn: Any) -> Any:
        return raw_conn.cursor(buffered=True)

    def quote_identifier(self, identifier: str) -> str:
        return '`' + identifier.replace('`', '``') + '`'

    def quote_string(self, value: str) -> str:
        """Escape backslashes as well, MySQL treats them as escape characters.
        """
        return "'" + value.replace('\\', '\\\\').replace("'", "''") + "'"

    def drop_unique_key(self, table: str, name: str) -> str:
        return (f'ALTER TABLE {self.quote_identifier(table)} '
                f'DROP INDEX {self.quote_identifier(name)}')
