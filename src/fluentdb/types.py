"""
Column type vocabulary used by schema declarations.

A column type is one base kind optionally combined with orthogonal flags:

    ColumnType.STRING | ColumnType.NULLABLE
    ColumnType.INTEGER | ColumnType.PRIMARY

The vocabulary is dialect-independent; each strategy maps the base kind to
its own DDL.
"""
from enum import IntFlag

from fluentdb.exceptions import ConfigurationError


class ColumnType(IntFlag):
    """Closed set of column kinds plus PRIMARY/NULLABLE/UNIQUE flags.
    """
    INTEGER = 1
    FLOAT = 2
    BOOLEAN = 4
    STRING = 8
    TEXT = 16
    BLOB = 32
    DATETIME = 64
    AUTOINCREMENT = 128

    NULLABLE = 256
    PRIMARY = 512
    UNIQUE = 1024

    INTEGER_NULLABLE = INTEGER | NULLABLE
    FLOAT_NULLABLE = FLOAT | NULLABLE
    BOOLEAN_NULLABLE = BOOLEAN | NULLABLE
    STRING_NULLABLE = STRING | NULLABLE
    TEXT_NULLABLE = TEXT | NULLABLE
    BLOB_NULLABLE = BLOB | NULLABLE
    DATETIME_NULLABLE = DATETIME | NULLABLE
    AUTOINCREMENT_PRIMARY_KEY = AUTOINCREMENT | PRIMARY

    @property
    def kind(self) -> 'ColumnType':
        """The base kind with all flags stripped."""
        return ColumnType(self & KIND_MASK)

    @property
    def is_nullable(self) -> bool:
        return bool(self & ColumnType.NULLABLE)

    @property
    def is_primary(self) -> bool:
        return bool(self & ColumnType.PRIMARY) or self.kind is ColumnType.AUTOINCREMENT

    @property
    def is_unique(self) -> bool:
        return bool(self & ColumnType.UNIQUE)


KIND_MASK = 255

KINDS = (
    ColumnType.INTEGER,
    ColumnType.FLOAT,
    ColumnType.BOOLEAN,
    ColumnType.STRING,
    ColumnType.TEXT,
    ColumnType.BLOB,
    ColumnType.DATETIME,
    ColumnType.AUTOINCREMENT,
    )


def validate_column_type(name: str, ctype: int) -> ColumnType:
    """Coerce an int to ColumnType, requiring exactly one base kind.

    Raises
        ConfigurationError: If zero or several base kinds are set
    """
    ctype = ColumnType(ctype)
    kinds = [k for k in KINDS if ctype & k]
    if len(kinds) != 1:
        raise ConfigurationError(f'Column {name} must declare exactly one base type, got {ctype!r}')
    return ctype
