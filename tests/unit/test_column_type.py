import pytest
from fluentdb.exceptions import ConfigurationError
from fluentdb.strategy import get_strategy
from fluentdb.types import ColumnType, validate_column_type


def test_kind_and_flags():
    """A column type splits into its base kind and flags"""
    ctype = ColumnType.STRING | ColumnType.NULLABLE | ColumnType.UNIQUE
    assert ctype.kind is ColumnType.STRING
    assert ctype.is_nullable
    assert ctype.is_unique
    assert not ctype.is_primary


def test_autoincrement_is_primary():
    assert ColumnType.AUTOINCREMENT.is_primary
    assert ColumnType.AUTOINCREMENT_PRIMARY_KEY.kind is ColumnType.AUTOINCREMENT


def test_aliases():
    assert ColumnType.STRING_NULLABLE == ColumnType.STRING | ColumnType.NULLABLE
    assert ColumnType.DATETIME_NULLABLE.kind is ColumnType.DATETIME


def test_validate_requires_one_kind():
    """Exactly one base kind must be set"""
    assert validate_column_type('a', ColumnType.INTEGER | ColumnType.PRIMARY) == 513
    with pytest.raises(ConfigurationError):
        validate_column_type('a', ColumnType.NULLABLE)
    with pytest.raises(ConfigurationError):
        validate_column_type('a', ColumnType.INTEGER | ColumnType.STRING)


@pytest.mark.parametrize(('dialect', 'ctype', 'expected'), [
    ('sqlite', ColumnType.STRING, 'VARCHAR(255) NOT NULL'),
    ('sqlite', ColumnType.FLOAT_NULLABLE, 'REAL NULL'),
    ('sqlite', ColumnType.AUTOINCREMENT, 'INTEGER PRIMARY KEY AUTOINCREMENT'),
    ('postgresql', ColumnType.FLOAT, 'DOUBLE PRECISION NOT NULL'),
    ('postgresql', ColumnType.BLOB_NULLABLE, 'BYTEA NULL'),
    ('postgresql', ColumnType.AUTOINCREMENT, 'SERIAL PRIMARY KEY'),
    ('postgresql', ColumnType.DATETIME, 'TIMESTAMP NOT NULL'),
    ('mysql', ColumnType.STRING | ColumnType.UNIQUE, 'VARCHAR(255) NOT NULL UNIQUE'),
    ('mysql', ColumnType.AUTOINCREMENT, 'INTEGER PRIMARY KEY AUTO_INCREMENT'),
    ('mysql', ColumnType.TEXT, 'TEXT NOT NULL'),
])
def test_column_definition(dialect, ctype, expected):
    """Each dialect maps base kinds to its own DDL"""
    assert get_strategy(dialect).column_definition(ctype) == expected


def test_column_definition_with_default():
    """Columns added to existing tables get a default when NOT NULL"""
    strategy = get_strategy('sqlite')
    assert strategy.column_definition(ColumnType.INTEGER, with_default=True) == 'INTEGER NOT NULL DEFAULT 0'
    assert strategy.column_definition(ColumnType.STRING, with_default=True) == "VARCHAR(255) NOT NULL DEFAULT ''"
    assert strategy.column_definition(ColumnType.STRING_NULLABLE, with_default=True) == 'VARCHAR(255) NULL'
    assert strategy.column_definition(ColumnType.DATETIME, with_default=True) == 'DATETIME NOT NULL'
