"""
Mock connections for dialect tests that need no database server.

The DBAPI connection is a MagicMock, so every statement succeeds and the
SQL can be inspected through the connection's logging hook.

Usage:
    def test_begin(mock_cn):
        cn, log = mock_cn('postgresql')
        cn.begin()
        assert log == ['BEGIN']
"""
import pytest
from fluentdb.connection import ConnectionWrapper


@pytest.fixture
def mock_cn(mocker):
    """Factory returning `(connection, sql_log)` for a dialect name."""
    def factory(dialect='postgresql'):
        dbapi_connection = mocker.MagicMock(name=f'{dialect}_connection')
        cursor = dbapi_connection.cursor.return_value
        cursor.description = None
        cursor.rowcount = 1
        cursor.fetchone.return_value = None
        log = []
        cn = ConnectionWrapper(dbapi_connection=dbapi_connection, dialect=dialect)
        cn.set_logger(log.append)
        return cn, log
    return factory
