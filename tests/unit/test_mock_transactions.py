"""
Transaction levels map onto BEGIN/COMMIT and numbered savepoints.
"""
import pytest
from fluentdb.exceptions import InvariantViolation


@pytest.mark.parametrize('dialect', ['postgresql', 'mysql', 'sqlite'])
def test_nested_levels(mock_cn, dialect):
    """Levels past the first are savepoints named after their depth"""
    cn, log = mock_cn(dialect)
    begin = 'START TRANSACTION' if dialect == 'mysql' else 'BEGIN'

    cn.begin()
    cn.begin()
    cn.begin()
    assert cn.transaction_depth == 3
    cn.commit()
    cn.rollback()
    cn.commit()

    assert log == [
        begin,
        'SAVEPOINT SAVEPOINT_1',
        'SAVEPOINT SAVEPOINT_2',
        'RELEASE SAVEPOINT SAVEPOINT_2',
        'ROLLBACK TO SAVEPOINT SAVEPOINT_1',
        'COMMIT',
        ]
    assert cn.transaction_depth == 0
    assert not cn.in_transaction


def test_commit_without_transaction(mock_cn):
    cn, log = mock_cn('postgresql')
    with pytest.raises(InvariantViolation):
        cn.commit()
    with pytest.raises(InvariantViolation):
        cn.rollback()
    assert log == []


def test_failed_statement_keeps_depth(mock_cn):
    """A level only counts once its SQL succeeded"""
    cn, _ = mock_cn('postgresql')
    cn.dbapi_connection.cursor.return_value.execute.side_effect = RuntimeError('gone')
    with pytest.raises(RuntimeError):
        cn.begin()
    assert cn.transaction_depth == 0


def test_scope_rolls_back_unless_committed(mock_cn):
    """A transaction scope left without commit is rolled back"""
    cn, log = mock_cn('postgresql')
    with cn.new_transaction() as tx:
        tx.execute('DELETE FROM t')
    assert log == ['BEGIN', 'DELETE FROM t', 'ROLLBACK']

    log.clear()
    with cn.new_transaction() as tx:
        tx.execute('DELETE FROM t')
        tx.commit()
    assert log == ['BEGIN', 'DELETE FROM t', 'COMMIT']


def test_scope_finishes_once(mock_cn):
    cn, _ = mock_cn('postgresql')
    with cn.new_transaction() as tx:
        tx.commit()
        with pytest.raises(InvariantViolation):
            tx.rollback()


def test_transact(mock_cn):
    """Work is committed when it returns and rolled back when it raises"""
    cn, log = mock_cn('mysql')
    assert cn.transact(lambda c: c.execute('UPDATE t SET a = 1')) == 1
    assert log == ['START TRANSACTION', 'UPDATE t SET a = 1', 'COMMIT']

    log.clear()

    def fail(c):
        c.execute('UPDATE t SET a = 2')
        raise KeyError('boom')

    with pytest.raises(KeyError):
        cn.transact(fail)
    assert log == ['START TRANSACTION', 'UPDATE t SET a = 2', 'ROLLBACK']
    assert cn.transaction_depth == 0


def test_close_rolls_back_open_levels(mock_cn):
    cn, log = mock_cn('postgresql')
    cn.begin()
    cn.begin()
    cn.close()
    assert log[-1] == 'ROLLBACK'
    assert cn.transaction_depth == 0
    cn.dbapi_connection.close.assert_called_once()


def test_statistics(mock_cn):
    """Every statement is counted"""
    cn, _ = mock_cn('sqlite')
    cn.execute('SELECT 1')
    cn.execute('SELECT 2')
    assert cn.calls == 2
    assert cn.time >= 0


@pytest.mark.parametrize('dialect', ['postgresql', 'mysql', 'sqlite'])
def test_dialect_predicates(mock_cn, dialect):
    cn, _ = mock_cn(dialect)
    assert cn.dialect == dialect
    assert [cn.is_sqlite, cn.is_mysql, cn.is_postgresql] == [
        dialect == 'sqlite', dialect == 'mysql', dialect == 'postgresql']
