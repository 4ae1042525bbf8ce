import pandas as pd
import pytest
from fluentdb.exceptions import ConfigurationError
from fluentdb.options import DatabaseOptions, iterdict_data_loader
from fluentdb.options import pandas_numpy_data_loader, pandas_pyarrow_data_loader


def test_init_defaults():
    """Test default initialization"""
    options = DatabaseOptions(database=':memory:')

    assert options.drivername == 'sqlite'
    assert options.appname is not None
    assert options.driver_options == {}
    assert options.connection_class is None
    assert options.migrations is None
    assert options.logger is None
    assert options.data_loader == iterdict_data_loader


def test_validation():
    """Test validation rules"""
    with pytest.raises(ConfigurationError):
        DatabaseOptions(drivername='invalid', database='testdb')

    with pytest.raises(ConfigurationError):
        DatabaseOptions(drivername='postgresql', hostname='testhost')

    with pytest.raises(ConfigurationError):
        DatabaseOptions(drivername='mysql', hostname='testhost', database='testdb')


def test_configuration_error_is_value_error():
    """Callers catching ValueError keep working"""
    with pytest.raises(ValueError):
        DatabaseOptions(drivername='sqlite')


def test_postgres_options():
    options = DatabaseOptions(
        drivername='postgresql',
        hostname='testhost',
        username='testuser',
        password='testpass',
        database='testdb',
        port=1234,
        timeout=30,
    )
    assert options.port == 1234
    assert options.timeout == 30


def test_mysql_password_optional():
    options = DatabaseOptions(drivername='mysql', hostname='h', username='root', database='testdb')
    assert options.password is None


def test_driver_options_must_be_mapping():
    with pytest.raises(ConfigurationError):
        DatabaseOptions(database=':memory:', driver_options=['timeout', 5])
    options = DatabaseOptions(database=':memory:', driver_options=None)
    assert options.driver_options == {}


def test_iterdict_loader():
    rows = [{'a': 1}, {'a': 2}]
    assert iterdict_data_loader(rows, ['a']) == rows
    assert iterdict_data_loader([], ['a']) == []


def test_pandas_loaders():
    """Both DataFrame loaders keep the column order, also when empty"""
    rows = [{'a': 1, 'b': 'x'}, {'a': 2, 'b': 'y'}]
    for loader in (pandas_numpy_data_loader, pandas_pyarrow_data_loader):
        df = loader(rows, ['a', 'b'])
        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == ['a', 'b']
        assert df['a'].tolist() == [1, 2]
        empty = loader([], ['a', 'b'])
        assert list(empty.columns) == ['a', 'b']
        assert len(empty) == 0
