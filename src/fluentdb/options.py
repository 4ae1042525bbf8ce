from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pandas as pd
import pyarrow as pa
from fluentdb.exceptions import ConfigurationError
from fluentdb.strategy import get_available_dialects, get_strategy_class
from fluentdb.strategy import is_supported_dialect

from libb import ConfigOptions, scriptname

__all__ = [
    'DatabaseOptions',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    'iterdict_data_loader',
]


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader.

    Accepts additional keyword arguments for compatibility with other data
    loaders, but doesn't use them.
    """
    if not data:
        return []
    return list(data)


def pandas_numpy_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not data:
        return pd.DataFrame(columns=list(columns))
    return pd.DataFrame.from_records(list(data), columns=list(columns))


def pandas_pyarrow_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """PyArrow-based pandas DataFrame loader.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    """
    if not data:
        return pd.DataFrame(columns=list(columns))
    columns_data = [[row[col] for row in data] for col in columns]
    return pa.table(columns_data, names=list(columns)).to_pandas(types_mapper=pd.ArrowDtype)


@dataclass
class DatabaseOptions(ConfigOptions):
    """Connection profile.

    supported driver names: `sqlite`, `postgresql`, `mysql`

    - driver_options: passed verbatim to the DBAPI `connect()`
    - connection_class: ConnectionWrapper subclass to instantiate
    - migrations: directory holding migration files for this connection
    - logger: callback receiving every SQL string before it is executed
    - data_loader: converts `select()` results (default: list of rows)
    """
    drivername: str = 'sqlite'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    driver_options: dict[str, Any] = field(default_factory=dict)
    connection_class: type | None = None
    migrations: str | None = None
    logger: Callable[[str], None] | None = None
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ConfigurationError(f'drivername must be one of: {available}')
        if self.driver_options is None:
            self.driver_options = {}
        if not isinstance(self.driver_options, dict):
            raise ConfigurationError('driver_options must be a mapping')
        self.appname = self.appname or scriptname() or 'python_console'
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
        if self.data_loader is None:
            self.data_loader = iterdict_data_loader
