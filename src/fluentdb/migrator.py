"""
Schema migrations.

A migration is a Python file in the migrations directory named
`<timestamp>_<Label>.py`, the timestamp in ISO-8601 basic format so that
names sort chronologically. It defines `up(schema)` and `down(schema)`,
either as module functions or on a module-level `migration` object:

    # 20240105T093000Z_Authors.py
    from fluentdb import ColumnType

    def up(schema):
        schema.create_table('authors', {
            'id': ColumnType.AUTOINCREMENT,
            'name': ColumnType.STRING,
            })

    def down(schema):
        schema.drop_table('authors')

Applied migrations are recorded in the `__migrations__` table.
"""
import importlib.util
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from fluentdb.exceptions import ConfigurationError
from fluentdb.schema import Schema
from fluentdb.types import ColumnType

if TYPE_CHECKING:
    from fluentdb.connection import ConnectionWrapper

__all__ = ['Migration', 'Migrator', 'MIGRATIONS_TABLE']

logger = logging.getLogger(__name__)

MIGRATIONS_TABLE = '__migrations__'

_LABEL = re.compile(r'^[A-Za-z][A-Za-z0-9_]*$')

_TEMPLATE = '''\
"""{name}"""


def up(schema):
    pass


def down(schema):
    pass
'''


@runtime_checkable
class Migration(Protocol):
    """A reversible schema change."""

    def up(self, schema: Schema) -> None:
        ...

    def down(self, schema: Schema) -> None:
        ...


class Migrator:
    """Applies and reverts the migrations of a directory.
    """

    def __init__(self, cn: 'ConnectionWrapper', directory: str | Path) -> None:
        self.cn = cn
        self.directory = Path(directory)

    def __repr__(self) -> str:
        return f'Migrator({str(self.directory)!r})'

    # Bookkeeping

    def _ensure_table(self) -> None:
        if MIGRATIONS_TABLE not in self.cn:
            self.cn.get_schema().create_table(MIGRATIONS_TABLE, {
                'version': ColumnType.STRING | ColumnType.PRIMARY,
                'applied': ColumnType.DATETIME,
                })

    def get_available(self) -> list[str]:
        """Versions of all migration files, in ascending order."""
        if not self.directory.is_dir():
            raise ConfigurationError(f'Migrations directory {self.directory} does not exist')
        return sorted(path.stem for path in self.directory.glob('*.py')
                      if not path.name.startswith('_'))

    def get_applied(self) -> list[str]:
        """Versions already applied, in ascending order."""
        self._ensure_table()
        table = self.cn[MIGRATIONS_TABLE]
        return sorted(table.select(table['version']).execute().fetch_column())

    def get_pending(self) -> list[str]:
        applied = set(self.get_applied())
        return [version for version in self.get_available() if version not in applied]

    def get_current(self) -> str | None:
        """The latest applied version, or None."""
        applied = self.get_applied()
        return applied[-1] if applied else None

    def load(self, version: str) -> Migration:
        """Import the migration file of `version`.

        Raises
            ConfigurationError: If the file is missing or lacks up/down
        """
        path = self.directory / f'{version}.py'
        if not path.is_file():
            raise ConfigurationError(f'Migration {version} not found in {self.directory}')
        module_name = 'fluentdb_migration_' + re.sub(r'\W', '_', version)
        spec = importlib.util.spec_from_file_location(module_name, path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        migration = getattr(module, 'migration', module)
        if not (callable(getattr(migration, 'up', None)) and callable(getattr(migration, 'down', None))):
            raise ConfigurationError(f'Migration {version} must define up(schema) and down(schema)')
        return migration

    # Running

    def _run(self, version: str, direction: str) -> None:
        migration = self.load(version)
        table = self.cn[MIGRATIONS_TABLE]
        logger.info(f'Migrating {direction}: {version}')
        self.cn.begin()
        try:
            getattr(migration, direction)(Schema(self.cn))
            if direction == 'up':
                table.insert({'version': version, 'applied': datetime.now().isoformat(' ', 'seconds')})
            else:
                table.delete({'version': version})
        except Exception:
            logger.error(f'Migration {version} failed going {direction}, rolling back')
            self.cn.rollback()
            self.cn.forget_tables()
            raise
        self.cn.commit()

    def up(self, to: str | None = None) -> list[str]:
        """Apply pending migrations in ascending order, up to and including `to`.

        Returns
            The versions applied. A failing migration is rolled back and its
            error propagates; migrations applied before it stay applied.
        """
        pending = self.get_pending()
        if to is not None:
            if to not in pending and to not in self.get_applied():
                raise ConfigurationError(f'Unknown migration {to}')
            pending = [version for version in pending if version <= to]
        done = []
        for version in pending:
            self._run(version, 'up')
            done.append(version)
        return done

    def down(self, to: str | None = None) -> list[str]:
        """Revert applied migrations in descending order.

        Without `to`, only the latest migration is reverted. With `to`, every
        migration applied after `to` is reverted and `to` becomes current.

        Returns
            The versions reverted.
        """
        applied = self.get_applied()
        if to is None:
            targets = applied[-1:]
        else:
            if to not in applied:
                raise ConfigurationError(f'Migration {to} is not applied')
            targets = [version for version in applied if version > to]
        done = []
        for version in reversed(targets):
            self._run(version, 'down')
            done.append(version)
        return done

    def create(self, label: str) -> Path:
        """Write an empty migration file for `label` and return its path."""
        if not _LABEL.match(label):
            raise ConfigurationError(f'Invalid migration label {label!r}')
        self.directory.mkdir(parents=True, exist_ok=True)
        version = f'{datetime.now(timezone.utc):%Y%m%dT%H%M%SZ}_{label}'
        path = self.directory / f'{version}.py'
        path.write_text(_TEMPLATE.format(name=version))
        logger.info(f'Created migration {path}')
        return path
