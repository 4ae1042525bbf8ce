import fluentdb as db
import pytest
from fluentdb.exceptions import ConfigurationError
from fluentdb.migrator import MIGRATIONS_TABLE, Migration

AUTHORS = '''
from fluentdb import ColumnType


def up(schema):
    schema.create_table('authors', {
        'id': ColumnType.AUTOINCREMENT,
        'name': ColumnType.STRING,
        })


def down(schema):
    schema.drop_table('authors')
'''

BORN = '''
from fluentdb import ColumnType


class AddBorn:
    def up(self, schema):
        schema.add_column('authors', 'born', ColumnType.INTEGER_NULLABLE)

    def down(self, schema):
        schema.drop_column('authors', 'born')


migration = AddBorn()
'''

BROKEN = '''
from fluentdb import ColumnType


def up(schema):
    schema.create_table('half_done', {'id': ColumnType.AUTOINCREMENT})
    schema.drop_table('does_not_exist')


def down(schema):
    pass
'''

V1 = '20240101T000000Z_Authors'
V2 = '20240102T000000Z_AddBorn'
V3 = '20240103T000000Z_Broken'


@pytest.fixture
def migrations(tmp_path):
    directory = tmp_path / 'migrations'
    directory.mkdir()
    (directory / f'{V1}.py').write_text(AUTHORS)
    (directory / f'{V2}.py').write_text(BORN)
    (directory / '__init__.py').write_text('')
    return directory


@pytest.fixture
def cn(migrations):
    cn = db.connect({'drivername': 'sqlite', 'database': ':memory:', 'migrations': str(migrations)})
    yield cn
    cn.close()


def test_up_applies_in_order(cn):
    migrator = cn.get_migrator()
    assert migrator.get_available() == [V1, V2]
    assert migrator.get_pending() == [V1, V2]
    assert migrator.get_current() is None

    assert db.migrate(cn) == [V1, V2]
    assert cn['authors'].column_names == ['id', 'name', 'born']
    assert migrator.get_applied() == [V1, V2]
    assert migrator.get_pending() == []
    assert migrator.up() == []


def test_up_to(cn):
    migrator = cn.get_migrator()
    assert migrator.up(V1) == [V1]
    assert migrator.get_current() == V1
    assert cn['authors'].column_names == ['id', 'name']
    with pytest.raises(ConfigurationError):
        migrator.up('20990101T000000Z_Unknown')


def test_down_reverts_latest(cn):
    migrator = cn.get_migrator()
    migrator.up()
    assert migrator.down() == [V2]
    assert cn['authors'].column_names == ['id', 'name']
    assert migrator.down() == [V1]
    assert 'authors' not in cn
    assert migrator.down() == []


def test_down_to(cn):
    migrator = cn.get_migrator()
    migrator.up()
    assert migrator.down(V1) == [V2]
    assert migrator.get_current() == V1
    with pytest.raises(ConfigurationError):
        migrator.down(V2)


def test_up_down_is_structural_inverse(cn):
    """Applying and reverting every migration restores the original tables"""
    migrator = cn.get_migrator()
    migrator.get_applied()
    before = cn.get_tables()
    migrator.up()
    migrator.down(migrator.get_applied()[0])
    migrator.down()
    assert cn.get_tables() == before
    assert migrator.get_applied() == []


AUTHOR_KEYS = '''
from fluentdb import ColumnType, Schema


def up(schema):
    schema.add_unique_key_constraint('authors', ['name'])
    schema.add_unique_key_constraint('authors', ['id', 'name'])
    schema.create_table('authors_eav', {
        'entity': ColumnType.INTEGER,
        'attribute': ColumnType.STRING,
        'value': ColumnType.STRING_NULLABLE,
        }, {
        Schema.PRIMARY: ['entity', 'attribute'],
        Schema.FOREIGN: {'entity': schema['authors']['id']},
        })


def down(schema):
    schema.drop_table('authors_eav')
    schema.drop_unique_key_constraint('authors', ['id', 'name'])
    schema.drop_unique_key_constraint('authors', ['name'])
'''


def sqlite_structure(cn):
    """Every table and index definition, SQLite bookkeeping tables aside."""
    sql = "SELECT type, name, tbl_name, sql FROM sqlite_master WHERE name NOT LIKE 'sqlite_%' ORDER BY name"
    return [dict(row) for row in cn.query(sql)]


def test_keys_and_sidecar_revert_to_original_structure(tmp_path):
    """Unique keys and a dependent sidecar table are undone in reverse order"""
    directory = tmp_path / 'library'
    directory.mkdir()
    (directory / f'{V1}.py').write_text(AUTHORS)
    (directory / '20240105T000000Z_AuthorKeys.py').write_text(AUTHOR_KEYS)
    with db.connect({'drivername': 'sqlite', 'database': ':memory:', 'migrations': str(directory)}) as cn:
        migrator = cn.get_migrator()
        migrator.get_applied()
        before = sqlite_structure(cn)

        migrator.up()
        names = {row['name'] for row in sqlite_structure(cn)}
        assert {'authors', 'authors_eav', 'UQ_authors__name', 'UQ_authors__id__name'} <= names

        migrator.down(V1)
        migrator.down()
        assert migrator.get_applied() == []
        assert sqlite_structure(cn) == before


def test_failure_halts_and_rolls_back(cn, migrations):
    """A failing migration is undone; earlier ones stay applied"""
    (migrations / f'{V3}.py').write_text(BROKEN)
    migrator = cn.get_migrator()
    with pytest.raises(db.DriverError):
        migrator.up()
    assert migrator.get_applied() == [V1, V2]
    assert 'half_done' not in cn
    assert cn.transaction_depth == 0


def test_migration_table(cn):
    cn.get_migrator().up()
    table = cn[MIGRATIONS_TABLE]
    assert table.column_names == ['version', 'applied']
    assert table.count() == 2


def test_load(cn):
    migrator = cn.get_migrator()
    assert isinstance(migrator.load(V2), Migration)
    with pytest.raises(ConfigurationError):
        migrator.load('20990101T000000Z_Missing')


def test_missing_up_down(cn, migrations):
    (migrations / '20240104T000000Z_Empty.py').write_text('x = 1\n')
    with pytest.raises(ConfigurationError):
        cn.get_migrator().load('20240104T000000Z_Empty')


def test_create(cn, migrations):
    """New migrations are stubs named by UTC timestamp and label"""
    path = cn.get_migrator().create('AddTags')
    assert path.parent == migrations
    assert path.name.endswith('Z_AddTags.py')
    assert 'def up(schema)' in path.read_text()
    assert path.stem in cn.get_migrator().get_pending()
    with pytest.raises(ConfigurationError):
        cn.get_migrator().create('not a label')


def test_no_directory():
    with db.connect({'drivername': 'sqlite', 'database': ':memory:'}) as cn:
        with pytest.raises(ConfigurationError):
            cn.get_migrator()


def test_explicit_directory(migrations):
    with db.connect({'drivername': 'sqlite', 'database': ':memory:'}) as cn:
        assert cn.get_migrator(str(migrations)).up() == [V1, V2]
