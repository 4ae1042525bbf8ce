import logging

import config
import fluentdb as db
import pytest
from tests.fixtures.library import create_library
from testcontainers.postgres import PostgresContainer

from libb import Setting

logger = logging.getLogger(__name__)


@pytest.fixture(scope='session')
def psql_docker(request):
    """Session-scoped PostgreSQL container using testcontainers.

    Testcontainers assigns a random port and waits for the database to be
    ready; the profile in `config` is pointed at it.
    """
    container = PostgresContainer(
        image='postgres:16',
        username=config.postgresql.username,
        password=config.postgresql.password,
        dbname=config.postgresql.database,
    )

    try:
        container.start()

        Setting.unlock()
        config.postgresql.hostname = container.get_container_host_ip()
        config.postgresql.port = int(container.get_exposed_port(5432))
        Setting.lock()

        logger.info(f'PostgreSQL container started at '
                    f'{config.postgresql.hostname}:{config.postgresql.port}')

        def finalizer():
            try:
                container.stop()
                logger.info('PostgreSQL container stopped')
            except Exception as e:
                logger.warning(f'Error stopping container: {e}')

        request.addfinalizer(finalizer)
        return container

    except Exception as e:
        logger.error(f'Error setting up postgres container: {e}')
        try:
            container.stop()
        except Exception:
            pass
        raise


def drop_all_tables(cn):
    for table in cn.get_tables():
        cn.execute(f'DROP TABLE IF EXISTS {cn.quote_identifier(table)} CASCADE')


@pytest.fixture
def pg_conn(psql_docker):
    """PostgreSQL connection holding the library schema, emptied afterwards."""
    cn = db.connect('postgresql', config=config)
    drop_all_tables(cn)
    create_library(cn.get_schema())
    try:
        yield cn
    finally:
        drop_all_tables(cn)
        cn.close()
